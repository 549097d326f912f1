import json

import httpx
import pytest

from artisan_directory.core.config import Settings
from artisan_directory.core.errors import DependencyUnavailable
from artisan_directory.services.mail_client import MailMessage, MailRelayClient

MESSAGE = MailMessage(
    to="atelier@dupont.fr",
    subject="[Trouve ton artisan] Devis",
    text="Bonjour",
    reply_to="claire@example.fr",
)


def relay_client(handler, **kwargs):
    return MailRelayClient(
        "https://relay.example/api/",
        "secret-key",
        "no-reply@trouve-ton-artisan.fr",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_send_posts_payload_and_returns_message_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "relay-42"})

    assert relay_client(handler).send(MESSAGE) == "relay-42"
    assert seen["url"] == "https://relay.example/api/send"
    assert seen["auth"] == "Bearer secret-key"
    assert seen["body"] == {
        "from": "no-reply@trouve-ton-artisan.fr",
        "to": ["atelier@dupont.fr"],
        "subject": "[Trouve ton artisan] Devis",
        "text": "Bonjour",
        "reply_to": "claire@example.fr",
    }


def test_message_id_key_is_accepted():
    client = relay_client(lambda request: httpx.Response(200, json={"message_id": 7}))

    assert client.send(MESSAGE) == "7"


@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(500, json={"error": "boom"}),
        lambda request: httpx.Response(200, json={"status": "queued"}),
        lambda request: httpx.Response(200, text="not json"),
    ],
)
def test_relay_failures_are_dependency_errors(handler):
    with pytest.raises(DependencyUnavailable):
        relay_client(handler).send(MESSAGE)


def test_timeout_is_dependency_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(DependencyUnavailable) as excinfo:
        relay_client(handler).send(MESSAGE)

    assert "timed out" in excinfo.value.message


def test_missing_api_key_fails_without_calling_the_relay():
    calls = []
    client = MailRelayClient(
        "https://relay.example/api",
        "",
        "no-reply@trouve-ton-artisan.fr",
        transport=httpx.MockTransport(lambda request: calls.append(request)),
    )

    with pytest.raises(DependencyUnavailable):
        client.send(MESSAGE)
    assert calls == []


def test_mock_mode_skips_the_network():
    client = MailRelayClient.from_settings(
        Settings(mail_mock_mode=True, mail_relay_api_key="")
    )

    assert client.send(MESSAGE).startswith("mocked-")
