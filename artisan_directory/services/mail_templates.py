"""Plain-text bodies for contact messages."""

from __future__ import annotations

from typing import Dict, Final

SUBJECT_PREFIX: Final[str] = "[Trouve ton artisan]"

TEMPLATES: Dict[str, Dict[str, str]] = {
    "provider_notification": {
        "subject": SUBJECT_PREFIX + " {subject}",
        "body": (
            "Bonjour {company_name},\n\n"
            "Vous avez reçu un nouveau message via Trouve ton artisan.\n\n"
            "De : {sender_name} <{sender_email}>\n"
            "Objet : {subject}\n\n"
            "{message}\n\n"
            "Répondez directement à cet email pour contacter {sender_name}."
        ),
    },
    "sender_confirmation": {
        "subject": "Confirmation - Votre message à {company_name}",
        "body": (
            "Bonjour {sender_name},\n\n"
            "Votre message a bien été transmis à {company_name} "
            "({specialty}, {city}).\n"
            "Vous devriez recevoir une réponse sous 48h.\n\n"
            "Rappel de votre message :\n"
            "Objet : {subject}\n\n"
            "{message}"
        ),
    },
}


def render(template_name: str, **values: str) -> tuple[str, str]:
    """Return the ``(subject, body)`` pair for a template."""

    template = TEMPLATES[template_name]
    return template["subject"].format(**values), template["body"].format(**values)


__all__ = ["SUBJECT_PREFIX", "TEMPLATES", "render"]
