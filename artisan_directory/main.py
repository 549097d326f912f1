from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from pydantic import BaseModel
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware

from artisan_directory.core.config import Settings, get_settings
from artisan_directory.core.errors import DirectoryError, RateLimited, field_error
from artisan_directory.db.session import Store, get_db
from artisan_directory.logging_utils import (
    bind_request_context,
    configure_logging,
    reset_request_context,
)
from artisan_directory.services import catalog
from artisan_directory.services.contact import ContactDispatcher, MailRelay
from artisan_directory.services.filters import ProviderCriteria
from artisan_directory.services.mail_client import MailRelayClient
from artisan_directory.services.quota import ContactQuota, build_contact_quota
from artisan_directory.services.ranking import Page, SortKey

configure_logging(get_settings().log_level)

logger = logging.getLogger(__name__)

UNLIMITED_PATHS = frozenset({"/health", "/metrics"})

REQUEST_COUNTER = Counter(
    "artisan_directory_requests_total",
    "Total number of processed HTTP requests.",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "artisan_directory_request_duration_seconds",
    "HTTP request latency in seconds.",
    ["method", "path"],
)
CONTACT_COUNTER = Counter(
    "artisan_directory_contact_messages_total",
    "Contact submissions by outcome.",
    ["outcome"],
)


class SimpleRateLimiter:
    """In-memory fixed-window rate limiter keyed by client address."""

    def __init__(self, limit: int, window_seconds: int) -> None:
        self.limit = max(1, limit)
        self.window_seconds = max(1, window_seconds)
        self._entries: dict[str, tuple[int, float]] = {}
        self._lock = asyncio.Lock()

    async def allow(self, key: str) -> bool:
        now = time.monotonic()
        async with self._lock:
            count, window_start = self._entries.get(key, (0, now))
            if now - window_start >= self.window_seconds:
                self._entries[key] = (1, now)
                return True
            if count >= self.limit:
                return False
            self._entries[key] = (count + 1, window_start)
            return True


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Populate request and client context for logging."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        request.state.request_id = request_id
        context_tokens = bind_request_context(request_id, client_address(request))

        try:
            response = await call_next(request)
        finally:
            reset_request_context(context_tokens)

        response.headers["X-Request-ID"] = request_id
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply the general API limit per client address."""

    def __init__(self, app: FastAPI, limiter: SimpleRateLimiter) -> None:  # type: ignore[override]
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        if request.method == "OPTIONS" or request.url.path in UNLIMITED_PATHS:
            return await call_next(request)

        client_host = client_address(request)
        allowed = await self.limiter.allow(client_host)
        if not allowed:
            logger.warning("rate limit exceeded", extra={"client_ip": client_host})
            error = RateLimited("Too many requests, please retry later")
            return JSONResponse(status_code=error.status_code, content=error.as_dict())

        return await call_next(request)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Emit structured access logs and feed metrics."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        start_time = time.perf_counter()
        method = request.method

        try:
            response = await call_next(request)
        except Exception:
            elapsed = time.perf_counter() - start_time
            path = _route_path(request)
            REQUEST_COUNTER.labels(method=method, path=path, status="500").inc()
            REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)
            logger.exception(
                "request failed",
                extra={
                    "method": method,
                    "path": path,
                    "duration_ms": round(elapsed * 1000, 2),
                },
            )
            raise

        elapsed = time.perf_counter() - start_time
        path = _route_path(request)
        status_code = response.status_code

        REQUEST_COUNTER.labels(method=method, path=path, status=str(status_code)).inc()
        REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)

        logger.info(
            "request completed",
            extra={
                "method": method,
                "path": request.url.path,
                "status_code": status_code,
                "client": client_address(request),
                "duration_ms": round(elapsed * 1000, 2),
            },
        )

        return response


class ContactRequest(BaseModel):
    name: str
    email: str
    subject: str
    message: str


async def enforce_search_limit(request: Request) -> None:
    """Per-client limit on listing and search endpoints."""

    limiter: SimpleRateLimiter = request.app.state.search_limiter
    if not await limiter.allow(client_address(request)):
        raise RateLimited("Too many searches, please retry in a minute")


def page_limit(request: Request, limit: int | None, default: int | None = None) -> int:
    """Default and clamp a requested page size to the configured maximum."""

    app_settings: Settings = request.app.state.settings
    if limit is None:
        return app_settings.default_page_size if default is None else default
    return min(limit, app_settings.max_page_size)


def provider_criteria(
    q: str | None = None,
    city: str | None = None,
    department: str | None = None,
    specialty_id: int | None = None,
    category_id: int | None = None,
    min_rating: float | None = None,
) -> ProviderCriteria:
    return ProviderCriteria(
        text=q,
        city=city,
        department=department,
        specialty_id=specialty_id,
        category_id=category_id,
        min_rating=min_rating,
    )


def page_payload(result: Page) -> dict[str, Any]:
    return {
        "data": [catalog.serialize_provider(provider) for provider in result.items],
        "pagination": result.pagination(),
    }


router = APIRouter(prefix="/api/v1")


@router.get("/providers", dependencies=[Depends(enforce_search_limit)])
def list_providers(
    request: Request,
    criteria: ProviderCriteria = Depends(provider_criteria),
    sort: str | None = None,
    page: int = 1,
    limit: int | None = None,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Filtered, sorted and paginated provider listing."""

    sort_key = SortKey.parse(sort)
    result = catalog.list_providers(
        db, criteria, sort_key, page=page, limit=page_limit(request, limit)
    )
    payload = page_payload(result)
    payload["filters"] = criteria.as_dict()
    payload["sort"] = sort_key.value
    return payload


@router.get("/providers/search", dependencies=[Depends(enforce_search_limit)])
def search_providers(
    request: Request,
    q: str = "",
    limit: int | None = None,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    app_settings: Settings = request.app.state.settings
    size = page_limit(request, limit, app_settings.default_search_limit)
    providers = catalog.search_providers(db, q, size)
    return {
        "query": q.strip(),
        "count": len(providers),
        "data": [catalog.serialize_provider(provider) for provider in providers],
    }


@router.get("/providers/featured")
def featured_providers(
    request: Request,
    limit: int | None = None,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    app_settings: Settings = request.app.state.settings
    size = page_limit(request, limit, app_settings.default_featured_limit)
    providers = catalog.list_featured_providers(db, size)
    return {"data": [catalog.serialize_provider(provider) for provider in providers]}


@router.get("/providers/stats")
def provider_stats(
    criteria: ProviderCriteria = Depends(provider_criteria),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    return catalog.get_stats(db, criteria).as_dict()


@router.get("/providers/{provider_id}")
def get_provider(provider_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    chain = catalog.get_provider(db, provider_id)
    return {"data": catalog.serialize_provider(chain.provider, detail=True)}


@router.get("/categories")
def list_categories(
    with_stats: bool = False, db: Session = Depends(get_db)
) -> dict[str, Any]:
    summaries = catalog.list_categories(db, with_stats=with_stats)
    return {"data": [summary.as_dict() for summary in summaries]}


@router.get("/categories/search")
def find_category(name: str = Query(""), db: Session = Depends(get_db)) -> dict[str, Any]:
    category = catalog.find_category_by_name(db, name)
    return {"data": {"id": category.id, "name": category.name}}


@router.get("/categories/stats")
def category_stats(db: Session = Depends(get_db)) -> dict[str, Any]:
    return {"data": catalog.category_breakdown(db)}


@router.get("/categories/{category_id}")
def get_category(category_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    return {"data": catalog.get_category(db, category_id).as_dict()}


@router.get("/categories/{category_id}/specialties")
def category_specialties(
    category_id: int,
    with_provider_counts: bool = False,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    specialties = catalog.list_specialties_of_category(
        db, category_id, with_provider_counts=with_provider_counts
    )
    return {"data": [specialty.as_dict() for specialty in specialties]}


@router.get(
    "/categories/{category_id}/providers",
    dependencies=[Depends(enforce_search_limit)],
)
def category_providers(
    request: Request,
    category_id: int,
    criteria: ProviderCriteria = Depends(provider_criteria),
    sort: str | None = None,
    page: int = 1,
    limit: int | None = None,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Providers of one category, with the same filters as ``/providers``."""

    category, result = catalog.list_providers_of_category(
        db, category_id, criteria, sort, page=page, limit=page_limit(request, limit)
    )
    payload = page_payload(result)
    payload["category"] = {"id": category.id, "name": category.name}
    return payload


@router.get("/contact/stats")
def contact_stats(db: Session = Depends(get_db)) -> dict[str, Any]:
    return {"data": catalog.contact_stats(db).as_dict()}


@router.post("/contact/{provider_id}")
def submit_contact(
    provider_id: int,
    payload: ContactRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Relay a visitor message to a provider."""

    dispatcher: ContactDispatcher = request.app.state.dispatcher
    try:
        outcome = dispatcher.submit(
            db,
            provider_id,
            name=payload.name,
            email=payload.email,
            subject=payload.subject,
            message=payload.message,
            source=client_address(request),
        )
    except DirectoryError as exc:
        CONTACT_COUNTER.labels(outcome=exc.code).inc()
        raise

    CONTACT_COUNTER.labels(outcome=outcome.state.value).inc()
    return {
        "message": (
            f"Your message was sent to {outcome.company_name}. "
            "You should receive an answer within 48 hours."
        ),
        "data": outcome.as_dict(),
    }


async def directory_error_handler(request: Request, exc: DirectoryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request failed", extra={"code": exc.code, "detail": exc.message})
    return JSONResponse(status_code=exc.status_code, content=exc.as_dict())


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        field_error(
            ".".join(str(part) for part in error.get("loc", ())[1:]) or "__root__",
            error.get("msg", "invalid value"),
        )
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request", "code": "invalid_argument", "errors": details},
    )


async def store_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("database unavailable", extra={"error": str(exc.orig)})
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Database unavailable", "code": "dependency_unavailable"},
    )


def create_app(
    app_settings: Settings | None = None,
    *,
    store: Store | None = None,
    mail_relay: MailRelay | None = None,
    contact_quota: ContactQuota | None = None,
) -> FastAPI:
    """Build the API around an explicitly owned store and collaborators."""

    app_settings = app_settings or get_settings()
    store = store or Store(app_settings.database_url, echo=app_settings.database_echo)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owns_store = not store.is_open
        store.open()
        try:
            yield
        finally:
            if owns_store:
                store.close()

    app = FastAPI(title=app_settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.settings = app_settings
    app.state.store = store
    app.state.dispatcher = ContactDispatcher(
        mail_relay or MailRelayClient.from_settings(app_settings),
        contact_quota or build_contact_quota(app_settings),
    )
    app.state.search_limiter = SimpleRateLimiter(
        app_settings.search_rate_limit_requests,
        app_settings.search_rate_limit_window_seconds,
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        limiter=SimpleRateLimiter(
            app_settings.rate_limit_requests, app_settings.rate_limit_window_seconds
        ),
    )
    app.add_middleware(AccessLogMiddleware)

    app.add_exception_handler(DirectoryError, directory_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(OperationalError, store_error_handler)

    app.include_router(router)

    @app.get("/metrics")
    def metrics() -> Response:
        """Expose Prometheus metrics for scraping."""

        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health")
    def health() -> dict[str, str]:
        """Health check endpoint polled by the load balancer."""

        return {"status": "ok"}

    return app


app = create_app()
