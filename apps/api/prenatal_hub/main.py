from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from urllib.parse import urlparse
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from prenatal_hub.core.config import settings
from prenatal_hub.routes.account import router as account_router
from prenatal_hub.routes.catalog import router as catalog_router
from prenatal_hub.routes.journal import router as journal_router
from prenatal_hub.routes.kicks import router as kicks_router
from prenatal_hub.routes.preferences import router as preferences_router
from prenatal_hub.services.error_log import log_system_error
from prenatal_hub.services.supabase_auth import get_current_user
from prenatal_hub.services.supabase_rest import SupabaseRestError, close_http

CORRELATION_HEADER = "x-correlation-id"
_CORRELATION_RE = re.compile(r"^[A-Za-z0-9._\-]{1,128}$")

logger = logging.getLogger("prenatal_hub")


def _configure_logging() -> None:
    logging.basicConfig(
        level=(settings.log_level or "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    await close_http()


_configure_logging()
app = FastAPI(title="Prenatal Learning Hub API", version="0.1.0", lifespan=lifespan)


def _init_sentry() -> None:
    if not settings.sentry_dsn:
        return
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        integrations=[FastApiIntegration()],
        traces_sample_rate=max(0.0, min(settings.sentry_traces_sample_rate, 1.0)),
        send_default_pii=False,
        environment=settings.app_env,
    )


_init_sentry()


def _origin(url: str) -> str:
    # FRONTEND_URL may carry a trailing slash or a path; CORS compares origins.
    p = urlparse(url)
    if p.scheme and p.netloc:
        return f"{p.scheme}://{p.netloc}"
    return url.rstrip("/")


def _is_local_origin(origin: str) -> bool:
    return (urlparse(origin).hostname or "").lower() in {"localhost", "127.0.0.1"}


_ALLOWED_ORIGINS = sorted(
    {
        _origin(str(settings.frontend_url)),
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    }
)

# Fail fast for unsafe prod CORS config.
if settings.is_production():
    if _is_local_origin(_origin(str(settings.frontend_url))):
        raise RuntimeError(
            "Unsafe FRONTEND_URL for production. "
            "Set FRONTEND_URL to a public origin (not localhost)."
        )

app.add_middleware(
    CORSMiddleware,
    allow_origins=_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[CORRELATION_HEADER],
)


def _correlation_id(request: Request) -> str:
    cid = getattr(request.state, "correlation_id", None)
    if cid:
        return cid
    incoming = (request.headers.get(CORRELATION_HEADER) or "").strip()
    cid = incoming if _CORRELATION_RE.fullmatch(incoming) else uuid4().hex[:16]
    request.state.correlation_id = cid
    return cid


@app.middleware("http")
async def correlation_and_error_logging(request: Request, call_next):
    cid = _correlation_id(request)
    response = await call_next(request)
    response.headers[CORRELATION_HEADER] = cid
    if response.status_code >= 500:
        await log_system_error(
            route=str(request.url.path),
            message=f"Server response status {response.status_code}",
            user_id=await _try_get_user_id_from_request(request),
            meta={
                "status_code": response.status_code,
                "method": request.method,
                "path": str(request.url.path),
                "correlation_id": cid,
            },
        )
    return response


@app.get("/health")
async def health() -> dict:
    return {"ok": True}


async def _try_get_user_id_from_request(request: Request) -> str | None:
    auth = request.headers.get("authorization") or ""
    if not auth.lower().startswith("bearer "):
        return None
    token = auth.split(" ", 1)[1].strip()
    if not token:
        return None
    try:
        user = await get_current_user(access_token=token, use_cache=True)
    except Exception:
        # Error-path lookup only; the original failure is what gets reported.
        return None
    uid = user.get("id")
    return uid if isinstance(uid, str) and uid.strip() else None


@app.exception_handler(SupabaseRestError)
async def supabase_rest_error_handler(request: Request, exc: SupabaseRestError):
    msg = str(exc) or "Supabase request failed"
    is_rls_write_violation = (
        exc.code == "42501" and "row-level security policy" in msg.lower()
    )

    detail: dict[str, str | None]
    if is_rls_write_violation:
        detail = {
            "message": "The database rejected this write (row-level security).",
            "hint": "Check the table's RLS write policy and that SUPABASE_SERVICE_ROLE_KEY is current.",
            "code": exc.code or "42501",
        }
        status_code = 503
    else:
        detail = {
            "message": "Database request failed.",
            "hint": exc.hint,
            "code": exc.code,
        }
        # Propagate 4xx; normalize 5xx to 502.
        status_code = exc.status_code if 400 <= exc.status_code < 500 else 502

    cid = _correlation_id(request)
    await log_system_error(
        route=str(request.url.path),
        message="Supabase request failed",
        user_id=await _try_get_user_id_from_request(request),
        err=exc,
        meta={
            "status_code": exc.status_code,
            "code": exc.code,
            "path": str(request.url.path),
            "correlation_id": cid,
        },
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail},
        headers={CORRELATION_HEADER: cid},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    cid = _correlation_id(request)
    logger.exception("unhandled error on %s", request.url.path)
    await log_system_error(
        route=str(request.url.path),
        message="Unhandled server error",
        user_id=await _try_get_user_id_from_request(request),
        err=exc,
        meta={"method": request.method, "correlation_id": cid},
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
        headers={CORRELATION_HEADER: cid},
    )


app.include_router(journal_router, prefix="/api")
app.include_router(kicks_router, prefix="/api")
app.include_router(preferences_router, prefix="/api")
app.include_router(account_router, prefix="/api")
app.include_router(catalog_router, prefix="/api")
