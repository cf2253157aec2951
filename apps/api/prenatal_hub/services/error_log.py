from __future__ import annotations

import logging
import traceback
from typing import Any

import httpx

from prenatal_hub.core.config import settings
from prenatal_hub.services.privacy import redact_secrets_text, sanitize_for_log
from prenatal_hub.services.supabase_rest import SupabaseRest, SupabaseRestError

logger = logging.getLogger(__name__)

_STACK_LIMIT = 8000


def _format_stack(err: BaseException | None) -> str | None:
    if err is None:
        return None
    raw = "".join(traceback.format_exception(type(err), err, err.__traceback__))
    return redact_secrets_text(raw[:_STACK_LIMIT])


async def log_system_error(
    *,
    route: str,
    message: str,
    user_id: str | None = None,
    err: BaseException | None = None,
    meta: dict[str, Any] | None = None,
) -> None:
    """Record a server-side failure in `system_errors`.

    Best-effort: an audit write failure is logged locally and never reaches
    the caller, which is usually already handling an error of its own.
    """
    row: dict[str, Any] = {
        "route": sanitize_for_log(route),
        "message": sanitize_for_log(message),
        "stack": _format_stack(err),
        "user_id": user_id,
        "meta": sanitize_for_log(meta or {}),
    }
    logger.error("%s [%s] user=%s", row["message"], row["route"], user_id or "-")

    # Server-managed audit table: service-role only.
    sb = SupabaseRest(str(settings.supabase_url), settings.supabase_service_role_key)
    try:
        await sb.insert_one(
            "system_errors", bearer_token=settings.supabase_service_role_key, row=row
        )
    except (SupabaseRestError, httpx.HTTPError, ValueError) as exc:
        logger.warning("system_errors write failed: %s", type(exc).__name__)
