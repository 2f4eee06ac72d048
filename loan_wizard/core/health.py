from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from loan_wizard.core.settings import settings
from loan_wizard.services.errors import SaccoApiError
from loan_wizard.services.sacco_api import SaccoApiClient

APP_VERSION = "0.1.0"


async def _check_upstream(api: SaccoApiClient | None) -> dict[str, Any]:
    if api is None:
        return {"status": "error", "error": "Upstream client not initialised"}
    try:
        await api.ping()
        return {"status": "ok"}
    except SaccoApiError as exc:
        check: dict[str, Any] = {"status": "error", "error": exc.message}
        if exc.status_code is not None:
            check["upstream_status"] = exc.status_code
        return check


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    ready = all(check.get("status") == "ok" for check in checks.values())
    return ("ok" if ready else "degraded", ready)


async def live_payload() -> dict[str, str]:
    return {
        "status": "ok",
        "version": APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def ready_payload(api: SaccoApiClient | None, open_sessions: int = 0) -> dict[str, Any]:
    checks = {"sacco_api": await _check_upstream(api)}
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "version": APP_VERSION,
        "open_sessions": open_sessions,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
