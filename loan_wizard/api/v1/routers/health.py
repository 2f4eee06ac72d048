from fastapi import APIRouter, Request

from loan_wizard.core.health import live_payload, ready_payload
from loan_wizard.core.limiter import limiter

router = APIRouter(tags=["health"])


@router.get("/health/live", summary="Service liveness check")
@limiter.exempt
async def health_live(request: Request) -> dict:
    return await live_payload()


@router.get("/health/ready", summary="Upstream reachability check")
@limiter.exempt
async def health_ready(request: Request) -> dict:
    registry = getattr(request.app.state, "wizard_sessions", None)
    return await ready_payload(
        getattr(request.app.state, "sacco_api", None),
        open_sessions=len(registry) if registry is not None else 0,
    )
