import logging

from fastapi import FastAPI

from loan_wizard.core.settings import settings

logger = logging.getLogger(__name__)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Application startup upstream=%s", settings.sacco_api_base_url)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Application shutdown open_sessions=%s", len(app.state.wizard_sessions))
        await app.state.sacco_api.aclose()
