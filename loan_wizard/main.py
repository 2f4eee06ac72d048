from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from loan_wizard.api.v1 import api_router
from loan_wizard.core.errors import register_exception_handlers
from loan_wizard.core.health import APP_VERSION
from loan_wizard.core.limiter import limiter
from loan_wizard.core.logging import configure_logging
from loan_wizard.core.response_envelope import register_response_envelope
from loan_wizard.core.settings import settings
from loan_wizard.events import register_event_handlers
from loan_wizard.middlewares.request_context import RequestContextMiddleware
from loan_wizard.middlewares.security_headers import SecurityHeadersMiddleware
from loan_wizard.services.sacco_api import SaccoApiClient
from loan_wizard.services.wizard import WizardSessionRegistry


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="SACCO Loan Application Wizard", version=APP_VERSION)
    register_exception_handlers(app)
    register_response_envelope(app)
    app.state.limiter = limiter
    app.state.sacco_api = SaccoApiClient()
    app.state.wizard_sessions = WizardSessionRegistry(
        app.state.sacco_api, limit_per_owner=settings.wizard_session_limit_per_user
    )
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.enable_hsts)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.include_router(api_router, prefix="/api/v1")
    register_event_handlers(app)
    return app


app = create_app()
