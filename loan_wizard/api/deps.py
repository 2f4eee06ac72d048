from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from loan_wizard.core.identity import IdentityContext, identity_from_token
from loan_wizard.services.sacco_api import SaccoApiClient
from loan_wizard.services.wizard import WizardSession, WizardSessionRegistry

# Tokens are issued by the cooperative's API; this service only forwards them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


async def get_identity(token: str | None = Depends(oauth2_scheme)) -> IdentityContext | None:
    return identity_from_token(token)


def get_sacco_api(request: Request) -> SaccoApiClient:
    return request.app.state.sacco_api


def get_session_registry(request: Request) -> WizardSessionRegistry:
    return request.app.state.wizard_sessions


async def get_wizard_session(
    session_id: UUID,
    identity: IdentityContext | None = Depends(get_identity),
    registry: WizardSessionRegistry = Depends(get_session_registry),
) -> WizardSession:
    return registry.get(session_id, identity.user_id if identity else None)
