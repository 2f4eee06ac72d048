from typing import Any

from fastapi import APIRouter, Body, Depends, status

from loan_wizard.api import deps
from loan_wizard.core.identity import IdentityContext
from loan_wizard.schemas.loan import ApplicationDraftUpdate, LineItemKind, LoanProductListResponse
from loan_wizard.schemas.wizard import (
    ProductSelectionRequest,
    ReviewSummary,
    WizardActionResponse,
    WizardSessionCreate,
    WizardSnapshot,
)
from loan_wizard.services.errors import SaccoApiError
from loan_wizard.services.wizard import ActionResult, WizardSession, WizardSessionRegistry

router = APIRouter(prefix="/loan-wizard/sessions", tags=["loan-wizard"])


def _action_response(session: WizardSession, result: ActionResult) -> WizardActionResponse:
    return WizardActionResponse(
        ok=result.ok,
        message=result.message,
        session=session.snapshot(),
        details=result.details or {},
    )


@router.post(
    "",
    response_model=WizardActionResponse,
    response_model_by_alias=False,
    status_code=status.HTTP_201_CREATED,
    summary="Open a wizard session and load the products offered to the applicant",
)
async def open_session(
    payload: WizardSessionCreate | None = None,
    identity: IdentityContext | None = Depends(deps.get_identity),
    registry: WizardSessionRegistry = Depends(deps.get_session_registry),
) -> WizardActionResponse:
    payload = payload or WizardSessionCreate()
    session = registry.create(payload.applicant_type, identity.user_id if identity else None)
    try:
        products = await session.load_products(identity)
    except SaccoApiError:
        # The session stays open; the product list can be fetched again.
        return _action_response(session, ActionResult(ok=False, message="Failed to load loan products"))
    return _action_response(
        session,
        ActionResult(ok=True, details={"products": [p.model_dump(mode="json") for p in products]}),
    )


@router.get(
    "/{session_id}",
    response_model=WizardSnapshot,
    response_model_by_alias=False,
)
async def get_session(session: WizardSession = Depends(deps.get_wizard_session)) -> WizardSnapshot:
    return session.snapshot()


@router.delete("/{session_id}", summary="Discard a wizard session")
async def close_session(
    session: WizardSession = Depends(deps.get_wizard_session),
    registry: WizardSessionRegistry = Depends(deps.get_session_registry),
) -> dict:
    registry.close(session.id, session.owner_id)
    return {"session_id": str(session.id), "closed": True}


@router.get(
    "/{session_id}/products",
    response_model=LoanProductListResponse,
    response_model_by_alias=False,
)
async def reload_products(
    session: WizardSession = Depends(deps.get_wizard_session),
    identity: IdentityContext | None = Depends(deps.get_identity),
) -> LoanProductListResponse:
    products = await session.load_products(identity)
    return LoanProductListResponse(items=products, total=len(products))


@router.put(
    "/{session_id}/product",
    response_model=WizardActionResponse,
    response_model_by_alias=False,
)
async def select_product(
    payload: ProductSelectionRequest,
    session: WizardSession = Depends(deps.get_wizard_session),
    identity: IdentityContext | None = Depends(deps.get_identity),
) -> WizardActionResponse:
    if not session.products:
        await session.load_products(identity)
    return _action_response(session, session.select_product(payload.loan_product_id))


@router.patch(
    "/{session_id}/details",
    response_model=WizardActionResponse,
    response_model_by_alias=False,
)
async def update_details(
    payload: ApplicationDraftUpdate,
    session: WizardSession = Depends(deps.get_wizard_session),
) -> WizardActionResponse:
    return _action_response(session, session.update_details(payload))


@router.post(
    "/{session_id}/line-items/{kind}",
    response_model=WizardActionResponse,
    response_model_by_alias=False,
    status_code=status.HTTP_201_CREATED,
)
async def add_line_item(
    kind: LineItemKind,
    payload: dict[str, Any] | None = Body(default=None),
    session: WizardSession = Depends(deps.get_wizard_session),
) -> WizardActionResponse:
    index = session.add_line_item(kind, payload)
    return _action_response(session, ActionResult(ok=True, details={"kind": kind.value, "index": index}))


@router.put(
    "/{session_id}/line-items/{kind}/{index}",
    response_model=WizardActionResponse,
    response_model_by_alias=False,
)
async def update_line_item(
    kind: LineItemKind,
    index: int,
    payload: dict[str, Any] = Body(...),
    session: WizardSession = Depends(deps.get_wizard_session),
) -> WizardActionResponse:
    session.update_line_item(kind, index, payload)
    return _action_response(session, ActionResult(ok=True, details={"kind": kind.value, "index": index}))


@router.delete(
    "/{session_id}/line-items/{kind}/{index}",
    response_model=WizardActionResponse,
    response_model_by_alias=False,
)
async def remove_line_item(
    kind: LineItemKind,
    index: int,
    session: WizardSession = Depends(deps.get_wizard_session),
) -> WizardActionResponse:
    session.remove_line_item(kind, index)
    return _action_response(session, ActionResult(ok=True, details={"kind": kind.value}))


@router.post(
    "/{session_id}/submit",
    response_model=WizardActionResponse,
    response_model_by_alias=False,
    summary="Create the loan application upstream from the Details step",
)
async def submit_application(
    session: WizardSession = Depends(deps.get_wizard_session),
    identity: IdentityContext | None = Depends(deps.get_identity),
) -> WizardActionResponse:
    result = await session.submit_application(identity)
    return _action_response(session, result)


@router.post(
    "/{session_id}/phases/{kind}",
    response_model=WizardActionResponse,
    response_model_by_alias=False,
    summary="Persist every entry of one line-item collection against the application",
)
async def submit_phase(
    kind: LineItemKind,
    session: WizardSession = Depends(deps.get_wizard_session),
    identity: IdentityContext | None = Depends(deps.get_identity),
) -> WizardActionResponse:
    result = await session.submit_phase(kind, identity)
    return _action_response(session, result)


@router.post(
    "/{session_id}/next",
    response_model=WizardActionResponse,
    response_model_by_alias=False,
)
async def next_step(
    session: WizardSession = Depends(deps.get_wizard_session),
    identity: IdentityContext | None = Depends(deps.get_identity),
) -> WizardActionResponse:
    return _action_response(session, await session.next(identity))


@router.post(
    "/{session_id}/prev",
    response_model=WizardActionResponse,
    response_model_by_alias=False,
)
async def previous_step(session: WizardSession = Depends(deps.get_wizard_session)) -> WizardActionResponse:
    return _action_response(session, session.prev())


@router.post(
    "/{session_id}/reset",
    response_model=WizardActionResponse,
    response_model_by_alias=False,
    summary="Start a new application in the same session",
)
async def reset_session(session: WizardSession = Depends(deps.get_wizard_session)) -> WizardActionResponse:
    session.reset()
    return _action_response(session, ActionResult(ok=True))


@router.get(
    "/{session_id}/review",
    response_model=ReviewSummary,
    response_model_by_alias=False,
)
async def review(session: WizardSession = Depends(deps.get_wizard_session)) -> ReviewSummary:
    return session.review()
