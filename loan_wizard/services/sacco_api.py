from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from loan_wizard.core.identity import IdentityContext
from loan_wizard.core.settings import settings
from loan_wizard.schemas.loan import (
    ApplicantType,
    Collateral,
    Guarantor,
    LoanApplicationCreated,
    LoanApplicationRequest,
    LoanProduct,
    MemberDetails,
    NextOfKin,
)
from loan_wizard.services.errors import SaccoApiError

logger = logging.getLogger(__name__)

LOAN_PRODUCTS_ACTIVE_PATH = "/api/v1/loan-products/active"
LOAN_APPLICATIONS_CREATE_PATH = "/api/v1/loan-applications/create"
LOAN_GUARANTORS_CREATE_PATH = "/api/v1/loan-guarantors/create"
LOAN_COLLATERALS_PATH = "/api/v1/loan-collaterals"
LOAN_NEXT_OF_KIN_PATH = "/api/v1/loan-next-of-kin"
MEMBER_DETAILS_PATH = "/api/v1/members/findByMemberId"


def _wire_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {key: _wire_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_wire_value(item) for item in value]
    return value


def to_wire(model: BaseModel, **extra: Any) -> dict[str, Any]:
    payload = model.model_dump(by_alias=True, mode="python")
    payload.update(extra)
    return _wire_value(payload)


def _unwrap_data(body: Any) -> Any:
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or response.reason_phrase)
    return response.reason_phrase


class SaccoApiClient:
    """Async client for the cooperative's REST API.

    Calls are never retried here; callers decide what a failure means.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.sacco_api_base_url,
            timeout=httpx.Timeout(timeout if timeout is not None else settings.sacco_api_timeout_seconds),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        identity: IdentityContext | None = None,
        **kwargs: Any,
    ) -> Any:
        headers = dict(kwargs.pop("headers", None) or {})
        if identity is not None:
            headers.update(identity.authorization_header)
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Upstream %s transport failure: %s", operation, exc)
            raise SaccoApiError(operation=operation, message=str(exc) or exc.__class__.__name__) from exc
        if response.is_error:
            message = _error_message(response)
            logger.warning(
                "Upstream %s rejected status=%s message=%s",
                operation,
                response.status_code,
                message,
            )
            payload = None
            try:
                parsed = response.json()
                payload = parsed if isinstance(parsed, dict) else None
            except ValueError:
                payload = None
            raise SaccoApiError(
                operation=operation,
                message=message,
                status_code=response.status_code,
                payload=payload,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise SaccoApiError(
                operation=operation,
                message="Upstream returned a non-JSON body",
                status_code=response.status_code,
            ) from exc

    async def ping(self) -> None:
        await self._request("ping", "GET", LOAN_PRODUCTS_ACTIVE_PATH, params={"page": 0, "size": 1})

    async def list_active_loan_products(
        self,
        applicant_type: ApplicantType,
        *,
        identity: IdentityContext | None = None,
        page: int = 0,
        size: int | None = None,
    ) -> list[LoanProduct]:
        body = await self._request(
            "list_active_loan_products",
            "GET",
            LOAN_PRODUCTS_ACTIVE_PATH,
            identity=identity,
            params={"page": page, "size": size or settings.loan_products_page_size},
            headers={"Applicant-Type": ApplicantType(applicant_type).value},
        )
        data = _unwrap_data(body) or {}
        content = data.get("content", []) if isinstance(data, dict) else data
        try:
            products = [LoanProduct.model_validate(item) for item in content or []]
        except ValidationError as exc:
            raise SaccoApiError(
                operation="list_active_loan_products",
                message="Upstream returned malformed loan products",
            ) from exc
        return [product for product in products if product.is_active]

    async def create_loan_application(
        self,
        payload: LoanApplicationRequest,
        *,
        identity: IdentityContext | None = None,
    ) -> LoanApplicationCreated:
        body = await self._request(
            "create_loan_application",
            "POST",
            LOAN_APPLICATIONS_CREATE_PATH,
            identity=identity,
            json=to_wire(payload),
        )
        try:
            return LoanApplicationCreated.model_validate(_unwrap_data(body))
        except ValidationError as exc:
            raise SaccoApiError(
                operation="create_loan_application",
                message="Upstream response is missing the loan application id",
            ) from exc

    async def add_guarantor(
        self,
        loan_application_id: int,
        guarantor: Guarantor,
        *,
        identity: IdentityContext | None = None,
    ) -> Any:
        body = await self._request(
            "add_guarantor",
            "POST",
            LOAN_GUARANTORS_CREATE_PATH,
            identity=identity,
            json=to_wire(guarantor, loanApplicationId=loan_application_id),
        )
        return _unwrap_data(body)

    async def add_collateral(
        self,
        loan_application_id: int,
        collateral: Collateral,
        *,
        identity: IdentityContext | None = None,
    ) -> Any:
        body = await self._request(
            "add_collateral",
            "POST",
            LOAN_COLLATERALS_PATH,
            identity=identity,
            json=to_wire(collateral, loanApplicationId=loan_application_id),
        )
        return _unwrap_data(body)

    async def add_next_of_kin(
        self,
        loan_application_id: int,
        next_of_kin: NextOfKin,
        *,
        identity: IdentityContext | None = None,
    ) -> Any:
        body = await self._request(
            "add_next_of_kin",
            "POST",
            LOAN_NEXT_OF_KIN_PATH,
            identity=identity,
            json=to_wire(next_of_kin, loanApplicationId=loan_application_id),
        )
        return _unwrap_data(body)

    async def get_member_details(
        self,
        member_id: int,
        *,
        identity: IdentityContext | None = None,
    ) -> MemberDetails:
        body = await self._request(
            "get_member_details",
            "GET",
            MEMBER_DETAILS_PATH,
            identity=identity,
            params={"memberId": member_id},
        )
        try:
            return MemberDetails.model_validate(_unwrap_data(body))
        except ValidationError as exc:
            raise SaccoApiError(
                operation="get_member_details",
                message="Upstream returned malformed member details",
            ) from exc
