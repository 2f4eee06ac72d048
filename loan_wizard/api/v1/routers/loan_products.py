from fastapi import APIRouter, Depends, Query

from loan_wizard.api import deps
from loan_wizard.core.identity import IdentityContext
from loan_wizard.core.settings import settings
from loan_wizard.schemas.loan import ApplicantType, LoanProductListResponse
from loan_wizard.services.sacco_api import SaccoApiClient

router = APIRouter(prefix="/loan-products", tags=["loan-products"])


@router.get(
    "",
    response_model=LoanProductListResponse,
    response_model_by_alias=False,
    summary="List active loan products for an applicant type",
)
async def list_loan_products(
    applicant_type: ApplicantType = Query(default=ApplicantType(settings.default_applicant_type)),
    page: int = Query(default=0, ge=0),
    size: int | None = Query(default=None, ge=1, le=100),
    identity: IdentityContext | None = Depends(deps.get_identity),
    api: SaccoApiClient = Depends(deps.get_sacco_api),
) -> LoanProductListResponse:
    products = await api.list_active_loan_products(
        applicant_type, identity=identity, page=page, size=size
    )
    return LoanProductListResponse(items=products, total=len(products))
