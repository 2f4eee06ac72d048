from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApplicantType(str, Enum):
    MEMBER = "MEMBER"
    LOANEE = "LOANEE"
    GROUP = "GROUP"


class InterestMethod(str, Enum):
    SIMPLE = "SIMPLE"
    COMPOUND = "COMPOUND"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoanProduct(CamelModel):
    """Server-defined loan template. Never mutated once fetched."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore"
    )

    id: int
    name: str
    loan_product_code: str | None = None
    description: str | None = None
    min_amount: Decimal
    max_amount: Decimal
    min_term_days: int
    max_term_days: int
    interest_rate: Decimal = Decimal("0")
    interest_method: InterestMethod = InterestMethod.SIMPLE
    grace_period_days: int | None = None
    requires_guarantor: bool = False
    requires_collateral: bool = False
    requires_next_of_kin: bool = False
    is_active: bool = True
    min_guarantors: int | None = None
    max_guarantors: int | None = None
    min_collateral_items: int | None = None
    max_collateral_items: int | None = None
    min_next_of_kin: int | None = None
    max_next_of_kin: int | None = None
    applicant_type: ApplicantType | None = None


class ApplicationDraft(CamelModel):
    """In-progress application fields exactly as entered."""

    amount: str = ""
    term_days: str = ""
    first_name: str = ""
    middle_name: str = ""
    last_name: str = ""
    email: str = ""
    mobile_number: str = ""
    address: str = ""
    occupation: str = ""
    dob: str = ""
    gender: str = ""
    loan_purpose: str = ""
    group_id: int = 0


class ApplicationDraftUpdate(CamelModel):
    amount: str | None = None
    term_days: str | None = None
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    mobile_number: str | None = None
    address: str | None = None
    occupation: str | None = None
    dob: str | None = None
    gender: str | None = None
    loan_purpose: str | None = None
    group_id: int | None = None


class Guarantor(CamelModel):
    guarantor_name: str = ""
    relationship: str = ""
    guarantor_contact: str = ""
    guarantor_id_number: str = ""
    guaranteed_amount: Decimal = Decimal("0")
    member_code: str = ""


class Collateral(CamelModel):
    type: str = ""
    description: str = ""
    estimated_value: Decimal = Decimal("0")
    owner_name: str = ""
    owner_contact: str = ""
    member_code: str = ""


class NextOfKin(CamelModel):
    name: str = ""
    relationship: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    member_code: str = ""


class LineItemKind(str, Enum):
    GUARANTOR = "guarantors"
    COLLATERAL = "collaterals"
    NEXT_OF_KIN = "next-of-kin"


LINE_ITEM_MODELS: dict[LineItemKind, type[CamelModel]] = {
    LineItemKind.GUARANTOR: Guarantor,
    LineItemKind.COLLATERAL: Collateral,
    LineItemKind.NEXT_OF_KIN: NextOfKin,
}


class LoanApplicationRequest(CamelModel):
    loan_product_id: int
    application_no: str
    member_id: int
    amount: Decimal
    first_name: str
    last_name: str
    middle_name: str = ""
    term_days: int
    email: str
    group_id: int = 0
    mobile_number: str
    address: str
    occupation: str
    dob: str = ""
    gender: str = ""
    loan_purpose: str
    status: str = "PENDING"


class LoanApplicationCreated(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    loan_application_id: int
    loan_application_code: str | None = None
    status: str | None = None
    loan_product_name: str | None = None


class MemberDetails(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    member_id: int
    first_name: str | None = None
    last_name: str | None = None
    other_names: str | None = None
    email: str | None = None
    phone_number: str | None = None
    address: str | None = None
    dob: str | None = None
    gender: str | None = None
    member_no: str | None = None


class LoanProductListResponse(BaseModel):
    items: list[LoanProduct] = Field(default_factory=list)
    total: int = 0
