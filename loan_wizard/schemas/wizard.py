from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from loan_wizard.schemas.loan import (
    ApplicantType,
    ApplicationDraft,
    Collateral,
    Guarantor,
    LoanProduct,
    NextOfKin,
)


class WizardSessionCreate(BaseModel):
    applicant_type: ApplicantType = ApplicantType.MEMBER


class ProductSelectionRequest(BaseModel):
    loan_product_id: int


class NotificationDTO(BaseModel):
    level: str
    message: str
    created_at: datetime


class WizardStepDTO(BaseModel):
    index: int
    name: str


class PhaseAttemptDTO(BaseModel):
    kind: str
    attempts: int
    attempted: int
    persisted: int
    failed_index: int | None = None


class WizardSnapshot(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    session_id: UUID
    applicant_type: ApplicantType
    current_step: int
    current_step_name: str
    total_steps: int
    steps: list[WizardStepDTO]
    state: str
    busy: bool
    loan_application_id: int | None = None
    loan_application_code: str | None = None
    product: LoanProduct | None = None
    draft: ApplicationDraft
    draft_editable: bool
    field_errors: dict[str, str] = Field(default_factory=dict)
    guarantors: list[Guarantor] = Field(default_factory=list)
    collaterals: list[Collateral] = Field(default_factory=list)
    next_of_kin: list[NextOfKin] = Field(default_factory=list)
    committed_phases: list[str] = Field(default_factory=list)
    pending_phases: list[str] = Field(default_factory=list)
    phase_attempts: list[PhaseAttemptDTO] = Field(default_factory=list)
    notifications: list[NotificationDTO] = Field(default_factory=list)


class WizardActionResponse(BaseModel):
    ok: bool
    message: str | None = None
    session: WizardSnapshot
    details: dict[str, Any] = Field(default_factory=dict)


class ReviewSummary(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    state: str
    loan_application_id: int | None = None
    loan_application_code: str | None = None
    product: LoanProduct | None = None
    draft: ApplicationDraft
    guarantors: list[Guarantor] = Field(default_factory=list)
    collaterals: list[Collateral] = Field(default_factory=list)
    next_of_kin: list[NextOfKin] = Field(default_factory=list)
