"""Submission state machine for a loan application attempt.

The application record is created first; each required line-item phase is
then persisted against the returned id, one item at a time and in order.
There is no transaction across items: when an item fails, the items before
it stay persisted upstream and the phase is reported as failed once.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel

from loan_wizard.core.identity import IdentityContext
from loan_wizard.core.logging import get_audit_logger
from loan_wizard.schemas.loan import (
    ApplicantType,
    LineItemKind,
    LoanApplicationCreated,
    LoanApplicationRequest,
)
from loan_wizard.services import step_planner, validators
from loan_wizard.services.draft_store import DraftStore
from loan_wizard.services.errors import InvalidTransitionError, SaccoApiError, WizardBusyError
from loan_wizard.services.notifications import NotificationLog

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


class SubmissionState(str, Enum):
    DRAFTING = "Drafting"
    SUBMITTED = "Submitted"
    COLLECTING_GUARANTORS = "CollectingGuarantors"
    COLLECTING_COLLATERAL = "CollectingCollateral"
    COLLECTING_NEXT_OF_KIN = "CollectingNextOfKin"
    REVIEW = "Review"


PHASE_STATES: dict[LineItemKind, SubmissionState] = {
    LineItemKind.GUARANTOR: SubmissionState.COLLECTING_GUARANTORS,
    LineItemKind.COLLATERAL: SubmissionState.COLLECTING_COLLATERAL,
    LineItemKind.NEXT_OF_KIN: SubmissionState.COLLECTING_NEXT_OF_KIN,
}

PHASE_MESSAGES: dict[LineItemKind, tuple[str, str]] = {
    LineItemKind.GUARANTOR: ("Guarantors added successfully!", "Failed to add guarantors"),
    LineItemKind.COLLATERAL: ("Collaterals added successfully!", "Failed to add collaterals"),
    LineItemKind.NEXT_OF_KIN: ("Next of kin added successfully!", "Failed to add next of kin"),
}

PHASE_VALIDATORS = {
    LineItemKind.GUARANTOR: validators.validate_guarantors,
    LineItemKind.COLLATERAL: validators.validate_collaterals,
    LineItemKind.NEXT_OF_KIN: validators.validate_next_of_kin,
}

NOT_AUTHENTICATED_MESSAGE = "User not authenticated"


class LoanApplicationApi(Protocol):
    async def create_loan_application(
        self, payload: LoanApplicationRequest, *, identity: IdentityContext | None = None
    ) -> LoanApplicationCreated: ...

    async def add_guarantor(
        self, loan_application_id: int, guarantor: Any, *, identity: IdentityContext | None = None
    ) -> Any: ...

    async def add_collateral(
        self, loan_application_id: int, collateral: Any, *, identity: IdentityContext | None = None
    ) -> Any: ...

    async def add_next_of_kin(
        self, loan_application_id: int, next_of_kin: Any, *, identity: IdentityContext | None = None
    ) -> Any: ...


@dataclass
class PhaseAttempt:
    """Bookkeeping for the most recent attempt at one line-item phase."""

    attempted: int = 0
    persisted: int = 0
    failed_index: int | None = None
    attempts: int = 0


@dataclass
class PhaseOutcome:
    ok: bool
    message: str
    state: SubmissionState
    field_errors: dict[str, str] = field(default_factory=dict)
    attempted: int = 0
    persisted: int = 0


def _application_number() -> str:
    return f"LA-{int(time.time() * 1000)}"


def build_application_request(
    store: DraftStore,
    identity: IdentityContext,
    *,
    application_no: str | None = None,
) -> LoanApplicationRequest:
    if store.product is None:
        raise InvalidTransitionError(code="product_required", message="Please select a loan product")
    draft = store.draft
    return LoanApplicationRequest(
        loan_product_id=store.product.id,
        application_no=application_no or _application_number(),
        member_id=identity.user_id,
        amount=Decimal(draft.amount.strip()),
        first_name=draft.first_name.strip(),
        last_name=draft.last_name.strip(),
        middle_name=draft.middle_name.strip(),
        term_days=int(Decimal(draft.term_days.strip())),
        email=draft.email.strip(),
        group_id=draft.group_id,
        mobile_number=validators.normalize_phone(draft.mobile_number),
        address=draft.address.strip(),
        occupation=draft.occupation.strip(),
        dob=draft.dob,
        gender=draft.gender,
        loan_purpose=draft.loan_purpose.strip(),
        status="PENDING",
    )


class SubmissionCoordinator:
    def __init__(
        self,
        api: LoanApplicationApi,
        store: DraftStore,
        *,
        applicant_type: ApplicantType = ApplicantType.MEMBER,
        notifications: NotificationLog | None = None,
    ) -> None:
        self.api = api
        self.store = store
        self.applicant_type = applicant_type
        self.notifications = notifications if notifications is not None else NotificationLog()
        self.reset()

    def reset(self) -> None:
        self.state = SubmissionState.DRAFTING
        self.loan_application_id: int | None = None
        self.application: LoanApplicationCreated | None = None
        self.committed_phases: list[LineItemKind] = []
        self.phase_attempts: dict[LineItemKind, PhaseAttempt] = {}
        self.busy = False

    @property
    def submitted(self) -> bool:
        return self.state is not SubmissionState.DRAFTING

    def required_phases(self) -> list[LineItemKind]:
        return step_planner.required_phases(self.store.product)

    def pending_phases(self) -> list[LineItemKind]:
        return [kind for kind in self.required_phases() if kind not in self.committed_phases]

    def next_phase(self) -> LineItemKind | None:
        pending = self.pending_phases()
        return pending[0] if pending else None

    def is_committed(self, kind: LineItemKind) -> bool:
        return kind in self.committed_phases

    def ensure_idle(self) -> None:
        if self.busy:
            raise WizardBusyError(
                code="operation_in_progress",
                message="Another submission is still in progress",
            )

    def _transition(self, new_state: SubmissionState, **details: Any) -> None:
        old_state = self.state
        self.state = new_state
        audit_logger.info(
            "loan_wizard.transition from=%s to=%s application_id=%s details=%s",
            old_state.value,
            new_state.value,
            self.loan_application_id,
            details,
            extra={
                "application_id": self.loan_application_id,
                "from_state": old_state.value,
                "to_state": new_state.value,
            },
        )

    def _fail(self, message: str, **kwargs: Any) -> PhaseOutcome:
        self.notifications.error(message)
        return PhaseOutcome(ok=False, message=message, state=self.state, **kwargs)

    async def submit_application(self, identity: IdentityContext | None) -> PhaseOutcome:
        if self.state is not SubmissionState.DRAFTING:
            raise InvalidTransitionError(
                code="application_already_submitted",
                message="This application has already been submitted",
                details={"loan_application_id": self.loan_application_id},
            )
        self.ensure_idle()

        if self.store.product is None:
            return self._fail("Please select a loan product")
        field_errors = validators.validate_details(self.store.draft, self.store.product)
        if field_errors:
            return self._fail(validators.first_error(field_errors), field_errors=field_errors)
        if identity is None:
            return self._fail(NOT_AUTHENTICATED_MESSAGE)

        payload = build_application_request(self.store, identity)
        # The draft sent upstream must be the draft kept.
        self.store.freeze_draft()
        self.busy = True
        created: LoanApplicationCreated | None = None
        try:
            logger.info(
                "Submitting loan application product_id=%s applicant_type=%s",
                payload.loan_product_id,
                self.applicant_type.value,
            )
            created = await self.api.create_loan_application(payload, identity=identity)
        except SaccoApiError as exc:
            logger.warning("Loan application submission failed: %s", exc)
            return self._fail("Failed to submit loan application")
        finally:
            self.busy = False
            if created is None:
                self.store.thaw_draft()

        self.application = created
        self.loan_application_id = created.loan_application_id
        self._transition(SubmissionState.SUBMITTED, application_no=payload.application_no)
        message = "Loan application submitted successfully!"
        self.notifications.success(message)
        return PhaseOutcome(ok=True, message=message, state=self.state)

    def _ensure_phase_allowed(self, kind: LineItemKind) -> None:
        if self.state is SubmissionState.DRAFTING:
            raise InvalidTransitionError(
                code="application_not_submitted",
                message="Submit the application before adding supporting records",
                details={"kind": kind.value},
            )
        if kind not in self.required_phases():
            raise InvalidTransitionError(
                code="phase_not_required",
                message=f"The selected loan product does not require {kind.value}",
                details={"kind": kind.value},
            )
        if kind in self.committed_phases:
            raise InvalidTransitionError(
                code="phase_already_committed",
                message=f"{kind.value.replace('-', ' ').capitalize()} have already been saved",
                details={"kind": kind.value},
            )
        expected = self.next_phase()
        if kind is not expected:
            raise InvalidTransitionError(
                code="phase_out_of_order",
                message=f"Complete {expected.value if expected else 'the review'} first",
                details={"kind": kind.value, "expected": expected.value if expected else None},
            )

    async def _persist(self, kind: LineItemKind, item: BaseModel, identity: IdentityContext) -> Any:
        if self.loan_application_id is None:
            raise InvalidTransitionError(
                code="application_not_submitted",
                message="Submit the application before adding supporting records",
                details={"kind": kind.value},
            )
        if kind is LineItemKind.GUARANTOR:
            return await self.api.add_guarantor(self.loan_application_id, item, identity=identity)
        if kind is LineItemKind.COLLATERAL:
            return await self.api.add_collateral(self.loan_application_id, item, identity=identity)
        return await self.api.add_next_of_kin(self.loan_application_id, item, identity=identity)

    async def submit_phase(self, kind: LineItemKind, identity: IdentityContext | None) -> PhaseOutcome:
        kind = LineItemKind(kind)
        self._ensure_phase_allowed(kind)
        self.ensure_idle()

        items = self.store.items_for(kind)
        error = PHASE_VALIDATORS[kind](items, self.store.product)
        if error:
            return self._fail(error)
        if identity is None:
            return self._fail(NOT_AUTHENTICATED_MESSAGE)

        attempt = self.phase_attempts.setdefault(kind, PhaseAttempt())
        if attempt.persisted:
            # Items saved by the earlier attempt are sent again; the API exposes no dedupe.
            logger.warning(
                "Retrying %s for application_id=%s after %s item(s) were already persisted",
                kind.value,
                self.loan_application_id,
                attempt.persisted,
            )
        attempt.attempts += 1
        attempt.attempted = 0
        attempt.persisted = 0
        attempt.failed_index = None

        success_message, failure_message = PHASE_MESSAGES[kind]
        # Items being sent cannot change underneath the loop.
        self.store.lock_line_items(kind)
        self.busy = True
        completed = False
        try:
            for index, item in enumerate(items):
                attempt.attempted += 1
                try:
                    await self._persist(kind, item, identity)
                except SaccoApiError as exc:
                    attempt.failed_index = index
                    logger.warning(
                        "Persisting %s item=%s for application_id=%s failed: %s",
                        kind.value,
                        index,
                        self.loan_application_id,
                        exc,
                        extra={
                            "application_id": self.loan_application_id,
                            "phase": kind.value,
                            "item_index": index,
                        },
                    )
                    return self._fail(
                        failure_message,
                        attempted=attempt.attempted,
                        persisted=attempt.persisted,
                    )
                attempt.persisted += 1
                logger.info(
                    "Persisted %s item=%s for application_id=%s",
                    kind.value,
                    index,
                    self.loan_application_id,
                    extra={
                        "application_id": self.loan_application_id,
                        "phase": kind.value,
                        "item_index": index,
                    },
                )
            completed = True
        finally:
            self.busy = False
            if not completed:
                self.store.unlock_line_items(kind)

        self.committed_phases.append(kind)
        self._transition(PHASE_STATES[kind], items=attempt.persisted)
        self.notifications.success(success_message)
        return PhaseOutcome(
            ok=True,
            message=success_message,
            state=self.state,
            attempted=attempt.attempted,
            persisted=attempt.persisted,
        )

    def enter_review(self) -> SubmissionState:
        if self.state is SubmissionState.REVIEW:
            return self.state
        if self.state is SubmissionState.DRAFTING:
            raise InvalidTransitionError(
                code="application_not_submitted",
                message="Submit the application before reviewing it",
            )
        pending = self.pending_phases()
        if pending:
            raise InvalidTransitionError(
                code="phases_pending",
                message=f"Complete {pending[0].value} before reviewing",
                details={"pending": [kind.value for kind in pending]},
            )
        self._transition(SubmissionState.REVIEW)
        return self.state
