"""Wizard sessions: one applicant's in-progress loan application.

A session wires the draft store, the submission coordinator and the
navigation controller together for a single applicant context (member,
loanee or group). Sessions live in process memory and are discarded on
reset or close; nothing here is shared between sessions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel

from loan_wizard.core.context import set_session_id
from loan_wizard.core.identity import IdentityContext
from loan_wizard.core.settings import settings
from loan_wizard.schemas.loan import (
    ApplicantType,
    ApplicationDraftUpdate,
    LineItemKind,
    LoanProduct,
)
from loan_wizard.schemas.wizard import (
    NotificationDTO,
    PhaseAttemptDTO,
    ReviewSummary,
    WizardSnapshot,
    WizardStepDTO,
)
from loan_wizard.services import step_planner, validators
from loan_wizard.services.draft_store import DraftStore
from loan_wizard.services.errors import (
    InvalidTransitionError,
    SaccoApiError,
    SessionNotFoundError,
)
from loan_wizard.services.navigation import NavigationController, NavigationResult
from loan_wizard.services.notifications import NotificationLog
from loan_wizard.services.profiles import ApplicantProfileSource, profile_source_for
from loan_wizard.services.sacco_api import SaccoApiClient
from loan_wizard.services.step_planner import WizardStep
from loan_wizard.services.submission import PhaseOutcome, SubmissionCoordinator, SubmissionState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    message: str | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def from_outcome(cls, outcome: PhaseOutcome) -> "ActionResult":
        details: dict[str, Any] = {}
        if outcome.field_errors:
            details["field_errors"] = outcome.field_errors
        if outcome.attempted:
            details["attempted"] = outcome.attempted
            details["persisted"] = outcome.persisted
        return cls(ok=outcome.ok, message=outcome.message, details=details)

    @classmethod
    def from_navigation(cls, result: NavigationResult) -> "ActionResult":
        return cls(ok=result.moved, message=result.reason, details={"step": result.step})


class WizardSession:
    def __init__(
        self,
        api: SaccoApiClient,
        *,
        applicant_type: ApplicantType = ApplicantType.MEMBER,
        owner_id: int | None = None,
        profile_source: ApplicantProfileSource | None = None,
        session_id: UUID | None = None,
    ) -> None:
        self.id = session_id or uuid4()
        self.owner_id = owner_id
        self.applicant_type = ApplicantType(applicant_type)
        self.api = api
        self.profile_source = profile_source or profile_source_for(self.applicant_type, api)
        self.notifications = NotificationLog()
        self.store = DraftStore()
        self.coordinator = SubmissionCoordinator(
            api,
            self.store,
            applicant_type=self.applicant_type,
            notifications=self.notifications,
        )
        self.navigation = NavigationController(self.store, self.coordinator)
        self.products: dict[int, LoanProduct] = {}
        self.field_errors: dict[str, str] = {}

    async def load_products(self, identity: IdentityContext | None) -> list[LoanProduct]:
        try:
            products = await self.api.list_active_loan_products(self.applicant_type, identity=identity)
        except SaccoApiError as exc:
            logger.warning("Loading loan products failed: %s", exc)
            self.notifications.error("Failed to load loan products")
            raise
        self.products = {product.id: product for product in products}
        return products

    def select_product(self, loan_product_id: int) -> ActionResult:
        self.coordinator.ensure_idle()
        product = self.products.get(loan_product_id)
        if product is None:
            raise InvalidTransitionError(
                code="product_not_found",
                message="Loan product is not available for this applicant",
                details={"loan_product_id": loan_product_id},
            )
        self.store.select_product(product)
        # Bounds may have moved with the product; re-check only what was already flagged.
        self._revalidate(set(self.field_errors))
        return ActionResult(ok=True)

    def update_details(self, update: ApplicationDraftUpdate) -> ActionResult:
        self.coordinator.ensure_idle()
        self.store.update_draft(update)
        self._revalidate(set(update.model_dump(exclude_none=True)))
        return ActionResult(ok=not self.field_errors, details={"field_errors": dict(self.field_errors)})

    def _revalidate(self, fields: set[str]) -> None:
        if not fields:
            return
        errors = validators.validate_details(self.store.draft, self.store.product)
        for field in fields:
            if field in errors:
                self.field_errors[field] = errors[field]
            else:
                self.field_errors.pop(field, None)

    def add_line_item(self, kind: LineItemKind, item: BaseModel | dict | None = None) -> int:
        self.coordinator.ensure_idle()
        return self.store.add_line_item(kind, item)

    def update_line_item(self, kind: LineItemKind, index: int, item: BaseModel | dict) -> None:
        self.coordinator.ensure_idle()
        self.store.update_line_item(kind, index, item)

    def remove_line_item(self, kind: LineItemKind, index: int) -> None:
        self.coordinator.ensure_idle()
        self.store.remove_line_item(kind, index)

    async def next(self, identity: IdentityContext | None) -> ActionResult:
        self.coordinator.ensure_idle()
        if self.navigation.current is WizardStep.DETAILS:
            self.field_errors = validators.validate_details(self.store.draft, self.store.product)
        result = self.navigation.next()
        if not result.moved:
            if result.reason:
                self.notifications.error(result.reason)
            return ActionResult.from_navigation(result)
        await self._on_enter_step(identity)
        return ActionResult.from_navigation(result)

    def prev(self) -> ActionResult:
        self.coordinator.ensure_idle()
        return ActionResult.from_navigation(self.navigation.prev())

    async def _on_enter_step(self, identity: IdentityContext | None) -> None:
        step = self.navigation.current
        if step is WizardStep.DETAILS:
            await self._prefill_profile(identity)
        elif step is WizardStep.REVIEW and self.coordinator.submitted:
            self.coordinator.enter_review()

    async def _prefill_profile(self, identity: IdentityContext | None) -> None:
        if self.store.profile_loaded or identity is None or self.store.draft_frozen:
            return
        try:
            profile = await self.profile_source.load(identity)
        except SaccoApiError as exc:
            logger.warning("Loading applicant profile failed: %s", exc)
            self.notifications.error("Failed to load member details")
            return
        if profile is None:
            self.store.profile_loaded = True
            return
        filled = self.store.apply_profile(profile)
        logger.info("Prefilled %s draft field(s) from member profile", len(filled))

    async def submit_application(self, identity: IdentityContext | None) -> ActionResult:
        if self.navigation.current is not WizardStep.DETAILS:
            raise InvalidTransitionError(
                code="wrong_step",
                message="The application is submitted from the Details step",
                details={"current_step": self.navigation.current_step},
            )
        outcome = await self.coordinator.submit_application(identity)
        self.field_errors = dict(outcome.field_errors)
        if outcome.ok:
            self.navigation.advance_after_success()
            await self._on_enter_step(identity)
        return ActionResult.from_outcome(outcome)

    async def submit_phase(self, kind: LineItemKind, identity: IdentityContext | None) -> ActionResult:
        kind = LineItemKind(kind)
        current_kind = step_planner.STEP_LINE_ITEM_KIND.get(self.navigation.current)
        if current_kind is not kind:
            raise InvalidTransitionError(
                code="wrong_step",
                message=f"{kind.value.replace('-', ' ').capitalize()} are saved from their own step",
                details={"current_step": self.navigation.current_step, "kind": kind.value},
            )
        outcome = await self.coordinator.submit_phase(kind, identity)
        if outcome.ok:
            self.navigation.advance_after_success()
            await self._on_enter_step(identity)
        return ActionResult.from_outcome(outcome)

    def reset(self) -> None:
        """Start a new application. Records already saved upstream are left in place."""
        self.coordinator.ensure_idle()
        if self.coordinator.loan_application_id is not None:
            logger.info(
                "Discarding wizard state for application_id=%s",
                self.coordinator.loan_application_id,
            )
        self.store.reset()
        self.coordinator.reset()
        self.navigation.reset()
        self.field_errors = {}
        self.notifications.clear()

    def review(self) -> ReviewSummary:
        application = self.coordinator.application
        return ReviewSummary(
            state=self.coordinator.state.value,
            loan_application_id=self.coordinator.loan_application_id,
            loan_application_code=application.loan_application_code if application else None,
            product=self.store.product,
            draft=self.store.draft,
            guarantors=self.store.guarantors,
            collaterals=self.store.collaterals,
            next_of_kin=self.store.next_of_kin,
        )

    def snapshot(self) -> WizardSnapshot:
        application = self.coordinator.application
        return WizardSnapshot(
            session_id=self.id,
            applicant_type=self.applicant_type,
            current_step=self.navigation.current_step,
            current_step_name=self.navigation.current.value,
            total_steps=self.navigation.total_steps,
            steps=[
                WizardStepDTO(index=index, name=step.value)
                for index, step in self.navigation.steps.items()
            ],
            state=self.coordinator.state.value,
            busy=self.coordinator.busy,
            loan_application_id=self.coordinator.loan_application_id,
            loan_application_code=application.loan_application_code if application else None,
            product=self.store.product,
            draft=self.store.draft,
            draft_editable=not self.store.draft_frozen,
            field_errors=dict(self.field_errors),
            guarantors=self.store.guarantors,
            collaterals=self.store.collaterals,
            next_of_kin=self.store.next_of_kin,
            committed_phases=[kind.value for kind in self.coordinator.committed_phases],
            pending_phases=[kind.value for kind in self.coordinator.pending_phases()],
            phase_attempts=[
                PhaseAttemptDTO(
                    kind=kind.value,
                    attempts=attempt.attempts,
                    attempted=attempt.attempted,
                    persisted=attempt.persisted,
                    failed_index=attempt.failed_index,
                )
                for kind, attempt in self.coordinator.phase_attempts.items()
            ],
            notifications=[
                NotificationDTO(level=item.level.value, message=item.message, created_at=item.created_at)
                for item in self.notifications.items
            ],
        )

    @property
    def state(self) -> SubmissionState:
        return self.coordinator.state


class WizardSessionRegistry:
    """In-process registry of open wizard sessions keyed by session id.

    Sessions opened with an identity are capped per owner; sessions opened
    without one share a single cap. The oldest session over a cap is dropped.
    """

    def __init__(
        self,
        api: SaccoApiClient,
        *,
        limit_per_owner: int | None = None,
        anonymous_limit: int | None = None,
    ) -> None:
        self.api = api
        self.limit_per_owner = limit_per_owner or settings.wizard_session_limit_per_user
        self.anonymous_limit = anonymous_limit or settings.wizard_anonymous_session_limit
        self._sessions: dict[UUID, WizardSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def _evict(self, owner_id: int | None) -> None:
        limit = self.limit_per_owner if owner_id is not None else self.anonymous_limit
        owned = [s for s in self._sessions.values() if s.owner_id == owner_id]
        while len(owned) >= limit:
            oldest = owned.pop(0)
            logger.info("Evicting wizard session %s for owner %s", oldest.id, owner_id)
            self._sessions.pop(oldest.id, None)

    def create(self, applicant_type: ApplicantType, owner_id: int | None) -> WizardSession:
        self._evict(owner_id)
        session = WizardSession(self.api, applicant_type=applicant_type, owner_id=owner_id)
        self._sessions[session.id] = session
        set_session_id(str(session.id))
        logger.info("Opened wizard session applicant_type=%s", session.applicant_type.value)
        return session

    def get(self, session_id: UUID, owner_id: int | None) -> WizardSession:
        session = self._sessions.get(session_id)
        # Owned sessions are only visible to their owner.
        if session is None or (session.owner_id is not None and session.owner_id != owner_id):
            raise SessionNotFoundError(
                code="wizard_session_not_found",
                message="Wizard session not found",
                details={"session_id": str(session_id)},
            )
        set_session_id(str(session.id))
        return session

    def close(self, session_id: UUID, owner_id: int | None) -> None:
        session = self.get(session_id, owner_id)
        session.coordinator.ensure_idle()
        self._sessions.pop(session.id, None)
