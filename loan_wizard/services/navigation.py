from __future__ import annotations

from dataclasses import dataclass

from loan_wizard.services import step_planner, validators
from loan_wizard.services.draft_store import DraftStore
from loan_wizard.services.step_planner import WizardStep
from loan_wizard.services.submission import SubmissionCoordinator

STEP_LABELS = {
    WizardStep.GUARANTOR: ("guarantor", "guarantors"),
    WizardStep.COLLATERAL: ("collateral", "collaterals"),
    WizardStep.NEXT_OF_KIN: ("next of kin", "next of kin"),
}


@dataclass(frozen=True)
class NavigationResult:
    moved: bool
    step: int
    reason: str | None = None


class NavigationController:
    """Moves the current-step pointer for one wizard session."""

    def __init__(self, store: DraftStore, coordinator: SubmissionCoordinator) -> None:
        self.store = store
        self.coordinator = coordinator
        self.current_step = step_planner.FIRST_STEP

    def reset(self) -> None:
        self.current_step = step_planner.FIRST_STEP

    @property
    def steps(self) -> dict[int, WizardStep]:
        return step_planner.plan_steps(self.store.product)

    @property
    def total_steps(self) -> int:
        return step_planner.total_steps(self.store.product)

    @property
    def current(self) -> WizardStep:
        return step_planner.step_at(self.store.product, self.current_step)

    def min_reachable_step(self) -> int:
        if self.coordinator.submitted:
            return step_planner.min_step_after_submission(self.store.product)
        return step_planner.FIRST_STEP

    def blocked_reason(self) -> str | None:
        step = self.current
        if step is WizardStep.PRODUCT:
            if self.store.product is None:
                return "Please select a loan product"
            return None
        if step is WizardStep.DETAILS:
            errors = validators.validate_details(self.store.draft, self.store.product)
            if errors:
                return validators.first_error(errors)
            if not self.coordinator.submitted:
                return "Submit the application to continue"
            return None
        kind = step_planner.STEP_LINE_ITEM_KIND.get(step)
        if kind is not None:
            singular, plural = STEP_LABELS[step]
            if not self.store.items_for(kind):
                return f"Please add at least one {singular}"
            if not self.coordinator.is_committed(kind):
                return f"Save the {plural} to continue"
        return None

    def next(self) -> NavigationResult:
        reason = self.blocked_reason()
        if reason:
            return NavigationResult(moved=False, step=self.current_step, reason=reason)
        if self.current_step >= self.total_steps:
            return NavigationResult(moved=False, step=self.current_step)
        self.current_step += 1
        return NavigationResult(moved=True, step=self.current_step)

    def prev(self) -> NavigationResult:
        floor = self.min_reachable_step()
        if self.current_step <= floor:
            reason = None
            if self.coordinator.submitted and self.current_step > step_planner.FIRST_STEP:
                reason = "Earlier steps cannot be changed after the application is submitted"
            return NavigationResult(moved=False, step=self.current_step, reason=reason)
        self.current_step -= 1
        return NavigationResult(moved=True, step=self.current_step)

    def advance_after_success(self) -> NavigationResult:
        """Step forward after a coordinator phase succeeds, skipping the guard checks."""
        if self.current_step < self.total_steps:
            self.current_step += 1
        return NavigationResult(moved=True, step=self.current_step)
