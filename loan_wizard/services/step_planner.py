from __future__ import annotations

from enum import Enum

from loan_wizard.schemas.loan import LineItemKind, LoanProduct


class WizardStep(str, Enum):
    PRODUCT = "Product"
    DETAILS = "Details"
    GUARANTOR = "Guarantor"
    COLLATERAL = "Collateral"
    NEXT_OF_KIN = "Next of Kin"
    REVIEW = "Review"


FIRST_STEP = 1
DETAILS_STEP = 2
FIRST_REQUIREMENT_STEP = 3

# Requirement steps always appear in this order when their flag is set.
REQUIREMENT_STEPS: tuple[tuple[str, WizardStep, LineItemKind], ...] = (
    ("requires_guarantor", WizardStep.GUARANTOR, LineItemKind.GUARANTOR),
    ("requires_collateral", WizardStep.COLLATERAL, LineItemKind.COLLATERAL),
    ("requires_next_of_kin", WizardStep.NEXT_OF_KIN, LineItemKind.NEXT_OF_KIN),
)

STEP_LINE_ITEM_KIND: dict[WizardStep, LineItemKind] = {
    step: kind for _, step, kind in REQUIREMENT_STEPS
}


def required_phases(product: LoanProduct | None) -> list[LineItemKind]:
    if product is None:
        return []
    return [kind for flag, _, kind in REQUIREMENT_STEPS if getattr(product, flag)]


def plan_steps(product: LoanProduct | None) -> dict[int, WizardStep]:
    steps = {FIRST_STEP: WizardStep.PRODUCT, DETAILS_STEP: WizardStep.DETAILS}
    index = FIRST_REQUIREMENT_STEP
    if product is not None:
        for flag, step, _ in REQUIREMENT_STEPS:
            if getattr(product, flag):
                steps[index] = step
                index += 1
    steps[index] = WizardStep.REVIEW
    return steps


def total_steps(product: LoanProduct | None) -> int:
    return FIRST_REQUIREMENT_STEP + len(required_phases(product))


def review_step(product: LoanProduct | None) -> int:
    return total_steps(product)


def min_step_after_submission(product: LoanProduct | None) -> int:
    """Lowest step the applicant may return to once the application exists upstream."""
    if required_phases(product):
        return FIRST_REQUIREMENT_STEP
    return review_step(product)


def step_at(product: LoanProduct | None, index: int) -> WizardStep:
    steps = plan_steps(product)
    if index not in steps:
        raise ValueError(f"Step {index} is outside the planned range 1..{len(steps)}")
    return steps[index]


def index_of(product: LoanProduct | None, step: WizardStep) -> int | None:
    for index, planned in plan_steps(product).items():
        if planned is step:
            return index
    return None
