from itertools import product as flag_combinations

import pytest

from factories import make_product
from loan_wizard.schemas.loan import LineItemKind
from loan_wizard.services import step_planner
from loan_wizard.services.step_planner import WizardStep


@pytest.mark.parametrize("flags", list(flag_combinations([False, True], repeat=3)))
def test_step_layout_for_every_flag_combination(flags) -> None:
    guarantor, collateral, next_of_kin = flags
    product = make_product(
        requires_guarantor=guarantor,
        requires_collateral=collateral,
        requires_next_of_kin=next_of_kin,
    )
    steps = step_planner.plan_steps(product)
    expected_middle = [
        step
        for flag, step in zip(
            flags, (WizardStep.GUARANTOR, WizardStep.COLLATERAL, WizardStep.NEXT_OF_KIN)
        )
        if flag
    ]

    assert step_planner.total_steps(product) == 3 + sum(flags)
    assert list(steps) == list(range(1, step_planner.total_steps(product) + 1))
    assert list(steps.values()) == [WizardStep.PRODUCT, WizardStep.DETAILS, *expected_middle, WizardStep.REVIEW]
    assert step_planner.review_step(product) == step_planner.total_steps(product)


def test_guarantor_and_next_of_kin_layout() -> None:
    product = make_product(requires_guarantor=True, requires_next_of_kin=True)
    assert [step.value for step in step_planner.plan_steps(product).values()] == [
        "Product",
        "Details",
        "Guarantor",
        "Next of Kin",
        "Review",
    ]
    assert step_planner.total_steps(product) == 5
    assert step_planner.required_phases(product) == [LineItemKind.GUARANTOR, LineItemKind.NEXT_OF_KIN]


def test_no_product_plans_the_skeleton() -> None:
    assert step_planner.plan_steps(None) == {
        1: WizardStep.PRODUCT,
        2: WizardStep.DETAILS,
        3: WizardStep.REVIEW,
    }
    assert step_planner.total_steps(None) == 3
    assert step_planner.required_phases(None) == []


def test_min_step_after_submission() -> None:
    assert step_planner.min_step_after_submission(make_product()) == 3
    assert step_planner.min_step_after_submission(make_product(requires_collateral=True)) == 3
    assert step_planner.min_step_after_submission(
        make_product(requires_guarantor=True, requires_collateral=True)
    ) == 3


def test_step_at_outside_plan_raises() -> None:
    with pytest.raises(ValueError):
        step_planner.step_at(make_product(), 4)
    assert step_planner.index_of(make_product(requires_collateral=True), WizardStep.COLLATERAL) == 3
    assert step_planner.index_of(make_product(), WizardStep.COLLATERAL) is None
