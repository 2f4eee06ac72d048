from decimal import Decimal

import pytest

from factories import make_collateral, make_guarantor, make_next_of_kin, make_product, valid_details
from loan_wizard.schemas.loan import ApplicationDraft
from loan_wizard.services import validators


def test_amount_required_and_numeric() -> None:
    assert validators.validate_amount("") == "Loan amount is required"
    assert validators.validate_amount("   ") == "Loan amount is required"
    assert validators.validate_amount("ten thousand") == "Please enter a valid number"
    assert validators.validate_amount("0") == "Amount must be greater than 0"
    assert validators.validate_amount("-5") == "Amount must be greater than 0"


def test_amount_product_bounds() -> None:
    product = make_product(min_amount=Decimal("10000"), max_amount=Decimal("500000"))
    assert validators.validate_amount("9999", product) == "Amount cannot be less than KES 10000"
    assert validators.validate_amount("500001", product) == "Amount cannot exceed KES 500000"
    assert validators.validate_amount("10000", product) is None
    assert validators.validate_amount("500000", product) is None


def test_amount_without_product_only_checks_positive() -> None:
    assert validators.validate_amount("1") is None


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("", "Loan term is required"),
        ("abc", "Please enter a valid number"),
        ("0", "Term must be a positive whole number"),
        ("10.5", "Term must be a positive whole number"),
        ("29", "Term cannot be less than 30 days"),
        ("366", "Term cannot exceed 365 days"),
        ("30", None),
        ("365", None),
    ],
)
def test_term_days(value, expected) -> None:
    product = make_product(min_term_days=30, max_term_days=365)
    assert validators.validate_term_days(value, product) == expected


def test_email_format() -> None:
    assert validators.validate_email("") == "Email is required"
    assert validators.validate_email("wanjiku@") == "Please enter a valid email address"
    assert validators.validate_email("wanjiku example@x.com") == "Please enter a valid email address"
    assert validators.validate_email("wanjiku@example.co.ke") is None


@pytest.mark.parametrize(
    "phone",
    ["0712345678", "+254712345678", "0112345678", "+254 712 345 678"],
)
def test_phone_accepts_kenyan_mobiles(phone) -> None:
    assert validators.validate_phone(phone) is None


@pytest.mark.parametrize("phone", ["12345", "712345678", "0812345678", "+2547123456789"])
def test_phone_rejects_other_numbers(phone) -> None:
    assert validators.validate_phone(phone) == "Please enter a valid Kenyan phone number"


def test_validate_details_reports_in_field_order() -> None:
    draft = ApplicationDraft(email="bad", mobile_number="12345")
    errors = validators.validate_details(draft, make_product())
    assert list(errors)[:4] == ["amount", "term_days", "email", "mobile_number"]
    assert validators.first_error(errors) == "Loan amount is required"
    assert errors["first_name"] == "First name is required"
    assert errors["address"] == "Address is required"


def test_validate_details_valid_draft_is_empty_and_repeatable() -> None:
    draft = ApplicationDraft(**valid_details().model_dump(exclude_none=True))
    product = make_product()
    assert validators.validate_details(draft, product) == {}
    assert validators.validate_details(draft, product) == validators.validate_details(draft, product)


def test_guarantors_need_at_least_one() -> None:
    assert validators.validate_guarantors([]) == "Please add at least one guarantor"


def test_guarantor_messages_name_the_position() -> None:
    items = [make_guarantor(), make_guarantor(guarantor_name="  ")]
    assert validators.validate_guarantors(items) == "Guarantor 2: Name is required"
    items = [make_guarantor(guaranteed_amount=Decimal("0"))]
    assert validators.validate_guarantors(items) == "Guarantor 1: Guaranteed amount must be greater than 0"


def test_guarantor_count_bounds_from_product() -> None:
    product = make_product(requires_guarantor=True, min_guarantors=2, max_guarantors=3)
    assert validators.validate_guarantors([make_guarantor()], product) == "Please add at least 2 guarantors"
    assert validators.validate_guarantors([make_guarantor()] * 4, product) == (
        "No more than 3 guarantors can be added"
    )
    assert validators.validate_guarantors([make_guarantor()] * 2, product) is None


def test_collateral_checks() -> None:
    assert validators.validate_collaterals([]) == "Please add at least one collateral"
    assert validators.validate_collaterals([make_collateral(type="")]) == "Collateral 1: Type is required"
    assert validators.validate_collaterals([make_collateral(estimated_value=Decimal("0"))]) == (
        "Collateral 1: Estimated value must be greater than 0"
    )
    assert validators.validate_collaterals([make_collateral()]) is None


def test_next_of_kin_checks() -> None:
    assert validators.validate_next_of_kin([]) == "Please add at least one next of kin"
    assert validators.validate_next_of_kin([make_next_of_kin(phone="12345")]) == (
        "Next of Kin 1: Invalid phone format. Use 0712345678 or +254712345678"
    )
    assert validators.validate_next_of_kin([make_next_of_kin(email="nope")]) == (
        "Next of Kin 1: Please enter a valid email address"
    )
    assert validators.validate_next_of_kin([make_next_of_kin(email="")]) is None
