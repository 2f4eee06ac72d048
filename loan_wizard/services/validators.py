"""Field validators for the loan application wizard.

Every function here is pure: it reads the candidate value (and the selected
product, where bounds apply) and returns ``None`` when the value is valid or
a human-readable reason otherwise. Nothing in this module mutates a draft.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from loan_wizard.core.settings import settings
from loan_wizard.schemas.loan import (
    ApplicationDraft,
    Collateral,
    Guarantor,
    LoanProduct,
    NextOfKin,
)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
KENYAN_MOBILE_PATTERN = re.compile(r"^(?:\+254|0)[17]\d{8}$")
WHITESPACE = re.compile(r"\s")

# Details fields in the order their first failure is reported.
DETAILS_FIELD_ORDER = (
    "amount",
    "term_days",
    "email",
    "mobile_number",
    "first_name",
    "last_name",
    "occupation",
    "loan_purpose",
    "address",
)

REQUIRED_TEXT_LABELS = {
    "first_name": "First name",
    "last_name": "Last name",
    "occupation": "Occupation",
    "loan_purpose": "Loan purpose",
    "address": "Address",
}


def _is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def _parse_decimal(value: Any) -> Decimal | None:
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def format_number(value: Decimal | int) -> str:
    number = Decimal(value)
    if number == number.to_integral_value():
        return str(int(number))
    return format(number.normalize(), "f")


def validate_amount(value: Any, product: LoanProduct | None = None) -> str | None:
    if _is_blank(value):
        return "Loan amount is required"
    amount = _parse_decimal(value)
    if amount is None:
        return "Please enter a valid number"
    if amount <= 0:
        return "Amount must be greater than 0"
    if product is not None:
        currency = settings.currency_label
        if amount < product.min_amount:
            return f"Amount cannot be less than {currency} {format_number(product.min_amount)}"
        if amount > product.max_amount:
            return f"Amount cannot exceed {currency} {format_number(product.max_amount)}"
    return None


def validate_term_days(value: Any, product: LoanProduct | None = None) -> str | None:
    if _is_blank(value):
        return "Loan term is required"
    term = _parse_decimal(value)
    if term is None:
        return "Please enter a valid number"
    if term <= 0 or term != term.to_integral_value():
        return "Term must be a positive whole number"
    if product is not None:
        if term < product.min_term_days:
            return f"Term cannot be less than {product.min_term_days} days"
        if term > product.max_term_days:
            return f"Term cannot exceed {product.max_term_days} days"
    return None


def validate_email(value: Any) -> str | None:
    if _is_blank(value):
        return "Email is required"
    if not EMAIL_PATTERN.match(str(value)):
        return "Please enter a valid email address"
    return None


def normalize_phone(value: Any) -> str:
    return WHITESPACE.sub("", str(value or ""))


def validate_phone(value: Any) -> str | None:
    if _is_blank(value):
        return "Phone number is required"
    if not KENYAN_MOBILE_PATTERN.match(normalize_phone(value)):
        return "Please enter a valid Kenyan phone number"
    return None


def validate_required_text(value: Any, label: str) -> str | None:
    if _is_blank(value):
        return f"{label} is required"
    return None


def validate_details(draft: ApplicationDraft, product: LoanProduct | None) -> dict[str, str]:
    """Validate the Details step and return a field -> reason map (empty when valid)."""
    checks = {
        "amount": validate_amount(draft.amount, product),
        "term_days": validate_term_days(draft.term_days, product),
        "email": validate_email(draft.email),
        "mobile_number": validate_phone(draft.mobile_number),
    }
    for field, label in REQUIRED_TEXT_LABELS.items():
        checks[field] = validate_required_text(getattr(draft, field), label)
    return {field: checks[field] for field in DETAILS_FIELD_ORDER if checks[field] is not None}


def first_error(errors: dict[str, str], fallback: str = "Please fill in all required fields") -> str:
    for field in DETAILS_FIELD_ORDER:
        if field in errors:
            return errors[field]
    return next(iter(errors.values()), fallback)


def _count_bounds_error(
    count: int,
    *,
    label: str,
    plural: str,
    minimum: int | None,
    maximum: int | None,
) -> str | None:
    if count == 0:
        return f"Please add at least one {label}"
    if minimum is not None and count < minimum:
        return f"Please add at least {minimum} {plural}"
    if maximum is not None and count > maximum:
        return f"No more than {maximum} {plural} can be added"
    return None


def _positive(value: Any) -> bool:
    number = _parse_decimal(value) if value is not None else None
    return number is not None and number > 0


def validate_guarantors(items: Sequence[Guarantor], product: LoanProduct | None = None) -> str | None:
    error = _count_bounds_error(
        len(items),
        label="guarantor",
        plural="guarantors",
        minimum=product.min_guarantors if product else None,
        maximum=product.max_guarantors if product else None,
    )
    if error:
        return error
    for position, item in enumerate(items, start=1):
        prefix = f"Guarantor {position}"
        if _is_blank(item.guarantor_name):
            return f"{prefix}: Name is required"
        if _is_blank(item.relationship):
            return f"{prefix}: Relationship is required"
        if _is_blank(item.guarantor_contact):
            return f"{prefix}: Contact is required"
        if _is_blank(item.guarantor_id_number):
            return f"{prefix}: ID Number is required"
        if not _positive(item.guaranteed_amount):
            return f"{prefix}: Guaranteed amount must be greater than 0"
    return None


def validate_collaterals(items: Sequence[Collateral], product: LoanProduct | None = None) -> str | None:
    error = _count_bounds_error(
        len(items),
        label="collateral",
        plural="collateral items",
        minimum=product.min_collateral_items if product else None,
        maximum=product.max_collateral_items if product else None,
    )
    if error:
        return error
    for position, item in enumerate(items, start=1):
        prefix = f"Collateral {position}"
        if _is_blank(item.type):
            return f"{prefix}: Type is required"
        if not _positive(item.estimated_value):
            return f"{prefix}: Estimated value must be greater than 0"
        if _is_blank(item.description):
            return f"{prefix}: Description is required"
        if _is_blank(item.owner_name):
            return f"{prefix}: Owner name is required"
        if _is_blank(item.owner_contact):
            return f"{prefix}: Owner contact is required"
    return None


def validate_next_of_kin(items: Sequence[NextOfKin], product: LoanProduct | None = None) -> str | None:
    error = _count_bounds_error(
        len(items),
        label="next of kin",
        plural="next of kin",
        minimum=product.min_next_of_kin if product else None,
        maximum=product.max_next_of_kin if product else None,
    )
    if error:
        return error
    for position, item in enumerate(items, start=1):
        prefix = f"Next of Kin {position}"
        if _is_blank(item.name):
            return f"{prefix}: Name is required"
        if _is_blank(item.relationship):
            return f"{prefix}: Relationship is required"
        if _is_blank(item.phone):
            return f"{prefix}: Phone number is required"
        if validate_phone(item.phone):
            return f"{prefix}: Invalid phone format. Use 0712345678 or +254712345678"
        if not _is_blank(item.email) and validate_email(item.email):
            return f"{prefix}: Please enter a valid email address"
        if _is_blank(item.address):
            return f"{prefix}: Address is required"
    return None
