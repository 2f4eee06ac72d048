"""Test doubles and factories shared across the suite."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any

from jose import jwt

from loan_wizard.core.identity import IdentityContext, identity_from_token
from loan_wizard.schemas.loan import (
    ApplicantType,
    ApplicationDraftUpdate,
    Collateral,
    Guarantor,
    LoanApplicationCreated,
    LoanProduct,
    MemberDetails,
    NextOfKin,
)
from loan_wizard.services.errors import SaccoApiError

# ---------------------------------------------------------------------------
# FakeSaccoApi
# ---------------------------------------------------------------------------


class FakeSaccoApi:
    """Records every call; failures are configured per operation and call number."""

    def __init__(
        self,
        products: list[LoanProduct] | None = None,
        *,
        member: MemberDetails | None = None,
        application_id: int = 501,
    ) -> None:
        self.products = products if products is not None else [make_product()]
        self.member = member
        self.application_id = application_id
        self.calls: list[tuple[str, Any]] = []
        # operation -> set of 1-based call numbers that should fail
        self.failures: dict[str, set[int]] = {}
        self.fail_always: set[str] = set()
        self._counts: dict[str, int] = {}

    def fail(self, operation: str, *call_numbers: int) -> None:
        if call_numbers:
            self.failures.setdefault(operation, set()).update(call_numbers)
        else:
            self.fail_always.add(operation)

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    def _record(self, operation: str, payload: Any) -> None:
        self.calls.append((operation, payload))
        number = self._counts.get(operation, 0) + 1
        self._counts[operation] = number
        if operation in self.fail_always or number in self.failures.get(operation, set()):
            raise SaccoApiError(operation=operation, message="Upstream unavailable", status_code=503)

    async def ping(self) -> None:
        self._record("ping", None)

    async def list_active_loan_products(
        self,
        applicant_type: ApplicantType,
        *,
        identity: IdentityContext | None = None,
        page: int = 0,
        size: int | None = None,
    ) -> list[LoanProduct]:
        self._record("list_active_loan_products", applicant_type)
        return [product for product in self.products if product.is_active]

    async def create_loan_application(self, payload, *, identity=None) -> LoanApplicationCreated:
        self._record("create_loan_application", payload)
        return LoanApplicationCreated(
            loan_application_id=self.application_id,
            loan_application_code=f"LAPP-{self.application_id}",
            status="PENDING",
        )

    async def add_guarantor(self, loan_application_id, guarantor, *, identity=None):
        self._record("add_guarantor", (loan_application_id, guarantor))
        return {"id": self.count("add_guarantor")}

    async def add_collateral(self, loan_application_id, collateral, *, identity=None):
        self._record("add_collateral", (loan_application_id, collateral))
        return {"id": self.count("add_collateral")}

    async def add_next_of_kin(self, loan_application_id, next_of_kin, *, identity=None):
        self._record("add_next_of_kin", (loan_application_id, next_of_kin))
        return {"id": self.count("add_next_of_kin")}

    async def get_member_details(self, member_id, *, identity=None) -> MemberDetails:
        self._record("get_member_details", member_id)
        if self.member is None:
            raise SaccoApiError(
                operation="get_member_details", message="Member not found", status_code=404
            )
        return self.member

    async def aclose(self) -> None:
        return None


class GatedSaccoApi(FakeSaccoApi):
    """Holds write calls open until ``release()`` so a test can act mid-flight."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()

    def release(self) -> None:
        self.gate.set()

    async def _hold(self) -> None:
        self.entered.set()
        await self.gate.wait()

    async def create_loan_application(self, payload, *, identity=None) -> LoanApplicationCreated:
        await self._hold()
        return await super().create_loan_application(payload, identity=identity)

    async def add_guarantor(self, loan_application_id, guarantor, *, identity=None):
        await self._hold()
        return await super().add_guarantor(loan_application_id, guarantor, identity=identity)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_product(**overrides: Any) -> LoanProduct:
    defaults: dict[str, Any] = dict(
        id=7,
        name="Development Loan",
        loan_product_code="DEV-01",
        min_amount=Decimal("10000"),
        max_amount=Decimal("500000"),
        min_term_days=30,
        max_term_days=365,
        interest_rate=Decimal("12"),
        requires_guarantor=False,
        requires_collateral=False,
        requires_next_of_kin=False,
        is_active=True,
    )
    defaults.update(overrides)
    return LoanProduct(**defaults)


def valid_details(**overrides: Any) -> ApplicationDraftUpdate:
    defaults: dict[str, Any] = dict(
        amount="50000",
        term_days="90",
        first_name="Wanjiku",
        last_name="Kamau",
        email="wanjiku@example.com",
        mobile_number="0712345678",
        address="P.O. Box 100, Nairobi",
        occupation="Teacher",
        loan_purpose="School fees",
    )
    defaults.update(overrides)
    return ApplicationDraftUpdate(**defaults)


def make_guarantor(**overrides: Any) -> Guarantor:
    defaults: dict[str, Any] = dict(
        guarantor_name="Otieno Ouma",
        relationship="Colleague",
        guarantor_contact="0722000111",
        guarantor_id_number="23456789",
        guaranteed_amount=Decimal("20000"),
    )
    defaults.update(overrides)
    return Guarantor(**defaults)


def make_collateral(**overrides: Any) -> Collateral:
    defaults: dict[str, Any] = dict(
        type="Vehicle",
        description="Toyota Probox KCA 123A",
        estimated_value=Decimal("450000"),
        owner_name="Wanjiku Kamau",
        owner_contact="0712345678",
    )
    defaults.update(overrides)
    return Collateral(**defaults)


def make_next_of_kin(**overrides: Any) -> NextOfKin:
    defaults: dict[str, Any] = dict(
        name="Achieng Kamau",
        relationship="Sister",
        phone="+254711222333",
        address="Kisumu",
    )
    defaults.update(overrides)
    return NextOfKin(**defaults)


def make_token(user_id: Any = 42, **claims: Any) -> str:
    payload = {"sub": "wanjiku@example.com", "role": "MEMBER", "userId": user_id}
    payload.update(claims)
    return jwt.encode(payload, "any-signing-key", algorithm="HS256")


def make_identity(user_id: int = 42) -> IdentityContext:
    identity = identity_from_token(make_token(user_id))
    assert identity is not None
    return identity


