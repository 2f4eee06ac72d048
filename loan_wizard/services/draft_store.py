from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError

from loan_wizard.schemas.loan import (
    ApplicationDraft,
    ApplicationDraftUpdate,
    Collateral,
    Guarantor,
    LINE_ITEM_MODELS,
    LineItemKind,
    LoanProduct,
    MemberDetails,
    NextOfKin,
)
from loan_wizard.services.errors import InvalidTransitionError, LineItemLockedError

PROFILE_FIELDS = {
    "first_name": "first_name",
    "last_name": "last_name",
    "middle_name": "other_names",
    "email": "email",
    "mobile_number": "phone_number",
    "address": "address",
    "dob": "dob",
    "gender": "gender",
}


class DraftStore:
    """Mutable payload of one application attempt plus its line-item collections.

    The draft is editable until the coordinator freezes it on submission; each
    line-item collection is editable until its own phase commits.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.product: LoanProduct | None = None
        self.draft = ApplicationDraft()
        self.line_items: dict[LineItemKind, list[BaseModel]] = {kind: [] for kind in LineItemKind}
        self._draft_frozen = False
        self._locked_kinds: set[LineItemKind] = set()
        self.profile_loaded = False

    @property
    def draft_frozen(self) -> bool:
        return self._draft_frozen

    @property
    def guarantors(self) -> list[Guarantor]:
        return self.line_items[LineItemKind.GUARANTOR]  # type: ignore[return-value]

    @property
    def collaterals(self) -> list[Collateral]:
        return self.line_items[LineItemKind.COLLATERAL]  # type: ignore[return-value]

    @property
    def next_of_kin(self) -> list[NextOfKin]:
        return self.line_items[LineItemKind.NEXT_OF_KIN]  # type: ignore[return-value]

    def _ensure_draft_editable(self) -> None:
        if self._draft_frozen:
            raise InvalidTransitionError(
                code="application_submitted",
                message="The application has been submitted and can no longer be edited",
            )

    def select_product(self, product: LoanProduct) -> None:
        self._ensure_draft_editable()
        if not product.is_active:
            raise InvalidTransitionError(
                code="product_inactive",
                message=f"Loan product {product.name} is not available",
                details={"loan_product_id": product.id},
            )
        self.product = product

    def update_draft(self, update: ApplicationDraftUpdate) -> ApplicationDraft:
        self._ensure_draft_editable()
        changes = update.model_dump(exclude_none=True)
        self.draft = self.draft.model_copy(update=changes)
        return self.draft

    def apply_profile(self, profile: MemberDetails) -> list[str]:
        """Fill empty identity fields from a member profile; returns the fields filled."""
        self._ensure_draft_editable()
        filled: dict[str, Any] = {}
        for draft_field, profile_field in PROFILE_FIELDS.items():
            value = getattr(profile, profile_field)
            if value and not str(getattr(self.draft, draft_field)).strip():
                filled[draft_field] = str(value)
        if filled:
            self.draft = self.draft.model_copy(update=filled)
        self.profile_loaded = True
        return sorted(filled)

    def freeze_draft(self) -> None:
        self._draft_frozen = True

    def thaw_draft(self) -> None:
        self._draft_frozen = False

    def _ensure_kind_editable(self, kind: LineItemKind) -> None:
        if kind in self._locked_kinds:
            raise LineItemLockedError(
                code="line_items_committed",
                message=f"{kind.value.replace('-', ' ').capitalize()} have already been saved",
                details={"kind": kind.value},
            )

    def _coerce(self, kind: LineItemKind, item: BaseModel | dict | None) -> BaseModel:
        model = LINE_ITEM_MODELS[kind]
        if item is None:
            return model()
        if isinstance(item, model):
            return item
        data = item.model_dump() if isinstance(item, BaseModel) else item
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise InvalidTransitionError(
                code="invalid_line_item",
                message=f"Invalid {kind.value} entry",
                details={"errors": exc.errors(include_url=False)},
            ) from exc

    def add_line_item(self, kind: LineItemKind, item: BaseModel | dict | None = None) -> int:
        self._ensure_kind_editable(kind)
        self.line_items[kind].append(self._coerce(kind, item))
        return len(self.line_items[kind]) - 1

    def update_line_item(self, kind: LineItemKind, index: int, item: BaseModel | dict) -> None:
        self._ensure_kind_editable(kind)
        items = self.line_items[kind]
        self._check_index(kind, index)
        items[index] = self._coerce(kind, item)

    def remove_line_item(self, kind: LineItemKind, index: int) -> None:
        self._ensure_kind_editable(kind)
        self._check_index(kind, index)
        del self.line_items[kind][index]

    def _check_index(self, kind: LineItemKind, index: int) -> None:
        if index < 0 or index >= len(self.line_items[kind]):
            raise InvalidTransitionError(
                code="line_item_not_found",
                message=f"No {kind.value} entry at position {index + 1}",
                details={"kind": kind.value, "index": index},
            )

    def lock_line_items(self, kind: LineItemKind) -> None:
        self._locked_kinds.add(kind)

    def unlock_line_items(self, kind: LineItemKind) -> None:
        self._locked_kinds.discard(kind)

    def is_locked(self, kind: LineItemKind) -> bool:
        return kind in self._locked_kinds

    def items_for(self, kind: LineItemKind) -> list[BaseModel]:
        return list(self.line_items[kind])
