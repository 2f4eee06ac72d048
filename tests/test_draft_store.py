import pytest

from factories import make_guarantor, make_product, valid_details
from loan_wizard.schemas.loan import ApplicationDraftUpdate, Guarantor, LineItemKind, MemberDetails
from loan_wizard.services.draft_store import DraftStore
from loan_wizard.services.errors import InvalidTransitionError, LineItemLockedError


def test_select_product_rejects_inactive() -> None:
    store = DraftStore()
    with pytest.raises(InvalidTransitionError) as exc:
        store.select_product(make_product(is_active=False))
    assert exc.value.code == "product_inactive"
    assert store.product is None


def test_update_draft_merges_only_given_fields() -> None:
    store = DraftStore()
    store.update_draft(valid_details())
    store.update_draft(ApplicationDraftUpdate(amount="75000"))
    assert store.draft.amount == "75000"
    assert store.draft.first_name == "Wanjiku"


def test_frozen_draft_rejects_edits() -> None:
    store = DraftStore()
    store.select_product(make_product())
    store.freeze_draft()
    with pytest.raises(InvalidTransitionError):
        store.update_draft(ApplicationDraftUpdate(amount="1"))
    with pytest.raises(InvalidTransitionError):
        store.select_product(make_product(id=8))


def test_apply_profile_fills_only_empty_fields() -> None:
    store = DraftStore()
    store.update_draft(ApplicationDraftUpdate(first_name="Wanjiku"))
    filled = store.apply_profile(
        MemberDetails(
            member_id=42,
            first_name="Mary",
            last_name="Kamau",
            phone_number="0712345678",
            email="mary@example.com",
        )
    )
    assert filled == ["email", "last_name", "mobile_number"]
    assert store.draft.first_name == "Wanjiku"
    assert store.draft.last_name == "Kamau"
    assert store.profile_loaded is True


def test_line_items_add_update_remove() -> None:
    store = DraftStore()
    assert store.add_line_item(LineItemKind.GUARANTOR) == 0
    assert store.guarantors == [Guarantor()]
    store.update_line_item(LineItemKind.GUARANTOR, 0, {"guarantorName": "Otieno"})
    assert store.guarantors[0].guarantor_name == "Otieno"
    store.add_line_item(LineItemKind.GUARANTOR, make_guarantor())
    store.remove_line_item(LineItemKind.GUARANTOR, 0)
    assert [item.guarantor_name for item in store.guarantors] == ["Otieno Ouma"]


def test_line_item_bad_index_and_payload() -> None:
    store = DraftStore()
    with pytest.raises(InvalidTransitionError) as exc:
        store.remove_line_item(LineItemKind.COLLATERAL, 0)
    assert exc.value.code == "line_item_not_found"
    with pytest.raises(InvalidTransitionError) as exc:
        store.add_line_item(LineItemKind.GUARANTOR, {"guaranteedAmount": "lots"})
    assert exc.value.code == "invalid_line_item"


def test_locked_collection_rejects_changes() -> None:
    store = DraftStore()
    store.add_line_item(LineItemKind.NEXT_OF_KIN)
    store.lock_line_items(LineItemKind.NEXT_OF_KIN)
    with pytest.raises(LineItemLockedError):
        store.add_line_item(LineItemKind.NEXT_OF_KIN)
    with pytest.raises(LineItemLockedError):
        store.remove_line_item(LineItemKind.NEXT_OF_KIN, 0)
    # Other collections stay editable.
    store.add_line_item(LineItemKind.GUARANTOR)


def test_reset_clears_everything() -> None:
    store = DraftStore()
    store.select_product(make_product())
    store.update_draft(valid_details())
    store.add_line_item(LineItemKind.GUARANTOR)
    store.lock_line_items(LineItemKind.GUARANTOR)
    store.freeze_draft()
    store.reset()
    assert store.product is None
    assert store.draft.amount == ""
    assert store.guarantors == []
    assert not store.draft_frozen
    assert not store.is_locked(LineItemKind.GUARANTOR)
