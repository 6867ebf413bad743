"""Unit tests for booking drafts"""

from datetime import timedelta

import pytest

from app.domain.drafts.service import DRAFT_TTL, DraftManager, purge_drafts_for_owner
from app.shared.exceptions import NotFoundError, ValidationError


class TestSaveAndResume:
    def test_save_then_get(self, draft_manager):
        key = draft_manager.save_draft("owner-1", {"packageType": "document", "weight": 1.2})
        assert draft_manager.get_draft(key) == {"packageType": "document", "weight": 1.2}

    def test_save_without_key_creates_independent_drafts(self, draft_manager):
        first = draft_manager.save_draft("owner-1", {"currentStep": 1})
        second = draft_manager.save_draft("owner-1", {"currentStep": 2})

        assert first != second
        assert len(draft_manager.list_drafts("owner-1")) == 2

    def test_save_with_key_overwrites_without_merge(self, draft_manager):
        key = draft_manager.save_draft("owner-1", {"packageType": "bulk", "weight": 40})
        draft_manager.save_draft("owner-1", {"currentStep": 3}, draft_key=key)
        assert draft_manager.get_draft(key) == {"currentStep": 3}

    def test_unknown_form_fields_kept(self, draft_manager):
        key = draft_manager.save_draft("owner-1", {"promoCode": "SPRING"})
        assert draft_manager.get_draft(key) == {"promoCode": "SPRING"}

    def test_invalid_field_type_rejected(self, draft_manager):
        with pytest.raises(ValidationError):
            draft_manager.save_draft("owner-1", {"weight": "heavy"})

    def test_cannot_overwrite_another_owners_draft(self, draft_manager):
        key = draft_manager.save_draft("owner-1", {"currentStep": 1})
        with pytest.raises(NotFoundError):
            draft_manager.save_draft("owner-2", {"currentStep": 9}, draft_key=key)
        assert draft_manager.get_draft(key) == {"currentStep": 1}

    def test_cannot_save_draft_over_record_of_another_category(self, draft_manager):
        cart_key = draft_manager.store.put(None, "owner-1", "cart", {"items": [1, 2]})

        with pytest.raises(NotFoundError):
            draft_manager.save_draft("owner-2", {"currentStep": 1}, draft_key=cart_key)
        with pytest.raises(NotFoundError):
            draft_manager.save_draft("owner-1", {"currentStep": 1}, draft_key=cart_key)

        assert draft_manager.store.get(cart_key, category="cart") == {"items": [1, 2]}
        assert draft_manager.list_drafts("owner-2") == []

    def test_owner_scoped_get(self, draft_manager):
        key = draft_manager.save_draft("owner-1", {"currentStep": 1})
        assert draft_manager.get_draft(key, owner="owner-2") is None
        assert draft_manager.get_draft(key, owner="owner-1") == {"currentStep": 1}


class TestExpiry:
    def test_draft_expires_after_24_hours(self, draft_manager, clock):
        assert DRAFT_TTL == timedelta(hours=24)
        key = draft_manager.save_draft("owner-1", {"currentStep": 1})

        clock.advance(hours=24)
        assert draft_manager.get_draft(key) is None

    def test_reading_extends_draft(self, draft_manager, clock):
        key = draft_manager.save_draft("owner-1", {"currentStep": 1})
        clock.advance(hours=23)
        assert draft_manager.get_draft(key) is not None

        clock.advance(hours=23)
        assert draft_manager.get_draft(key) == {"currentStep": 1}


class TestAutoSave:
    def test_disjoint_partials_merge_into_one_draft(self, draft_manager):
        """auto_save({a:1}) then auto_save({b:2}) → one draft holding {a:1, b:2}."""
        first = draft_manager.auto_save_draft("owner-1", {"a": 1})
        second = draft_manager.auto_save_draft("owner-1", {"b": 2})

        assert first.key == second.key
        assert draft_manager.get_draft(first.key) == {"a": 1, "b": 2}
        assert len(draft_manager.list_drafts("owner-1")) == 1

    def test_auto_save_targets_latest_draft(self, draft_manager, clock):
        older = draft_manager.save_draft("owner-1", {"currentStep": 1})
        clock.advance(minutes=1)
        newer = draft_manager.save_draft("owner-1", {"currentStep": 2})

        record = draft_manager.auto_save_draft("owner-1", {"weight": 3})
        assert record.key == newer
        assert draft_manager.get_draft(older) == {"currentStep": 1}

    def test_auto_save_starts_fresh_after_expiry(self, draft_manager, clock):
        stale = draft_manager.auto_save_draft("owner-1", {"a": 1})
        clock.advance(hours=25)

        record = draft_manager.auto_save_draft("owner-1", {"b": 2})
        assert record.key != stale.key
        assert record.payload == {"b": 2}

    def test_owners_do_not_share_auto_saves(self, draft_manager):
        mine = draft_manager.auto_save_draft("owner-1", {"a": 1})
        theirs = draft_manager.auto_save_draft("owner-2", {"b": 2})
        assert mine.key != theirs.key


class TestDelete:
    def test_delete_and_purge(self, draft_manager):
        one = draft_manager.save_draft("owner-1", {})
        draft_manager.save_draft("owner-1", {})
        draft_manager.save_draft("owner-1", {})
        keep = draft_manager.save_draft("owner-2", {})

        assert draft_manager.delete_draft(one, owner="owner-1") is True
        assert draft_manager.delete_draft(one, owner="owner-1") is False
        assert draft_manager.purge_owner_drafts("owner-1") == 2
        assert draft_manager.list_drafts("owner-1") == []
        assert draft_manager.get_draft(keep) == {}

    def test_delete_other_owners_draft_refused(self, draft_manager):
        key = draft_manager.save_draft("owner-1", {})
        assert draft_manager.delete_draft(key, owner="owner-2") is False
        assert draft_manager.get_draft(key) == {}

    def test_purge_with_own_session(self, draft_manager, session_factory, db, clock):
        draft_manager.save_draft("owner-1", {"currentStep": 1})

        assert purge_drafts_for_owner("owner-1", session_factory=session_factory, clock=clock) == 1

        db.expire_all()
        assert DraftManager(db, clock=clock).list_drafts("owner-1") == []
