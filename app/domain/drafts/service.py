"""Draft service - Business logic for booking drafts"""

import logging
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...config import DRAFT_TTL_MINUTES
from ...models import EphemeralRecord
from ...shared.exceptions import NotFoundError
from ...utils.clock import utcnow
from ..ephemeral.schemas import EphemeralCategory, Namespace
from ..ephemeral.store import EphemeralStore
from .schemas import BookingDraftPayload

logger = logging.getLogger(__name__)

DRAFT_TTL = timedelta(minutes=DRAFT_TTL_MINUTES)

DRAFT_NAMESPACE = Namespace(
    category=EphemeralCategory.BOOKING_DRAFT,
    default_ttl=DRAFT_TTL,
    payload_model=BookingDraftPayload,
)


class DraftManager:
    """Save, resume, auto-save and discard in-progress bookings"""

    def __init__(self, db: Session, clock: Callable = utcnow, store: Optional[EphemeralStore] = None):
        self.db = db
        self.store = store or EphemeralStore(db, clock=clock)
        self.drafts = self.store.register(DRAFT_NAMESPACE)

    def save_draft(self, owner: str, payload: dict, draft_key: Optional[str] = None) -> str:
        """
        Save a full draft.

        With a draft_key the existing draft is overwritten (not merged);
        without one a new, independent draft is created.
        """
        if draft_key:
            self._ensure_not_foreign(draft_key, owner)

        key = self.drafts.put(draft_key, owner, payload, ttl=DRAFT_TTL)
        logger.info(f"📝 Draft {key} saved for owner {owner}")
        return key

    def get_draft(self, draft_key: str, owner: Optional[str] = None) -> Optional[dict]:
        """Draft payload, refreshing its expiry; None when missing or expired"""
        if owner is not None:
            record = self.drafts.get_record(draft_key, refresh=False)
            if record is None or record.owner_id != owner:
                return None
        record = self.drafts.get_record(draft_key, refresh=True)
        if record is None:
            return None
        return dict(record.payload or {})

    def list_drafts(self, owner: str) -> list[EphemeralRecord]:
        return self.drafts.list_by_owner(owner)

    def delete_draft(self, draft_key: str, owner: Optional[str] = None) -> bool:
        if owner is not None:
            record = self.drafts.get_record(draft_key, refresh=False)
            if record is None or record.owner_id != owner:
                return False
        return self.drafts.delete(draft_key)

    def auto_save_draft(self, owner: str, partial_payload: dict) -> EphemeralRecord:
        """
        Merge into the owner's most recently accessed draft, or start one.

        This is the only path that treats drafts as one-per-owner.
        """
        latest = self.drafts.find_latest(owner)
        if latest is not None:
            record = self.drafts.merge_record(latest.key, partial_payload, ttl=DRAFT_TTL)
            if record is not None:
                logger.debug(f"💾 Auto-saved into draft {record.key} for owner {owner}")
                return record
            # Expired between lookup and merge; fall through and start fresh

        key = self.drafts.put(None, owner, partial_payload, ttl=DRAFT_TTL)
        logger.info(f"📝 Auto-save started draft {key} for owner {owner}")
        return self.drafts.get_record(key, refresh=False)

    def purge_owner_drafts(self, owner: str) -> int:
        """Delete every live draft of an owner; returns how many were removed"""
        deleted = 0
        for record in self.drafts.list_by_owner(owner):
            if self.drafts.delete(record.key):
                deleted += 1
        if deleted:
            logger.info(f"🧹 Removed {deleted} draft(s) for owner {owner}")
        return deleted

    def _ensure_not_foreign(self, draft_key: str, owner: str) -> None:
        # Looked up across categories: the key may belong to a non-draft record
        record = self.store.get_record(draft_key, refresh=False)
        if record is None:
            return
        if record.owner_id != owner or record.category != self.drafts.category.value:
            logger.warning(f"⚠️ Owner {owner} tried to overwrite record {draft_key} they do not own as a draft")
            raise NotFoundError("Draft not found", draftId=draft_key)


def purge_drafts_for_owner(
    owner: str, session_factory: Optional[Callable] = None, clock: Callable = utcnow
) -> int:
    """
    Draft cleanup run after a booking is submitted.

    Opens its own session: it runs after the request's session has committed,
    possibly on another thread.
    """
    if session_factory is None:
        from ...database import SessionLocal

        session_factory = SessionLocal

    db = session_factory()
    try:
        return DraftManager(db, clock=clock).purge_owner_drafts(owner)
    finally:
        db.close()
