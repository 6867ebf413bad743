"""Ephemeral record repository - Database operations for TTL records"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import EphemeralRecord


class EphemeralRepository:
    """Repository for ephemeral record database operations"""

    @staticmethod
    def get_by_key(db: Session, key: str) -> Optional[EphemeralRecord]:
        """Get a record regardless of expiry"""
        return db.query(EphemeralRecord).filter(EphemeralRecord.key == key).first()

    @staticmethod
    def get_live(
        db: Session,
        key: str,
        now: datetime,
        category: Optional[str] = None,
        for_update: bool = False,
    ) -> Optional[EphemeralRecord]:
        """Get a non-expired record, optionally restricted to a category"""
        query = db.query(EphemeralRecord).filter(
            EphemeralRecord.key == key, EphemeralRecord.expires_at > now
        )
        if category:
            query = query.filter(EphemeralRecord.category == category)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def upsert(
        db: Session,
        key: str,
        owner_id: Optional[str],
        category: str,
        payload: dict,
        expires_at: datetime,
        now: datetime,
    ) -> EphemeralRecord:
        """Create a record or overwrite every field of an existing one"""
        record = db.query(EphemeralRecord).filter(EphemeralRecord.key == key).first()
        if record is None:
            record = EphemeralRecord(key=key, created_at=now)
            db.add(record)

        record.owner_id = owner_id
        record.category = category
        record.payload = payload
        record.expires_at = expires_at
        record.last_accessed_at = now
        record.updated_at = now

        db.commit()
        db.refresh(record)
        return record

    @staticmethod
    def touch(
        db: Session,
        record: EphemeralRecord,
        expires_at: datetime,
        now: datetime,
        payload: Optional[dict] = None,
    ) -> EphemeralRecord:
        """Extend expiry, mark access and optionally replace the payload"""
        if payload is not None:
            record.payload = payload
            record.updated_at = now
        record.expires_at = expires_at
        record.last_accessed_at = now
        db.commit()
        db.refresh(record)
        return record

    @staticmethod
    def delete(db: Session, record: EphemeralRecord) -> None:
        db.delete(record)
        db.commit()

    @staticmethod
    def list_live_by_owner(
        db: Session, owner_id: str, now: datetime, category: Optional[str] = None
    ) -> list[EphemeralRecord]:
        """Live records for an owner, most recently accessed first"""
        query = db.query(EphemeralRecord).filter(
            EphemeralRecord.owner_id == owner_id, EphemeralRecord.expires_at > now
        )
        if category:
            query = query.filter(EphemeralRecord.category == category)
        return query.order_by(EphemeralRecord.last_accessed_at.desc()).all()

    @staticmethod
    def find_latest(
        db: Session, owner_id: str, category: str, now: datetime
    ) -> Optional[EphemeralRecord]:
        """Most recently accessed live record of a category for an owner"""
        return (
            db.query(EphemeralRecord)
            .filter(
                EphemeralRecord.owner_id == owner_id,
                EphemeralRecord.category == category,
                EphemeralRecord.expires_at > now,
            )
            .order_by(EphemeralRecord.last_accessed_at.desc())
            .first()
        )

    @staticmethod
    def delete_expired(db: Session, now: datetime) -> int:
        """
        Physically remove expired records.

        The expiry condition is evaluated by the DELETE statement itself, so a
        record refreshed after a reaper last looked at it is kept.
        """
        deleted = (
            db.query(EphemeralRecord)
            .filter(EphemeralRecord.expires_at <= now)
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted or 0
