"""Fulfillment repository - Database operations for drivers and counter adjustments"""

from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models import DeliveryCounterAdjustment, Driver


class DriverRepository:
    """Repository for driver database operations"""

    @staticmethod
    def get_driver(db: Session, driver_id: int) -> Optional[Driver]:
        return db.query(Driver).filter(Driver.id == driver_id).first()

    @staticmethod
    def get_driver_by_email(db: Session, email: str) -> Optional[Driver]:
        return db.query(Driver).filter(Driver.email == email).first()

    @staticmethod
    def create_driver(db: Session, **driver_data) -> Driver:
        driver = Driver(**driver_data)
        db.add(driver)
        db.commit()
        db.refresh(driver)
        return driver

    @staticmethod
    def update_driver(db: Session, driver: Driver, **updates) -> Driver:
        """Update a driver with provided fields"""
        for key, value in updates.items():
            if value is not None and hasattr(driver, key):
                setattr(driver, key, value)

        db.commit()
        db.refresh(driver)
        return driver

    @staticmethod
    def increment_deliveries(db: Session, driver_id: int) -> int:
        """Atomic +1 in SQL; returns the number of rows touched (0 if the driver is gone). No commit."""
        result = db.execute(
            update(Driver)
            .where(Driver.id == driver_id)
            .values(total_deliveries=Driver.total_deliveries + 1)
        )
        return result.rowcount

    @staticmethod
    def decrement_deliveries(db: Session, driver_id: int) -> int:
        """Atomic -1 in SQL that never goes below zero. No commit."""
        result = db.execute(
            update(Driver)
            .where(Driver.id == driver_id, Driver.total_deliveries > 0)
            .values(total_deliveries=Driver.total_deliveries - 1)
        )
        return result.rowcount


class AdjustmentRepository:
    """Repository for delivery counter adjustments"""

    @staticmethod
    def get_by_key(db: Session, idempotency_key: str) -> Optional[DeliveryCounterAdjustment]:
        return (
            db.query(DeliveryCounterAdjustment)
            .filter(DeliveryCounterAdjustment.idempotency_key == idempotency_key)
            .first()
        )

    @staticmethod
    def list_pending(db: Session, limit: int, max_attempts: int) -> list[DeliveryCounterAdjustment]:
        """Oldest unapplied adjustments that still have attempts left"""
        return (
            db.query(DeliveryCounterAdjustment)
            .filter(
                DeliveryCounterAdjustment.applied_at.is_(None),
                DeliveryCounterAdjustment.attempts < max_attempts,
            )
            .order_by(DeliveryCounterAdjustment.created_at.asc(), DeliveryCounterAdjustment.id.asc())
            .limit(limit)
            .all()
        )
