"""
Driver delivery counter bookkeeping

Counter changes are recorded as DeliveryCounterAdjustment rows in the same
transaction as the booking change that causes them, then applied leg by leg.
Each leg's counter update and its "applied" flag commit together, so a leg is
applied at most once no matter how often apply() is retried.
"""

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...config import ADJUSTMENT_MAX_ATTEMPTS, ADJUSTMENT_RETRY_BATCH_SIZE
from ...models import Booking, DeliveryCounterAdjustment
from ...utils.clock import utcnow
from .repository import AdjustmentRepository, DriverRepository

logger = logging.getLogger(__name__)


def adjustment_key(booking: Booking, from_driver_id: Optional[int], to_driver_id: Optional[int]) -> str:
    """booking id + assignment version + both drivers; one key per counter-affecting event"""
    return (
        f"{booking.id}:{booking.assignment_version}:"
        f"{from_driver_id if from_driver_id is not None else '-'}:"
        f"{to_driver_id if to_driver_id is not None else '-'}"
    )


class DeliveryBookkeeping:
    def __init__(self, db: Session, clock: Callable = utcnow):
        self.db = db
        self.clock = clock
        self.drivers = DriverRepository()
        self.adjustments = AdjustmentRepository()

    def record(
        self, booking: Booking, from_driver_id: Optional[int], to_driver_id: Optional[int]
    ) -> DeliveryCounterAdjustment:
        """
        Add an adjustment to the session without committing.

        The caller commits it together with the booking change. Recording the
        same event twice returns the existing row.
        """
        key = adjustment_key(booking, from_driver_id, to_driver_id)
        existing = self.adjustments.get_by_key(self.db, key)
        if existing is not None:
            return existing

        adjustment = DeliveryCounterAdjustment(
            idempotency_key=key,
            booking_id=booking.id,
            from_driver_id=from_driver_id,
            to_driver_id=to_driver_id,
            created_at=self.clock(),
        )
        self.db.add(adjustment)
        logger.info(f"📝 Recorded delivery counter adjustment {key}")
        return adjustment

    def apply(self, adjustment: DeliveryCounterAdjustment) -> bool:
        """
        Apply the remaining legs of an adjustment. Never raises.

        Returns True when both legs are applied; False leaves the adjustment
        pending for apply_pending().
        """
        if adjustment.applied_at is not None:
            return True

        key = adjustment.idempotency_key
        try:
            if adjustment.from_driver_id is not None and not adjustment.decrement_applied:
                touched = self.drivers.decrement_deliveries(self.db, adjustment.from_driver_id)
                if not touched:
                    logger.warning(
                        f"⚠️ Driver {adjustment.from_driver_id} had no deliveries to remove ({key})"
                    )
                adjustment.decrement_applied = True
                self.db.commit()

            if adjustment.to_driver_id is not None and not adjustment.increment_applied:
                touched = self.drivers.increment_deliveries(self.db, adjustment.to_driver_id)
                if not touched:
                    logger.warning(f"⚠️ Driver {adjustment.to_driver_id} not found while crediting ({key})")
                adjustment.increment_applied = True
                self.db.commit()

            adjustment.applied_at = self.clock()
            adjustment.last_error = None
            self.db.commit()
            logger.info(f"✅ Delivery counters adjusted ({key})")
            return True

        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to adjust delivery counters ({key}): {e}")
            self._note_failure(adjustment, e)
            return False

    def apply_pending(
        self, limit: int = ADJUSTMENT_RETRY_BATCH_SIZE, max_attempts: int = ADJUSTMENT_MAX_ATTEMPTS
    ) -> dict:
        """Retry unapplied adjustments, oldest first"""
        pending = self.adjustments.list_pending(self.db, limit, max_attempts)
        completed = 0
        for adjustment in pending:
            if self.apply(adjustment):
                completed += 1

        summary = {"checked": len(pending), "completed": completed, "failed": len(pending) - completed}
        if pending:
            logger.info(f"🔁 Delivery counter retry: {summary}")
        return summary

    def _note_failure(self, adjustment: DeliveryCounterAdjustment, error: Exception) -> None:
        try:
            adjustment.attempts = (adjustment.attempts or 0) + 1
            adjustment.last_error = str(error)[:1000]
            self.db.commit()
        except Exception as note_err:
            self.db.rollback()
            logger.warning(f"⚠️ Could not record adjustment failure ({adjustment.idempotency_key}): {note_err}")
