"""Fulfillment service - Driver management and driver-to-booking assignment"""

import logging
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Booking, Driver
from ...shared.exceptions import ConflictError, NotFoundError, ValidationError
from ...utils.clock import utcnow
from ..bookings.repository import BookingRepository
from ..bookings.schemas import BookingStatus
from .bookkeeping import DeliveryBookkeeping
from .repository import DriverRepository
from .schemas import AssignmentResult, DriverCreate, DriverStatus

logger = logging.getLogger(__name__)

# Bookings in these statuses can take a driver
ASSIGNABLE_STATUSES = (
    BookingStatus.CONFIRMED.value,
    BookingStatus.PICKED_UP.value,
    BookingStatus.IN_TRANSIT.value,
    BookingStatus.OUT_FOR_DELIVERY.value,
    BookingStatus.DELIVERED.value,
)


class FulfillmentService:
    """Service layer for drivers and assignment"""

    def __init__(self, db: Session, clock: Callable = utcnow):
        self.db = db
        self.clock = clock
        self.repo = DriverRepository()
        self.bookings = BookingRepository()
        self.bookkeeping = DeliveryBookkeeping(db, clock=clock)

    # ------------------------------------------------------------------
    # Drivers
    # ------------------------------------------------------------------

    def create_driver(self, data: DriverCreate) -> Driver:
        if self.repo.get_driver_by_email(self.db, data.email):
            raise ConflictError("A driver with this email already exists", email=data.email)

        try:
            driver = self.repo.create_driver(
                self.db,
                first_name=data.firstName.strip(),
                last_name=data.lastName.strip(),
                email=data.email,
                phone=data.phone,
                status=data.status.value,
            )
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("A driver with this email already exists", email=data.email)

        logger.info(f"✅ Driver {driver.id} registered")
        return driver

    def get_driver(self, driver_id: int) -> Driver:
        driver = self.repo.get_driver(self.db, driver_id)
        if not driver:
            raise NotFoundError("Driver not found", driverId=driver_id)
        return driver

    def update_driver_status(self, driver_id: int, status: str) -> Driver:
        status = getattr(status, "value", status)
        if status not in {s.value for s in DriverStatus}:
            raise ValidationError(f"Invalid driver status: {status}", field="status")

        driver = self.get_driver(driver_id)
        driver = self.repo.update_driver(self.db, driver, status=status)
        logger.info(f"📝 Driver {driver_id} status set to {status}")
        return driver

    def list_driver_bookings(
        self, driver_id: int, status: Optional[str] = None, page: int = 1, limit: int = 10
    ) -> tuple[list[Booking], int]:
        self.get_driver(driver_id)
        return self.bookings.find_with_pagination(
            self.db, driver_id=driver_id, status=status, page=page, limit=limit
        )

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def assign(self, driver_id: int, booking_id: int) -> AssignmentResult:
        """
        Attach a driver to a booking.

        - a confirmed booking advances to picked_up
        - reassigning a delivered booking moves one delivery from the previous
          driver's counter to the new driver's
        - assigning the driver a booking already has is a no-op, so retries are safe

        Counter updates are best-effort: if they fail, the assignment stands and
        the recorded adjustment is retried later (countersAdjusted=False).
        """
        driver = self.repo.get_driver(self.db, driver_id)
        if not driver:
            raise NotFoundError("Driver not found", driverId=driver_id)
        if driver.status != DriverStatus.ACTIVE.value:
            raise ValidationError(
                "Driver is not active", driverId=driver_id, driverStatus=driver.status
            )

        booking = self.bookings.get_by_id(self.db, booking_id, for_update=True)
        if not booking:
            raise NotFoundError("Booking not found", bookingId=booking_id)
        if booking.status not in ASSIGNABLE_STATUSES:
            raise ValidationError(
                f"Booking cannot be assigned in status {booking.status}",
                bookingId=booking_id,
                currentStatus=booking.status,
                allowedStatuses=list(ASSIGNABLE_STATUSES),
            )

        now = self.clock()
        previous_driver_id = booking.driver_id
        driver_changed = previous_driver_id != driver_id
        reassigned = previous_driver_id is not None and driver_changed

        adjustment = None
        if driver_changed:
            booking.driver_id = driver_id
            booking.assignment_version = (booking.assignment_version or 0) + 1

            if booking.status == BookingStatus.CONFIRMED.value:
                booking.status = BookingStatus.PICKED_UP.value
                booking.picked_up_at = booking.picked_up_at or now

            if booking.status == BookingStatus.DELIVERED.value:
                adjustment = self.bookkeeping.record(booking, previous_driver_id, driver_id)

        booking.updated_at = now
        self.bookings.save(self.db, booking)

        if driver_changed:
            action = "reassigned" if reassigned else "assigned"
            logger.info(
                f"✅ Booking {booking.booking_number} {action} to driver {driver_id}"
                + (f" (was {previous_driver_id})" if reassigned else "")
            )

        counters_adjusted = True
        if adjustment is not None:
            counters_adjusted = self.bookkeeping.apply(adjustment)
            if not counters_adjusted:
                logger.warning(
                    f"⚠️ Assignment of booking {booking.booking_number} kept; counter update deferred"
                )

        return AssignmentResult(
            driverId=driver_id,
            bookingId=booking.id,
            bookingNumber=booking.booking_number,
            status=booking.status,
            assignedAt=now,
            previousDriverId=previous_driver_id,
            reassigned=reassigned,
            countersAdjusted=counters_adjusted,
        )

    def apply_pending_adjustments(self, limit: Optional[int] = None) -> dict:
        if limit is None:
            return self.bookkeeping.apply_pending()
        return self.bookkeeping.apply_pending(limit=limit)
