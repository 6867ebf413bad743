"""Booking service - Business logic for the booking lifecycle"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from math import ceil
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import ALLOW_FAILED_RETRY, BOOKING_NUMBER_MAX_ATTEMPTS
from ...models import Booking
from ...shared.exceptions import ConflictError, NotFoundError, ValidationError
from ...shared.validators import (
    require_non_blank_fields,
    validate_choice,
    validate_insurance_value,
    validate_positive_weight,
)
from ...side_effects import InlineDispatcher, SideEffectDispatcher
from ...utils.clock import utcnow
from ..drafts.service import purge_drafts_for_owner
from ..fulfillment.bookkeeping import DeliveryBookkeeping
from ..fulfillment.repository import DriverRepository
from .identifiers import generate_booking_number, generate_tracking_number
from .pricing import price
from .repository import BookingRepository
from .schemas import BookingStatus, PackageType, ServiceType
from .state_machine import ensure_transition

logger = logging.getLogger(__name__)

# Days from pickup to estimated delivery
DELIVERY_DAYS = {
    "standard": 3,
    "express": 2,
    "same_day": 0,
}

# Status -> timestamp column stamped the first time the booking enters it
STATUS_TIMESTAMPS = {
    BookingStatus.CONFIRMED.value: "confirmed_at",
    BookingStatus.PICKED_UP.value: "picked_up_at",
    BookingStatus.DELIVERED.value: "delivered_at",
    BookingStatus.CANCELLED.value: "cancelled_at",
}

NOT_CANCELLABLE = (BookingStatus.DELIVERED.value, BookingStatus.CANCELLED.value)


def _as_naive_utc(value) -> datetime:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError("pickupDate must be an ISO 8601 date", field="pickupDate")
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if not isinstance(value, datetime):
        raise ValidationError("pickupDate is required", field="pickupDate")
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class BookingService:
    """Service layer for booking business logic"""

    def __init__(
        self,
        db: Session,
        dispatcher: Optional[SideEffectDispatcher] = None,
        clock: Callable = utcnow,
        session_factory: Optional[Callable] = None,
        allow_failed_retry: bool = ALLOW_FAILED_RETRY,
        max_number_attempts: int = BOOKING_NUMBER_MAX_ATTEMPTS,
    ):
        self.db = db
        self.repo = BookingRepository()
        self.drivers = DriverRepository()
        self.dispatcher = dispatcher or InlineDispatcher()
        self.clock = clock
        self.session_factory = session_factory
        self.allow_failed_retry = allow_failed_retry
        self.max_number_attempts = max_number_attempts
        self.bookkeeping = DeliveryBookkeeping(db, clock=clock)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_booking(
        self,
        customer_id: str,
        pickup_address: dict,
        delivery_address: dict,
        package_type: str,
        weight: float,
        service_type: str,
        pickup_date,
        special_instructions: Optional[str] = None,
        insurance: bool = False,
        insurance_value: Optional[float] = None,
    ) -> Booking:
        """
        Validate, price and persist a new pending booking.

        After the booking is committed the customer's drafts are discarded as a
        best-effort side effect; its failure never fails the booking.
        """
        if not customer_id or not str(customer_id).strip():
            raise ValidationError("customerId is required", field="customerId")
        customer_id = str(customer_id).strip()

        pickup = require_non_blank_fields(pickup_address, "pickupAddress")
        delivery = require_non_blank_fields(delivery_address, "deliveryAddress")
        package_type = validate_choice(package_type, [p.value for p in PackageType], "packageType")
        service_type = validate_choice(service_type, [s.value for s in ServiceType], "serviceType")
        weight = validate_positive_weight(weight)
        pickup_at = _as_naive_utc(pickup_date)

        insurance_value = validate_insurance_value(insurance_value)
        if special_instructions is not None:
            special_instructions = special_instructions.strip() or None

        costs = price(service_type, weight, insurance=insurance, insurance_value=insurance_value)
        estimated_delivery = pickup_at + timedelta(days=DELIVERY_DAYS[service_type])

        booking = self._insert_with_unique_numbers(
            customer_id=customer_id,
            pickup_address=pickup,
            delivery_address=delivery,
            package_type=package_type,
            weight=weight,
            service_type=service_type,
            pickup_date=pickup_at,
            estimated_delivery_date=estimated_delivery,
            special_instructions=special_instructions,
            insurance=bool(insurance),
            insurance_value=insurance_value if insurance else None,
            base_cost=costs.base_cost,
            weight_charges=costs.weight_charges,
            insurance_charges=costs.insurance_charges,
            total_cost=costs.total_cost,
            status=BookingStatus.PENDING.value,
            assignment_version=0,
        )

        logger.info(
            f"✅ Booking {booking.booking_number} created for customer {customer_id} "
            f"(total {costs.total_cost})"
        )

        self.dispatcher.dispatch(
            "draft_cleanup",
            purge_drafts_for_owner,
            customer_id,
            session_factory=self.session_factory,
            clock=self.clock,
            retry_job="purge_owner_drafts_task",
        )
        return booking

    def _insert_with_unique_numbers(self, **booking_data) -> Booking:
        """Insert, regenerating booking and tracking numbers on a uniqueness collision"""
        for attempt in range(1, self.max_number_attempts + 1):
            now = self.clock()
            booking_number = generate_booking_number(now)
            tracking_number = generate_tracking_number(now)
            try:
                return self.repo.create_booking(
                    self.db,
                    booking_number=booking_number,
                    tracking_number=tracking_number,
                    created_at=now,
                    updated_at=now,
                    **booking_data,
                )
            except IntegrityError as e:
                self.db.rollback()
                if not self.repo.identifiers_in_use(self.db, booking_number, tracking_number):
                    logger.error(f"❌ Booking insert violated a constraint: {e.orig}")
                    raise
                logger.warning(f"⚠️ Booking number collision, regenerating (attempt {attempt})")

        logger.error(f"❌ Could not allocate unique booking numbers after {self.max_number_attempts} attempts")
        raise ConflictError(
            "Could not allocate a unique booking number, please retry",
            attempts=self.max_number_attempts,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def update_status(self, booking_id: int, new_status: str, driver_id: Optional[int] = None) -> Booking:
        """
        Admin status change along the lifecycle, optionally attaching a driver.

        Requesting the current status again is a no-op (unless a new driver is
        given). Entering delivered with a driver credits that driver's counter.
        """
        new_status = getattr(new_status, "value", new_status)
        booking = self._get_for_update(booking_id)
        current_status = booking.status

        ensure_transition(current_status, new_status, self.allow_failed_retry)

        driver_changes = driver_id is not None and driver_id != booking.driver_id
        if current_status == new_status and not driver_changes:
            logger.debug(f"Booking {booking.booking_number} already {new_status}; nothing to do")
            return booking

        now = self.clock()
        previous_driver_id = booking.driver_id

        if driver_changes:
            if not self.drivers.get_driver(self.db, driver_id):
                raise NotFoundError("Driver not found", driverId=driver_id)
            booking.driver_id = driver_id
            booking.assignment_version = (booking.assignment_version or 0) + 1

        booking.status = new_status
        timestamp_field = STATUS_TIMESTAMPS.get(new_status)
        if timestamp_field and getattr(booking, timestamp_field) is None:
            setattr(booking, timestamp_field, now)
        booking.updated_at = now

        adjustment = None
        if new_status == BookingStatus.DELIVERED.value and booking.driver_id is not None:
            if current_status != new_status:
                adjustment = self.bookkeeping.record(booking, None, booking.driver_id)
            elif driver_changes:
                adjustment = self.bookkeeping.record(booking, previous_driver_id, booking.driver_id)

        booking = self.repo.save(self.db, booking)
        logger.info(f"📝 Booking {booking.booking_number} status {current_status} → {new_status}")

        if adjustment is not None:
            self.bookkeeping.apply(adjustment)
        return booking

    def cancel_booking(self, booking_id: int, customer_id: Optional[str] = None) -> Booking:
        """
        Cancel a booking; any status except delivered and cancelled.

        With customer_id the booking must belong to that customer.
        """
        booking = self._get_for_update(booking_id)
        if customer_id is not None and booking.customer_id != customer_id:
            raise NotFoundError("Booking not found", bookingId=booking_id)

        if booking.status in NOT_CANCELLABLE:
            raise ConflictError(
                f"Cannot cancel a booking that is {booking.status}",
                bookingId=booking_id,
                currentStatus=booking.status,
            )

        now = self.clock()
        previous_status = booking.status
        booking.status = BookingStatus.CANCELLED.value
        booking.cancelled_at = now
        booking.updated_at = now
        booking = self.repo.save(self.db, booking)

        logger.info(f"🚫 Booking {booking.booking_number} cancelled (was {previous_status})")
        return booking

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: int, customer_id: Optional[str] = None) -> Booking:
        if customer_id is not None:
            booking = self.repo.get_by_id_and_customer(self.db, booking_id, customer_id)
        else:
            booking = self.repo.get_by_id(self.db, booking_id)
        if not booking:
            raise NotFoundError("Booking not found", bookingId=booking_id)
        return booking

    def get_booking_by_tracking_number(self, tracking_number: str) -> Booking:
        booking = self.repo.get_by_tracking_number(self.db, (tracking_number or "").strip())
        if not booking:
            raise NotFoundError("Booking not found", trackingNumber=tracking_number)
        return booking

    def list_bookings(
        self,
        customer_id: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> dict:
        """Paginated bookings, newest first by default"""
        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        bookings, total_count = self.repo.find_with_pagination(
            self.db,
            customer_id=customer_id,
            status=status,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        total_pages = ceil(total_count / limit) if total_count else 0
        return {
            "bookings": bookings,
            "totalCount": total_count,
            "pagination": {
                "currentPage": page,
                "totalPages": total_pages,
                "totalCount": total_count,
                "hasNextPage": page < total_pages,
                "hasPrevPage": page > 1,
            },
        }

    def get_booking_stats(self, customer_id: Optional[str] = None) -> dict:
        now = self.clock()
        today_start = datetime(now.year, now.month, now.day)
        return self.repo.get_booking_stats(self.db, today_start, customer_id=customer_id)

    def _get_for_update(self, booking_id: int) -> Booking:
        booking = self.repo.get_by_id(self.db, booking_id, for_update=True)
        if not booking:
            raise NotFoundError("Booking not found", bookingId=booking_id)
        return booking
