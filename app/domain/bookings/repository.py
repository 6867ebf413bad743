"""Booking repository - Database operations for bookings"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import Booking

SORTABLE_FIELDS = {
    "createdAt": Booking.created_at,
    "pickupDate": Booking.pickup_date,
    "totalCost": Booking.total_cost,
    "status": Booking.status,
    "bookingNumber": Booking.booking_number,
}

# Statuses that never produce revenue
NON_REVENUE_STATUSES = ("cancelled", "failed")


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_by_id(db: Session, booking_id: int, for_update: bool = False) -> Optional[Booking]:
        query = db.query(Booking).filter(Booking.id == booking_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_by_id_and_customer(db: Session, booking_id: int, customer_id: str) -> Optional[Booking]:
        """Get a booking only if it belongs to the customer"""
        return (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.customer_id == customer_id)
            .first()
        )

    @staticmethod
    def get_by_tracking_number(db: Session, tracking_number: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.tracking_number == tracking_number).first()

    @staticmethod
    def identifiers_in_use(db: Session, booking_number: str, tracking_number: str) -> bool:
        """True when either number already belongs to a stored booking"""
        return (
            db.query(Booking.id)
            .filter(
                or_(
                    Booking.booking_number == booking_number,
                    Booking.tracking_number == tracking_number,
                )
            )
            .first()
            is not None
        )

    @staticmethod
    def create_booking(db: Session, **booking_data) -> Booking:
        """Insert a booking; IntegrityError propagates so callers can retry identifiers"""
        booking = Booking(**booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def save(db: Session, booking: Booking) -> Booking:
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def find_with_pagination(
        db: Session,
        customer_id: Optional[str] = None,
        status: Optional[str] = None,
        driver_id: Optional[int] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> tuple[list[Booking], int]:
        """Returns (bookings for the page, total matching count)"""
        query = db.query(Booking)

        if customer_id:
            query = query.filter(Booking.customer_id == customer_id)
        if status and status != "all":
            query = query.filter(Booking.status == status)
        if driver_id is not None:
            query = query.filter(Booking.driver_id == driver_id)

        total_count = query.count()

        column = SORTABLE_FIELDS.get(sort_by, Booking.created_at)
        order = column.asc() if sort_order == "asc" else column.desc()
        bookings = query.order_by(order, Booking.id.desc()).offset((page - 1) * limit).limit(limit).all()

        return bookings, total_count

    @staticmethod
    def get_booking_stats(
        db: Session, today_start: datetime, customer_id: Optional[str] = None
    ) -> dict:
        """Totals, per-status counts and revenue"""
        base = db.query(Booking)
        if customer_id:
            base = base.filter(Booking.customer_id == customer_id)

        total_bookings = base.count()
        today_bookings = base.filter(Booking.created_at >= today_start).count()

        status_query = db.query(Booking.status, func.count(Booking.id))
        if customer_id:
            status_query = status_query.filter(Booking.customer_id == customer_id)
        status_counts = {status: count for status, count in status_query.group_by(Booking.status).all()}

        revenue_query = db.query(func.sum(Booking.total_cost)).filter(
            Booking.status.notin_(NON_REVENUE_STATUSES)
        )
        if customer_id:
            revenue_query = revenue_query.filter(Booking.customer_id == customer_id)
        total_revenue = revenue_query.scalar() or 0

        return {
            "totalBookings": total_bookings,
            "todayBookings": today_bookings,
            "statusCounts": status_counts,
            "totalRevenue": float(total_revenue),
        }
