import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base
from .utils.clock import utcnow


def generate_record_key():
    """Generate an opaque key for ephemeral records"""
    return uuid.uuid4().hex


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), nullable=True)
    status = Column(String(20), default="active", nullable=False, index=True)  # active, inactive, suspended
    rating = Column(Float, default=0, nullable=False)
    # Number of delivered bookings attributed to this driver, net of reassignments
    total_deliveries = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    bookings = relationship("Booking", back_populates="driver")

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_number = Column(String(32), unique=True, index=True, nullable=False)  # CB-YYYYMMDD-NNNN
    tracking_number = Column(String(32), unique=True, index=True, nullable=False)  # CPP<millis><NNN>
    customer_id = Column(String(64), index=True, nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True, index=True)

    # Address snapshots, copied at booking time
    pickup_address = Column(JSON, nullable=False)
    delivery_address = Column(JSON, nullable=False)

    # Package and service details
    package_type = Column(String(20), nullable=False)  # document, package, fragile, bulk
    weight = Column(Float, nullable=False)
    service_type = Column(String(20), nullable=False)  # standard, express, same_day
    pickup_date = Column(DateTime, nullable=False)
    estimated_delivery_date = Column(DateTime, nullable=True)
    special_instructions = Column(Text, nullable=True)
    insurance = Column(Boolean, default=False, nullable=False)
    insurance_value = Column(Float, nullable=True)

    # Pricing, computed once at creation
    base_cost = Column(Float, nullable=False)
    weight_charges = Column(Float, default=0, nullable=False)
    insurance_charges = Column(Float, default=0, nullable=False)
    total_cost = Column(Float, nullable=False)

    status = Column(String(20), default="pending", nullable=False, index=True)
    # Bumped every time driver_id changes; part of the bookkeeping idempotency key
    assignment_version = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    confirmed_at = Column(DateTime, nullable=True)
    picked_up_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    driver = relationship("Driver", back_populates="bookings")

    __table_args__ = (
        Index("ix_bookings_customer_created", "customer_id", "created_at"),
        Index("ix_bookings_status_created", "status", "created_at"),
    )


class EphemeralRecord(Base):
    """Time-bounded key/value record (booking drafts, carts, preferences, ...)"""

    __tablename__ = "ephemeral_records"

    key = Column(String(64), primary_key=True, default=generate_record_key)
    owner_id = Column(String(64), nullable=True, index=True)
    category = Column(String(32), nullable=False, index=True)
    payload = Column(JSON, nullable=False, default=dict)
    expires_at = Column(DateTime, nullable=False, index=True)
    last_accessed_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (Index("ix_ephemeral_owner_category", "owner_id", "category"),)


class DeliveryCounterAdjustment(Base):
    """
    Pending/applied change to drivers' total_deliveries.

    One row per counter-affecting event (reassignment of a delivered booking,
    or a booking reaching delivered). Each leg is applied at most once.
    """

    __tablename__ = "delivery_counter_adjustments"

    id = Column(Integer, primary_key=True, index=True)
    idempotency_key = Column(String(128), unique=True, nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    from_driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)
    to_driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)
    decrement_applied = Column(Boolean, default=False, nullable=False)
    increment_applied = Column(Boolean, default=False, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)  # failed apply attempts
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    applied_at = Column(DateTime, nullable=True, index=True)
