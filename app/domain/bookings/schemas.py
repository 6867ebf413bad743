"""Booking domain schemas - Pydantic models for validation"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BookingStatus(str, Enum):
    """Persisted status strings; existing stored data depends on these values"""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ServiceType(str, Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    SAME_DAY = "same_day"


class PackageType(str, Enum):
    DOCUMENT = "document"
    PACKAGE = "package"
    FRAGILE = "fragile"
    BULK = "bulk"


class AddressSnapshot(BaseModel):
    """Address copied into the booking; later address-book edits do not touch it"""

    model_config = ConfigDict(extra="ignore")

    address: str
    contactName: str
    phone: str
    city: str
    postalCode: str
    instructions: Optional[str] = None


class BookingCreate(BaseModel):
    """Schema for submitting a booking"""

    customerId: Optional[str] = None  # admins may book on a customer's behalf
    pickupAddress: AddressSnapshot
    deliveryAddress: AddressSnapshot
    packageType: PackageType
    weight: float = Field(gt=0, allow_inf_nan=False)
    serviceType: ServiceType = ServiceType.STANDARD
    pickupDate: datetime
    specialInstructions: Optional[str] = Field(default=None, max_length=500)
    insurance: bool = False
    insuranceValue: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    driverId: Optional[int] = None


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: int
    bookingNumber: str
    trackingNumber: str
    customerId: str
    driverId: Optional[int] = None
    pickupAddress: dict
    deliveryAddress: dict
    packageType: str
    weight: float
    serviceType: str
    pickupDate: datetime
    estimatedDeliveryDate: Optional[datetime] = None
    specialInstructions: Optional[str] = None
    insurance: bool
    insuranceValue: Optional[float] = None
    baseCost: float
    weightCharges: float
    insuranceCharges: float
    totalCost: float
    status: str
    createdAt: datetime
    updatedAt: Optional[datetime] = None
    confirmedAt: Optional[datetime] = None
    pickedUpAt: Optional[datetime] = None
    deliveredAt: Optional[datetime] = None
    cancelledAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            bookingNumber=booking.booking_number,
            trackingNumber=booking.tracking_number,
            customerId=booking.customer_id,
            driverId=booking.driver_id,
            pickupAddress=booking.pickup_address,
            deliveryAddress=booking.delivery_address,
            packageType=booking.package_type,
            weight=booking.weight,
            serviceType=booking.service_type,
            pickupDate=booking.pickup_date,
            estimatedDeliveryDate=booking.estimated_delivery_date,
            specialInstructions=booking.special_instructions,
            insurance=booking.insurance,
            insuranceValue=booking.insurance_value,
            baseCost=booking.base_cost,
            weightCharges=booking.weight_charges,
            insuranceCharges=booking.insurance_charges,
            totalCost=booking.total_cost,
            status=booking.status,
            createdAt=booking.created_at,
            updatedAt=booking.updated_at,
            confirmedAt=booking.confirmed_at,
            pickedUpAt=booking.picked_up_at,
            deliveredAt=booking.delivered_at,
            cancelledAt=booking.cancelled_at,
        )


class TrackingResponse(BaseModel):
    """Public tracking view - no addresses or contact details"""

    bookingNumber: str
    trackingNumber: str
    status: str
    serviceType: str
    pickupDate: datetime
    estimatedDeliveryDate: Optional[datetime] = None
    pickedUpAt: Optional[datetime] = None
    deliveredAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, booking) -> "TrackingResponse":
        return cls(
            bookingNumber=booking.booking_number,
            trackingNumber=booking.tracking_number,
            status=booking.status,
            serviceType=booking.service_type,
            pickupDate=booking.pickup_date,
            estimatedDeliveryDate=booking.estimated_delivery_date,
            pickedUpAt=booking.picked_up_at,
            deliveredAt=booking.delivered_at,
        )


class Pagination(BaseModel):
    currentPage: int
    totalPages: int
    totalCount: int
    hasNextPage: bool
    hasPrevPage: bool


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    totalCount: int
    pagination: Pagination


class BookingStatsResponse(BaseModel):
    totalBookings: int
    todayBookings: int
    statusCounts: dict[str, int]
    totalRevenue: float
