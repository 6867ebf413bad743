"""Fulfillment domain schemas - drivers and assignment"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email


class DriverStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class DriverCreate(BaseModel):
    """Schema for registering a driver"""

    firstName: str = Field(min_length=1, max_length=50)
    lastName: str = Field(min_length=1, max_length=50)
    email: str
    phone: Optional[str] = None
    status: DriverStatus = DriverStatus.ACTIVE

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)


class DriverStatusUpdate(BaseModel):
    status: DriverStatus


class DriverResponse(BaseModel):
    id: int
    firstName: str
    lastName: str
    email: str
    phone: Optional[str] = None
    status: str
    rating: float
    totalDeliveries: int
    createdAt: datetime

    @classmethod
    def from_model(cls, driver) -> "DriverResponse":
        return cls(
            id=driver.id,
            firstName=driver.first_name,
            lastName=driver.last_name,
            email=driver.email,
            phone=driver.phone,
            status=driver.status,
            rating=driver.rating,
            totalDeliveries=driver.total_deliveries,
            createdAt=driver.created_at,
        )


class AssignmentRequest(BaseModel):
    driverId: int
    bookingId: int


class AssignmentResult(BaseModel):
    """Outcome of assigning a driver to a booking"""

    driverId: int
    bookingId: int
    bookingNumber: str
    status: str
    assignedAt: datetime
    previousDriverId: Optional[int] = None
    reassigned: bool = False
    # False when a counter adjustment was recorded but could not be applied yet
    countersAdjusted: bool = True
