"""Booking router - FastAPI endpoints for booking operations"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Principal, get_current_principal, require_admin, scope_customer
from ...database import get_db
from ...side_effects import BackgroundTasksDispatcher
from .schemas import (
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatsResponse,
    BookingStatusUpdate,
    TrackingResponse,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(
    background_tasks: BackgroundTasks, db: Session = Depends(get_db)
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, dispatcher=BackgroundTasksDispatcher(background_tasks))


@router.post("", response_model=BookingResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    """Submit a booking; customers always book for themselves"""
    customer_id = principal.user_id
    if principal.is_admin and data.customerId:
        customer_id = data.customerId

    booking = service.create_booking(
        customer_id=customer_id,
        pickup_address=data.pickupAddress.model_dump(exclude_none=True),
        delivery_address=data.deliveryAddress.model_dump(exclude_none=True),
        package_type=data.packageType.value,
        weight=data.weight,
        service_type=data.serviceType.value,
        pickup_date=data.pickupDate,
        special_instructions=data.specialInstructions,
        insurance=data.insurance,
        insurance_value=data.insuranceValue,
    )
    return BookingResponse.from_model(booking)


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sortBy: str = Query("createdAt"),
    sortOrder: str = Query("desc", pattern="^(asc|desc)$"),
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    """Customers see their own bookings; admins see all"""
    result = service.list_bookings(
        customer_id=scope_customer(principal),
        status=status,
        page=page,
        limit=limit,
        sort_by=sortBy,
        sort_order=sortOrder,
    )
    return BookingListResponse(
        bookings=[BookingResponse.from_model(b) for b in result["bookings"]],
        totalCount=result["totalCount"],
        pagination=result["pagination"],
    )


@router.get("/stats", response_model=BookingStatsResponse)
async def get_booking_stats(
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    return service.get_booking_stats(customer_id=scope_customer(principal))


@router.get("/track/{tracking_number}", response_model=TrackingResponse)
async def track_booking(
    tracking_number: str,
    service: BookingService = Depends(get_booking_service),
):
    """Public tracking lookup"""
    booking = service.get_booking_by_tracking_number(tracking_number)
    return TrackingResponse.from_model(booking)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.get_booking(booking_id, customer_id=scope_customer(principal))
    return BookingResponse.from_model(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.cancel_booking(booking_id, customer_id=scope_customer(principal))
    return BookingResponse.from_model(booking)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: int,
    data: BookingStatusUpdate,
    admin: Principal = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    """Admin status change (optionally attaching a driver)"""
    logger.info(f"📝 Admin {admin.user_id} setting booking {booking_id} to {data.status.value}")
    booking = service.update_status(booking_id, data.status.value, driver_id=data.driverId)
    return BookingResponse.from_model(booking)
