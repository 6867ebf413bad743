"""Driver router - driver management and assignment endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Principal, get_current_principal, require_admin
from ...database import get_db
from ..bookings.schemas import BookingListResponse, BookingResponse
from .schemas import (
    AssignmentRequest,
    AssignmentResult,
    DriverCreate,
    DriverResponse,
    DriverStatusUpdate,
)
from .service import FulfillmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/drivers", tags=["Drivers"])


def get_fulfillment_service(db: Session = Depends(get_db)) -> FulfillmentService:
    """Dependency injection for FulfillmentService"""
    return FulfillmentService(db)


@router.post("", response_model=DriverResponse, status_code=201)
async def create_driver(
    data: DriverCreate,
    admin: Principal = Depends(require_admin),
    service: FulfillmentService = Depends(get_fulfillment_service),
):
    driver = service.create_driver(data)
    return DriverResponse.from_model(driver)


@router.post("/assign", response_model=AssignmentResult)
async def assign_driver(
    data: AssignmentRequest,
    admin: Principal = Depends(require_admin),
    service: FulfillmentService = Depends(get_fulfillment_service),
):
    """Assign (or reassign) a driver to a booking"""
    logger.info(f"📦 Admin {admin.user_id} assigning driver {data.driverId} to booking {data.bookingId}")
    return service.assign(data.driverId, data.bookingId)


@router.get("/{driver_id}", response_model=DriverResponse)
async def get_driver(
    driver_id: int,
    principal: Principal = Depends(get_current_principal),
    service: FulfillmentService = Depends(get_fulfillment_service),
):
    return DriverResponse.from_model(service.get_driver(driver_id))


@router.patch("/{driver_id}/status", response_model=DriverResponse)
async def update_driver_status(
    driver_id: int,
    data: DriverStatusUpdate,
    admin: Principal = Depends(require_admin),
    service: FulfillmentService = Depends(get_fulfillment_service),
):
    driver = service.update_driver_status(driver_id, data.status.value)
    return DriverResponse.from_model(driver)


@router.get("/{driver_id}/bookings", response_model=BookingListResponse)
async def list_driver_bookings(
    driver_id: int,
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: Principal = Depends(require_admin),
    service: FulfillmentService = Depends(get_fulfillment_service),
):
    bookings, total_count = service.list_driver_bookings(driver_id, status=status, page=page, limit=limit)
    total_pages = (total_count + limit - 1) // limit
    return BookingListResponse(
        bookings=[BookingResponse.from_model(b) for b in bookings],
        totalCount=total_count,
        pagination={
            "currentPage": page,
            "totalPages": total_pages,
            "totalCount": total_count,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
    )
