"""
Registry API Endpoints.

Read-only lookups of reference data used by invoicing.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.schemas.registry import BookingResponse, CustomerResponse, VehicleResponse
from backend.app.services import registry

router = APIRouter(prefix="/registry", tags=["Registry"])


@router.get("/customers/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: int = Path(..., description="Customer ID"),
    db: AsyncSession = Depends(get_db)
):
    return await registry.get_customer(db, customer_id)


@router.get("/vehicles/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    db: AsyncSession = Depends(get_db)
):
    return await registry.get_vehicle(db, vehicle_id)


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int = Path(..., description="Booking ID"),
    db: AsyncSession = Depends(get_db)
):
    return await registry.get_booking(db, booking_id)
