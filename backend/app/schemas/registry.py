"""
Registry Schemas (read-only lookups).
"""

from pydantic import BaseModel, ConfigDict
from datetime import date
from decimal import Decimal
from typing import Optional


class CustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    name: str
    email: Optional[str]
    phone: Optional[str]
    is_active: bool


class VehicleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    plate_number: str
    make: Optional[str]
    model: Optional[str]
    year: Optional[int]
    daily_rate: Decimal
    is_active: bool


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int
    vehicle_id: int
    start_date: date
    end_date: date
    status: str
