"""
Vehicle database model.

Rental fleet vehicles. Reference data for bookings.
"""

from decimal import Decimal
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Vehicle(Base):
    """
    Vehicle model.
    
    A vehicle is rented out through bookings; the daily rate is the default
    price used when invoicing a booking.
    """
    __tablename__ = "vehicles"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Vehicle identification
    plate_number = Column(String(50), unique=True, nullable=False, index=True)
    make = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    year = Column(Integer, nullable=True)
    
    # Pricing
    daily_rate = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    
    # Status
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Vehicle(id={self.id}, plate='{self.plate_number}')>"
