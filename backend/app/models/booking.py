"""
Booking database model.

A customer's rental of one vehicle over a date range.
Customer 1..* Booking, Vehicle 1..* Booking.
"""

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Booking(Base):
    """Booking model."""
    __tablename__ = "bookings"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), nullable=False, index=True)
    
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(50), nullable=False, default="PENDING")
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Booking(id={self.id}, customer_id={self.customer_id}, vehicle_id={self.vehicle_id})>"
