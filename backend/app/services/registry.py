"""
Registry lookups.

Read-only access to customers, vehicles, bookings and invoice line items.
No function here has side effects.
"""

from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.core.exceptions import NotFoundError
from backend.app.models.customer import Customer
from backend.app.models.vehicle import Vehicle
from backend.app.models.booking import Booking
from backend.app.models.invoice import Invoice
from backend.app.models.invoice_line_item import InvoiceLineItem


async def get_customer(db: AsyncSession, customer_id: int) -> Customer:
    customer = await db.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer", customer_id)
    return customer


async def get_vehicle(db: AsyncSession, vehicle_id: int) -> Vehicle:
    vehicle = await db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise NotFoundError("Vehicle", vehicle_id)
    return vehicle


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    booking = await db.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking", booking_id)
    return booking


async def get_invoice_line_items(db: AsyncSession, invoice_id: int) -> List[InvoiceLineItem]:
    """
    Line items of an invoice in line order.

    Raises:
        NotFoundError: if the invoice does not exist
    """
    exists = await db.execute(select(Invoice.id).where(Invoice.id == invoice_id))
    if exists.scalar_one_or_none() is None:
        raise NotFoundError("Invoice", invoice_id)

    result = await db.execute(
        select(InvoiceLineItem)
        .where(InvoiceLineItem.invoice_id == invoice_id)
        .order_by(InvoiceLineItem.line_number)
    )
    return list(result.scalars().all())
