"""Manage schemas - customer self-service view of a booking"""

import datetime as dt
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, Field

from ...models import Booking, ManageToken
from ..results import OperationResult


@dataclass
class ManageContext:
    """Booking bound to a verified manage token; lives for one request only"""

    booking: Booking
    manage_token: ManageToken


class ManageResolution(OperationResult):
    context: Optional[Any] = Field(default=None, exclude=True)


class SalonSummary(BaseModel):
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None


class ServiceSummary(BaseModel):
    name: str
    duration: int


class CustomerSummary(BaseModel):
    name: str
    phone: str


class BookingDetail(BaseModel):
    id: str
    date: dt.date
    time: str
    status: str
    totalPrice: float
    salon: SalonSummary
    service: ServiceSummary
    customer: CustomerSummary

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingDetail":
        return cls(
            id=booking.id,
            date=booking.date,
            time=booking.time,
            status=booking.status,
            totalPrice=booking.total_price,
            salon=SalonSummary(
                name=booking.salon.name, address=booking.salon.address, phone=booking.salon.phone
            ),
            service=ServiceSummary(name=booking.service.name, duration=booking.service.duration),
            customer=CustomerSummary(name=booking.customer.name, phone=booking.customer.phone),
        )


class BookingDetailResponse(BaseModel):
    success: bool = True
    booking: BookingDetail
