"""Hold schemas - Pydantic models for slot holds"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field

from ...shared.validators import PHONE_PATTERN, TIME_PATTERN
from ..results import OperationResult


class HoldCreate(BaseModel):
    salonId: str = Field(..., min_length=1)
    serviceId: str = Field(..., min_length=1)
    date: dt.date
    time: str = Field(..., pattern=TIME_PATTERN.pattern)
    customerName: Optional[str] = Field(None, min_length=2, max_length=50)
    customerPhone: Optional[str] = Field(None, pattern=PHONE_PATTERN.pattern)


class HoldCancel(BaseModel):
    holdId: str = Field(..., min_length=1)


class HoldResult(OperationResult):
    holdId: Optional[str] = None


class ConfirmBookingResult(OperationResult):
    bookingId: Optional[str] = None
    manageUrl: Optional[str] = None


class HoldStatusResponse(BaseModel):
    exists: bool
    status: Optional[str] = None
    expiresAt: Optional[dt.datetime] = None
