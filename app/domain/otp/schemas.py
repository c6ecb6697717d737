"""OTP schemas"""

from typing import Optional

from pydantic import BaseModel, Field

from ...shared.validators import PHONE_PATTERN
from ..results import OperationResult


class SendOtpRequest(BaseModel):
    phone: str = Field(..., pattern=PHONE_PATTERN.pattern)


class VerifyOtpRequest(BaseModel):
    """Verify the code and promote the hold in one call"""

    phone: str = Field(..., pattern=PHONE_PATTERN.pattern)
    code: str = Field(..., pattern=r"^[0-9]{6}$")
    holdId: str = Field(..., min_length=1)
    customerName: str = Field(..., min_length=2, max_length=50)


class SendOtpResult(OperationResult):
    retryAfter: Optional[int] = None


class VerifyOtpResponse(OperationResult):
    bookingId: Optional[str] = None
    manageUrl: Optional[str] = None
