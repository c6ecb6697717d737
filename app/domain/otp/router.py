"""OTP router - phone verification endpoints of the booking flow"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...config import OTP_IP_RATE_LIMIT, OTP_IP_RATE_WINDOW_SECONDS
from ...database import get_db
from ...rate_limiter import create_rate_limiter
from ...services.sms_service import SmsService, get_sms_service
from ..holds.service import HoldService
from .schemas import SendOtpRequest, VerifyOtpRequest, VerifyOtpResponse
from .service import OtpService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/otp", tags=["OTP"])

otp_send_rate_limit = create_rate_limiter(
    limit=OTP_IP_RATE_LIMIT, window_seconds=OTP_IP_RATE_WINDOW_SECONDS, key_prefix="otp_send"
)


def get_otp_service(
    db: Session = Depends(get_db), sms_service: SmsService = Depends(get_sms_service)
) -> OtpService:
    """Dependency injection for OtpService"""
    return OtpService(db, sms_service)


@router.post("/send-otp")
async def send_otp(
    data: SendOtpRequest,
    _: None = Depends(otp_send_rate_limit),
    service: OtpService = Depends(get_otp_service),
):
    """Send a verification code to the customer's phone"""
    result = await service.send_otp(data.phone)
    return JSONResponse(status_code=result.status_code, content=result.model_dump(exclude_none=True))


@router.post("/verify-otp")
async def verify_otp(
    data: VerifyOtpRequest,
    db: Session = Depends(get_db),
    sms_service: SmsService = Depends(get_sms_service),
):
    """Verify the code, then promote the hold into a confirmed booking"""
    otp_result = OtpService(db, sms_service).verify_otp(data.phone, data.code)
    if not otp_result.success:
        return JSONResponse(
            status_code=otp_result.status_code, content=otp_result.model_dump(exclude_none=True)
        )

    booking_result = await HoldService(db, sms_service).confirm_booking(
        hold_id=data.holdId, customer_name=data.customerName, customer_phone=data.phone
    )
    response = VerifyOtpResponse(
        success=booking_result.success,
        message=booking_result.message,
        bookingId=booking_result.bookingId,
        manageUrl=booking_result.manageUrl,
        error=booking_result.error,
    )
    # A missing hold is still a bad request at this point in the flow
    status_code = 400 if response.status_code == 404 else response.status_code
    return JSONResponse(status_code=status_code, content=response.model_dump(exclude_none=True))
