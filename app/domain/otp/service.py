"""OTP service - issue, rate-limit and verify phone verification codes"""

import logging
import math
import secrets
import string
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import (
    OTP_COOLDOWN_SECONDS,
    OTP_EXPIRY_MINUTES,
    OTP_LENGTH,
    OTP_MAX_ATTEMPTS,
    OTP_MAX_PER_WINDOW,
    OTP_WINDOW_HOURS,
)
from ...models import OtpCode
from ...services.sms_service import SmsService
from ...shared.validators import normalize_phone
from ..results import ErrorKind, OperationResult
from .repository import OtpRepository
from .schemas import SendOtpResult

logger = logging.getLogger(__name__)

INVALID_CODE_MESSAGE = "The verification code is invalid or has expired"
TOO_MANY_ATTEMPTS_MESSAGE = "Too many attempts. Please request a new code"


def generate_otp(length: int = OTP_LENGTH) -> str:
    """Generate a cryptographically secure random numeric OTP code"""
    return "".join(secrets.choice(string.digits) for _ in range(length))


class OtpService:
    """Service layer for phone verification codes"""

    def __init__(self, db: Session, sms_service: Optional[SmsService] = None):
        self.db = db
        self.repo = OtpRepository()
        self.sms_service = sms_service

    def check_rate_limit(self, phone: str, now: datetime) -> tuple[bool, Optional[int]]:
        """
        Per-phone send gates.

        Returns:
            (can_send, retry_after_seconds). retry_after is only set for the cooldown gate;
            the volume cap has no specific retry time.
        """
        recent = self.repo.latest_since(self.db, phone, now - timedelta(seconds=OTP_COOLDOWN_SECONDS))
        if recent:
            eligible_at = recent.created_at + timedelta(seconds=OTP_COOLDOWN_SECONDS)
            retry_after = max(1, math.ceil((eligible_at - now).total_seconds()))
            return False, retry_after

        sent = self.repo.count_since(self.db, phone, now - timedelta(hours=OTP_WINDOW_HOURS))
        if sent >= OTP_MAX_PER_WINDOW:
            return False, None

        return True, None

    async def send_otp(self, phone: str) -> SendOtpResult:
        try:
            phone = normalize_phone(phone)
        except ValueError as e:
            return SendOtpResult(success=False, message=str(e), error=ErrorKind.VALIDATION)

        try:
            now = datetime.utcnow()

            can_send, retry_after = self.check_rate_limit(phone, now)
            if not can_send:
                logger.warning(f"🚫 OTP rate limit for {phone} (retry_after={retry_after})")
                message = (
                    f"Please try again in {retry_after} seconds"
                    if retry_after
                    else f"Too many attempts. Please try again in {OTP_WINDOW_HOURS} hours"
                )
                return SendOtpResult(
                    success=False, message=message, retryAfter=retry_after, error=ErrorKind.CONFLICT
                )

            code = generate_otp()

            # Only the newest code for a phone may be valid
            self.repo.invalidate_unused(self.db, phone)
            self.db.add(
                OtpCode(
                    phone=phone,
                    code=code,
                    created_at=now,
                    expires_at=now + timedelta(minutes=OTP_EXPIRY_MINUTES),
                    max_attempts=OTP_MAX_ATTEMPTS,
                )
            )
            self.db.commit()
            logger.info(f"💾 OTP saved for {phone}")
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Send OTP error: {str(e)}")
            logger.exception("Full error traceback:")
            return SendOtpResult(
                success=False,
                message="Failed to send the verification code. Please try again",
                error=ErrorKind.INTERNAL,
            )

        # The row stays even if delivery fails, so the cooldown still applies
        try:
            await self.sms_service.send_otp_sms(phone, code)
        except Exception as e:
            logger.error(f"❌ Failed to send OTP SMS to {phone}: {str(e)}")
            return SendOtpResult(
                success=False,
                message="Failed to send the verification code. Please try again",
                error=ErrorKind.INTERNAL,
            )

        logger.info(f"📨 OTP sent to {phone}")
        return SendOtpResult(success=True, message="Verification code sent")

    def verify_otp(self, phone: str, code: str) -> OperationResult:
        try:
            phone = normalize_phone(phone)
        except ValueError:
            return OperationResult(success=False, message=INVALID_CODE_MESSAGE, error=ErrorKind.VALIDATION)

        try:
            now = datetime.utcnow()

            record = self.repo.find_active(self.db, phone, now, code=code)
            if not record:
                # Wrong code: count it against the code currently in flight
                current = self.repo.find_active(self.db, phone, now)
                if current:
                    self.repo.increment_attempts(self.db, current.id)
                    self.db.commit()
                logger.warning(f"❌ Invalid OTP for {phone}")
                return OperationResult(success=False, message=INVALID_CODE_MESSAGE, error=ErrorKind.CONFLICT)

            if record.attempts >= record.max_attempts:
                logger.warning(f"🚫 OTP attempts exhausted for {phone}")
                return OperationResult(
                    success=False, message=TOO_MANY_ATTEMPTS_MESSAGE, error=ErrorKind.CONFLICT
                )

            if not self.repo.mark_used(self.db, record.id):
                self.db.rollback()
                return OperationResult(success=False, message=INVALID_CODE_MESSAGE, error=ErrorKind.CONFLICT)
            self.db.commit()

            logger.info(f"🎉 OTP verified for {phone}")
            return OperationResult(success=True, message="Verification code confirmed")

        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Verify OTP error: {str(e)}")
            logger.exception("Full error traceback:")
            return OperationResult(
                success=False,
                message="Failed to verify the code. Please try again",
                error=ErrorKind.INTERNAL,
            )

    def cleanup_expired_otps(self, now: Optional[datetime] = None) -> int:
        """Delete expired and used codes; safe to repeat"""
        now = now or datetime.utcnow()
        try:
            deleted = self.repo.delete_expired_or_used(self.db, now)
            self.db.commit()
            return deleted
        except Exception:
            self.db.rollback()
            raise
