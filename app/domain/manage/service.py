"""Manage service - token-gated view and cancellation of confirmed bookings"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...config import APP_BASE_URL
from ...models import Booking, BookingStatus, ManageToken
from ...security_utils import verify_manage_token
from ...services.sms_service import SmsService
from ...shared.validators import format_slot
from ..holds.repository import HoldRepository
from ..results import ErrorKind, OperationResult
from .schemas import ManageContext, ManageResolution

logger = logging.getLogger(__name__)

INVALID_TOKEN_MESSAGE = "Invalid or expired link"


class ManageService:
    """Service layer for booking management links"""

    def __init__(self, db: Session, sms_service: Optional[SmsService] = None):
        self.db = db
        self.sms_service = sms_service

    def resolve_manage_token(self, raw_token: str) -> ManageResolution:
        """
        Validate a manage link token and load its booking.

        A token retired by a cancellation no longer grants access, viewing included.
        """
        if not raw_token:
            return ManageResolution(success=False, message="Token required", error=ErrorKind.UNAUTHORIZED)

        claims = verify_manage_token(raw_token)
        if not claims:
            return ManageResolution(success=False, message=INVALID_TOKEN_MESSAGE, error=ErrorKind.UNAUTHORIZED)

        try:
            manage_token = (
                self.db.query(ManageToken)
                .options(
                    joinedload(ManageToken.booking).joinedload(Booking.salon),
                    joinedload(ManageToken.booking).joinedload(Booking.service),
                    joinedload(ManageToken.booking).joinedload(Booking.customer),
                )
                .filter(ManageToken.token == raw_token)
                .first()
            )
        except Exception as e:
            logger.error(f"❌ Manage token lookup failed: {str(e)}")
            return ManageResolution(
                success=False, message="Failed to load the booking", error=ErrorKind.INTERNAL
            )

        if (
            not manage_token
            or manage_token.is_used
            or manage_token.expires_at < datetime.utcnow()
            or manage_token.booking_id != claims.get("bookingId")
        ):
            logger.warning("⚠️ Manage token rejected (missing, retired or expired)")
            return ManageResolution(success=False, message=INVALID_TOKEN_MESSAGE, error=ErrorKind.UNAUTHORIZED)

        return ManageResolution(
            success=True,
            message="OK",
            context=ManageContext(booking=manage_token.booking, manage_token=manage_token),
        )

    async def cancel_booking(self, booking_id: str, token_id: str) -> OperationResult:
        """
        Cancel a booking through its manage link.

        Both writes are conditional updates, so of two overlapping cancels only one
        commits; the other sees a row count of 0 and reports the current status.
        """
        try:
            booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
            if not booking:
                return OperationResult(success=False, message="Booking not found", error=ErrorKind.NOT_FOUND)

            cancelled = HoldRepository.cancel_active_booking(self.db, booking_id)
            token_retired = cancelled and (
                self.db.query(ManageToken)
                .filter(ManageToken.id == token_id, ManageToken.is_used.is_(False))
                .update({ManageToken.is_used: True}, synchronize_session=False)
                == 1
            )
            if not token_retired:
                self.db.rollback()
                return self._cancel_conflict(booking_id)

            HoldRepository.release_booking_claim(self.db, booking_id)
            self.db.commit()

            date_time = format_slot(booking.date, booking.time)
            phone = booking.customer.phone
            logger.info(f"🗑️ Booking {booking_id} cancelled via manage link")
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Cancel booking error: {str(e)}")
            logger.exception("Full error traceback:")
            return OperationResult(
                success=False, message="Failed to cancel the booking", error=ErrorKind.INTERNAL
            )

        if self.sms_service:
            try:
                await self.sms_service.send_booking_cancellation_sms(
                    phone, date_time, f"{APP_BASE_URL}/booking"
                )
            except Exception as e:
                logger.error(f"❌ Failed to send cancellation SMS for booking {booking_id}: {str(e)}")

        return OperationResult(success=True, message="The booking was cancelled")

    def _cancel_conflict(self, booking_id: str) -> OperationResult:
        status = HoldRepository.get_booking_status(self.db, booking_id)
        logger.warning(f"⚠️ Cancel rejected for booking {booking_id} (status {status})")
        if status == BookingStatus.COMPLETED:
            return OperationResult(
                success=False, message="A completed booking cannot be cancelled", error=ErrorKind.CONFLICT
            )
        if status in BookingStatus.ACTIVE:
            # Booking still live but the token was retired underneath us
            return OperationResult(success=False, message=INVALID_TOKEN_MESSAGE, error=ErrorKind.UNAUTHORIZED)
        return OperationResult(
            success=False, message="This booking was already cancelled", error=ErrorKind.CONFLICT
        )

    def cleanup_expired_tokens(self, now: Optional[datetime] = None) -> int:
        """Delete manage tokens past expires_at; safe to repeat"""
        now = now or datetime.utcnow()
        try:
            deleted = (
                self.db.query(ManageToken)
                .filter(ManageToken.expires_at < now)
                .delete(synchronize_session=False)
            )
            self.db.commit()
            return deleted
        except Exception:
            self.db.rollback()
            raise
