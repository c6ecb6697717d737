"""Hold service - slot reservation and promotion to a confirmed booking"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import APP_BASE_URL, HOLD_DURATION_MINUTES, MANAGE_TOKEN_DAYS
from ...models import (
    Booking,
    BookingHold,
    BookingStatus,
    Customer,
    HoldStatus,
    ManageToken,
    SlotClaim,
    generate_id,
)
from ...security_utils import create_manage_token
from ...services.sms_service import SmsService
from ...shared.validators import format_slot, normalize_hhmm, normalize_phone
from ..results import ErrorKind, OperationResult
from .repository import HoldRepository
from .schemas import ConfirmBookingResult, HoldResult, HoldStatusResponse

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "This time slot is already taken"
HOLD_NOT_FOUND_MESSAGE = "Hold not found"
HOLD_INACTIVE_MESSAGE = "This hold is no longer active"
HOLD_EXPIRED_MESSAGE = "This hold has expired"


class HoldService:
    """Service layer for slot holds"""

    def __init__(self, db: Session, sms_service: Optional[SmsService] = None):
        self.db = db
        self.repo = HoldRepository()
        self.sms_service = sms_service

    def create_hold(
        self,
        salon_id: str,
        service_id: str,
        slot_date: date,
        slot_time: str,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
    ) -> HoldResult:
        """Reserve a slot for HOLD_DURATION_MINUTES"""
        try:
            slot_time = normalize_hhmm(slot_time)
            phone = normalize_phone(customer_phone) if customer_phone else None
        except ValueError as e:
            return HoldResult(success=False, message=str(e), error=ErrorKind.VALIDATION)

        try:
            now = datetime.utcnow()

            service = self.repo.get_service(self.db, service_id)
            if not service or service.salon_id != salon_id or not service.is_active:
                return HoldResult(
                    success=False,
                    message="Service not found for this salon",
                    error=ErrorKind.VALIDATION,
                )

            if self.repo.find_active_booking(self.db, salon_id, service_id, slot_date, slot_time):
                logger.info(f"🚫 Slot {slot_date} {slot_time} already booked (salon {salon_id})")
                return HoldResult(success=False, message=SLOT_TAKEN_MESSAGE, error=ErrorKind.CONFLICT)

            if self.repo.find_active_hold(self.db, salon_id, service_id, slot_date, slot_time, now):
                logger.info(f"🚫 Slot {slot_date} {slot_time} already held (salon {salon_id})")
                return HoldResult(success=False, message=SLOT_TAKEN_MESSAGE, error=ErrorKind.CONFLICT)

            # A hold that ran out but was not swept yet still owns the claim row
            claim = self.repo.get_claim(self.db, salon_id, service_id, slot_date, slot_time)
            if claim and self.repo.claim_is_stale(claim, now):
                if claim.hold_id:
                    self.repo.expire_hold(self.db, claim.hold_id)
                self.repo.delete_claim(self.db, claim.id)
                self.db.flush()

            expires_at = now + timedelta(minutes=HOLD_DURATION_MINUTES)
            hold = BookingHold(
                id=generate_id(),
                salon_id=salon_id,
                service_id=service_id,
                date=slot_date,
                time=slot_time,
                customer_name=customer_name,
                customer_phone=phone,
                status=HoldStatus.RESERVED,
                expires_at=expires_at,
            )
            self.db.add(hold)
            self.db.add(
                SlotClaim(
                    salon_id=salon_id,
                    service_id=service_id,
                    date=slot_date,
                    time=slot_time,
                    hold_id=hold.id,
                    expires_at=expires_at,
                )
            )
            self.db.commit()

            logger.info(f"✅ Hold {hold.id} created for {slot_date} {slot_time} (expires {expires_at})")
            return HoldResult(
                success=True,
                holdId=hold.id,
                message=f"The slot is reserved for you for {HOLD_DURATION_MINUTES} minutes",
            )

        except IntegrityError:
            # Lost the race for the slot claim
            self.db.rollback()
            logger.info(f"🚫 Slot claim conflict for {slot_date} {slot_time} (salon {salon_id})")
            return HoldResult(success=False, message=SLOT_TAKEN_MESSAGE, error=ErrorKind.CONFLICT)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Create hold error: {str(e)}")
            logger.exception("Full error traceback:")
            return HoldResult(
                success=False,
                message="Failed to create the hold. Please try again",
                error=ErrorKind.INTERNAL,
            )

    async def confirm_booking(
        self, hold_id: str, customer_name: str, customer_phone: str
    ) -> ConfirmBookingResult:
        """Promote a live hold to a CONFIRMED booking and mint its manage link"""
        try:
            now = datetime.utcnow()

            hold = self.repo.get_hold(self.db, hold_id)
            if not hold:
                return ConfirmBookingResult(
                    success=False, message=HOLD_NOT_FOUND_MESSAGE, error=ErrorKind.NOT_FOUND
                )
            if hold.status != HoldStatus.RESERVED:
                return ConfirmBookingResult(
                    success=False, message=HOLD_INACTIVE_MESSAGE, error=ErrorKind.CONFLICT
                )
            # Status alone is not enough: the sweeper may not have run yet
            if hold.expires_at <= now:
                return ConfirmBookingResult(
                    success=False, message=HOLD_EXPIRED_MESSAGE, error=ErrorKind.CONFLICT
                )

            try:
                phone = normalize_phone(customer_phone)
            except ValueError as e:
                return ConfirmBookingResult(success=False, message=str(e), error=ErrorKind.VALIDATION)

            if not self.repo.promote_hold(self.db, hold.id, now):
                self.db.rollback()
                return ConfirmBookingResult(
                    success=False, message=HOLD_INACTIVE_MESSAGE, error=ErrorKind.CONFLICT
                )

            customer = self.repo.get_customer_by_phone(self.db, hold.salon_id, phone)
            if not customer:
                customer = Customer(id=generate_id(), salon_id=hold.salon_id, name=customer_name, phone=phone)
                self.db.add(customer)
            elif customer.name != customer_name:
                customer.name = customer_name

            booking = Booking(
                id=generate_id(),
                salon_id=hold.salon_id,
                service_id=hold.service_id,
                customer_id=customer.id,
                date=hold.date,
                time=hold.time,
                status=BookingStatus.CONFIRMED,
                total_price=hold.service.price,
            )
            self.db.add(booking)

            claim = self.repo.get_claim_for_hold(self.db, hold.id)
            if claim:
                claim.hold_id = None
                claim.booking_id = booking.id
                claim.expires_at = None
            else:
                self.db.add(
                    SlotClaim(
                        salon_id=hold.salon_id,
                        service_id=hold.service_id,
                        date=hold.date,
                        time=hold.time,
                        booking_id=booking.id,
                    )
                )

            token = create_manage_token(booking.id)
            self.db.add(
                ManageToken(
                    booking_id=booking.id,
                    token=token,
                    expires_at=now + timedelta(days=MANAGE_TOKEN_DAYS),
                )
            )
            self.db.commit()

            logger.info(f"🎉 Booking {booking.id} confirmed from hold {hold.id}")

        except IntegrityError:
            self.db.rollback()
            logger.warning(f"⚠️ Slot conflict while confirming hold {hold_id}")
            return ConfirmBookingResult(success=False, message=SLOT_TAKEN_MESSAGE, error=ErrorKind.CONFLICT)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Confirm booking error: {str(e)}")
            logger.exception("Full error traceback:")
            return ConfirmBookingResult(
                success=False,
                message="Failed to confirm the booking. Please try again",
                error=ErrorKind.INTERNAL,
            )

        manage_url = f"{APP_BASE_URL}/manage/{token}"

        # The booking is committed; a lost SMS must not undo it
        if self.sms_service:
            try:
                await self.sms_service.send_booking_confirmation_sms(
                    phone, format_slot(booking.date, booking.time), manage_url
                )
            except Exception as e:
                logger.error(f"❌ Failed to send confirmation SMS for booking {booking.id}: {str(e)}")

        return ConfirmBookingResult(
            success=True,
            bookingId=booking.id,
            manageUrl=manage_url,
            message="Your appointment is booked",
        )

    def cancel_hold(self, hold_id: str) -> OperationResult:
        """Release a RESERVED hold; terminal holds cannot be cancelled"""
        try:
            hold = self.repo.get_hold(self.db, hold_id)
            if not hold:
                return OperationResult(
                    success=False, message=HOLD_NOT_FOUND_MESSAGE, error=ErrorKind.NOT_FOUND
                )
            if hold.status != HoldStatus.RESERVED:
                return OperationResult(
                    success=False, message=HOLD_INACTIVE_MESSAGE, error=ErrorKind.CONFLICT
                )

            hold.status = HoldStatus.CANCELLED
            self.repo.release_hold_claim(self.db, hold.id)
            self.db.commit()

            logger.info(f"🗑️ Hold {hold.id} cancelled")
            return OperationResult(success=True, message="The hold was cancelled")

        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Cancel hold error: {str(e)}")
            return OperationResult(
                success=False, message="Failed to cancel the hold", error=ErrorKind.INTERNAL
            )

    def get_hold_status(self, hold_id: str) -> Union[HoldStatusResponse, OperationResult]:
        """Report a hold's state; a storage failure is an internal error, not a missing hold"""
        try:
            hold = self.repo.get_hold(self.db, hold_id)
        except Exception as e:
            logger.error(f"❌ Get hold status error: {str(e)}")
            return OperationResult(success=False, message="Failed to load the hold", error=ErrorKind.INTERNAL)

        if not hold:
            return HoldStatusResponse(exists=False)
        return HoldStatusResponse(exists=True, status=hold.status, expiresAt=hold.expires_at)

    def cleanup_expired_holds(self, now: Optional[datetime] = None) -> int:
        """Expire RESERVED holds past expires_at; safe to repeat"""
        now = now or datetime.utcnow()
        try:
            expired = self.repo.expire_holds(self.db, self.repo.expired_hold_ids(self.db, now))
            self.db.commit()
            return expired
        except Exception:
            self.db.rollback()
            raise
