"""Hold repository - Database operations for holds, slot claims and bookings"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import (
    Booking,
    BookingHold,
    BookingStatus,
    Customer,
    HoldStatus,
    Service,
    SlotClaim,
)


class HoldRepository:
    """Repository for hold database operations"""

    @staticmethod
    def get_hold(db: Session, hold_id: str) -> Optional[BookingHold]:
        return db.query(BookingHold).filter(BookingHold.id == hold_id).first()

    @staticmethod
    def get_service(db: Session, service_id: str) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    @staticmethod
    def find_active_booking(
        db: Session, salon_id: str, service_id: str, slot_date: date, slot_time: str
    ) -> Optional[Booking]:
        """PENDING/CONFIRMED booking on the slot"""
        return (
            db.query(Booking)
            .filter(
                Booking.salon_id == salon_id,
                Booking.service_id == service_id,
                Booking.date == slot_date,
                Booking.time == slot_time,
                Booking.status.in_(BookingStatus.ACTIVE),
            )
            .first()
        )

    @staticmethod
    def find_active_hold(
        db: Session, salon_id: str, service_id: str, slot_date: date, slot_time: str, now: datetime
    ) -> Optional[BookingHold]:
        """RESERVED hold on the slot that has not reached expires_at"""
        return (
            db.query(BookingHold)
            .filter(
                BookingHold.salon_id == salon_id,
                BookingHold.service_id == service_id,
                BookingHold.date == slot_date,
                BookingHold.time == slot_time,
                BookingHold.status == HoldStatus.RESERVED,
                BookingHold.expires_at > now,
            )
            .first()
        )

    @staticmethod
    def get_claim(
        db: Session, salon_id: str, service_id: str, slot_date: date, slot_time: str
    ) -> Optional[SlotClaim]:
        return (
            db.query(SlotClaim)
            .filter(
                SlotClaim.salon_id == salon_id,
                SlotClaim.service_id == service_id,
                SlotClaim.date == slot_date,
                SlotClaim.time == slot_time,
            )
            .first()
        )

    @staticmethod
    def get_claim_for_hold(db: Session, hold_id: str) -> Optional[SlotClaim]:
        return db.query(SlotClaim).filter(SlotClaim.hold_id == hold_id).first()

    @staticmethod
    def claim_is_stale(claim: SlotClaim, now: datetime) -> bool:
        """A claim whose owner no longer occupies the slot"""
        if claim.hold_id:
            hold = claim.hold
            return (
                hold is None
                or hold.status != HoldStatus.RESERVED
                or claim.expires_at is None
                or claim.expires_at <= now
            )
        if claim.booking_id:
            return claim.booking is None or claim.booking.status not in BookingStatus.ACTIVE
        return True

    @staticmethod
    def delete_claim(db: Session, claim_id: str) -> int:
        # Bulk delete: a concurrent request may already have removed the row
        return (
            db.query(SlotClaim)
            .filter(SlotClaim.id == claim_id)
            .delete(synchronize_session=False)
        )

    @staticmethod
    def release_hold_claim(db: Session, hold_id: str) -> int:
        return (
            db.query(SlotClaim)
            .filter(SlotClaim.hold_id == hold_id)
            .delete(synchronize_session=False)
        )

    @staticmethod
    def release_booking_claim(db: Session, booking_id: str) -> int:
        return (
            db.query(SlotClaim)
            .filter(SlotClaim.booking_id == booking_id)
            .delete(synchronize_session=False)
        )

    @staticmethod
    def expire_hold(db: Session, hold_id: str) -> int:
        return (
            db.query(BookingHold)
            .filter(BookingHold.id == hold_id, BookingHold.status == HoldStatus.RESERVED)
            .update({BookingHold.status: HoldStatus.EXPIRED}, synchronize_session=False)
        )

    @staticmethod
    def promote_hold(db: Session, hold_id: str, now: datetime) -> bool:
        """
        Atomically move a live hold RESERVED -> CONFIRMED.

        The status predicate in the UPDATE makes concurrent promotions of the same
        hold mutually exclusive: only one of them sees rowcount == 1.
        """
        updated = (
            db.query(BookingHold)
            .filter(
                BookingHold.id == hold_id,
                BookingHold.status == HoldStatus.RESERVED,
                BookingHold.expires_at > now,
            )
            .update({BookingHold.status: HoldStatus.CONFIRMED}, synchronize_session="fetch")
        )
        return updated == 1

    @staticmethod
    def get_customer_by_phone(db: Session, salon_id: str, phone: str) -> Optional[Customer]:
        return (
            db.query(Customer)
            .filter(Customer.salon_id == salon_id, Customer.phone == phone)
            .first()
        )

    @staticmethod
    def expired_hold_ids(db: Session, now: datetime) -> list[str]:
        rows = (
            db.query(BookingHold.id)
            .filter(BookingHold.status == HoldStatus.RESERVED, BookingHold.expires_at < now)
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def expire_holds(db: Session, hold_ids: list[str]) -> int:
        """Mark still-RESERVED holds EXPIRED and free their slots"""
        if not hold_ids:
            return 0

        db.query(SlotClaim).filter(SlotClaim.hold_id.in_(hold_ids)).delete(
            synchronize_session=False
        )
        return (
            db.query(BookingHold)
            .filter(BookingHold.id.in_(hold_ids), BookingHold.status == HoldStatus.RESERVED)
            .update({BookingHold.status: HoldStatus.EXPIRED}, synchronize_session=False)
        )

    @staticmethod
    def cancel_active_booking(db: Session, booking_id: str) -> bool:
        """Move a PENDING/CONFIRMED booking to CANCELLED; False when another request got there first"""
        updated = (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.status.in_(BookingStatus.ACTIVE))
            .update({Booking.status: BookingStatus.CANCELLED}, synchronize_session=False)
        )
        return updated == 1

    @staticmethod
    def get_booking_status(db: Session, booking_id: str) -> Optional[str]:
        # Column query, so the value comes from the database rather than the identity map
        return db.query(Booking.status).filter(Booking.id == booking_id).scalar()
