"""OTP repository - Database operations for one-time codes"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import OtpCode


class OtpRepository:
    """Repository for OTP code database operations"""

    @staticmethod
    def latest_since(db: Session, phone: str, since: datetime) -> Optional[OtpCode]:
        return (
            db.query(OtpCode)
            .filter(OtpCode.phone == phone, OtpCode.created_at >= since)
            .order_by(OtpCode.created_at.desc())
            .first()
        )

    @staticmethod
    def count_since(db: Session, phone: str, since: datetime) -> int:
        return (
            db.query(OtpCode)
            .filter(OtpCode.phone == phone, OtpCode.created_at >= since)
            .count()
        )

    @staticmethod
    def invalidate_unused(db: Session, phone: str) -> int:
        return (
            db.query(OtpCode)
            .filter(OtpCode.phone == phone, OtpCode.is_used.is_(False))
            .update({OtpCode.is_used: True}, synchronize_session=False)
        )

    @staticmethod
    def find_active(db: Session, phone: str, now: datetime, code: Optional[str] = None) -> Optional[OtpCode]:
        """Newest unused, unexpired code for the phone (optionally matching `code`)"""
        query = db.query(OtpCode).filter(
            OtpCode.phone == phone,
            OtpCode.is_used.is_(False),
            OtpCode.expires_at > now,
        )
        if code is not None:
            query = query.filter(OtpCode.code == code)
        return query.order_by(OtpCode.created_at.desc()).first()

    @staticmethod
    def delete_expired_or_used(db: Session, now: datetime) -> int:
        return (
            db.query(OtpCode)
            .filter(or_(OtpCode.expires_at < now, OtpCode.is_used.is_(True)))
            .delete(synchronize_session=False)
        )

    @staticmethod
    def mark_used(db: Session, otp_id: str) -> bool:
        """Consume a code; False when another request consumed it first"""
        updated = (
            db.query(OtpCode)
            .filter(OtpCode.id == otp_id, OtpCode.is_used.is_(False))
            .update({OtpCode.is_used: True}, synchronize_session=False)
        )
        return updated == 1

    @staticmethod
    def increment_attempts(db: Session, otp_id: str) -> None:
        db.query(OtpCode).filter(OtpCode.id == otp_id).update(
            {OtpCode.attempts: OtpCode.attempts + 1}, synchronize_session=False
        )
