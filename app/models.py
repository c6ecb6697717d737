import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    """Generate a UUID4 primary key"""
    return str(uuid.uuid4())


class HoldStatus:
    RESERVED = "RESERVED"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class BookingStatus:
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"

    # Statuses that occupy a slot
    ACTIVE = (PENDING, CONFIRMED)


class Salon(Base):
    __tablename__ = "salons"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    phone = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    services = relationship("Service", back_populates="salon")
    customers = relationship("Customer", back_populates="salon")


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_id)
    salon_id = Column(String(36), ForeignKey("salons.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    duration = Column(Integer, nullable=False, default=30)  # Minutes
    price = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    salon = relationship("Salon", back_populates="services")


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (UniqueConstraint("salon_id", "phone", name="uq_customer_salon_phone"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    salon_id = Column(String(36), ForeignKey("salons.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)  # E.164
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    salon = relationship("Salon", back_populates="customers")
    bookings = relationship("Booking", back_populates="customer")


class BookingHold(Base):
    """Short-lived claim on a (salon, service, date, time) slot"""

    __tablename__ = "booking_holds"

    id = Column(String(36), primary_key=True, default=generate_id)
    salon_id = Column(String(36), ForeignKey("salons.id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)  # HH:MM
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default=HoldStatus.RESERVED, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    salon = relationship("Salon")
    service = relationship("Service")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_id)
    salon_id = Column(String(36), ForeignKey("salons.id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)  # HH:MM
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING, index=True)
    total_price = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    salon = relationship("Salon")
    service = relationship("Service")
    customer = relationship("Customer", back_populates="bookings")
    manage_tokens = relationship("ManageToken", back_populates="booking")


class SlotClaim(Base):
    """
    Single owner of a slot identity.

    The unique constraint makes "reserve if nobody else holds it" one atomic insert.
    A claim belongs to a RESERVED hold (hold_id + expires_at) or, after promotion,
    to a PENDING/CONFIRMED booking (booking_id). It is deleted when the owner
    expires or is cancelled.
    """

    __tablename__ = "slot_claims"
    __table_args__ = (
        UniqueConstraint("salon_id", "service_id", "date", "time", name="uq_slot_claim_slot"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    salon_id = Column(String(36), nullable=False)
    service_id = Column(String(36), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)
    hold_id = Column(String(36), ForeignKey("booking_holds.id"), nullable=True, index=True)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=True, index=True)
    expires_at = Column(DateTime, nullable=True)  # Mirrors the hold; NULL once booked
    created_at = Column(DateTime, server_default=func.now())

    hold = relationship("BookingHold")
    booking = relationship("Booking")


class OtpCode(Base):
    __tablename__ = "otp_codes"

    id = Column(String(36), primary_key=True, default=generate_id)
    phone = Column(String(20), nullable=False, index=True)  # E.164
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    is_used = Column(Boolean, default=False, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    max_attempts = Column(Integer, default=5, nullable=False)
    created_at = Column(DateTime, nullable=False, index=True)


class ManageToken(Base):
    """Long-lived credential that lets a customer view/cancel one booking"""

    __tablename__ = "manage_tokens"

    id = Column(String(36), primary_key=True, default=generate_id)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    token = Column(String(512), nullable=False, unique=True)
    expires_at = Column(DateTime, nullable=False)
    is_used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="manage_tokens")
