import threading
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.domain.holds.repository import HoldRepository
from app.domain.holds.service import (
    HOLD_EXPIRED_MESSAGE,
    HOLD_INACTIVE_MESSAGE,
    SLOT_TAKEN_MESSAGE,
    HoldService,
)
from app.domain.results import ErrorKind
from app.models import (
    Booking,
    BookingHold,
    BookingStatus,
    Customer,
    HoldStatus,
    ManageToken,
    Salon,
    Service,
    SlotClaim,
)

SLOT_DATE = date(2025, 1, 10)
SLOT_TIME = "10:00"


def _hold(db, salon, service, slot_time=SLOT_TIME, **kwargs):
    return HoldService(db).create_hold(salon.id, service.id, SLOT_DATE, slot_time, **kwargs)


def _age_hold(db, hold_id, seconds=1):
    """Push a hold (and its claim) past expires_at without sweeping it"""
    past = datetime.utcnow() - timedelta(seconds=seconds)
    db.query(BookingHold).filter(BookingHold.id == hold_id).update({BookingHold.expires_at: past})
    db.query(SlotClaim).filter(SlotClaim.hold_id == hold_id).update({SlotClaim.expires_at: past})
    db.commit()


class TestCreateHold:
    def test_reserves_free_slot(self, db, salon, service):
        result = _hold(db, salon, service, customer_name="Dana", customer_phone="050-123-4567")

        assert result.success is True
        assert result.holdId
        hold = db.get(BookingHold, result.holdId)
        assert hold.status == HoldStatus.RESERVED
        assert hold.customer_phone == "+972501234567"
        assert timedelta(minutes=6) < hold.expires_at - datetime.utcnow() <= timedelta(minutes=7)
        assert db.query(SlotClaim).filter(SlotClaim.hold_id == hold.id).count() == 1

    def test_second_hold_on_same_slot_conflicts(self, db, salon, service):
        assert _hold(db, salon, service).success

        result = _hold(db, salon, service)

        assert result.success is False
        assert result.error == ErrorKind.CONFLICT
        assert result.message == SLOT_TAKEN_MESSAGE
        assert result.status_code == 400

    def test_unpadded_time_is_the_same_slot(self, db, salon, service):
        assert _hold(db, salon, service, slot_time="09:00").success
        assert _hold(db, salon, service, slot_time="9:00").error == ErrorKind.CONFLICT

    def test_other_service_at_same_time_is_free(self, db, salon, service):
        other = Service(salon_id=salon.id, name="Color", duration=90, price=300.0)
        db.add(other)
        db.commit()

        assert _hold(db, salon, service).success
        assert _hold(db, salon, other).success

    def test_service_of_another_salon_is_rejected(self, db, salon, service):
        other_salon = Salon(name="Other")
        db.add(other_salon)
        db.commit()

        result = HoldService(db).create_hold(other_salon.id, service.id, SLOT_DATE, SLOT_TIME)

        assert result.success is False
        assert result.error == ErrorKind.VALIDATION

    def test_invalid_time_is_rejected(self, db, salon, service):
        result = _hold(db, salon, service, slot_time="25:00")
        assert result.error == ErrorKind.VALIDATION

    def test_expired_hold_no_longer_blocks_before_sweep(self, db, salon, service):
        first = _hold(db, salon, service)
        _age_hold(db, first.holdId)

        second = _hold(db, salon, service)

        assert second.success is True
        db.expire_all()
        assert db.get(BookingHold, first.holdId).status == HoldStatus.EXPIRED
        claim = HoldRepository.get_claim(db, salon.id, service.id, SLOT_DATE, SLOT_TIME)
        assert claim.hold_id == second.holdId

    def test_lost_race_on_claim_reports_slot_taken(self, db, salon, service, monkeypatch):
        assert _hold(db, salon, service).success
        # Both requests passed the read checks; only one insert can win
        monkeypatch.setattr(HoldRepository, "find_active_hold", staticmethod(lambda *args: None))

        result = _hold(db, salon, service)

        assert result.success is False
        assert result.message == SLOT_TAKEN_MESSAGE
        assert db.query(BookingHold).count() == 1


class TestConfirmBooking:
    @pytest.mark.asyncio
    async def test_promotes_hold_to_confirmed_booking(self, db, salon, service, sms_service, sms_provider):
        hold = _hold(db, salon, service)

        result = await HoldService(db, sms_service).confirm_booking(hold.holdId, "Dana Levi", "0501234567")

        assert result.success is True
        assert result.manageUrl.startswith("http://localhost:3000/manage/")
        db.expire_all()
        booking = db.get(Booking, result.bookingId)
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.total_price == 120.0
        assert booking.customer.phone == "+972501234567"
        assert db.get(BookingHold, hold.holdId).status == HoldStatus.CONFIRMED

        claim = HoldRepository.get_claim(db, salon.id, service.id, SLOT_DATE, SLOT_TIME)
        assert claim.booking_id == booking.id
        assert claim.hold_id is None

        token = db.query(ManageToken).filter(ManageToken.booking_id == booking.id).one()
        assert result.manageUrl.endswith(token.token)

        to, text = sms_provider.messages[0]
        assert to == "+972501234567"
        assert "10/01/2025 at 10:00" in text

    @pytest.mark.asyncio
    async def test_booked_slot_blocks_new_holds(self, db, salon, service):
        hold = _hold(db, salon, service)
        await HoldService(db).confirm_booking(hold.holdId, "Dana", "0501234567")

        result = _hold(db, salon, service)

        assert result.error == ErrorKind.CONFLICT

    @pytest.mark.asyncio
    async def test_hold_can_only_be_promoted_once(self, db, salon, service):
        hold = _hold(db, salon, service)
        assert (await HoldService(db).confirm_booking(hold.holdId, "Dana", "0501234567")).success

        again = await HoldService(db).confirm_booking(hold.holdId, "Dana", "0501234567")

        assert again.success is False
        assert again.message == HOLD_INACTIVE_MESSAGE
        assert db.query(Booking).count() == 1

    @pytest.mark.asyncio
    async def test_expired_hold_is_rejected_before_sweep(self, db, salon, service):
        hold = _hold(db, salon, service)
        _age_hold(db, hold.holdId)

        result = await HoldService(db).confirm_booking(hold.holdId, "Dana", "0501234567")

        assert result.success is False
        assert result.message == HOLD_EXPIRED_MESSAGE
        assert db.query(Booking).count() == 0

    @pytest.mark.asyncio
    async def test_unknown_hold(self, db):
        result = await HoldService(db).confirm_booking("missing", "Dana", "0501234567")
        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_returning_customer_is_reused_and_renamed(self, db, salon, service):
        first = _hold(db, salon, service, slot_time="10:00")
        second = _hold(db, salon, service, slot_time="11:00")

        await HoldService(db).confirm_booking(first.holdId, "Dana", "0501234567")
        await HoldService(db).confirm_booking(second.holdId, "Dana Levi", "+972501234567")

        customers = db.query(Customer).all()
        assert len(customers) == 1
        assert customers[0].name == "Dana Levi"
        assert db.query(Booking).count() == 2

    @pytest.mark.asyncio
    async def test_sms_failure_keeps_booking(self, db, salon, service, sms_service, sms_provider):
        sms_provider.fail = True
        hold = _hold(db, salon, service)

        result = await HoldService(db, sms_service).confirm_booking(hold.holdId, "Dana", "0501234567")

        assert result.success is True
        assert db.query(Booking).count() == 1


class TestCancelHold:
    def test_cancel_frees_slot(self, db, salon, service):
        hold = _hold(db, salon, service)

        result = HoldService(db).cancel_hold(hold.holdId)

        assert result.success is True
        db.expire_all()
        assert db.get(BookingHold, hold.holdId).status == HoldStatus.CANCELLED
        assert _hold(db, salon, service).success

    def test_cancel_twice_is_rejected(self, db, salon, service):
        hold = _hold(db, salon, service)
        HoldService(db).cancel_hold(hold.holdId)

        result = HoldService(db).cancel_hold(hold.holdId)

        assert result.success is False
        assert result.error == ErrorKind.CONFLICT

    def test_cancel_unknown_hold(self, db):
        result = HoldService(db).cancel_hold("missing")
        assert result.status_code == 404


class TestHoldStatus:
    def test_reports_status_and_expiry(self, db, salon, service):
        hold = _hold(db, salon, service)

        status = HoldService(db).get_hold_status(hold.holdId)

        assert status.exists is True
        assert status.status == HoldStatus.RESERVED
        assert status.expiresAt is not None

    def test_unknown_hold(self, db):
        assert HoldService(db).get_hold_status("missing").exists is False

    def test_storage_failure_is_internal_error(self, db, monkeypatch):
        def broken_get_hold(db, hold_id):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(HoldRepository, "get_hold", staticmethod(broken_get_hold))

        result = HoldService(db).get_hold_status("any")

        assert result.success is False
        assert result.status_code == 500
        assert not hasattr(result, "exists")


class TestConcurrentHolds:
    def test_exactly_one_thread_claims_the_slot(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'holds.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(engine)
        factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)

        with factory() as setup:
            salon = Salon(name="Studio Lior")
            setup.add(salon)
            setup.flush()
            service = Service(salon_id=salon.id, name="Haircut", duration=45, price=120.0)
            setup.add(service)
            setup.commit()
            salon_id, service_id = salon.id, service.id

        workers = 8
        barrier = threading.Barrier(workers)
        results = []
        lock = threading.Lock()

        def attempt():
            session = factory()
            try:
                barrier.wait()
                result = HoldService(session).create_hold(salon_id, service_id, SLOT_DATE, SLOT_TIME)
                with lock:
                    results.append(result)
            finally:
                session.close()

        threads = [threading.Thread(target=attempt) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        with factory() as check:
            claims = check.query(SlotClaim).count()
            reserved = check.query(BookingHold).filter(BookingHold.status == HoldStatus.RESERVED).count()
        engine.dispose()

        assert len(results) == workers
        winners = [result for result in results if result.success]
        assert len(winners) == 1
        assert all(result.error == ErrorKind.CONFLICT for result in results if not result.success)
        assert claims == 1
        assert reserved == 1


class TestCleanupExpiredHolds:
    def test_expires_stale_holds_and_releases_claims(self, db, salon, service):
        live = _hold(db, salon, service, slot_time="10:00")
        stale = _hold(db, salon, service, slot_time="11:00")
        _age_hold(db, stale.holdId)

        assert HoldService(db).cleanup_expired_holds() == 1

        db.expire_all()
        assert db.get(BookingHold, stale.holdId).status == HoldStatus.EXPIRED
        assert db.get(BookingHold, live.holdId).status == HoldStatus.RESERVED
        assert HoldRepository.get_claim_for_hold(db, stale.holdId) is None
        assert HoldRepository.get_claim_for_hold(db, live.holdId) is not None

    def test_is_idempotent(self, db, salon, service):
        stale = _hold(db, salon, service)
        _age_hold(db, stale.holdId)

        assert HoldService(db).cleanup_expired_holds() == 1
        assert HoldService(db).cleanup_expired_holds() == 0
