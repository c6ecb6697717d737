import os

# Must be set before the app modules read their configuration
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENABLE_CLEANUP_SWEEPER", "false")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Import models so Base.metadata is populated for create_all.
import app.models  # noqa: F401
from app.database import Base
from app.models import Salon, Service
from app.services.sms_service import SmsGatewayError, SmsService


class RecordingSmsProvider:
    """Keeps every message in memory; set fail=True to simulate a provider outage"""

    def __init__(self):
        self.messages: list[tuple[str, str]] = []
        self.fail = False

    async def send_sms(self, to_e164: str, text: str) -> str:
        if self.fail:
            raise SmsGatewayError("provider unavailable")
        self.messages.append((to_e164, text))
        return f"test-{len(self.messages)}"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sms_provider() -> RecordingSmsProvider:
    return RecordingSmsProvider()


@pytest.fixture
def sms_service(sms_provider) -> SmsService:
    return SmsService(sms_provider)


@pytest.fixture
def salon(db) -> Salon:
    salon = Salon(name="Studio Lior", address="12 Herzl St, Tel Aviv", phone="+97235551234")
    db.add(salon)
    db.commit()
    return salon


@pytest.fixture
def service(db, salon) -> Service:
    service = Service(salon_id=salon.id, name="Haircut", duration=45, price=120.0)
    db.add(service)
    db.commit()
    return service


@pytest.fixture
def client(session_factory, sms_service):
    from fastapi.testclient import TestClient

    from app.database import get_db
    from app.domain.otp.router import otp_send_rate_limit
    from app.main import app
    from app.services.sms_service import get_sms_service

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    async def no_rate_limit():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sms_service] = lambda: sms_service
    app.dependency_overrides[otp_send_rate_limit] = no_rate_limit

    # Not used as a context manager so the lifespan (sweeper, redis probe) stays off
    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        app.dependency_overrides.clear()
