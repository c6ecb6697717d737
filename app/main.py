import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

# Import models so they're registered with SQLAlchemy Base before create_all
from . import models  # noqa: F401
from .config import CLEANUP_INTERVAL_MINUTES, ENABLE_CLEANUP_SWEEPER
from .database import Base, SessionLocal, engine, get_db
from .domain.holds.router import router as holds_router
from .domain.manage.router import router as manage_router
from .domain.otp.router import router as otp_router
from .workers.cleanup_worker import CleanupSweeper

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    try:
        from .rate_limiter import get_redis_client

        get_redis_client()  # Connection test
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning(f"Redis connection failed - OTP send requests will be rejected: {e}")

    sweeper = CleanupSweeper(SessionLocal)
    app.state.cleanup_sweeper = sweeper
    if ENABLE_CLEANUP_SWEEPER:
        sweeper.start(CLEANUP_INTERVAL_MINUTES)
    else:
        logger.info("Cleanup sweeper disabled (ENABLE_CLEANUP_SWEEPER=false)")

    yield

    logger.info("Application shutting down...")
    await sweeper.stop()


app = FastAPI(title="Salon Booking API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Return 400 for request bodies that are not valid JSON, 422 for field errors
    """
    errors = exc.errors()
    if any(error.get("type") == "json_invalid" for error in errors):
        logger.warning(f"Malformed JSON body for {request.url.path}")
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Request body is not valid JSON"},
        )

    logger.warning(f"Validation error for {request.url.path}: {errors}")
    return JSONResponse(status_code=422, content={"detail": errors})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


# CORS Configuration
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(holds_router)
app.include_router(otp_router)
app.include_router(manage_router)


@app.get("/")
def root():
    return {"message": "Salon Booking API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/api/health")
def api_health(db: Session = Depends(get_db)):
    """Check database connectivity for monitoring"""
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": {"connected": True}}
    except Exception as e:
        logger.error(f"❌ Database health check failed: {str(e)}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": {"connected": False, "error": str(e)}},
        )
