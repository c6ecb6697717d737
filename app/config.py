import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./salon_booking.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Public base URL of the booking site (manage links in SMS point here)
APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:3000")

# Infobip SMS Configuration - falls back to logging-only SMS when the key is missing
INFOBIP_BASE_URL = os.getenv("INFOBIP_BASE_URL", "https://api.infobip.com")
INFOBIP_API_KEY = os.getenv("INFOBIP_API_KEY")
SMS_SENDER_ID = os.getenv("SMS_SENDER_ID", "SalonBook")
SMS_TIMEOUT_SECONDS = float(os.getenv("SMS_TIMEOUT_SECONDS", "10.0"))

# Local numbers starting with "0" are rewritten to +<DEFAULT_COUNTRY_CODE>
DEFAULT_COUNTRY_CODE = os.getenv("DEFAULT_COUNTRY_CODE", "972")

# Booking hold
HOLD_DURATION_MINUTES = int(os.getenv("HOLD_DURATION_MINUTES", "7"))

# OTP
OTP_LENGTH = 6
OTP_EXPIRY_MINUTES = int(os.getenv("OTP_EXPIRY_MINUTES", "5"))
OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))
OTP_COOLDOWN_SECONDS = int(os.getenv("OTP_COOLDOWN_SECONDS", "45"))
OTP_MAX_PER_WINDOW = int(os.getenv("OTP_MAX_PER_WINDOW", "5"))
OTP_WINDOW_HOURS = int(os.getenv("OTP_WINDOW_HOURS", "3"))

# Transport-level limit on /otp/send-otp (per client IP)
OTP_IP_RATE_LIMIT = int(os.getenv("OTP_IP_RATE_LIMIT", "5"))
OTP_IP_RATE_WINDOW_SECONDS = int(os.getenv("OTP_IP_RATE_WINDOW_SECONDS", str(15 * 60)))
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# Manage links
MANAGE_TOKEN_DAYS = int(os.getenv("MANAGE_TOKEN_DAYS", "30"))

# Cleanup sweeper - set ENABLE_CLEANUP_SWEEPER=false when the ARQ worker runs the sweep instead
CLEANUP_INTERVAL_MINUTES = float(os.getenv("CLEANUP_INTERVAL_MINUTES", "1"))
ENABLE_CLEANUP_SWEEPER = os.getenv("ENABLE_CLEANUP_SWEEPER", "true").lower() == "true"
