import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./salon.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

JWT_ALGORITHM = "HS256"
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "480"))

# Seeded on startup when the admins table is empty
DEFAULT_ADMIN_USERNAME = os.getenv("DEFAULT_ADMIN_USERNAME", "admin")
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD")

# Venue
VENUE_TIMEZONE = os.getenv("VENUE_TIMEZONE", "America/Argentina/Buenos_Aires")
SALON_NAME = os.getenv("SALON_NAME", "Salón Invictus")

# Google Calendar (OAuth refresh-token flow, or a static access token for local testing)
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REFRESH_TOKEN = os.getenv("GOOGLE_REFRESH_TOKEN")
GOOGLE_ACCESS_TOKEN = os.getenv("GOOGLE_ACCESS_TOKEN")
# Seed for the default primary calendar target
GOOGLE_CALENDAR_ID = os.getenv("GOOGLE_CALENDAR_ID")
GOOGLE_API_TIMEOUT = float(os.getenv("GOOGLE_API_TIMEOUT", "10"))

# Title prefix marking events created by this system. Read and write paths must agree.
CALENDAR_EVENT_PREFIX = os.getenv("CALENDAR_EVENT_PREFIX", "Turno con ")
DEFAULT_EVENT_DURATION = int(os.getenv("DEFAULT_EVENT_DURATION", "30"))
REMINDER_EMAIL_MINUTES = int(os.getenv("REMINDER_EMAIL_MINUTES", str(24 * 60)))
REMINDER_POPUP_MINUTES = int(os.getenv("REMINDER_POPUP_MINUTES", "30"))

# WhatsApp notifications: "meta", "twilio" or "disabled"
WHATSAPP_PROVIDER = os.getenv("WHATSAPP_PROVIDER", "disabled").lower()
WHATSAPP_ACCESS_TOKEN = os.getenv("WHATSAPP_ACCESS_TOKEN")
WHATSAPP_PHONE_NUMBER_ID = os.getenv("WHATSAPP_PHONE_NUMBER_ID")
WHATSAPP_API_VERSION = os.getenv("WHATSAPP_API_VERSION", "v18.0")
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_WHATSAPP_FROM = os.getenv("TWILIO_WHATSAPP_FROM")  # whatsapp:+14155238886

# Calendar sync job
SYNC_CRON_MINUTES = os.getenv("SYNC_CRON_MINUTES", "0,30")
SYNC_START_HOUR = int(os.getenv("SYNC_START_HOUR", "7"))
SYNC_END_HOUR = int(os.getenv("SYNC_END_HOUR", "3"))  # window wraps past midnight
SYNC_LOOKBACK_DAYS = int(os.getenv("SYNC_LOOKBACK_DAYS", "7"))
SYNC_LOOKAHEAD_DAYS = int(os.getenv("SYNC_LOOKAHEAD_DAYS", "30"))

# Rate limiting
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
BOOKING_RATE_LIMIT = int(os.getenv("BOOKING_RATE_LIMIT", "10"))
BOOKING_RATE_WINDOW = int(os.getenv("BOOKING_RATE_WINDOW", "900"))
ADMIN_RATE_LIMIT = int(os.getenv("ADMIN_RATE_LIMIT", "300"))
ADMIN_RATE_WINDOW = int(os.getenv("ADMIN_RATE_WINDOW", "900"))

# Frontend / CORS
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:3000").split(",")
