"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_NOTES_LENGTH = 1000

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes
SQLITE_BUSY_TIMEOUT_SECONDS = 30

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:5173",      # React dev server (Vite) - localhost
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Appointment statuses
APPOINTMENT_STATUSES = ("pending", "confirmed", "cancelled", "completed", "no_show")

# Group activities
GROUP_ACTIVITY_STATUSES = ("active", "completed", "cancelled")
ENROLLMENT_STATUSES = ("confirmed", "pending", "waiting_list", "cancelled")

# Recurrence generation
MAX_RECURRENCE_OCCURRENCES = 50  # Hard cap regardless of termination rule
MAX_WEEKLY_RECURRENCE_INTERVAL = 12  # Up to every 12 weeks
MAX_MONTHLY_RECURRENCE_INTERVAL = 12  # Up to every 12 months

# Availability queries
MAX_AVAILABILITY_RANGE_DAYS = 31
MINUTES_PER_DAY = 24 * 60

# Google Calendar
TOKEN_REFRESH_MARGIN_MINUTES = 5  # Refresh access tokens expiring within this window
GOOGLE_CALENDAR_ID = "primary"
EMAIL_REMINDER_MINUTES = 24 * 60
POPUP_REMINDER_MINUTES = 30
