import os

from dotenv import load_dotenv

load_dotenv()

MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017/employee_scheduling")

# JWT verification only - tokens are issued by the auth service
SECRET_KEY = os.getenv("SECRET_KEY", "testing_secret_key_for_development_only")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Local wall-clock zone that shift dates/times are expressed in
SCHEDULE_TIMEZONE = os.getenv("SCHEDULE_TIMEZONE", "UTC")

# 0 = Sunday ... 6 = Saturday, used when system_settings has no document yet
DEFAULT_FIRST_DAY_OF_WEEK = int(os.getenv("DEFAULT_FIRST_DAY_OF_WEEK", "1"))

# A cancellation request stops accepting claims this long before the shift starts
CANCELLATION_EXPIRY_LEAD_MINUTES = int(os.getenv("CANCELLATION_EXPIRY_LEAD_MINUTES", "60"))
CANCELLATION_CLEANUP_INTERVAL_MINUTES = int(os.getenv("CANCELLATION_CLEANUP_INTERVAL_MINUTES", "30"))
ENABLE_CLEANUP_SERVICE = os.getenv("ENABLE_CLEANUP_SERVICE", "1") == "1"

RATE_LIMIT = int(os.getenv("RATE_LIMIT", "240"))
RATE_LIMIT_WINDOW = int(os.getenv("RATE_LIMIT_WINDOW", "60"))
REDIS_URL = os.getenv("REDIS_URL")
DISABLE_RATE_LIMIT = os.getenv("DISABLE_RATE_LIMIT", "0") == "1"
