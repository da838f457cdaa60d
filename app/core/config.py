import os
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

# Database
DB_USERNAME = os.getenv("DB_USERNAME", "portal")
DB_PASSWORD = os.getenv("DB_PASSWORD", "portal")
DB_NAME = os.getenv("DB_NAME", "intranet")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_HOST = os.getenv("DB_HOST", "localhost")

# An explicit DATABASE_URL wins over the individual DB_* settings
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+psycopg2://{DB_USERNAME}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

# Tokens
SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "24"))

API_PREFIX = "/api/v1"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# In-process caches (seconds)
ANNOUNCEMENTS_CACHE_TTL = int(os.getenv("ANNOUNCEMENTS_CACHE_TTL", "300"))
APP_SETTINGS_CACHE_TTL = int(os.getenv("APP_SETTINGS_CACHE_TTL", "600"))
HERO_MESSAGES_CACHE_TTL = int(os.getenv("HERO_MESSAGES_CACHE_TTL", "900"))

# Background jobs
TASK_WORKERS = int(os.getenv("TASK_WORKERS", "4"))

# SMTP, empty host disables outgoing mail
SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
SMTP_FROM = os.getenv("SMTP_FROM", "intranet@localhost")
PORTAL_URL = os.getenv("PORTAL_URL", "http://localhost:3000")

# Chat
CHAT_CLIENT_QUEUE_SIZE = int(os.getenv("CHAT_CLIENT_QUEUE_SIZE", "256"))
