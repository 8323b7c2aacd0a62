import os
from pathlib import Path

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/faithbliss")

JWT_SECRET = os.getenv("JWT_SECRET", "")
ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "15"))
REFRESH_TOKEN_TTL_DAYS = int(os.getenv("REFRESH_TOKEN_TTL_DAYS", "7"))
REACTIVATION_TOKEN_TTL_MINUTES = int(os.getenv("REACTIVATION_TOKEN_TTL_MINUTES", "10"))
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

_api_root = Path(__file__).resolve().parents[1]
UPLOADS_DIR = Path(os.getenv("UPLOADS_DIR", str(_api_root / "uploads")))
MIGRATIONS_DIR = os.getenv("MIGRATIONS_DIR", "").strip()

CANDIDATE_PAGE_SIZE = int(os.getenv("CANDIDATE_PAGE_SIZE", "10"))
CANDIDATE_MAX_PAGE_SIZE = int(os.getenv("CANDIDATE_MAX_PAGE_SIZE", "100"))
SEARCH_PAGE_SIZE = int(os.getenv("SEARCH_PAGE_SIZE", "20"))

MESSAGE_PAGE_SIZE = int(os.getenv("MESSAGE_PAGE_SIZE", "50"))
MESSAGE_MAX_LENGTH = int(os.getenv("MESSAGE_MAX_LENGTH", "2000"))
MESSAGE_PREVIEW_LENGTH = int(os.getenv("MESSAGE_PREVIEW_LENGTH", "50"))

PHOTO_MAX_BYTES = int(os.getenv("PHOTO_MAX_BYTES", str(5 * 1024 * 1024)))
PHOTO_SLOTS = 3
ONBOARDING_MIN_PHOTOS = int(os.getenv("ONBOARDING_MIN_PHOTOS", "2"))

DEFAULT_MAX_DISTANCE = int(os.getenv("DEFAULT_MAX_DISTANCE", "50"))
MIN_USER_AGE = 18
MAX_USER_AGE = 100

ONLINE_WINDOW_MINUTES = int(os.getenv("ONLINE_WINDOW_MINUTES", "5"))
ACTIVE_WINDOW_HOURS = int(os.getenv("ACTIVE_WINDOW_HOURS", "24"))

RL_AUTH_REGISTER_LIMIT = int(os.getenv("RL_AUTH_REGISTER_LIMIT", "100"))
RL_AUTH_LOGIN_LIMIT = int(os.getenv("RL_AUTH_LOGIN_LIMIT", "100"))
RL_LIKE_LIMIT = int(os.getenv("RL_LIKE_LIMIT", "120"))
RL_PASS_LIMIT = int(os.getenv("RL_PASS_LIMIT", "240"))
RL_MESSAGE_LIMIT = int(os.getenv("RL_MESSAGE_LIMIT", "120"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))
