import os
import json

from dotenv import load_dotenv

load_dotenv()


def _parse_cors_origins(value: str | None) -> list[str]:
    if not value:
        return ["*"]

    cleaned = value.strip()
    if not cleaned:
        return ["*"]

    if cleaned.startswith("["):
        try:
            parsed = json.loads(cleaned)
            if isinstance(parsed, list):
                origins = [str(item).strip() for item in parsed if str(item).strip()]
                if origins:
                    return origins
        except json.JSONDecodeError:
            pass

    origins = [item.strip() for item in cleaned.split(",") if item.strip()]
    return origins or ["*"]


APP_ENV = os.environ.get("APP_ENV", "production")
DATABASE_URL = os.environ.get("DATABASE_URL", "postgresql://localhost/hdfhr")

JWT_SECRET = os.environ.get("JWT_SECRET", "hdfhr-secret-key-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_ISSUER = os.environ.get("JWT_ISSUER", "hdfhr")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))

PASSWORD_HASH_ITERATIONS = int(os.environ.get("PASSWORD_HASH_ITERATIONS", 100000))
RESET_TOKEN_EXPIRE_MINUTES = int(os.environ.get("RESET_TOKEN_EXPIRE_MINUTES", 60))
INVITE_TOKEN_EXPIRE_HOURS = int(os.environ.get("INVITE_TOKEN_EXPIRE_HOURS", 72))

# sendgrid | mailtrap | console
EMAIL_PROVIDER = os.environ.get(
    "EMAIL_PROVIDER", "sendgrid" if APP_ENV == "production" else "mailtrap"
)
SENDGRID_API_KEY = os.environ.get("SENDGRID_API_KEY", "")
MAILTRAP_API_TOKEN = os.environ.get("MAILTRAP_API_TOKEN", "")
MAILTRAP_INBOX_ID = os.environ.get("MAILTRAP_INBOX_ID", "")
EMAIL_FROM = os.environ.get("EMAIL_FROM", "")
EMAIL_FROM_NAME = os.environ.get("EMAIL_FROM_NAME", "HDF HR")
EMAIL_TIMEOUT_SECONDS = float(os.environ.get("EMAIL_TIMEOUT_SECONDS", 30))

APP_LINK_PREFIX = os.environ.get("APP_LINK_PREFIX", "hdf-hr://")
WEB_LINK_PREFIX = os.environ.get("WEB_LINK_PREFIX", "https://app.hdfhr.ch/")

LOG_ARCHIVE_AFTER_DAYS = int(os.environ.get("LOG_ARCHIVE_AFTER_DAYS", 90))
LOG_ARCHIVE_DELETE_AFTER_DAYS = int(os.environ.get("LOG_ARCHIVE_DELETE_AFTER_DAYS", 365))
LOG_MAIN_TABLE_THRESHOLD = int(os.environ.get("LOG_MAIN_TABLE_THRESHOLD", 700))
LOG_ARCHIVE_TABLE_THRESHOLD = int(os.environ.get("LOG_ARCHIVE_TABLE_THRESHOLD", 1000))
LOG_OVERFLOW_HEADROOM = 100
SYSTEM_USER_EMAIL = "system@maintenance.internal"

SEED_SUPERADMIN_EMAIL = os.environ.get("SEED_SUPERADMIN_EMAIL", "")
SEED_SUPERADMIN_PASSWORD = os.environ.get("SEED_SUPERADMIN_PASSWORD", "")

CORS_ORIGINS = _parse_cors_origins(os.environ.get("CORS_ORIGINS"))
