import os
from dotenv import load_dotenv

from refund_workflow.engine.eligibility import RefundPolicy

load_dotenv()

# Required: fails fast if missing
API_KEY: str = os.environ["API_KEY"]
ADMIN_API_KEY: str = os.environ["ADMIN_API_KEY"]

APP_ENV: str = os.getenv("APP_ENV", "development")
PORT: int = int(os.getenv("PORT", "8000"))
CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# env var -> RefundPolicy field
_POLICY_ENV = {
    "REFUND_WINDOW_DAYS": "refund_window_days",
    "FULL_REFUND_MAX_DAYS": "full_refund_max_days",
    "FULL_REFUND_MAX_PROGRESS": "full_refund_max_progress",
    "PARTIAL_REFUND_MAX_PROGRESS": "partial_refund_max_progress",
    "PARTIAL_REFUND_PROCESSING_FEE": "partial_refund_processing_fee",
    "OFFER_WINDOW_HOURS": "offer_window_hours",
    "CURRENCY": "currency",
    "CURRENCY_DECIMALS": "currency_decimals",
    "REASON_MIN_LENGTH": "reason_min_length",
    "REASON_MAX_LENGTH": "reason_max_length",
}


def load_policy() -> RefundPolicy:
    """Build the refund policy from the environment, falling back to defaults."""
    overrides = {
        field: os.environ[name]
        for name, field in _POLICY_ENV.items()
        if os.getenv(name) not in (None, "")
    }
    return RefundPolicy(**overrides)


def is_production() -> bool:
    return APP_ENV == "production"


def get_cors_origins() -> list[str]:
    if not CORS_ORIGINS:
        return []
    return [origin.strip() for origin in CORS_ORIGINS.split(",") if origin.strip()]
