# ----------------------------------------------------------------
# Import configuration variables to be used throughout the project
# ----------------------------------------------------------------
import os
from dotenv import load_dotenv

# Load .env (allow container env to override file values)
load_dotenv(override=True)


def _rstrip_slash(s: str) -> str:
    return (s or "").rstrip("/")


def _get_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or not str(v).strip():
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or not str(v).strip():
        return default
    try:
        return float(v)
    except ValueError:
        return default


class Settings:
    # ── Backend (PostgREST-style service) ────────────────────────────────────
    BACKEND_URL: str = _rstrip_slash(os.getenv("BACKEND_URL", ""))
    BACKEND_API_KEY: str = os.getenv("BACKEND_API_KEY", "")
    # Service-role token; falls back to the anon key when not set
    BACKEND_SERVICE_TOKEN: str = os.getenv("BACKEND_SERVICE_TOKEN", "") or os.getenv("BACKEND_API_KEY", "")
    BACKEND_TIMEOUT: float = _get_float("BACKEND_TIMEOUT", 30.0)

    # ── Console defaults ─────────────────────────────────────────────────────
    # One of: myship | delivery | pickup
    DEFAULT_SHIPPING_METHOD: str = os.getenv("DEFAULT_SHIPPING_METHOD", "myship")
    DEFAULT_PAGE_SIZE: int = _get_int("DEFAULT_PAGE_SIZE", 20)
    AUDIT_LOG_LIMIT: int = _get_int("AUDIT_LOG_LIMIT", 500)

    # ── Admin Panel ──────────────────────────────────────────────────────────
    ADMIN_USER: str = os.getenv("ADMIN_USER", "admin")
    ADMIN_PASS: str = os.getenv("ADMIN_PASS", "changeme")

    # ── CORS ─────────────────────────────────────────────────────────────────
    # Comma-separated list in .env, e.g. "https://example.com, https://foo.bar"
    CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


settings = Settings()
