import os

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./site_allocation.db"


def is_production() -> bool:
    """Detects if running in production via PRODUCTION variable"""
    return os.getenv("PRODUCTION", "false").lower() == "true"


def get_database_url() -> str:
    """Returns SQLAlchemy database URL based on environment"""
    if is_production():
        return os.getenv("DATABASE_URL_PROD") or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    else:
        return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def get_log_level() -> str:
    """Returns the root log level name (INFO unless LOG_LEVEL is set)"""
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_store_retry_attempts() -> int:
    """Returns how many times the entity store retries a failed read"""
    return int(os.getenv("STORE_RETRY_ATTEMPTS", "3"))


def get_store_retry_base_delay() -> float:
    """Returns the initial backoff delay in seconds for store reads"""
    return float(os.getenv("STORE_RETRY_BASE_DELAY", "0.2"))


def get_max_operator_sessions() -> int:
    """Returns how many operator sessions the API keeps before evicting the least recently used"""
    return int(os.getenv("MAX_OPERATOR_SESSIONS", "100"))


def get_operator_session_ttl() -> float:
    """Returns how long in seconds an idle operator session is kept"""
    return float(os.getenv("OPERATOR_SESSION_TTL_SECONDS", "3600"))
