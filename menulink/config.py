import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] %(message)s"


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    backend_url: str
    public_url: str
    admin_email: Optional[str]
    database_url: str
    request_timeout: float
    timezone: str
    support_whatsapp: str
    viewer_url: str
    currency_symbol: str
    persist_carts: bool
    log_level: str


def load_settings() -> Settings:
    return Settings(
        backend_url=os.getenv("BACKEND_URL", "http://localhost:8000").rstrip("/"),
        public_url=os.getenv("PUBLIC_URL", "menulink.in").rstrip("/"),
        admin_email=os.getenv("ADMIN_EMAIL") or None,
        database_url=os.getenv("DATABASE_URL", "sqlite:///./menulink.db"),
        request_timeout=float(os.getenv("REQUEST_TIMEOUT", "10")),
        timezone=os.getenv("TIMEZONE", "Asia/Kolkata"),
        support_whatsapp=os.getenv("SUPPORT_WHATSAPP", "918455838503"),
        viewer_url=os.getenv("VIEWER_URL", "https://docs.google.com/gview"),
        currency_symbol=os.getenv("CURRENCY_SYMBOL", "₹"),
        persist_carts=_flag("PERSIST_CARTS"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()


def init_log(log_name: str = "menulink", level: Optional[str] = None) -> logging.Logger:
    logging.basicConfig(level=level or get_settings().log_level, format=LOG_FORMAT)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return logging.getLogger(log_name)
