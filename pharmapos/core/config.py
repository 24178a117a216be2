# pharmapos/core/config.py
import os
from decimal import Decimal
from typing import List
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class Settings(BaseModel):
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "PharmaPOS")
    API_V1_STR: str = os.getenv("API_V1_STR", "/api")

    # CORS (env takes priority)
    BACKEND_CORS_ORIGINS: List[str] = _split_csv(
        os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ))

    # ---------- Database ----------
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./pharmapos.db")
    DB_ECHO: bool = _flag("DB_ECHO")
    # SQLite busy timeout / lock wait cap; a checkout never waits longer on a hot batch
    DB_LOCK_TIMEOUT_SECONDS: float = float(
        os.getenv("DB_LOCK_TIMEOUT_SECONDS", "30"))

    # ---------- Security ----------
    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-this")
    JWT_ALG: str = os.getenv("JWT_ALG", "HS256")

    # ---------- Billing ----------
    VAT_RATE: Decimal = Decimal(os.getenv("VAT_RATE", "13"))
    INVOICE_PREFIX: str = os.getenv("INVOICE_PREFIX", "INV")
    CHECKOUT_MAX_ATTEMPTS: int = int(os.getenv("CHECKOUT_MAX_ATTEMPTS", "3"))
    RETRY_BACKOFF_SECONDS: float = float(
        os.getenv("RETRY_BACKOFF_SECONDS", "0.05"))

    # ---------- Inventory ----------
    EXPIRY_ALERT_DAYS: int = int(os.getenv("EXPIRY_ALERT_DAYS", "90"))

    # ---------- Logging ----------
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR: str = os.getenv("LOG_DIR", "./.logs")


settings = Settings()
