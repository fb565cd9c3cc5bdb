from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field

DATA_DIR = Path(__file__).parent / "data"


def _env(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _env_list(name: str, default: str) -> list[str]:
    return [part.strip() for part in _env(name, default).split(",") if part.strip()]


class Settings(BaseModel):
    db_path: Path = Field(default_factory=lambda: Path(_env("BEACON_DB_PATH", str(DATA_DIR / "beacon.db"))))
    database_url_override: str = Field(default_factory=lambda: _env("BEACON_DATABASE_URL"))

    public_base_url: str = Field(default_factory=lambda: _env("BEACON_PUBLIC_BASE_URL"))
    book_call_url: str = Field(default_factory=lambda: _env("BEACON_BOOK_CALL_URL", "https://shorelinedevco.com/contact"))
    support_email: str = Field(default_factory=lambda: _env("BEACON_SUPPORT_EMAIL", "support@shorelinedevco.com"))

    resend_api_key: str = Field(default_factory=lambda: _env("RESEND_API_KEY"))
    email_from: str = Field(default_factory=lambda: _env("BEACON_EMAIL_FROM"))
    email_bcc: str = Field(default_factory=lambda: _env("BEACON_EMAIL_BCC"))

    report_source: str = Field(default_factory=lambda: _env("BEACON_REPORT_SOURCE", "stub").lower())
    cors_origins: list[str] = Field(default_factory=lambda: _env_list("BEACON_CORS_ORIGINS", "http://localhost:5173"))
    log_level: str = Field(default_factory=lambda: _env("BEACON_LOG_LEVEL", "INFO").upper())

    user_agent: str = "BeaconBot/1.0 (+https://shorelinedevco.com)"
    request_timeout_seconds: float = 15.0

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return f"sqlite+aiosqlite:///{self.db_path}"

    @property
    def email_configured(self) -> bool:
        return bool(self.resend_api_key and self.email_from)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
