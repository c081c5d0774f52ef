# assesscore/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv
from fastapi import Request

# .env лежит рядом с пакетом, а не в текущем каталоге
load_dotenv(Path(__file__).with_name(".env"))


def _default_database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url or not url.strip():
        db_path = Path(__file__).with_name("app.db")
        return f"sqlite:///{db_path}"
    return url.strip()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass
class Settings:
    """Настройки сервиса из переменных окружения."""
    database_url: str = field(default_factory=_default_database_url)
    frontend_url: str = field(default_factory=lambda: os.getenv("FRONTEND_URL", "http://localhost:3000"))
    invitation_ttl_days: int = field(default_factory=lambda: _int_env("INVITATION_TTL_DAYS", 7))

    email_host: str | None = field(default_factory=lambda: os.getenv("EMAIL_HOST"))
    email_port: int = field(default_factory=lambda: _int_env("EMAIL_PORT", 587))
    email_user: str | None = field(default_factory=lambda: os.getenv("EMAIL_USER"))
    email_password: str | None = field(default_factory=lambda: os.getenv("EMAIL_PASSWORD"))
    email_from: str | None = field(default_factory=lambda: os.getenv("EMAIL_FROM"))
    email_secure: bool = field(default_factory=lambda: os.getenv("EMAIL_SECURE", "").lower() == "true")

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    @property
    def email_configured(self) -> bool:
        return bool(self.email_host and self.email_user and self.email_password)

    @property
    def sender(self) -> str:
        return self.email_from or f'"Assessments" <{self.email_user}>'

    def invitation_link(self, token: str) -> str:
        return f"{self.frontend_url.rstrip('/')}/#/invitation/{token}"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
