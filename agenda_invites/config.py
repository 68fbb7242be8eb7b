from __future__ import annotations

from pathlib import Path
from typing import Any, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_DB_PATH = "./data/agenda.sqlite"


def _as_origin_list(raw: Any) -> List[str]:
    """
    CORS_ALLOW_ORIGINS accepts "*", a single origin, a comma-separated list,
    or an already-parsed list. Blank input means "*".
    """
    if raw is None:
        return ["*"]
    items = raw if isinstance(raw, list) else str(raw).split(",")
    origins = [str(x).strip() for x in items if str(x).strip()]
    return origins or ["*"]


class Settings(BaseSettings):
    """
    Service settings. Env var names (the aliases) are the public contract.

    DATABASE_URL wins over DB_PATH. PERSONNEL_REGISTRY_URL is optional; when
    empty, an active system account is enough for a participant to be invited.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    env: str = Field(default="local", alias="APP_ENV")
    app_name: str = Field(default="agenda-invitations", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # uvicorn
    host: str = Field(default="127.0.0.1", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ALLOW_ORIGINS")

    # SQLite locally, Postgres in production
    database_url: str = Field(default="", alias="DATABASE_URL")
    db_path: str = Field(default=_DEFAULT_DB_PATH, alias="DB_PATH")

    personnel_registry_url: str = Field(default="", alias="PERSONNEL_REGISTRY_URL")
    personnel_registry_timeout_s: float = Field(default=10.0, alias="PERSONNEL_REGISTRY_TIMEOUT")

    invitations_page_limit: int = Field(default=10, alias="INVITATIONS_PAGE_LIMIT")

    @field_validator("database_url", "db_path", "host", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> str:
        return ("" if v is None else str(v)).strip()

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, v: Any) -> str:
        return ("" if v is None else str(v)).strip().upper() or "INFO"

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _parse_origins(cls, v: Any) -> list[str]:
        return _as_origin_list(v)

    @field_validator("personnel_registry_url", mode="before")
    @classmethod
    def _registry_base(cls, v: Any) -> str:
        return ("" if v is None else str(v)).strip().rstrip("/")

    @field_validator("invitations_page_limit", mode="before")
    @classmethod
    def _clamp_page_limit(cls, v: Any) -> int:
        try:
            n = int(v)
        except (TypeError, ValueError):
            return 10
        return min(max(n, 1), 100)

    @property
    def is_prod(self) -> bool:
        return self.env.lower() in ("prod", "production")

    @property
    def resolved_database_url(self) -> str:
        """
        DATABASE_URL if set, else a sqlite URL built from DB_PATH
        (which may itself already be a sqlite URL).
        """
        if self.database_url:
            return self.database_url

        path = self.db_path or _DEFAULT_DB_PATH
        if path.startswith("sqlite:"):
            return path

        p = Path(path)
        if p.is_absolute():
            # sqlite:////abs/path
            return f"sqlite:////{p.as_posix().lstrip('/')}"
        return f"sqlite:///./{p.as_posix()}"


settings = Settings()
