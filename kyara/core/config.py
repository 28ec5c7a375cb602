from __future__ import annotations

import json
import os
from functools import lru_cache
from typing import Any, Literal

from pydantic import AnyUrl, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_csv_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return []
        if raw.startswith("[") and raw.endswith("]"):
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, list):
                    return [str(v).strip() for v in parsed if str(v).strip()]
            except ValueError:
                pass
        parts = [p.strip() for p in raw.split(",")]
        return [p for p in parts if p]
    return [str(value).strip()]


class BaseAppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: Literal["dev", "prod"] = Field(default="dev", validation_alias="APP_ENV")
    app_name: str = Field(default="kyara-selection-engine", validation_alias="APP_NAME")
    api_v1_prefix: str = Field(default="/v1", validation_alias="API_V1_PREFIX")

    host: str = Field(default="127.0.0.1", validation_alias="HOST")
    port: int = Field(default=8000, validation_alias="PORT")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(default=True, validation_alias="LOG_JSON")

    docs_enabled: bool = Field(default=True, validation_alias="DOCS_ENABLED")

    cors_allow_origins: list[str] = Field(default_factory=list, validation_alias="CORS_ALLOW_ORIGINS")
    cors_allow_methods: list[str] = Field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        validation_alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default_factory=lambda: ["Content-Type", "Accept", "Accept-Language", "X-Request-ID", "X-Locale"],
        validation_alias="CORS_ALLOW_HEADERS",
    )

    default_locale: Literal["es", "en"] = Field(default="es", validation_alias="DEFAULT_LOCALE")
    locale_header: str = Field(default="X-Locale", validation_alias="LOCALE_HEADER")

    postgres_dsn: SecretStr = Field(..., validation_alias="POSTGRES_DSN")
    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=5, validation_alias="DB_MAX_OVERFLOW")
    db_pool_timeout_seconds: int = Field(default=30, validation_alias="DB_POOL_TIMEOUT_SECONDS")
    document_store_timeout_seconds: float = Field(default=5.0, validation_alias="DOCUMENT_STORE_TIMEOUT_SECONDS")

    redis_dsn: SecretStr = Field(..., validation_alias="REDIS_DSN")
    redis_connect_timeout_seconds: float = Field(default=2.0, validation_alias="REDIS_CONNECT_TIMEOUT_SECONDS")
    redis_operation_timeout_seconds: float = Field(default=1.0, validation_alias="REDIS_OPERATION_TIMEOUT_SECONDS")
    durable_store_timeout_seconds: float = Field(default=2.0, validation_alias="DURABLE_STORE_TIMEOUT_SECONDS")
    durable_key_prefix: str = Field(default="kyara:", validation_alias="DURABLE_KEY_PREFIX")

    selection_ids_key: str = Field(default="@SelectedCharacterIDs_v3", validation_alias="SELECTION_IDS_KEY")
    anime_cache_key: str = Field(default="@CachedAnimesData_v3", validation_alias="ANIME_CACHE_KEY")

    jikan_base_url: AnyUrl = Field(default="https://api.jikan.moe/v4", validation_alias="JIKAN_BASE_URL")
    metadata_timeout_seconds: float = Field(default=10.0, validation_alias="METADATA_TIMEOUT_SECONDS")
    main_character_role: str = Field(default="Main", validation_alias="MAIN_CHARACTER_ROLE")
    placeholder_anime_title: str = Field(default="Anime", validation_alias="PLACEHOLDER_ANIME_TITLE")

    initial_user_id: str | None = Field(default=None, validation_alias="INITIAL_USER_ID")

    @field_validator(
        "cors_allow_origins",
        "cors_allow_methods",
        "cors_allow_headers",
        mode="before",
    )
    @classmethod
    def _validate_csv_lists(cls, v: Any) -> list[str]:
        return _parse_csv_list(v)

    @field_validator("initial_user_id", mode="before")
    @classmethod
    def _blank_user_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def _validate_ranges(self) -> "BaseAppSettings":
        if self.metadata_timeout_seconds <= 0:
            raise ValueError("METADATA_TIMEOUT_SECONDS must be positive")
        if self.document_store_timeout_seconds <= 0:
            raise ValueError("DOCUMENT_STORE_TIMEOUT_SECONDS must be positive")
        if self.durable_store_timeout_seconds <= 0:
            raise ValueError("DURABLE_STORE_TIMEOUT_SECONDS must be positive")
        if self.redis_operation_timeout_seconds <= 0 or self.redis_connect_timeout_seconds <= 0:
            raise ValueError("redis timeout values must be positive")
        if self.selection_ids_key == self.anime_cache_key:
            raise ValueError("SELECTION_IDS_KEY and ANIME_CACHE_KEY must differ")
        if not self.main_character_role.strip():
            raise ValueError("MAIN_CHARACTER_ROLE must not be blank")
        if not self.placeholder_anime_title.strip():
            raise ValueError("PLACEHOLDER_ANIME_TITLE must not be blank")
        return self

    def postgres_dsn_plain(self) -> str:
        return self.postgres_dsn.get_secret_value()

    def redis_dsn_plain(self) -> str:
        return self.redis_dsn.get_secret_value()


class DevSettings(BaseAppSettings):
    docs_enabled: bool = Field(default=True, validation_alias="DOCS_ENABLED")


class ProdSettings(BaseAppSettings):
    docs_enabled: bool = Field(default=False, validation_alias="DOCS_ENABLED")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    cors_allow_origins: list[str] = Field(default_factory=list, validation_alias="CORS_ALLOW_ORIGINS")


Settings = BaseAppSettings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    env = (os.getenv("APP_ENV") or "dev").strip().lower()
    if env == "prod":
        return ProdSettings()
    return DevSettings()
