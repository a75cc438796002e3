from __future__ import annotations

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic import Field, PostgresDsn, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _build_postgres_dsn(
    *,
    host: str,
    port: int,
    name: str,
    user: str,
    password: str,
    ssl_mode: str,
) -> str:
    encoded_user = quote_plus(user)
    encoded_password = quote_plus(password) if password else ""
    auth = f"{encoded_user}:{encoded_password}" if encoded_password else encoded_user
    dsn = f"postgresql://{auth}@{host}:{port}/{name}"
    if ssl_mode:
        dsn = f"{dsn}?sslmode={quote_plus(ssl_mode)}"
    return dsn


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    frontend_origins: str = Field(
        default="http://localhost:3000",
        validation_alias="FRONTEND_ORIGINS",
    )

    db_host: str = Field(default="localhost", validation_alias="DB_HOST")
    db_port: int = Field(default=5432, validation_alias="DB_PORT")
    db_name: str = Field(default="mediatext_dev", validation_alias="DB_NAME")
    db_user: str = Field(default="mediatext", validation_alias="DB_USER")
    db_password: str = Field(default="mediatext", validation_alias="DB_PASSWORD")
    db_ssl_mode: str = Field(default="prefer", validation_alias="DB_SSL_MODE")

    database_url: PostgresDsn | None = Field(default=None, validation_alias="DATABASE_URL")

    media_storage_path: str = Field(default="./uploads", validation_alias="MEDIA_STORAGE_PATH")
    media_max_upload_bytes: int = Field(
        default=25 * 1024 * 1024,
        ge=1,
        validation_alias="MEDIA_MAX_UPLOAD_BYTES",
    )
    media_extraction_workers: int = Field(default=4, ge=1, validation_alias="MEDIA_EXTRACTION_WORKERS")
    media_extraction_queue_size: int = Field(
        default=100,
        ge=1,
        validation_alias="MEDIA_EXTRACTION_QUEUE_SIZE",
    )
    media_http_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        validation_alias="MEDIA_HTTP_TIMEOUT_SECONDS",
    )
    media_stale_processing_seconds: int = Field(
        default=1800,
        ge=0,
        validation_alias="MEDIA_STALE_PROCESSING_SECONDS",
    )
    media_stale_sweep_interval_seconds: int = Field(
        default=300,
        validation_alias="MEDIA_STALE_SWEEP_INTERVAL_SECONDS",
    )

    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="https://api.openai.com/v1", validation_alias="OPENAI_BASE_URL")
    openai_transcription_model: str = Field(
        default="whisper-1",
        validation_alias="OPENAI_TRANSCRIPTION_MODEL",
    )
    transcription_language: str = Field(default="de", validation_alias="TRANSCRIPTION_LANGUAGE")

    google_vision_api_key: str = Field(default="", validation_alias="GOOGLE_VISION_API_KEY")
    google_vision_base_url: str = Field(
        default="https://vision.googleapis.com/v1",
        validation_alias="GOOGLE_VISION_BASE_URL",
    )
    document_language_hints: str = Field(default="de,en", validation_alias="DOCUMENT_LANGUAGE_HINTS")

    @computed_field
    @property
    def database_dsn(self) -> str:
        if self.database_url is not None:
            return str(self.database_url)
        return _build_postgres_dsn(
            host=self.db_host,
            port=self.db_port,
            name=self.db_name,
            user=self.db_user,
            password=self.db_password,
            ssl_mode=self.db_ssl_mode,
        )

    @property
    def frontend_origin_list(self) -> list[str]:
        return _split_csv(self.frontend_origins)

    @property
    def document_language_hint_list(self) -> list[str]:
        return _split_csv(self.document_language_hints)


@lru_cache
def get_settings() -> Settings:
    return Settings()
