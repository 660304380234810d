import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="SYLLABUS_DATABASE_URL")
    database_pool_size: int = Field(10, alias="SYLLABUS_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="SYLLABUS_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="SYLLABUS_DATABASE_ECHO")
    auto_create_schema: bool = Field(False, alias="SYLLABUS_AUTO_CREATE_SCHEMA")
    scheduler_enabled: bool = Field(True, alias="SYLLABUS_SCHEDULER_ENABLED")
    scheduler_timezone: str = Field("UTC", alias="SYLLABUS_SCHEDULER_TIMEZONE")
    daily_tasks_enabled: bool = Field(True, alias="SYLLABUS_DAILY_TASKS_ENABLED")
    weekly_tasks_enabled: bool = Field(True, alias="SYLLABUS_WEEKLY_TASKS_ENABLED")
    monthly_tasks_enabled: bool = Field(True, alias="SYLLABUS_MONTHLY_TASKS_ENABLED")
    days_before_deadline: int = Field(7, ge=0, alias="SYLLABUS_DAYS_BEFORE_DEADLINE")
    priority_threshold: int = Field(3, ge=1, alias="SYLLABUS_PRIORITY_THRESHOLD")
    smtp_host: Optional[str] = Field(None, alias="SYLLABUS_SMTP_HOST")
    smtp_port: int = Field(587, alias="SYLLABUS_SMTP_PORT")
    smtp_user: Optional[str] = Field(None, alias="SYLLABUS_SMTP_USER")
    smtp_password: Optional[str] = Field(None, alias="SYLLABUS_SMTP_PASSWORD")
    smtp_from: str = Field("noreply@syllabustracker.local", alias="SYLLABUS_SMTP_FROM")
    smtp_use_tls: bool = Field(True, alias="SYLLABUS_SMTP_USE_TLS")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
