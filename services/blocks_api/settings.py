"""Configuration helpers for the Blocks API service."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    model_config = {"protected_namespaces": ()}
    app_name: str = Field(default="Blocks API")
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text")
    default_tenant_id: str = Field(default="demo-tenant")
    currency: str = Field(default="USD", min_length=3, max_length=3)
    min_recommendations: int = Field(default=5, gt=0)
    max_recommendations: int = Field(default=7, gt=0)
    min_timelines: int = Field(default=3, gt=0)
    max_timelines: int = Field(default=5, gt=0)
    timeline_days: int = Field(default=30, ge=2)
    prompt_max_chars: int = Field(default=1000, gt=0)
    max_references: int = Field(default=20, gt=0)
    stream_chunk_chars: int = Field(default=24, gt=0)
    cost_api_url: str | None = None
    cost_api_timeout_s: float = Field(default=5.0, gt=0.0)
    cors_origins: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_bounds(self) -> "Settings":
        if self.max_recommendations < self.min_recommendations:
            raise ValueError("max_recommendations must be >= min_recommendations")
        if self.max_timelines < self.min_timelines:
            raise ValueError("max_timelines must be >= min_timelines")
        if self.log_format not in {"text", "json"}:
            raise ValueError("log_format must be 'text' or 'json'")
        return self


def _coerce_float(env_name: str, default: float) -> float:
    raw = os.getenv(env_name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid float for {env_name}: {raw}") from exc


def _coerce_int(env_name: str, default: int) -> int:
    raw = os.getenv(env_name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer for {env_name}: {raw}") from exc


def _coerce_optional(env_name: str) -> str | None:
    raw = os.getenv(env_name)
    return raw if raw else None


def _coerce_list(env_name: str) -> List[str]:
    raw = os.getenv(env_name)
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "Blocks API"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_format=os.getenv("LOG_FORMAT", "text").lower(),
        default_tenant_id=os.getenv("DEFAULT_TENANT_ID", "demo-tenant"),
        currency=os.getenv("CURRENCY", "USD").upper(),
        min_recommendations=_coerce_int("MIN_RECOMMENDATIONS", 5),
        max_recommendations=_coerce_int("MAX_RECOMMENDATIONS", 7),
        min_timelines=_coerce_int("MIN_TIMELINES", 3),
        max_timelines=_coerce_int("MAX_TIMELINES", 5),
        timeline_days=_coerce_int("TIMELINE_DAYS", 30),
        prompt_max_chars=_coerce_int("PROMPT_MAX_CHARS", 1000),
        max_references=_coerce_int("MAX_REFERENCES", 20),
        stream_chunk_chars=_coerce_int("STREAM_CHUNK_CHARS", 24),
        cost_api_url=_coerce_optional("COST_API_URL"),
        cost_api_timeout_s=_coerce_float("COST_API_TIMEOUT_S", 5.0),
        cors_origins=_coerce_list("CORS_ORIGINS"),
    )
