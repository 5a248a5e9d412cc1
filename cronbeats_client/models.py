import os
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_BASE_URL = "https://cronbeats.io"
DEFAULT_USER_AGENT = "cronbeats-python-sdk/0.1.0"


class ErrorCode(str, Enum):
    validation = "VALIDATION_ERROR"
    not_found = "NOT_FOUND"
    rate_limited = "RATE_LIMITED"
    server = "SERVER_ERROR"
    network = "NETWORK_ERROR"
    unknown = "UNKNOWN_ERROR"


class ClientConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_url: str = DEFAULT_BASE_URL
    timeout_ms: int = Field(default=5000, gt=0)
    max_retries: int = Field(default=2, ge=0)
    retry_backoff_ms: int = Field(default=250, ge=0)
    retry_jitter_ms: int = Field(default=100, ge=0)
    user_agent: str = DEFAULT_USER_AGENT

    @field_validator("base_url")
    @classmethod
    def _trim_base_url(cls, value: str) -> str:
        if not value.strip():
            return DEFAULT_BASE_URL
        return value.rstrip("/")

    @field_validator("user_agent")
    @classmethod
    def _default_user_agent(cls, value: str) -> str:
        return value if value.strip() else DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build a config from CRONBEATS_* environment variables, keeping defaults for unset ones"""
        env_fields = {
            "base_url": "CRONBEATS_BASE_URL",
            "timeout_ms": "CRONBEATS_TIMEOUT_MS",
            "max_retries": "CRONBEATS_MAX_RETRIES",
            "retry_backoff_ms": "CRONBEATS_RETRY_BACKOFF_MS",
            "retry_jitter_ms": "CRONBEATS_RETRY_JITTER_MS",
            "user_agent": "CRONBEATS_USER_AGENT",
        }
        values = {
            field: os.environ[var] for field, var in env_fields.items() if var in os.environ
        }
        return cls(**values)


class ProgressOptions(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    seq: Optional[int] = None
    message: str = ""


class PingResult(BaseModel):
    ok: bool = True
    action: str
    job_key: str
    timestamp: str = ""
    processing_time_ms: float = 0.0
    next_expected: Optional[str] = None
    raw: Dict[str, Any]


class TransportResponse(BaseModel):
    status: int
    body: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)
