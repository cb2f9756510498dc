"""Client settings loader."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from sgoclient.utils.env import get_float_env, get_str_env


class ReportSettings(BaseModel):
    """Polling cadence for asynchronous report jobs."""

    poll_interval_seconds: float = Field(default=1.0, gt=0)
    backoff_factor: float = Field(default=1.5, ge=1.0)
    max_interval_seconds: float = Field(default=5.0, gt=0)
    max_wait_seconds: float = Field(default=60.0, gt=0)


class ClientSettings(BaseModel):
    host: str
    login: str
    password: str
    ttslogin: str = ""  # appended verbatim to the login form
    session_margin_seconds: float = Field(default=1.0, ge=0)
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    user_agent: Optional[str] = None
    report: ReportSettings = Field(default_factory=ReportSettings)

    @classmethod
    def from_file(cls, path: Path) -> "ClientSettings":
        data = yaml.safe_load(path.read_text())
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid client settings: {exc}") from exc

    @classmethod
    def from_env(cls, prefix: str = "SGO_") -> "ClientSettings":
        """Build settings from ``<prefix>HOST``, ``<prefix>LOGIN`` and friends."""
        data = {
            "host": get_str_env(f"{prefix}HOST"),
            "login": get_str_env(f"{prefix}LOGIN"),
            "password": get_str_env(f"{prefix}PASSWORD"),
            "ttslogin": get_str_env(f"{prefix}TTSLOGIN", default=""),
        }
        for field, name in (
            ("session_margin_seconds", "SESSION_MARGIN"),
            ("request_timeout_seconds", "REQUEST_TIMEOUT"),
        ):
            value = get_float_env(f"{prefix}{name}")
            if value is not None:
                data[field] = value
        report = {}
        for field, name in (
            ("poll_interval_seconds", "REPORT_POLL_INTERVAL"),
            ("max_wait_seconds", "REPORT_MAX_WAIT"),
        ):
            value = get_float_env(f"{prefix}{name}")
            if value is not None:
                report[field] = value
        if report:
            data["report"] = report
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid client settings from environment: {exc}") from exc
