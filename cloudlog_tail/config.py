"""
Agent configuration.

Command-line values are validated into an ``AgentConfig`` before anything is
opened or started, so bad input fails before the pipeline runs.
"""

import codecs
from pathlib import Path
from typing import Literal, Optional
from urllib.parse import urljoin, urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError, CredentialError

QSO_API_PATH = "api/qso"


class AgentConfig(BaseModel):
    base_url: str
    key_file: Path
    station_profile_id: int = Field(gt=0)
    log_file: Path
    timeout: float = Field(default=30.0, gt=0)
    retry_initial: float = Field(default=1.0, gt=0)
    retry_max: float = Field(default=300.0, gt=0)
    max_attempts: Optional[int] = Field(default=None, gt=0)
    on_rejected: Literal["skip", "halt"] = "skip"
    watch_mode: Literal["auto", "native", "poll"] = "auto"
    poll_interval: float = Field(default=1.0, gt=0)
    encoding: str = "utf-8"

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"not an http(s) URL: {value!r}")
        return value

    @field_validator("encoding")
    @classmethod
    def _check_encoding(cls, value: str) -> str:
        try:
            codecs.lookup(value)
        except LookupError:
            raise ValueError(f"unknown encoding: {value!r}")
        return value

    @property
    def api_url(self) -> str:
        return api_url(self.base_url)


def build_config(**values) -> AgentConfig:
    try:
        return AgentConfig(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from e


def api_url(base_url: str) -> str:
    """
    Build the QSO API endpoint under ``base_url``.

    Cloudlog is often installed below a path prefix, so the base is always
    treated as a directory: ``https://host/cloudlog`` and
    ``https://host/cloudlog/`` both give ``https://host/cloudlog/api/qso``.
    """
    if not base_url.endswith("/"):
        base_url += "/"
    return urljoin(base_url, QSO_API_PATH)


def read_api_key(path) -> str:
    try:
        key = Path(path).read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        raise CredentialError(f"Failed to read API key from {path}: {e}") from e
    if not key:
        raise CredentialError(f"API key file {path} is empty")
    return key
