"""
Typed configuration for the Courseven client core.

Values come from an optional YAML file and are overridden by ``ROBLE_*``
environment variables so deployments can keep secrets out of the file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

DEFAULT_AUTH_URL = "https://roble-api.openlab.uninorte.edu.co/auth"
DEFAULT_DATABASE_URL = "https://roble-api.openlab.uninorte.edu.co/database"
DEFAULT_DB_NAME = "courseven_66a52df881"
DATABASE_SEGMENT = "/database"

ENV_OVERRIDES: Dict[str, str] = {
    "ROBLE_AUTH_BASE_URL": "auth_base_url",
    "ROBLE_DB_BASE_URL": "database_base_url",
    "ROBLE_DB_NAME": "database_name",
    "ROBLE_READONLY_EMAIL": "readonly_email",
    "ROBLE_READONLY_PASSWORD": "readonly_password",
    "ROBLE_TIMEOUT": "timeout",
}


def normalise_database_url(value: str) -> str:
    """Return ``value`` trimmed so that it ends exactly at ``/database``."""
    trimmed = value.strip().rstrip("/")
    if trimmed.endswith(DATABASE_SEGMENT):
        return trimmed
    if DATABASE_SEGMENT in trimmed:
        return trimmed[: trimmed.index(DATABASE_SEGMENT) + len(DATABASE_SEGMENT)]
    return f"{trimmed}{DATABASE_SEGMENT}"


class RobleConfig(BaseModel):
    """Connection info for the Roble auth and database APIs."""

    model_config = ConfigDict(frozen=True)

    auth_base_url: str = DEFAULT_AUTH_URL
    database_base_url: str = DEFAULT_DATABASE_URL
    database_name: str = DEFAULT_DB_NAME
    readonly_email: Optional[str] = None
    readonly_password: Optional[str] = None
    timeout: float = Field(default=20.0, gt=0.0, le=120.0)

    @field_validator("auth_base_url", mode="before")
    @classmethod
    def strip_auth_url(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value

    @field_validator("database_base_url", mode="before")
    @classmethod
    def normalise_db_url(cls, value: Any) -> Any:
        if isinstance(value, str):
            return normalise_database_url(value)
        return value

    @field_validator("database_name")
    @classmethod
    def require_database_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Roble database name is required")
        return value

    @property
    def database_fallback_base(self) -> str:
        """Database URL without the ``/database`` segment, used on 404 retries."""
        if self.database_base_url.endswith(DATABASE_SEGMENT):
            return self.database_base_url[: -len(DATABASE_SEGMENT)]
        return self.database_base_url

    @property
    def has_readonly_credentials(self) -> bool:
        return bool(self.readonly_email and self.readonly_password)


class RefreshConfig(BaseModel):
    """TTL windows (milliseconds) used by the refresh coordinator."""

    home_ttl_ms: int = Field(default=45_000, ge=0)
    home_poll_interval_ms: int = Field(default=60_000, gt=0)
    student_activities_ttl_ms: int = Field(default=60_000, ge=0)
    temp_token_ttl_ms: int = Field(default=5 * 60 * 1000, ge=0)


class SessionConfig(BaseModel):
    """Where the signed-in session is persisted between runs."""

    path: Path = Field(default=Path("~/.courseven/session.json"))

    @field_validator("path", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Path:
        return Path(value).expanduser()


class ClientConfig(BaseModel):
    """Top-level configuration for a client instance."""

    roble: RobleConfig = Field(default_factory=RobleConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    audit_log: Optional[Path] = None
    max_courses_per_teacher: int = Field(default=3, ge=1)

    @model_validator(mode="before")
    @classmethod
    def coerce_flat_roble_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        payload = dict(data)
        # Accept the flat layout used by early config files (roble keys at the root).
        flat = {key: payload.pop(key) for key in list(payload) if key in RobleConfig.model_fields}
        if flat:
            roble = dict(payload.get("roble") or {})
            for key, value in flat.items():
                roble.setdefault(key, value)
            payload["roble"] = roble
        return payload


def read_yaml_file(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return a dictionary."""
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at root of {path}, received {type(data)}")
    return data


def apply_env_overrides(data: Dict[str, Any], environ: Mapping[str, str] | None = None) -> Dict[str, Any]:
    """Return a copy of ``data`` with ``ROBLE_*`` environment values applied."""
    env = os.environ if environ is None else environ
    payload = dict(data)
    roble = dict(payload.get("roble") or {})
    for env_key, field_name in ENV_OVERRIDES.items():
        value = env.get(env_key)
        if value is not None and value.strip():
            roble[field_name] = value.strip()
    if roble:
        payload["roble"] = roble
    session_path = env.get("COURSEVEN_SESSION_PATH")
    if session_path:
        session = dict(payload.get("session") or {})
        session["path"] = session_path
        payload["session"] = session
    audit_path = env.get("COURSEVEN_AUDIT_LOG")
    if audit_path:
        payload["audit_log"] = audit_path
    return payload


def load_client_config(
    path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> ClientConfig:
    """Build a :class:`ClientConfig` from an optional YAML file plus the environment."""
    data: Dict[str, Any] = {}
    source = "environment"
    if path is not None:
        path = path.expanduser().resolve()
        data = read_yaml_file(path)
        source = str(path)
    data = apply_env_overrides(data, environ)
    try:
        return ClientConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid client config in {source}") from exc


__all__ = [
    "ClientConfig",
    "RefreshConfig",
    "RobleConfig",
    "SessionConfig",
    "apply_env_overrides",
    "load_client_config",
    "normalise_database_url",
    "read_yaml_file",
]
