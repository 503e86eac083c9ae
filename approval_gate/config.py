import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import yaml


DEFAULT_TOKEN_PATH = "/jwt/TFO_API_LOG_TOKEN"
DEFAULT_REFRESH_TOKEN_PATH = "/jwt/REFRESH_TOKEN"

POLL_INTERVAL_SECONDS = 30.0
REQUEST_TIMEOUT_SECONDS = 3.0
REFRESH_MAX_ATTEMPTS = 7
REFRESH_RETRY_DELAY_SECONDS = 15.0
WAIT_INTERVAL_SECONDS = 1.0

# env var -> key in the optional YAML file
_ENV_KEYS = {
    "TFO_API_URL": "api_url",
    "TFO_API_LOG_TOKEN": "api_log_token",
    "TFO_GENERATION_PATH": "generation_path",
    "POD_UID": "pod_uid",
    "TFO_API_TOKEN_PATH": "api_token_path",
    "TFO_API_REFRESH_TOKEN_PATH": "api_refresh_token_path",
    "TFO_API_REFRESH_ENABLED": "api_refresh_enabled",
}


class ConfigError(ValueError):
    """Raised when required gate settings are missing or unreadable."""


def _is_truthy(value) -> bool:
    return str(value).strip().lower() in ("true", "1", "yes", "on")


@dataclass(frozen=True)
class GateConfig:
    generation_path: str
    pod_uid: str
    api_url: str = ""
    api_log_token: str = ""
    token_path: str = DEFAULT_TOKEN_PATH
    refresh_token_path: str = DEFAULT_REFRESH_TOKEN_PATH
    refresh_enabled: bool = True

    @property
    def approval_status_url(self) -> str:
        return f"{self.api_url}/api/v1/task/{self.pod_uid}/approval-status"

    @property
    def refresh_url(self) -> str:
        return f"{self.api_url}/refresh"

    def skip_reason(self) -> Optional[str]:
        if not self.api_url:
            return "TFO_API_URL missing"
        if not self.api_log_token:
            return "TFO_API_LOG_TOKEN missing"
        return None


def _load_config_file(path: Path) -> dict:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    try:
        loaded = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a mapping.")
    return loaded


def _merged_settings(environ: Mapping[str, str]) -> dict:
    settings = {}
    file_path = str(environ.get("TFO_APPROVAL_CONFIG", "")).strip()
    if file_path:
        settings.update(_load_config_file(Path(file_path).expanduser()))

    for env_key, file_key in _ENV_KEYS.items():
        value = environ.get(env_key)
        if value is not None and str(value).strip():
            settings[file_key] = value
    return {key: str(value).strip() for key, value in settings.items() if value is not None}


def load_config(environ: Optional[Mapping[str, str]] = None) -> GateConfig:
    """Builds the gate config; environment values win over the YAML file."""
    if environ is None:
        environ = os.environ
    settings = _merged_settings(environ)

    generation_path = settings.get("generation_path", "")
    if not generation_path:
        raise ConfigError("TFO_GENERATION_PATH is not set")
    pod_uid = settings.get("pod_uid", "")
    if not pod_uid:
        raise ConfigError("POD_UID is not set")

    return GateConfig(
        generation_path=generation_path,
        pod_uid=pod_uid,
        api_url=settings.get("api_url", "").rstrip("/"),
        api_log_token=settings.get("api_log_token", ""),
        token_path=settings.get("api_token_path") or DEFAULT_TOKEN_PATH,
        refresh_token_path=settings.get("api_refresh_token_path") or DEFAULT_REFRESH_TOKEN_PATH,
        refresh_enabled=_is_truthy(settings.get("api_refresh_enabled", "true")),
    )
