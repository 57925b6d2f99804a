"""Config loader with environment variable support."""
import os
import re
from dataclasses import dataclass
from pathlib import Path

import yaml

from facecheck.exceptions import ConfigError

DEFAULT_BASE_URL = "https://facecheck.id"
DEFAULT_CONFIG_PATH = "~/.facecheck/config.yaml"
TOKEN_ENV = "FACECHECK_API_TOKEN"
CONFIG_ENV = "FACECHECK_CONFIG"
CONFIG_SECTIONS = ("api", "search", "thumbnails")


@dataclass(frozen=True)
class Settings:
    """Resolved settings passed to the API client."""
    token: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 60.0
    demo: bool = False
    thumb_prefix: str = "thumb"


def _resolve_env_vars(value):
    """Resolve ${VAR:-default} patterns in config values."""
    if isinstance(value, str):
        pattern = r'\$\{(\w+)(?::-([^}]*))?\}'
        def replacer(match):
            var_name = match.group(1)
            default = match.group(2) or ""
            return os.environ.get(var_name, default)
        return re.sub(pattern, replacer, value)
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def default_config_path() -> Path:
    return Path(os.environ.get(CONFIG_ENV) or DEFAULT_CONFIG_PATH).expanduser()


def load_config(path: str | Path | None = None) -> dict:
    """Load configuration from YAML file.

    A missing file yields an empty config. A file holding a bare scalar is
    read as the API token.
    """
    config_path = Path(path).expanduser() if path else default_config_path()
    if not config_path.exists():
        return {}

    try:
        with open(config_path, encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

    if raw_config is None:
        return {}
    if isinstance(raw_config, (str, int)):
        raw_config = {"api": {"token": str(raw_config)}}
    if not isinstance(raw_config, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")
    for section in CONFIG_SECTIONS:
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(f"Config section '{section}' in {config_path} must be a mapping")
    return _resolve_env_vars(raw_config)


def resolve_token(option: str | None, config: dict) -> str:
    """Pick the token: explicit option, then environment, then config file."""
    for candidate in (option, os.environ.get(TOKEN_ENV), (config.get("api") or {}).get("token")):
        if candidate and str(candidate).strip():
            return str(candidate).strip()
    raise ConfigError(
        f"API token missing. Use --token, set {TOKEN_ENV} "
        f"or add api.token to {default_config_path()}."
    )


def build_settings(token: str | None = None, config_path: str | Path | None = None) -> Settings:
    """Build settings once at startup."""
    cfg = load_config(config_path)
    api = cfg.get("api") or {}
    try:
        timeout = float(api.get("timeout") or 60)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid api.timeout: {api.get('timeout')!r}") from e

    return Settings(
        token=resolve_token(token, cfg),
        base_url=(api.get("base_url") or DEFAULT_BASE_URL).rstrip("/"),
        timeout=timeout,
        demo=bool((cfg.get("search") or {}).get("demo", False)),
        thumb_prefix=(cfg.get("thumbnails") or {}).get("prefix") or "thumb",
    )
