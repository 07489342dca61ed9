"""
Configuration file loading
"""
import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from davcal.errors import ConfigurationError

ENV_OVERRIDES = {
    'endpoint': 'CALDAV_URL',
    'username': 'CALDAV_USERNAME',
    'password': 'CALDAV_PASSWORD',
}


@dataclass(frozen=True)
class Config:
    endpoint: str
    username: str = ''
    password: str = ''
    calendars: list[str] = field(default_factory=list)


def default_config_path() -> Path:
    config_home = os.environ.get('XDG_CONFIG_HOME') or Path.home() / '.config'
    return Path(config_home) / 'davcal' / 'davcal.json'


def load_config(path: str | Path | None = None) -> Config:
    """Load the JSON configuration, applying environment overrides.

    A missing file is accepted as long as ``CALDAV_URL`` provides the
    endpoint.

    Args:
        path: Configuration file (default: ``default_config_path()``)

    Returns:
        Resolved configuration

    Raises:
        ConfigurationError: If the file cannot be read or parsed, or no
            endpoint is configured
    """
    path = Path(path) if path else default_config_path()

    values: dict = {}
    if path.exists() or not os.environ.get(ENV_OVERRIDES['endpoint']):
        try:
            with path.open('r', encoding='utf-8') as f:
                values = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read {path}: {e}") from e
        if not isinstance(values, dict):
            raise ConfigurationError(f"{path}: configuration must be a JSON object")

    for key, variable in ENV_OVERRIDES.items():
        if os.environ.get(variable):
            values[key] = os.environ[variable]

    endpoint = values.get('endpoint')
    if not endpoint or not isinstance(endpoint, str):
        raise ConfigurationError(f"{path}: no endpoint specified")

    calendars = values.get('calendars') or []
    if not isinstance(calendars, list) or not all(isinstance(c, str) for c in calendars):
        raise ConfigurationError(f"{path}: calendars must be a list of paths")

    return Config(
        endpoint=endpoint,
        username=values.get('username') or '',
        password=values.get('password') or '',
        calendars=calendars,
    )
