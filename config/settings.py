"""
Central Configuration for Listarr
=================================
This module provides centralized configuration management: fixed upstream
constants live at module level, per-deployment settings are loaded from a
YAML file and environment variables by load_settings().
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

# ==============================================================================
# BASE DIRECTORIES
# ==============================================================================

# Project root directory
BASE_DIR = Path(__file__).parent.parent
CONFIG_DIR = BASE_DIR / 'config'
DEFAULT_CONFIG_FILE = BASE_DIR / 'config.yaml'
DEFAULT_DATA_DIR = Path('data')

LEDGER_FILE_NAME = 'announced.jsonl'

# ==============================================================================
# UPSTREAMS
# ==============================================================================

# Jikan (unofficial MyAnimeList API): 3 requests/second, 60 requests/minute
JIKAN_BASE_URL = 'https://api.jikan.moe/v4'
JIKAN_MIN_DELAY = 0.35  # seconds between requests

# MyAnimeList list export (load.json, paginated by offset)
MYANIMELIST_LIST_URL = 'https://myanimelist.net/animelist/{username}/load.json'
MYANIMELIST_PLAN_TO_WATCH = 6

# Letterboxd
LETTERBOXD_BASE_URL = 'https://letterboxd.com'
LETTERBOXD_MIN_DELAY = 0.2  # 5 requests/second max

# Id-lookup snapshots (nattadasu/animeApi)
ID_LOOKUP_MAL_URL = (
    'https://raw.githubusercontent.com/nattadasu/animeApi/refs/heads/v3/'
    'database/myanimelist_object.json'
)
ID_LOOKUP_LETTERBOXD_URL = (
    'https://raw.githubusercontent.com/nattadasu/animeApi/refs/heads/v3/'
    'database/letterboxd_object.json'
)

# ==============================================================================
# HTTP CLIENT
# ==============================================================================

HTTP_TIMEOUT = 30  # seconds
HTTP_MAX_RETRIES = 3
HTTP_RETRY_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})
HTTP_BACKOFF_BASE = 1.0  # seconds, doubled per attempt
HTTP_BACKOFF_MAX = 10.0  # seconds

HTTP_DEFAULT_HEADERS = {
    'User-Agent': (
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36'
    ),
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
}

# ==============================================================================
# DISCORD
# ==============================================================================

DISCORD_USERNAME = 'Listarr'
DISCORD_AVATAR_URL = 'https://raw.githubusercontent.com/kristianvld/listarr/refs/heads/main/assets/logo.png'
DISCORD_COLOR_ANIME = 0x2E51A2
DISCORD_COLOR_DEFAULT = 0x00E054
DISCORD_COLOR_ERROR = 0xFF0000

# ==============================================================================
# LOGGING CONFIGURATION
# ==============================================================================

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_FILE_NAME = 'listarr.log'

# ==============================================================================
# DEPLOYMENT SETTINGS
# ==============================================================================


class ConfigurationError(Exception):
    """Raised when the initial configuration cannot be constructed."""


class AppSettings(BaseModel):
    """Validated per-deployment settings."""

    letterboxd: List[str] = Field(default_factory=list)
    myanimelist: List[str] = Field(default_factory=list)
    discord_webhook: Optional[str] = None
    port: int = Field(default=3000, gt=0, lt=65536)
    refresh_interval: int = Field(default=300, gt=0)
    data_dir: Path = DEFAULT_DATA_DIR
    log_level: str = 'INFO'

    @property
    def ledger_path(self) -> Path:
        return self.data_dir / LEDGER_FILE_NAME

    @property
    def log_path(self) -> Path:
        return self.data_dir / 'logs' / LOG_FILE_NAME

    def summary(self) -> List[str]:
        """Human-readable configuration lines for startup logging."""
        return [
            f"Letterboxd users: {', '.join(self.letterboxd) or '(none)'}",
            f"MyAnimeList users: {', '.join(self.myanimelist) or '(none)'}",
            f"Discord webhook: {'configured' if self.discord_webhook else 'not configured'}",
            f"Port: {self.port}",
            f"Refresh interval: {self.refresh_interval} seconds",
            f"Data directory: {self.data_dir}",
        ]


# Environment variable -> settings field
ENV_OVERRIDES = {
    'LETTERBOXD_USERS': 'letterboxd',
    'MYANIMELIST_USERS': 'myanimelist',
    'DISCORD_WEBHOOK': 'discord_webhook',
    'PORT': 'port',
    'REFRESH_INTERVAL': 'refresh_interval',
    'DATA_DIR': 'data_dir',
    'LOG_LEVEL': 'log_level',
}

LIST_FIELDS = {'letterboxd', 'myanimelist'}

# Camel-case keys accepted in config files
FILE_KEY_ALIASES = {
    'discordWebhook': 'discord_webhook',
    'refreshInterval': 'refresh_interval',
    'dataDir': 'data_dir',
    'logLevel': 'log_level',
}


def parse_env_list(value: str) -> List[str]:
    """Split a comma- or whitespace-separated list, dropping empty items."""
    return [item for item in re.split(r'[,\s]+', value) if item.strip()]


def load_yaml_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML file

    Args:
        config_path: Path to the YAML file

    Returns:
        Dictionary containing configuration (empty for an empty file)
    """
    with open(config_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")

    return {FILE_KEY_ALIASES.get(key, key): value for key, value in data.items()}


def _env_values(environ) -> Dict[str, Any]:
    values = {}
    for env_key, field in ENV_OVERRIDES.items():
        raw = environ.get(env_key)
        if not raw:
            continue
        values[field] = parse_env_list(raw) if field in LIST_FIELDS else raw
    return values


def load_settings(config_path: Optional[Path] = None, environ=None) -> AppSettings:
    """
    Build settings from defaults, the YAML config file and the environment.

    Precedence: environment > config file > defaults.

    Args:
        config_path: Config file to read (defaults to LISTARR_CONFIG or ./config.yaml)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated AppSettings

    Raises:
        ConfigurationError: If the file is malformed or a value is invalid
    """
    environ = os.environ if environ is None else environ

    if config_path is None:
        config_path = Path(environ.get('LISTARR_CONFIG', DEFAULT_CONFIG_FILE))

    file_values: Dict[str, Any] = {}
    if config_path.exists():
        try:
            file_values = load_yaml_config(config_path)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    merged = {**file_values, **_env_values(environ)}

    try:
        return AppSettings(**merged)
    except ValidationError as e:
        details = ', '.join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Config validation error: {details}") from e


__all__ = [
    'BASE_DIR',
    'JIKAN_BASE_URL',
    'JIKAN_MIN_DELAY',
    'LETTERBOXD_BASE_URL',
    'LETTERBOXD_MIN_DELAY',
    'MYANIMELIST_LIST_URL',
    'MYANIMELIST_PLAN_TO_WATCH',
    'ID_LOOKUP_MAL_URL',
    'ID_LOOKUP_LETTERBOXD_URL',
    'HTTP_TIMEOUT',
    'HTTP_MAX_RETRIES',
    'HTTP_RETRY_STATUS_CODES',
    'LOG_FORMAT',
    'LOG_DATE_FORMAT',
    'AppSettings',
    'ConfigurationError',
    'load_settings',
    'load_yaml_config',
    'parse_env_list',
]
