"""Migration configuration loading and validation.

Reads an optional ``snmpmigrate.toml`` and returns a validated
:class:`MigrationConfig`. String values may reference environment variables
as ``${VAR_NAME}``.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from snmpmigrate.sql import DEFAULT_BATCH_THRESHOLD_BYTES, NEGLIGIBLE_STATEMENT_BYTES

DEFAULT_CONFIG_FILE = "snmpmigrate.toml"
DATABASE_URL_ENV_VARS = ("SNMPMIGRATE_DATABASE_URL", "DATABASE_URL")

# Pattern matching ${VAR_NAME} with alphanumeric and underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_LOG_FORMATS = ("text", "json")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Raised when migration configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from the [migration.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"


@dataclass
class MigrationConfig:
    """Settings for one consolidation run.

    ``strict_equality`` decides whether protocol version and bulk flag take
    part in deduplication; ``False`` reproduces the legacy predicate that
    never compared them.

    ``single_transaction`` wraps the whole pass in one transaction. When
    disabled, batches that ran before a failure stay committed.
    """

    database_url: str | None = None
    batch_threshold_bytes: int = DEFAULT_BATCH_THRESHOLD_BYTES
    strict_equality: bool = True
    single_transaction: bool = True
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def require_database_url(self) -> str:
        if not self.database_url:
            names = ", ".join(DATABASE_URL_ENV_VARS)
            raise ConfigError(f"No database URL configured; set migration.database_url or {names}")
        return self.database_url


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _database_url_from_env() -> str | None:
    for name in DATABASE_URL_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return None


def _parse_bool(section: dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"migration.{key} must be a boolean")
    return value


def _parse_logging(section: Any) -> LoggingConfig:
    if section is None:
        return LoggingConfig()
    if not isinstance(section, dict):
        raise ConfigError("migration.logging must be a table")
    level = str(section.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ConfigError(f"migration.logging.level must be one of {', '.join(_LOG_LEVELS)}")
    fmt = section.get("format", "text")
    if fmt not in _LOG_FORMATS:
        raise ConfigError("migration.logging.format must be 'text' or 'json'")
    return LoggingConfig(level=level, format=fmt)


def parse_config(data: dict[str, Any]) -> MigrationConfig:
    """Validate an already-parsed TOML document."""
    data = resolve_env_vars(data)
    section = data.get("migration", {})
    if not isinstance(section, dict):
        raise ConfigError("[migration] must be a table")

    database_url = section.get("database_url")
    if database_url is not None and (not isinstance(database_url, str) or not database_url):
        raise ConfigError("migration.database_url must be a non-empty string when set")

    threshold = section.get("batch_threshold_bytes", DEFAULT_BATCH_THRESHOLD_BYTES)
    if isinstance(threshold, bool) or not isinstance(threshold, int):
        raise ConfigError("migration.batch_threshold_bytes must be an integer")
    if threshold <= NEGLIGIBLE_STATEMENT_BYTES:
        raise ConfigError(
            f"migration.batch_threshold_bytes must be greater than {NEGLIGIBLE_STATEMENT_BYTES}"
        )

    return MigrationConfig(
        database_url=database_url or _database_url_from_env(),
        batch_threshold_bytes=threshold,
        strict_equality=_parse_bool(section, "strict_equality", True),
        single_transaction=_parse_bool(section, "single_transaction", True),
        logging=_parse_logging(section.get("logging")),
    )


def load_config(path: Path | None = None) -> MigrationConfig:
    """Load configuration from *path*, or from ``./snmpmigrate.toml`` if present.

    A missing default file yields the defaults (plus the database URL from
    the environment); a missing explicit *path* is an error.
    """
    if path is None:
        path = Path(DEFAULT_CONFIG_FILE)
        if not path.exists():
            return parse_config({})
    elif not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    return parse_config(data)
