"""Database connection management for the migration entry points."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import parse_qs, urlparse

import asyncpg

logger = logging.getLogger(__name__)

_VALID_SSL_MODES = {"disable", "prefer", "allow", "require", "verify-ca", "verify-full"}
_SSL_UPGRADE_CONNECTION_LOST = "unexpected connection_lost() call"


def _normalize_ssl_mode(value: str | None) -> str | None:
    """Normalize an SSL mode value for asyncpg or return None if unset/invalid."""
    if value is None:
        return None
    normalized = value.strip().lower()
    if not normalized:
        return None
    if normalized in _VALID_SSL_MODES:
        return normalized
    logger.warning("Ignoring invalid PostgreSQL sslmode value: %s", value)
    return None


def db_params_from_url(database_url: str) -> dict[str, str | int | None]:
    """Parse connection params from a libpq-style database URL."""
    parsed = urlparse(database_url)
    sslmode = _normalize_ssl_mode(parse_qs(parsed.query).get("sslmode", [None])[0])
    return {
        "host": parsed.hostname or "localhost",
        "port": parsed.port or 5432,
        "user": parsed.username or "postgres",
        "password": parsed.password or "",
        "database": parsed.path.lstrip("/") or "postgres",
        "ssl": sslmode,
    }


def sqlalchemy_url(database_url: str) -> str:
    """Return *database_url* in the form SQLAlchemy/Alembic expect."""
    if database_url.startswith("postgres://"):
        return "postgresql://" + database_url[len("postgres://") :]
    return database_url


def should_retry_with_ssl_disable(exc: Exception, configured_ssl: str | None) -> bool:
    """Return True when asyncpg SSL STARTTLS fallback should retry with ssl=disable."""
    return (
        configured_ssl is None
        and isinstance(exc, ConnectionError)
        and _SSL_UPGRADE_CONNECTION_LOST in str(exc)
    )


class Database:
    """Owns the single asyncpg connection a migration run works on.

    The consolidation pass is strictly sequential and runs every batch
    inside one transaction on this connection.
    """

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        params = db_params_from_url(database_url)
        self.host = str(params["host"])
        self.port = int(params["port"])
        self.user = str(params["user"])
        self.password = str(params["password"])
        self.db_name = str(params["database"])
        self.ssl = params["ssl"] if isinstance(params["ssl"], str) else None
        self.conn: asyncpg.Connection | None = None

    async def connect(self) -> asyncpg.Connection:
        """Open the connection (retrying without SSL when STARTTLS is refused)."""
        connect_kwargs: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "database": self.db_name,
        }
        if self.ssl is not None:
            connect_kwargs["ssl"] = self.ssl
        try:
            self.conn = await asyncpg.connect(**connect_kwargs)
        except Exception as exc:
            if not should_retry_with_ssl_disable(exc, self.ssl):
                raise
            retry_kwargs = dict(connect_kwargs)
            retry_kwargs["ssl"] = "disable"
            logger.info("Retrying PostgreSQL connection with ssl=disable after SSL upgrade loss")
            self.conn = await asyncpg.connect(**retry_kwargs)
        logger.info("Connected to database: %s", self.db_name)
        return self.conn

    async def close(self) -> None:
        """Close the connection."""
        if self.conn is not None:
            await self.conn.close()
            self.conn = None
            logger.info("Connection closed for: %s", self.db_name)

    async def __aenter__(self) -> asyncpg.Connection:
        return await self.connect()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
