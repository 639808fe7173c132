"""
Database configuration.

Turns the environment (DATABASE_URL or the DATABASE_* variables) into a
Django ``DATABASES['default']`` entry, and exposes a connection check
for the health endpoint.

    DATABASE_URL=postgresql://estate:secret@db:5432/estate
    DATABASE_URL=sqlite:///db.sqlite3
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict


logger = logging.getLogger(__name__)

_ENGINES = {
    "postgresql": "django.db.backends.postgresql",
    "sqlite": "django.db.backends.sqlite3",
}

_SERVER_URL = re.compile(
    r"(?P<engine>postgresql|postgres)://(?P<user>[^:]+):(?P<password>[^@]*)@"
    r"(?P<host>[^:/]+)(?::(?P<port>\d+))?/(?P<name>.+)"
)


@dataclass
class DatabaseConfig:
    """
    Engine independent connection settings.

    Attributes:
        engine: "postgresql" or "sqlite"
        name: Database name, or file path for sqlite
        conn_max_age: Persistent connection lifetime in seconds
    """

    engine: str = "postgresql"
    name: str = "estate_engagement"
    user: str = "estate"
    password: str = ""
    host: str = "localhost"
    port: int = 5432
    conn_max_age: int = 60
    connect_timeout: int = 10
    options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_url(cls, url: str) -> "DatabaseConfig":
        """
        Raises:
            ValueError: If the URL is neither sqlite nor postgres
        """
        if url.startswith("sqlite:///"):
            return cls(engine="sqlite", name=url[len("sqlite:///"):], host="", port=0)

        match = _SERVER_URL.match(url)
        if not match:
            raise ValueError(f"Unsupported database URL: {url}")
        return cls(
            engine="postgresql",
            name=match.group("name"),
            user=match.group("user"),
            password=match.group("password"),
            host=match.group("host"),
            port=int(match.group("port") or 5432),
        )

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        url = os.getenv("DATABASE_URL")
        if url:
            return cls.from_url(url)

        # SQLite unless a server is configured
        engine = os.getenv("DATABASE_ENGINE") or ("postgresql" if os.getenv("DATABASE_HOST") else "sqlite")
        if engine == "sqlite":
            return cls(engine="sqlite", name=os.getenv("DATABASE_NAME", "db.sqlite3"), host="", port=0)
        return cls(
            engine=engine,
            name=os.getenv("DATABASE_NAME", "estate_engagement"),
            user=os.getenv("DATABASE_USER", "estate"),
            password=os.getenv("DATABASE_PASSWORD", ""),
            host=os.getenv("DATABASE_HOST", "localhost"),
            port=int(os.getenv("DATABASE_PORT", "5432")),
        )

    def to_django_config(self) -> Dict[str, Any]:
        config = {
            "ENGINE": _ENGINES.get(self.engine, _ENGINES["postgresql"]),
            "NAME": self.name,
        }
        if self.engine != "sqlite":
            config.update({
                "USER": self.user,
                "PASSWORD": self.password,
                "HOST": self.host,
                "PORT": str(self.port),
                "CONN_MAX_AGE": self.conn_max_age,
                "OPTIONS": {
                    "connect_timeout": self.connect_timeout,
                    **self.options,
                },
            })
        return config


def check_database_connection() -> Dict[str, Any]:
    """
    Run ``SELECT 1`` on the default connection.

    Returns:
        {"healthy": bool, "engine": str} plus "error" when unhealthy
    """
    from django.db import connection
    from django.db.utils import DatabaseError

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError as e:
        logger.error("Database health check failed: %s", e)
        return {"healthy": False, "engine": connection.vendor, "error": str(e)}
    return {"healthy": True, "engine": connection.vendor}
