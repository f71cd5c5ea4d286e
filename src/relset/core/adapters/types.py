"""Database types and configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import unquote, urlsplit

from relset.core.errors import ConfigError


class DatabaseType(str, Enum):
    """Supported database types."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    DB2 = "db2"
    MYSQL = "mysql"
    ORACLE = "oracle"


_DEFAULT_PORTS = {
    DatabaseType.POSTGRESQL: 5432,
    DatabaseType.MYSQL: 3306,
    DatabaseType.DB2: 50000,
    DatabaseType.ORACLE: 1521,
}

_SCHEME_ALIASES = {
    "postgres": DatabaseType.POSTGRESQL,
    "postgresql": DatabaseType.POSTGRESQL,
    "mysql": DatabaseType.MYSQL,
    "mariadb": DatabaseType.MYSQL,
    "sqlite": DatabaseType.SQLITE,
    "db2": DatabaseType.DB2,
    "ibm_db_sa": DatabaseType.DB2,
    "oracle": DatabaseType.ORACLE,
}

# SQLAlchemy dialect+driver names, used for schema introspection
_SQLALCHEMY_DRIVERS = {
    DatabaseType.SQLITE: "sqlite",
    DatabaseType.POSTGRESQL: "postgresql+psycopg2",
    DatabaseType.MYSQL: "mysql+mysqlconnector",
    DatabaseType.DB2: "db2+ibm_db",
    DatabaseType.ORACLE: "oracle+oracledb",
}


@dataclass
class DatabaseConfig:
    """
    Configuration for one database connection.

    Different fields are used by different database types.
    """

    # Common
    db_type: DatabaseType = DatabaseType.SQLITE

    # SQLite
    path: str | None = None

    # PostgreSQL / MySQL / DB2 / Oracle
    host: str = "localhost"
    port: int = 5432
    database: str = ""
    username: str | None = None
    password: str | None = None

    # Connection pool
    pool_size: int = 5

    # Timeouts (seconds); query_timeout of 0 disables the limit
    connect_timeout: int = 10
    query_timeout: float = 30.0
    readonly: bool = False

    # Extra options (driver-specific)
    options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_url(cls, url: str) -> DatabaseConfig:
        """Parse a connection URL.

        Usage:
            DatabaseConfig.from_url("sqlite:///blog.db")
            DatabaseConfig.from_url("postgresql://app:secret@db:5432/blog")
        """
        parts = urlsplit(url)
        scheme = parts.scheme.split("+", 1)[0].lower()
        if scheme not in _SCHEME_ALIASES:
            raise ConfigError(f"Unsupported database URL scheme: {parts.scheme!r}")
        db_type = _SCHEME_ALIASES[scheme]

        if db_type is DatabaseType.SQLITE:
            # sqlite:///relative.db, sqlite:////abs/path.db, sqlite:// (memory)
            path = parts.path[1:] if parts.path.startswith("/") else parts.path
            return cls(db_type=db_type, path=path or ":memory:")

        return cls(
            db_type=db_type,
            host=parts.hostname or "localhost",
            port=parts.port or _DEFAULT_PORTS[db_type],
            database=parts.path.lstrip("/"),
            username=unquote(parts.username) if parts.username else None,
            password=unquote(parts.password) if parts.password else None,
        )

    def to_connection_string(self) -> str:
        """Generate connection string for the database type."""
        match self.db_type:
            case DatabaseType.SQLITE:
                return self.path or ":memory:"
            case DatabaseType.POSTGRESQL:
                return f"postgresql://{self.username}:{self.password}@{self.host}:{self.port}/{self.database}"
            case DatabaseType.MYSQL:
                return f"mysql://{self.username}:{self.password}@{self.host}:{self.port}/{self.database}"
            case DatabaseType.DB2:
                return (
                    f"DATABASE={self.database};"
                    f"HOSTNAME={self.host};"
                    f"PORT={self.port};"
                    f"PROTOCOL=TCPIP;"
                    f"UID={self.username or ''};"
                    f"PWD={self.password or ''};"
                )
            case DatabaseType.ORACLE:
                return f"oracle://{self.username}:{self.password}@{self.host}:{self.port}/{self.database}"
            case _:
                raise ConfigError(f"Connection string not supported for: {self.db_type}")

    def to_sqlalchemy_url(self) -> str:
        """URL understood by ``sqlalchemy.create_engine`` (credentials omitted;
        connections are supplied by the adapter)."""
        driver = _SQLALCHEMY_DRIVERS[self.db_type]
        if self.db_type is DatabaseType.SQLITE:
            return f"{driver}://"
        return f"{driver}://{self.host}:{self.port}/{self.database}"


__all__ = [
    "DatabaseType",
    "DatabaseConfig",
]
