"""Load DB configuration from environment variables (and .env) with sane defaults."""
import os
from dataclasses import dataclass, replace

from dotenv import load_dotenv

load_dotenv()


def _port(name, default):
    value = os.getenv(name)
    return int(value) if value else default


def _clean(config):
    """Remove None values to keep connection calls happy."""
    return {k: v for k, v in config.items() if v is not None and v != ""}


def pgsql_config():
    """psycopg2 connection keys."""
    return _clean({
        "host": os.getenv("PGSQL_HOST", "localhost"),
        "port": _port("PGSQL_PORT", 5432),
        "user": os.getenv("PGSQL_USER", "postgres"),
        "password": os.getenv("PGSQL_PASSWORD", ""),
        "dbname": os.getenv("PGSQL_DBNAME", os.getenv("PGSQL_DATABASE", "")),
    })


def mariadb_config():
    """pymysql connection keys."""
    return _clean({
        "host": os.getenv("MARIADB_HOST", "localhost"),
        "port": _port("MARIADB_PORT", 3306),
        "user": os.getenv("MARIADB_USER", "root"),
        "password": os.getenv("MARIADB_PASSWORD", ""),
        "database": os.getenv("MARIADB_DBNAME", os.getenv("MARIADB_DATABASE", "")),
        "charset": os.getenv("TABLE_CHARSET", "utf8mb4"),
    })


PGSQL_CONFIG = pgsql_config()
MARIADB_CONFIG = mariadb_config()


@dataclass(frozen=True)
class MigrationSettings:
    """Run-wide settings handed to every component."""
    batch_size: int = 100
    engine: str = "InnoDB"
    charset: str = "utf8mb4"
    collation: str = "utf8mb4_unicode_ci"
    schema: str = "public"

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")

    @classmethod
    def from_env(cls, **overrides):
        settings = cls(
            batch_size=int(os.getenv("MIGRATION_BATCH_SIZE", "100")),
            engine=os.getenv("TABLE_ENGINE", "InnoDB"),
            charset=os.getenv("TABLE_CHARSET", "utf8mb4"),
            collation=os.getenv("TABLE_COLLATION", "utf8mb4_unicode_ci"),
            schema=os.getenv("PGSQL_SCHEMA", "public"),
        )
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(settings, **overrides) if overrides else settings


def masked(config):
    """Copy of a connection dict with the password hidden."""
    return {k: ("***" if k == "password" else v) for k, v in config.items()}
