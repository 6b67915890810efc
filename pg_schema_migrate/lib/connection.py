import logging
from typing import Callable, Optional

import psycopg

from pg_schema_migrate.lib.errors import DatabaseConnectionError
from pg_schema_migrate.lib.models import ConnectionProfile

CONNECT_TIMEOUT = 10


def connect_kwargs(profile: ConnectionProfile) -> dict:
    """Keyword arguments for psycopg.connect built from a profile."""
    return {
        "host": profile.host,
        "port": profile.port,
        "user": profile.username,
        "password": profile.password,
        "dbname": profile.database,
        "sslmode": profile.ssl_mode.value,
        "connect_timeout": CONNECT_TIMEOUT,
    }


def validate(
    profile: ConnectionProfile,
    *,
    label: str = "source",
    logger: Optional[logging.Logger] = None,
    connect: Optional[Callable] = None
) -> None:
    """
    Check that a database is reachable with the profile's credentials.

    Opens a connection, runs a trivial query and closes it again.

    Args:
        profile: Server and database to check
        label: Name of the side being checked, used in messages
        logger: Logger to report progress to
        connect: Connection factory, defaults to psycopg.connect

    Raises:
        DatabaseConnectionError: If the connection or the query fails
    """
    log = logger or logging.getLogger(__name__)
    connect = connect or psycopg.connect

    log.info(f"Validating {label} database connection ({profile.describe()})...")
    try:
        with connect(**connect_kwargs(profile)) as conn:
            conn.execute("SELECT 1").fetchone()
    except psycopg.Error as e:
        raise DatabaseConnectionError(
            f"{label} connection to {profile.host}:{profile.port} failed: {e}",
            database=profile.database
        ) from e
    log.info(f"{label.capitalize()} database connection successful")


def validate_server(
    profile: ConnectionProfile,
    *,
    label: str = "destination",
    logger: Optional[logging.Logger] = None,
    connect: Optional[Callable] = None
) -> None:
    """Check server reachability through the administrative database.

    The target database itself may not exist yet.
    """
    validate(profile.admin(), label=label, logger=logger, connect=connect)
