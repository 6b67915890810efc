"""
Administrative operations on the destination database.

All statements run on a short-lived autocommit connection to the server's
administrative database, since DROP/CREATE DATABASE cannot run inside a
transaction or against the database being dropped.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Optional

import psycopg
from psycopg import sql

from pg_schema_migrate.lib.connection import connect_kwargs
from pg_schema_migrate.lib.errors import AdminError, DestinationLostError
from pg_schema_migrate.lib.models import ConnectionProfile

EXISTS_QUERY = "SELECT EXISTS(SELECT 1 FROM pg_database WHERE datname = %s)"

TERMINATE_QUERY = """
    SELECT pg_terminate_backend(pid)
    FROM pg_stat_activity
    WHERE datname = %s AND pid <> pg_backend_pid()
"""


@contextmanager
def admin_connection(profile: ConnectionProfile, connect: Optional[Callable] = None):
    """Yield an autocommit connection to the profile's administrative database."""
    connect = connect or psycopg.connect
    try:
        conn = connect(**connect_kwargs(profile.admin()), autocommit=True)
    except psycopg.Error as e:
        raise AdminError(
            f"could not connect to {profile.host}:{profile.port}: {e}",
            database=profile.database
        ) from e
    with conn:
        yield conn


def database_exists(profile: ConnectionProfile, *, connect: Optional[Callable] = None) -> bool:
    """Return True if a database named exactly profile.database exists."""
    with admin_connection(profile, connect) as conn:
        try:
            row = conn.execute(EXISTS_QUERY, (profile.database,)).fetchone()
        except psycopg.Error as e:
            raise AdminError(f"existence check failed: {e}", database=profile.database) from e
    return bool(row[0])


def drop_database_if_exists(
    profile: ConnectionProfile,
    *,
    logger: Optional[logging.Logger] = None,
    connect: Optional[Callable] = None
) -> bool:
    """
    Drop the profile's database if it exists.

    Other sessions connected to the database are terminated first. Failure
    to terminate them is only a warning; the drop itself may still succeed.

    Returns:
        True if a database was dropped, False if there was nothing to drop
    """
    log = logger or logging.getLogger(__name__)

    if not database_exists(profile, connect=connect):
        log.info(f"Destination database '{profile.database}' doesn't exist, skipping drop")
        return False

    log.info(f"Dropping existing database '{profile.database}'")
    with admin_connection(profile, connect) as conn:
        try:
            conn.execute(TERMINATE_QUERY, (profile.database,))
        except psycopg.Error as e:
            log.warning(f"Could not terminate all connections to '{profile.database}': {e}")

        try:
            conn.execute(sql.SQL("DROP DATABASE {}").format(sql.Identifier(profile.database)))
        except psycopg.Error as e:
            raise AdminError(f"drop failed: {e}", database=profile.database, stage="drop") from e

    log.info("Database dropped successfully")
    return True


def create_database(
    profile: ConnectionProfile,
    *,
    logger: Optional[logging.Logger] = None,
    connect: Optional[Callable] = None
) -> None:
    """Create the profile's database with its name quoted as an identifier."""
    log = logger or logging.getLogger(__name__)

    log.info(f"Creating destination database '{profile.database}'...")
    with admin_connection(profile, connect) as conn:
        try:
            conn.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(profile.database)))
        except psycopg.Error as e:
            raise AdminError(f"create failed: {e}", database=profile.database, stage="create") from e

    log.info("Database created successfully")


def recreate_database(
    profile: ConnectionProfile,
    *,
    logger: Optional[logging.Logger] = None,
    connect: Optional[Callable] = None
) -> None:
    """
    Drop the destination database if present, then create it empty.

    Raises:
        AdminError: If the drop fails, or the create fails with nothing dropped
        DestinationLostError: If the create fails after a successful drop
    """
    dropped = drop_database_if_exists(profile, logger=logger, connect=connect)
    try:
        create_database(profile, logger=logger, connect=connect)
    except AdminError as e:
        if dropped:
            raise DestinationLostError(
                f"database was dropped but could not be recreated; "
                f"the destination no longer exists ({e.message})",
                database=profile.database
            ) from e
        raise
