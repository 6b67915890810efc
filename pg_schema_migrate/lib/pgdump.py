import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Type

from pg_schema_migrate.lib.admin import database_exists
from pg_schema_migrate.lib.errors import ApplyError, BackupError, ExportError, MigrationError
from pg_schema_migrate.lib.models import BackupResult, ConnectionProfile


def pg_env(profile: ConnectionProfile) -> dict:
    """
    Environment for a pg_dump/psql child process.

    The password and SSL mode only live in the returned mapping; the parent
    process environment is never modified.
    """
    env = os.environ.copy()
    env["PGPASSWORD"] = profile.password
    env["PGSSLMODE"] = profile.ssl_mode.value
    return env


def connection_args(profile: ConnectionProfile) -> List[str]:
    return [
        "-h", profile.host,
        "-p", str(profile.port),
        "-U", profile.username,
        "-d", profile.database,
    ]


def run_tool(
    cmd: List[str],
    profile: ConnectionProfile,
    error_cls: Type[MigrationError],
    runner: Optional[Callable] = None
) -> None:
    """
    Run a PostgreSQL client tool with the profile's credentials.

    stdout and stderr are inherited so the tool's progress output reaches
    the console as it happens.

    Raises:
        error_cls: If the tool is missing, cannot be started or exits non-zero
    """
    runner = runner or subprocess.run
    try:
        result = runner(cmd, env=pg_env(profile), check=False)
    except FileNotFoundError as e:
        raise error_cls(f"{cmd[0]} is not installed or not in PATH", database=profile.database) from e
    except OSError as e:
        raise error_cls(f"could not run {cmd[0]}: {e}", database=profile.database) from e
    if result.returncode != 0:
        raise error_cls(f"{cmd[0]} exited with status {result.returncode}", database=profile.database)


def export_schema(
    profile: ConnectionProfile,
    output_path: Path,
    include_roles: bool = False,
    *,
    logger: Optional[logging.Logger] = None,
    runner: Optional[Callable] = None
) -> None:
    """
    Export the structure of the profile's database with pg_dump.

    Args:
        profile: Source database
        output_path: File the schema is written to
        include_roles: Keep GRANT/REVOKE statements in the export
        logger: Logger to report progress to
        runner: Subprocess runner, defaults to subprocess.run

    Raises:
        ExportError: If pg_dump fails
    """
    log = logger or logging.getLogger(__name__)
    log.info(f"Exporting schema from database '{profile.database}'...")

    cmd = ["pg_dump"] + connection_args(profile) + [
        "-f", str(output_path),
        "--schema-only",
        "--no-owner",
        "--no-privileges",
        "--verbose",
        "--no-password",
    ]
    if include_roles:
        cmd.remove("--no-privileges")

    run_tool(cmd, profile, ExportError, runner)
    log.info(f"Schema export completed: {output_path}")


def backup_database(
    profile: ConnectionProfile,
    backup_path: Path,
    *,
    logger: Optional[logging.Logger] = None,
    runner: Optional[Callable] = None,
    connect: Optional[Callable] = None
) -> BackupResult:
    """
    Dump the destination database, schema and data, if it exists.

    Returns:
        BackupResult with created=False when there is no database to back up

    Raises:
        BackupError: If the existence check or pg_dump fails
    """
    log = logger or logging.getLogger(__name__)

    try:
        exists = database_exists(profile, connect=connect)
    except MigrationError as e:
        raise BackupError(f"could not check destination: {e.message}", database=profile.database) from e

    if not exists:
        log.info(f"Destination database '{profile.database}' doesn't exist, skipping backup")
        return BackupResult(created=False)

    log.info(f"Creating backup of destination database '{profile.database}'...")
    cmd = ["pg_dump"] + connection_args(profile) + [
        "-f", str(backup_path),
        "--verbose",
        "--no-password",
    ]
    run_tool(cmd, profile, BackupError, runner)

    log.info(f"Backup created successfully: {backup_path}")
    return BackupResult(created=True, path=backup_path)


def apply_schema(
    profile: ConnectionProfile,
    schema_file: Path,
    *,
    logger: Optional[logging.Logger] = None,
    runner: Optional[Callable] = None
) -> None:
    """
    Load a schema file into the destination database with psql.

    ON_ERROR_STOP makes psql exit non-zero on the first failing statement.

    Raises:
        ApplyError: If psql fails; the destination is then empty and unmigrated
    """
    log = logger or logging.getLogger(__name__)
    log.info(f"Applying schema to destination database '{profile.database}'...")

    cmd = ["psql"] + connection_args(profile) + [
        "-f", str(schema_file),
        "-v", "ON_ERROR_STOP=1",
        "--no-password",
    ]
    try:
        run_tool(cmd, profile, ApplyError, runner)
    except ApplyError as e:
        raise ApplyError(
            f"{e.message}; destination was recreated empty and the schema was not applied",
            database=profile.database
        ) from e

    log.info("Schema applied successfully")
