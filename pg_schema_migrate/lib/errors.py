"""
Error taxonomy for schema migration runs.

Every error carries the stage it was raised in and, where known, the
database it concerns, so the operator can recover by hand.
"""

from typing import Optional


class MigrationError(Exception):
    """Base class for all migration failures."""

    stage = "migration"
    exit_code = 1
    fatal = True

    def __init__(self, message: str, *, database: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.database = database
        if stage is not None:
            self.stage = stage

    def __str__(self):
        if self.database:
            return f"[{self.stage}] {self.message} (database: {self.database})"
        return f"[{self.stage}] {self.message}"


class ConfigError(MigrationError):
    """Invalid or conflicting options, reported before any connection."""

    stage = "config"
    exit_code = 2


class DatabaseConnectionError(MigrationError):
    """Server unreachable, authentication failed, or liveness check failed."""

    stage = "connection"


class ExportError(MigrationError):
    """pg_dump failed while exporting the source schema."""

    stage = "export"


class BackupError(MigrationError):
    """Destination backup failed. Not fatal to the run."""

    stage = "backup"
    fatal = False


class AdminError(MigrationError):
    """Existence check, drop or create of the destination database failed."""

    stage = "admin"


class DestinationLostError(AdminError):
    """The destination was dropped but could not be created again."""

    stage = "recreate"


class ApplyError(MigrationError):
    """psql failed while loading the schema into the destination."""

    stage = "apply"


class OutputError(MigrationError):
    """Output directory or generated file could not be written."""

    stage = "output"
