"""
Core library functionality for PostgreSQL schema migration.
"""

from pg_schema_migrate.lib.errors import (
    MigrationError,
    ConfigError,
    DatabaseConnectionError,
    ExportError,
    BackupError,
    AdminError,
    DestinationLostError,
    ApplyError,
    OutputError
)
from pg_schema_migrate.lib.models import (
    SSLMode,
    MigrationMode,
    MigrationState,
    ConnectionProfile,
    MigrationPlan,
    MigrationRun,
    BackupResult
)
from pg_schema_migrate.lib.connection import validate, validate_server
from pg_schema_migrate.lib.admin import (
    database_exists,
    drop_database_if_exists,
    create_database,
    recreate_database
)
from pg_schema_migrate.lib.pgdump import export_schema, backup_database, apply_schema
from pg_schema_migrate.lib.rollback import generate_rollback_script, generate_migration_instructions
from pg_schema_migrate.lib.migrate import SchemaMigrator, migrate

__all__ = [
    # Errors
    "MigrationError",
    "ConfigError",
    "DatabaseConnectionError",
    "ExportError",
    "BackupError",
    "AdminError",
    "DestinationLostError",
    "ApplyError",
    "OutputError",

    # Models
    "SSLMode",
    "MigrationMode",
    "MigrationState",
    "ConnectionProfile",
    "MigrationPlan",
    "MigrationRun",
    "BackupResult",

    # Connection and admin
    "validate",
    "validate_server",
    "database_exists",
    "drop_database_if_exists",
    "create_database",
    "recreate_database",

    # Client tools
    "export_schema",
    "backup_database",
    "apply_schema",

    # Generated files
    "generate_rollback_script",
    "generate_migration_instructions",

    # Orchestration
    "SchemaMigrator",
    "migrate"
]
