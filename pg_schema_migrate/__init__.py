"""
pg-schema-migrate: PostgreSQL schema migration between servers

This package exports the schema (structure only) of a source database with
pg_dump and either applies it to a destination server, replacing the
destination database, or leaves it on disk for manual review.
"""

# Import core library functionality
from pg_schema_migrate.lib import (
    migrate,
    SchemaMigrator,
    ConnectionProfile,
    MigrationPlan,
    MigrationError
)

# Import CLI and API interfaces
from pg_schema_migrate.cli import main
from pg_schema_migrate.api import app

__version__ = "1.0.0"
__all__ = [
    # Core library exports
    "migrate",
    "SchemaMigrator",
    "ConnectionProfile",
    "MigrationPlan",
    "MigrationError",

    # Interface exports
    "main",
    "app"
]
