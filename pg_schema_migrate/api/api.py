"""
Main FastAPI application for pg-schema-migrate.
"""

from fastapi import FastAPI
from .health import router as health_router
from .migration import router as migrate_router
from pg_schema_migrate.lib.errors import MigrationError
from .errors import not_found_handler, migration_error_handler

app = FastAPI(
    title="pg-schema-migrate API",
    description="Migrate PostgreSQL schemas (structure only) between servers",
    version="1.0.0"
)

# Register routers
app.include_router(health_router, tags=["system"])
app.include_router(migrate_router, tags=["operations"])

# Add error handlers
app.add_exception_handler(404, not_found_handler)
app.add_exception_handler(MigrationError, migration_error_handler)

# To run: uvicorn pg_schema_migrate.api:app --host 127.0.0.1 --port 8000
