"""
Custom error handlers for the API.
"""

from fastapi import Request
from fastapi.responses import JSONResponse

from pg_schema_migrate.lib.errors import ConfigError, MigrationError


async def not_found_handler(request: Request, exc):
    """Handle 404 errors"""
    return JSONResponse(
        status_code=404,
        content={"error": "Endpoint not found", "path": str(request.url.path)}
    )


async def migration_error_handler(request: Request, exc: MigrationError):
    """Report a failed run with the stage and database it failed on"""
    status_code = 400 if isinstance(exc, ConfigError) else 500
    return JSONResponse(
        status_code=status_code,
        content={
            "error": "Invalid configuration" if status_code == 400 else "Migration failed",
            "stage": exc.stage,
            "database": exc.database,
            "detail": exc.message,
        }
    )
