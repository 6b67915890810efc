"""
Command-line interface for pg-schema-migrate.
"""

from .cli import main

__all__ = ["main"]
