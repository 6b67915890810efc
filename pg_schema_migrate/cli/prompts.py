"""
Operator input used while building the configuration.

The orchestrator never prompts; everything interactive happens here,
before a run starts.
"""

import getpass
from typing import Protocol

from pg_schema_migrate.lib.errors import ConfigError


class OperatorInput(Protocol):
    """Source of answers the tool cannot take from flags."""

    def password(self, prompt: str) -> str:
        ...

    def choose_dest_db(self, source_db: str) -> str:
        ...


class TerminalInput:
    """Ask the operator on the controlling terminal."""

    def password(self, prompt: str) -> str:
        return getpass.getpass(prompt)

    def choose_dest_db(self, source_db: str) -> str:
        print("\nDestination database options:")
        print(f"1. Use same name as source ({source_db})")
        print("2. Use different name")
        choice = input("Choose option (1 or 2): ").strip()

        if choice == "1":
            return source_db
        if choice == "2":
            name = input("Enter destination database name: ").strip()
            if not name:
                raise ConfigError("destination database name cannot be empty")
            return name
        raise ConfigError(f"invalid choice: {choice}")
