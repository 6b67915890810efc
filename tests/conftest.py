import subprocess
from datetime import datetime, timedelta
from pathlib import Path

import psycopg
import pytest
from psycopg import sql

from pg_schema_migrate.lib.admin import EXISTS_QUERY, TERMINATE_QUERY
from pg_schema_migrate.lib.models import ConnectionProfile, MigrationPlan


class FakeCursor:
    def __init__(self, row=None):
        self.row = row

    def fetchone(self):
        return self.row


class FakeConnection:
    """Stands in for a psycopg connection to one database on a FakeServer."""

    def __init__(self, server, kwargs):
        self.server = server
        self.kwargs = kwargs
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True
        return False

    def execute(self, query, params=None):
        server = self.server
        if query == "SELECT 1":
            return FakeCursor((1,))
        if query == EXISTS_QUERY:
            return FakeCursor((params[0] in server.databases,))
        if query == TERMINATE_QUERY:
            server.events.append(("terminate", params[0]))
            if server.fail_terminate:
                raise psycopg.OperationalError("permission denied to terminate process")
            return FakeCursor()

        head, ident = list(query)
        name = server.name_of(ident)
        if head == sql.SQL("DROP DATABASE "):
            if server.fail_drop:
                raise psycopg.OperationalError("database is being accessed by other users")
            server.events.append(("drop", name))
            server.databases.discard(name)
            server.schemas.pop(name, None)
        elif head == sql.SQL("CREATE DATABASE "):
            if server.fail_create:
                raise psycopg.OperationalError("permission denied to create database")
            server.events.append(("create", name))
            server.databases.add(name)
            server.schemas[name] = None
        else:
            raise AssertionError(f"unexpected statement: {query!r}")
        return FakeCursor()


class FakeServer:
    """
    In-memory PostgreSQL server for one test.

    Tracks which databases exist, which schema each was loaded with and the
    order of destructive events, shared with FakeRunner.
    """

    def __init__(self, databases=(), known_names=()):
        self.databases = set(databases)
        self.known_names = set(known_names) | self.databases
        self.schemas = {name: "existing" for name in databases}
        self.events = []
        self.connections = []
        self.unreachable = set()
        self.fail_terminate = False
        self.fail_drop = False
        self.fail_create = False

    def add_database(self, name, schema="existing"):
        self.databases.add(name)
        self.known_names.add(name)
        self.schemas[name] = schema

    def name_of(self, ident):
        for name in self.known_names:
            if ident == sql.Identifier(name):
                return name
        raise AssertionError(f"unknown identifier {ident!r}")

    def connect(self, **kwargs):
        if kwargs["dbname"] in self.unreachable or kwargs["host"] in self.unreachable:
            raise psycopg.OperationalError(f"could not connect to server: {kwargs['host']}")
        if kwargs["dbname"] not in self.databases:
            raise psycopg.OperationalError(f"database \"{kwargs['dbname']}\" does not exist")
        conn = FakeConnection(self, kwargs)
        self.connections.append(conn)
        return conn


class FakeRunner:
    """Stands in for subprocess.run when invoking pg_dump and psql."""

    def __init__(self, server):
        self.server = server
        self.calls = []
        self.returncodes = {}
        self.missing = set()
        self.source_schema = "-- schema of source\nCREATE TABLE orders (id integer);\n"

    def __call__(self, cmd, env=None, check=False):
        self.calls.append((list(cmd), env))
        tool = cmd[0]
        if tool in self.missing:
            raise FileNotFoundError(tool)
        code = self.returncodes.get(tool, 0)
        dbname = cmd[cmd.index("-d") + 1]
        target = Path(cmd[cmd.index("-f") + 1])

        if tool == "pg_dump":
            self.server.events.append(("pg_dump", dbname))
            if code == 0:
                if "--schema-only" in cmd:
                    target.write_text(self.source_schema)
                else:
                    target.write_text(f"-- full backup of {dbname}\n")
        elif tool == "psql":
            self.server.events.append(("apply", dbname))
            if code == 0:
                self.server.schemas[dbname] = target.read_text()
        return subprocess.CompletedProcess(cmd, code)

    def commands(self, tool):
        return [cmd for cmd, _ in self.calls if cmd[0] == tool]


class Clock:
    """Returns successive timestamps one second apart."""

    def __init__(self, start=datetime(2024, 3, 1, 12, 0, 0)):
        self.current = start

    def __call__(self):
        value = self.current
        self.current += timedelta(seconds=1)
        return value


@pytest.fixture
def server():
    return FakeServer(
        databases={"shop_prod", "postgres"},
        known_names={"shop_staging", "reports", "Shop-Staging"}
    )


@pytest.fixture
def runner(server):
    return FakeRunner(server)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def source():
    return ConnectionProfile(
        host="prod.db.internal",
        port=5432,
        username="migrator",
        password="source-secret",
        database="shop_prod",
        ssl_mode="require"
    )


@pytest.fixture
def dest():
    return ConnectionProfile(
        host="staging.db.internal",
        port=5433,
        username="admin",
        password="dest-secret",
        database="shop_staging",
        ssl_mode="disable"
    )


@pytest.fixture
def plan(tmp_path):
    return MigrationPlan(mode="direct", output_dir=tmp_path / "out")
