import logging

import pytest
from psycopg import sql

from pg_schema_migrate.lib.admin import (
    create_database,
    database_exists,
    drop_database_if_exists,
    recreate_database,
)
from pg_schema_migrate.lib.errors import AdminError, DestinationLostError


class TestDatabaseExists:
    """Catalog lookups for the destination database."""

    def test_exists(self, server, source):
        assert database_exists(source, connect=server.connect) is True

    def test_missing(self, server, dest):
        assert database_exists(dest, connect=server.connect) is False

    def test_uses_admin_database_and_closes_connection(self, server, dest):
        database_exists(dest, connect=server.connect)
        conn = server.connections[-1]
        assert conn.kwargs["dbname"] == "postgres"
        assert conn.kwargs["autocommit"] is True
        assert conn.closed

    def test_unreachable_server(self, server, dest):
        server.unreachable.add(dest.host)
        with pytest.raises(AdminError) as exc_info:
            database_exists(dest, connect=server.connect)
        assert exc_info.value.database == "shop_staging"


class TestDropAndCreate:
    """Drop, create and recreate of the destination database."""

    def test_drop_absent_is_noop(self, server, dest):
        assert drop_database_if_exists(dest, connect=server.connect) is False
        assert server.events == []

    def test_drop_terminates_sessions_first(self, server, dest):
        server.add_database("shop_staging")
        assert drop_database_if_exists(dest, connect=server.connect) is True
        assert server.events == [("terminate", "shop_staging"), ("drop", "shop_staging")]
        assert "shop_staging" not in server.databases

    def test_terminate_failure_is_warning(self, server, dest, caplog):
        server.add_database("shop_staging")
        server.fail_terminate = True
        with caplog.at_level(logging.WARNING):
            assert drop_database_if_exists(dest, connect=server.connect) is True
        assert "Could not terminate all connections" in caplog.text
        assert "shop_staging" not in server.databases

    def test_drop_failure(self, server, dest):
        server.add_database("shop_staging")
        server.fail_drop = True
        with pytest.raises(AdminError) as exc_info:
            drop_database_if_exists(dest, connect=server.connect)
        assert exc_info.value.stage == "drop"
        assert not isinstance(exc_info.value, DestinationLostError)

    def test_create_quotes_identifier(self, server, dest):
        mixed = dest.model_copy(update={"database": "Shop-Staging"})
        statements = []
        original_connect = server.connect

        def recording_connect(**kwargs):
            conn = original_connect(**kwargs)
            execute = conn.execute

            def record(query, params=None):
                statements.append(query)
                return execute(query, params)

            conn.execute = record
            return conn

        create_database(mixed, connect=recording_connect)
        assert "Shop-Staging" in server.databases
        assert statements == [sql.SQL("CREATE DATABASE {}").format(sql.Identifier("Shop-Staging"))]

    def test_recreate_existing(self, server, dest):
        server.add_database("shop_staging")
        server.schemas["shop_staging"] = "old schema"
        recreate_database(dest, connect=server.connect)
        assert [event for event, _ in server.events] == ["terminate", "drop", "create"]
        assert server.schemas["shop_staging"] is None

    def test_recreate_absent(self, server, dest):
        recreate_database(dest, connect=server.connect)
        assert server.events == [("create", "shop_staging")]

    def test_create_failure_after_drop_loses_destination(self, server, dest):
        server.add_database("shop_staging")
        server.fail_create = True
        with pytest.raises(DestinationLostError) as exc_info:
            recreate_database(dest, connect=server.connect)
        assert "no longer exists" in str(exc_info.value)
        assert "shop_staging" not in server.databases

    def test_create_failure_without_drop(self, server, dest):
        server.fail_create = True
        with pytest.raises(AdminError) as exc_info:
            recreate_database(dest, connect=server.connect)
        assert not isinstance(exc_info.value, DestinationLostError)
        assert exc_info.value.stage == "create"
