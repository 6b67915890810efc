from functools import partial

import pytest
from fastapi.testclient import TestClient

from pg_schema_migrate.api import app
from pg_schema_migrate.api import migration
from pg_schema_migrate.lib.migrate import migrate

client = TestClient(app)


@pytest.fixture
def wired(monkeypatch, server, runner, clock):
    """Route the endpoint's migrations through the fake server and runner."""
    monkeypatch.setattr(
        migration, "migrate",
        partial(migrate, connect=server.connect, runner=runner, now=clock)
    )
    return server


def profile(**overrides):
    values = {
        "host": "prod.db.internal",
        "port": 5432,
        "username": "migrator",
        "password": "secret",
        "database": "shop_prod",
        "ssl_mode": "require",
    }
    values.update(overrides)
    return values


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "version": "1.0.0"}


def test_migrate_defaults_to_dry_run(wired, tmp_path):
    wired.add_database("shop_staging")
    response = client.post("/migrate", json={
        "source": profile(),
        "destination": profile(host="staging.db.internal", database="shop_staging"),
        "output_dir": str(tmp_path),
    })

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "preview"
    assert body["state"] == "dry_run_reported"
    assert body["backup_file"].endswith("backup_shop_staging_20240301_120000.sql")
    assert body["rollback_script"] == str(tmp_path / "rollback.sh")
    assert "drop" not in [event for event, _ in wired.events]
    assert "secret" not in response.text


def test_migrate_applies_when_not_dry_run(wired, runner, tmp_path):
    response = client.post("/migrate", json={
        "source": profile(),
        "destination": profile(host="staging.db.internal", database="shop_staging"),
        "output_dir": str(tmp_path),
        "dry_run": False,
    })

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["state"] == "rollback_script_written"
    assert wired.schemas["shop_staging"] == runner.source_schema


def test_export_mode(wired, tmp_path):
    response = client.post("/migrate", json={
        "source": profile(),
        "mode": "export",
        "output_dir": str(tmp_path),
    })

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "exported"
    assert body["schema_file"] == str(tmp_path / "schema_shop_prod_20240301_120000.sql")


def test_invalid_ssl_mode_rejected():
    response = client.post("/migrate", json={
        "source": profile(ssl_mode="foo"),
        "mode": "export",
    })
    assert response.status_code == 422


def test_direct_mode_without_destination(wired, tmp_path):
    response = client.post("/migrate", json={
        "source": profile(),
        "output_dir": str(tmp_path),
    })
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid configuration"
    assert body["stage"] == "config"


def test_migration_failure_reports_stage(wired, runner, tmp_path):
    runner.returncodes["pg_dump"] = 1
    response = client.post("/migrate", json={
        "source": profile(),
        "destination": profile(host="staging.db.internal", database="shop_staging"),
        "output_dir": str(tmp_path),
    })

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Migration failed"
    assert body["stage"] == "export"
    assert body["database"] == "shop_prod"
    assert "pg_dump exited with status 1" in body["detail"]


def test_unknown_endpoint():
    response = client.get("/compare")
    assert response.status_code == 404
    assert response.json() == {"error": "Endpoint not found", "path": "/compare"}
