"""Tests for the system endpoints and the access-guard middleware."""

import json
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest
from alembic import command

from reelvault.api import create_app
from reelvault.config import ConfigStore
from reelvault.infrastructure.persistence import Database

LOCAL_CLIENT = ("192.168.1.20", 50000)
PUBLIC_CLIENT = ("193.168.1.1", 50000)
TRIPWIRE_KEY = "security_tripwire_accessed_from_public_internet"


def client_for(orchestrator, client=LOCAL_CLIENT) -> httpx.AsyncClient:
    """HTTP client whose requests appear to come from `client`."""
    transport = httpx.ASGITransport(app=create_app(orchestrator), client=client)
    return httpx.AsyncClient(transport=transport, base_url="http://reelvault")


@pytest.fixture
def configured(make_config, configured_values, make_orchestrator):
    orchestrator = make_orchestrator(make_config(configured_values))
    orchestrator.initialize()
    return orchestrator


class TestStatus:
    """GET /api/system/status."""

    async def test_ok_status(self, configured):
        async with client_for(configured) as client:
            response = await client.get("/api/system/status")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["database_schema"] == body["app_schema"] == 3
        assert body["database_path"] == configured.database.path
        assert response.headers["X-Correlation-ID"]

    async def test_correlation_id_echoed(self, configured):
        async with client_for(configured) as client:
            response = await client.get(
                "/api/system/status", headers={"X-Correlation-ID": "abc-123"}
            )
        assert response.headers["X-Correlation-ID"] == "abc-123"

    async def test_setup_status_for_new_system(self, make_config, make_orchestrator):
        orchestrator = make_orchestrator(make_config(None))
        orchestrator.initialize()

        async with client_for(orchestrator) as client:
            response = await client.get("/api/system/status")

        assert response.json()["status"] == "setup"
        assert response.json()["config_path"] == ""


class TestAccessGuard:
    """Public-internet requests without auth."""

    async def test_public_request_rejected_and_tripwire_recorded(
        self, configured, tmp_path: Path
    ):
        async with client_for(configured, PUBLIC_CLIENT) as client:
            response = await client.get("/api/system/status")

        assert response.status_code == 403
        written = json.loads((tmp_path / "config" / "config.json").read_text())
        assert written[TRIPWIRE_KEY] == "193.168.1.1"

    async def test_tripwire_keeps_first_address(self, configured):
        async with client_for(configured, PUBLIC_CLIENT) as client:
            await client.get("/api/system/status")
        async with client_for(configured, ("8.8.8.8", 1234)) as client:
            response = await client.get("/api/system/status")

        assert response.status_code == 403
        recorded = configured.config.get_security_tripwire_accessed_from_public_internet()
        assert recorded == "193.168.1.1"

    async def test_public_hop_in_forwarded_chain(self, configured):
        async with client_for(configured, ("127.0.0.1", 50000)) as client:
            response = await client.get(
                "/api/system/status",
                headers={"X-Forwarded-For": "192.168.1.1, 193.168.1.1"},
            )

        assert response.status_code == 403

    async def test_malformed_client_address(self, configured):
        async with client_for(configured, ("not-an-ip", 50000)) as client:
            response = await client.get("/api/system/status")

        assert response.status_code == 400
        assert configured.config.get_security_tripwire_accessed_from_public_internet() == ""

    async def test_public_request_allowed_with_credentials(
        self, make_config, configured_values, make_orchestrator
    ):
        orchestrator = make_orchestrator(
            make_config({**configured_values, "username": "admin", "password": "secret"})
        )
        orchestrator.initialize()

        async with client_for(orchestrator, PUBLIC_CLIENT) as client:
            response = await client.get("/api/system/status")

        assert response.status_code == 200

    async def test_ipv6_link_local_allowed(self, configured):
        async with client_for(configured, ("fe80::1", 50000)) as client:
            response = await client.get("/api/system/status")
        assert response.status_code == 200


class TestSetup:
    """POST /api/system/setup."""

    async def test_setup_new_system(self, home_dir, make_orchestrator, tmp_path):
        orchestrator = make_orchestrator(ConfigStore(home_dir=home_dir, env={}))
        orchestrator.initialize()

        async with client_for(orchestrator) as client:
            response = await client.post(
                "/api/system/setup",
                json={"libraries": [{"path": str(tmp_path / "media")}]},
            )

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["config_path"] == str(home_dir / "config.json")

    async def test_setup_failure_reports_step(self, home_dir, make_orchestrator, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        orchestrator = make_orchestrator(ConfigStore(home_dir=home_dir, env={}))
        orchestrator.initialize()

        async with client_for(orchestrator) as client:
            response = await client.post(
                "/api/system/setup",
                json={"config_location": str(blocker / "config.json")},
            )

        assert response.status_code == 400
        assert response.json()["step"] == "creating config directory"

    async def test_setup_rejected_when_configured(self, configured, configured_values):
        before = (configured.config.get_config_file(), configured.database.path)

        async with client_for(configured, client=("127.0.0.1", 50000)) as client:
            response = await client.post("/api/system/setup", json={})

        assert response.status_code == 409
        assert "already configured" in response.json()["detail"]
        assert (configured.config.get_config_file(), configured.database.path) == before
        assert configured.database.path == configured_values["database"]


class TestMigrate:
    """POST /api/system/migrate."""

    @pytest.fixture
    def outdated(self, make_config, configured_values, make_orchestrator):
        database = Database()
        database.initialize(configured_values["database"])
        database.close()
        command.downgrade(database.alembic_config(), "0002")

        orchestrator = make_orchestrator(make_config(configured_values))
        orchestrator.initialize()
        return orchestrator

    async def test_migrate(self, outdated):
        async with client_for(outdated) as client:
            before = await client.get("/api/system/status")
            response = await client.post("/api/system/migrate", json={})
            after = await client.get("/api/system/status")

        assert before.json()["status"] == "needs_migration"
        assert response.status_code == 200
        assert response.json()["source_version"] == 2
        assert response.json()["backup_kept"] is False
        assert after.json()["status"] == "ok"

    async def test_migrate_keeps_requested_backup(self, outdated, tmp_path):
        backup_path = tmp_path / "keep.sqlite"
        async with client_for(outdated) as client:
            response = await client.post(
                "/api/system/migrate", json={"backup_path": str(backup_path)}
            )

        assert response.json()["backup_kept"] is True
        assert backup_path.exists()

    async def test_failed_migration(self, outdated, monkeypatch):
        monkeypatch.setattr(
            outdated.database,
            "run_migrations",
            MagicMock(side_effect=RuntimeError("duplicate column")),
        )

        async with client_for(outdated) as client:
            response = await client.post("/api/system/migrate", json={})

        assert response.status_code == 500
        body = response.json()
        assert body["database_inconsistent"] is False
        assert "restored from the backup" in body["detail"]
        assert Path(body["backup_path"]).exists()
