"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Force settings to use test-safe defaults before any import
os.environ.setdefault("FLEETCMD_API_KEY", "")
os.environ.setdefault("FLEETCMD_TARGETS_FILE", "")
os.environ.setdefault("FLEETCMD_LOG_LEVEL", "WARNING")

import pytest
from httpx import ASGITransport, AsyncClient

from fleetcmd.config import Settings
from fleetcmd.models.target import Target
from fleetcmd.services.command_service import CommandService
from fleetcmd.services.repository import InMemoryJobRepository
from fleetcmd.services.transfer_service import TransferService
from fleetcmd.services.uploads import SftpUpload
from tests.mock_ssh import FakeConnections, FakeHost


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        api_key="",
        transfer_temp_dir="/tmp",
        elevation_max_wait_seconds=1.0,
        elevation_read_slice_seconds=0.2,
        elevation_poll_interval_seconds=0.1,
        dispatcher_workers=1,
    )


@pytest.fixture
def target():
    return Target(id="node-1", name="web-1", host="10.0.0.5", user="deploy", password="s3cret")


@pytest.fixture
def root_target():
    return Target(id="node-2", name="db-1", host="10.0.0.6", user="root", password="toor")


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def connections(fake_host):
    return FakeConnections(fake_host)


@pytest.fixture
def command_svc(connections, test_settings):
    svc = CommandService(
        repo=InMemoryJobRepository(),
        connections=connections,
        cfg=test_settings,
    )
    yield svc
    svc.shutdown()


@pytest.fixture
def transfer_svc(connections, test_settings):
    return TransferService(
        repo=InMemoryJobRepository(),
        connections=connections,
        cfg=test_settings,
        strategies=[SftpUpload()],
    )


@pytest.fixture
def local_file(tmp_path):
    path = tmp_path / "payload.txt"
    path.write_bytes(b"0123456789")
    return path


@pytest.fixture
async def client(command_svc, transfer_svc, target, root_target, monkeypatch):
    """Async test client with fake SSH services injected."""
    from fleetcmd.services.targets import TargetDirectory

    directory = TargetDirectory()
    directory.add(target)
    directory.add(root_target)

    # Patch the singletons the routers imported
    import fleetcmd.main as main_mod
    import fleetcmd.routers.commands as rc
    import fleetcmd.routers.health as rh
    import fleetcmd.routers.terminal as rt
    import fleetcmd.routers.transfers as rtr
    import fleetcmd.services.command_service as cs_mod

    monkeypatch.setattr(rc, "command_service", command_svc)
    monkeypatch.setattr(rt, "command_service", command_svc)
    monkeypatch.setattr(cs_mod, "command_service", command_svc)
    monkeypatch.setattr(rtr, "transfer_service", transfer_svc)
    for mod in (rc, rh, rt, rtr):
        monkeypatch.setattr(mod, "target_directory", directory)

    transport = ASGITransport(app=main_mod.app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
