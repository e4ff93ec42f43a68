"""Tests for the sftp -> scp upload fallback chain."""

from __future__ import annotations

import subprocess

import pytest

from fleetcmd.exceptions import TransferExecutionFailed
from fleetcmd.models.target import Target
from fleetcmd.services.uploads import (
    ScpPasswordUpload,
    SftpUpload,
    is_fallback_eligible,
    upload_with_fallback,
)
from tests.mock_ssh import FakeConnections, FakeSession


class FakeRun:
    """Records subprocess.run calls and optionally drops the file on the host."""

    def __init__(self, host, returncode=0, stderr=""):
        self.host = host
        self.returncode = returncode
        self.stderr = stderr
        self.calls = []

    def __call__(self, argv, **kwargs):
        self.calls.append((argv, kwargs))
        if self.returncode == 0:
            local, remote = argv[-2], argv[-1].split(":", 1)[1]
            with open(local, "rb") as fh:
                self.host.files[remote] = fh.read()
        return subprocess.CompletedProcess(argv, self.returncode, "", self.stderr)


def _which_found(name):
    return f"/usr/bin/{name}"


@pytest.mark.parametrize(
    "password,key,expected",
    [
        ("pw", None, True),
        ("pw", "KEY", False),
        (None, "KEY", False),
        (None, None, False),
        ("", None, False),
    ],
)
def test_fallback_eligibility(password, key, expected):
    target = Target(host="h", user="u", password=password, private_key=key)
    assert is_fallback_eligible(target) is expected


def test_sftp_success_skips_scp(target, local_file, fake_host, test_settings):
    run = FakeRun(fake_host)
    scp = ScpPasswordUpload(test_settings, FakeConnections(fake_host), run=run, which=_which_found)
    session = FakeSession(target, fake_host)
    used = upload_with_fallback([SftpUpload(), scp], session, str(local_file), "/tmp/x_1")
    assert used == "sftp"
    assert run.calls == []


def test_scp_used_when_sftp_fails(target, local_file, fake_host, test_settings):
    run = FakeRun(fake_host)
    connections = FakeConnections(fake_host)
    scp = ScpPasswordUpload(test_settings, connections, run=run, which=_which_found)
    session = FakeSession(target, fake_host)
    session.put_error = OSError("sftp subsystem unavailable")

    used = upload_with_fallback([SftpUpload(), scp], session, str(local_file), "/tmp/x_1", timeout=30)

    assert used == "scp"
    assert fake_host.files["/tmp/x_1"] == b"0123456789"
    argv, kwargs = run.calls[0]
    assert kwargs["env"]["SSHPASS"] == "s3cret"
    assert kwargs["timeout"] == 30
    # the file is verified over a fresh session which is then closed
    assert connections.sessions[0].closed is True


def test_key_target_gets_no_fallback(local_file, fake_host, test_settings):
    target = Target(host="h", user="u", password="pw", private_key="KEY")
    run = FakeRun(fake_host)
    scp = ScpPasswordUpload(test_settings, FakeConnections(fake_host), run=run, which=_which_found)
    session = FakeSession(target, fake_host)
    session.put_error = OSError("sftp subsystem unavailable")

    with pytest.raises(TransferExecutionFailed) as excinfo:
        upload_with_fallback([SftpUpload(), scp], session, str(local_file), "/tmp/x_1")
    assert "scp: not eligible" in str(excinfo.value)
    assert run.calls == []


def test_missing_sshpass(target, local_file, fake_host, test_settings):
    run = FakeRun(fake_host)
    scp = ScpPasswordUpload(test_settings, FakeConnections(fake_host), run=run, which=lambda _: None)
    session = FakeSession(target, fake_host)
    with pytest.raises(TransferExecutionFailed, match="sshpass is not installed"):
        scp.upload(session, str(local_file), "/tmp/x_1")
    assert run.calls == []


def test_scp_nonzero_exit(target, local_file, fake_host, test_settings):
    run = FakeRun(fake_host, returncode=1, stderr="Permission denied, please try again.\n")
    scp = ScpPasswordUpload(test_settings, FakeConnections(fake_host), run=run, which=_which_found)
    with pytest.raises(TransferExecutionFailed, match="scp exited with 1: Permission denied"):
        scp.upload(FakeSession(target, fake_host), str(local_file), "/tmp/x_1")


def test_scp_timeout_is_reported(target, local_file, fake_host, test_settings):
    def slow(argv, **kwargs):
        raise subprocess.TimeoutExpired(argv, kwargs["timeout"])

    scp = ScpPasswordUpload(test_settings, FakeConnections(fake_host), run=slow, which=_which_found)
    session = FakeSession(target, fake_host)
    session.put_error = OSError("no sftp")
    with pytest.raises(TransferExecutionFailed, match="timed out"):
        upload_with_fallback([SftpUpload(), scp], session, str(local_file), "/tmp/x_1", timeout=5)


class TestBuildCommand:
    def test_password_not_in_argv(self, target, test_settings):
        scp = ScpPasswordUpload(test_settings, FakeConnections())
        argv = scp.build_command(target, "/data/a.txt", "/tmp/a_1")
        assert "s3cret" not in " ".join(argv)
        assert argv[:3] == ["sshpass", "-e", "scp"]
        assert argv[-1] == "deploy@10.0.0.5:/tmp/a_1"
        assert argv[argv.index("-P") + 1] == "22"

    def test_ipv6_host_bracketed(self, test_settings):
        target = Target(host="fe80::1", user="admin", password="pw", port=2222)
        scp = ScpPasswordUpload(test_settings, FakeConnections())
        argv = scp.build_command(target, "/a", "/tmp/a")
        assert argv[-1] == "admin@[fe80::1]:/tmp/a"
        assert argv[argv.index("-P") + 1] == "2222"
