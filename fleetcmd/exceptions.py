"""Error taxonomy for the SSH execution and transfer engine."""

from __future__ import annotations


class FleetCmdError(Exception):
    """Base class for every error raised by fleetcmd."""


class InvalidArgument(FleetCmdError, ValueError):
    """A required field or path was empty or malformed."""


# ── SSH ───────────────────────────────────────────────────────────────────


class SshError(FleetCmdError):
    """Base class for session-level failures."""


class AuthenticationFailed(SshError):
    """No usable credential, or every credential was rejected."""

    def __init__(self, host: str, port: int = 22, reason: str = "") -> None:
        self.host = host
        self.port = port
        self.reason = reason
        msg = f"SSH authentication failed for {host}:{port}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class TransportFailure(SshError):
    """The session could not be opened or the connection dropped."""

    def __init__(self, host: str, port: int = 22, reason: str = "") -> None:
        self.host = host
        self.port = port
        self.reason = reason
        msg = f"SSH connection to {host}:{port} failed"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class CommandTimeout(SshError):
    """A remote command ran past its allotted time."""

    def __init__(self, command: str, timeout: float) -> None:
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout:g}s: {command}")


# ── File transfer ─────────────────────────────────────────────────────────


class RemoteFileError(FleetCmdError):
    """Base class for file transfer failures."""


class FileNotExists(RemoteFileError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Local file does not exist: {path}")


class TransferExecutionFailed(RemoteFileError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"File upload failed: {reason}")


class TransferStatusUpdateFailed(RemoteFileError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Destination file missing after move: {path}")
