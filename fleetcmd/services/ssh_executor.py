"""Compose the final remote command line and run it over a session."""

from __future__ import annotations

import re
import shlex
from typing import Optional, Protocol

from fleetcmd.exceptions import CommandTimeout
from fleetcmd.models.target import Target
from fleetcmd.utils.logging import get_logger

log = get_logger(__name__)

_HOME_PREFIX = re.compile(r"~[\w.-]*")


class CommandSession(Protocol):
    def exec(self, command: str, timeout: Optional[float] = None) -> str: ...


def sudo_prefix(password: Optional[str]) -> str:
    """Return the ``sudo -S`` invocation, feeding *password* on stdin if known.

    This is the only place a credential is interpolated into a command line.
    """
    if password:
        return f"printf '%s\\n\\n' {shlex.quote(password)} | sudo -S"
    return "sudo -S"


def quote_directory(path: str) -> str:
    """Shell-quote *path*, leaving a leading ``~`` or ``~user`` free to expand."""
    head, _, rest = path.partition("/")
    if _HOME_PREFIX.fullmatch(head):
        return f"{head}/{shlex.quote(rest)}" if rest else head
    return shlex.quote(path)


def compose_command(
    command: str,
    working_directory: Optional[str] = None,
    use_sudo: bool = False,
    target: Optional[Target] = None,
) -> str:
    """Build the shell line actually sent to the target.

    ``cd`` and the command share one invocation. Under sudo the pair is
    wrapped in ``bash -c`` so the escalation covers both halves. ``use_sudo``
    is ignored for root and when no target is known.
    """
    if use_sudo and target is not None and not target.is_root:
        if working_directory:
            inner = f"cd {quote_directory(working_directory)} && {command}"
            command = f"bash -c {shlex.quote(inner)}"
        return f"{sudo_prefix(target.password)} {command}"

    if working_directory:
        return f"cd {quote_directory(working_directory)} && {command}"
    return command


class SshCommandExecutor:
    """Runs composed commands; success is judged elsewhere from the text."""

    def execute(
        self,
        session: CommandSession,
        command: str,
        working_directory: Optional[str] = None,
        use_sudo: bool = False,
        target: Optional[Target] = None,
        timeout: Optional[float] = None,
    ) -> str:
        full = compose_command(command, working_directory, use_sudo, target)
        log.debug(
            "ssh.exec",
            command=command,
            working_directory=working_directory,
            sudo=use_sudo and target is not None and not target.is_root,
        )
        try:
            return session.exec(full, timeout=timeout)
        except CommandTimeout as exc:
            # the composed line can carry the sudo password; report the submitted command
            raise CommandTimeout(command, exc.timeout) from None


# Singleton
ssh_executor = SshCommandExecutor()
