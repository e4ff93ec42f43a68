"""Interactive "become root" exchange over a shell channel.

The shell is read in short slices and the whole exchange is bounded by a
deadline, so a server that never prints the expected prompt costs at most
``max_wait`` seconds per phase instead of blocking forever. Clock and sleep
are injectable so the loop can be driven without real delays.
"""

from __future__ import annotations

import re
import time
from typing import Callable, Optional, Protocol

from fleetcmd.config import Settings, settings
from fleetcmd.utils.logging import get_logger

log = get_logger(__name__)

PASSWORD_PROMPT = re.compile(
    r"password|passwort|mot de passe|contraseña|密码|口令|认证",
    re.IGNORECASE,
)
ROOT_PROMPT = re.compile(r"root@|#\s*$")


class PromptShell(Protocol):
    def write(self, data: str) -> None: ...

    def read(self) -> str: ...

    def set_timeout(self, timeout: Optional[float]) -> None: ...


class ShellElevator:
    """Switch an interactive shell to root, giving up quietly on silence."""

    def __init__(
        self,
        cfg: Settings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._cfg = cfg or settings
        self._clock = clock
        self._sleep = sleep

    def _poll(
        self,
        shell: PromptShell,
        patterns: tuple[re.Pattern[str], ...],
    ) -> tuple[str, Optional[re.Pattern[str]]]:
        """Accumulate output until one of *patterns* matches or time runs out."""
        output = ""
        start = self._clock()
        while self._clock() - start < self._cfg.elevation_max_wait_seconds:
            chunk = shell.read()
            if chunk:
                output += chunk
                for pattern in patterns:
                    if pattern.search(output):
                        return output, pattern
            self._sleep(self._cfg.elevation_poll_interval_seconds)
        return output, None

    def elevate(self, shell: PromptShell, password: Optional[str]) -> bool:
        """Return True once a root prompt was seen."""
        shell.write(f"{self._cfg.elevation_command}\n")
        shell.set_timeout(self._cfg.elevation_read_slice_seconds)
        try:
            output, matched = self._poll(shell, (PASSWORD_PROMPT, ROOT_PROMPT))
            log.debug("ssh.elevation_output", output=output[-200:])

            if matched is ROOT_PROMPT:
                return True
            if matched is PASSWORD_PROMPT:
                if not password:
                    log.warning("ssh.elevation_no_password")
                    return False
                shell.write(f"{password}\n")
                _, matched = self._poll(shell, (ROOT_PROMPT,))
                return matched is ROOT_PROMPT
            return False
        finally:
            shell.set_timeout(None)
