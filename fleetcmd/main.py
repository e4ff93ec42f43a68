"""FastAPI application entry-point."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from fleetcmd import __version__
from fleetcmd.config import settings
from fleetcmd.routers import commands, health, terminal, transfers
from fleetcmd.services import command_service as command_mod
from fleetcmd.services.targets import target_directory
from fleetcmd.utils.logging import get_logger, setup_logging

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hooks."""
    setup_logging()
    if settings.targets_file:
        try:
            target_directory.load_file(settings.targets_file)
        except (OSError, ValueError) as exc:
            log.error("targets.load_failed", path=settings.targets_file, error=str(exc))
    yield
    # Shutdown: stop the dispatch pool without waiting on in-flight jobs
    command_mod.command_service.shutdown()


app = FastAPI(
    title="fleetcmd",
    description="Remote command execution and file transfer jobs over SSH",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(commands.router)
app.include_router(transfers.router)
app.include_router(terminal.router)
