"""FastAPI application entry-point."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from zoneprov import __version__
from zoneprov.routers import capabilities, health, zones
from zoneprov.utils.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hooks."""
    setup_logging()
    yield


app = FastAPI(
    title="Zone Provisioner",
    description="Ephemeral Solaris test zones cloned from a template or installed directly",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(capabilities.router)
app.include_router(zones.router)
