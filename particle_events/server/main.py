"""
MODULE OVERVIEW:
The FastAPI application for the local fixture event server.

WHAT IS HAPPENING HERE:
The `lifespan` context manager starts the fake device generators as background
tasks when Uvicorn boots and cancels them on shutdown. Each generator feeds the
ConnectionManager, which fans events out to the open streams.
"""

from fastapi import FastAPI
import asyncio
from contextlib import asynccontextmanager
from loguru import logger

from particle_events.server.connection_manager import manager
from particle_events.server.dummy_data import get_all_generators
from particle_events.server.routes import events

# We store our background tasks here so we can cancel them on shutdown.
background_tasks = set()

async def generator_runner(generator_func):
    """Consumes a device generator and pushes its events to the ConnectionManager."""
    try:
        async for event in generator_func:
            manager.push_event(event)
    except asyncio.CancelledError:
        logger.debug(f"Generator cancelled: {generator_func.__name__}")
    except Exception as e:
        logger.error(f"Generator error: {e}")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Fixture event server starting up...")

    for gen in get_all_generators():
        task = asyncio.create_task(generator_runner(gen))
        background_tasks.add(task)

    logger.info(f"Started {len(background_tasks)} device generators.")

    yield

    logger.info("Server shutting down. Cancelling device generators...")
    for task in background_tasks:
        task.cancel()

    if background_tasks:
        await asyncio.gather(*background_tasks, return_exceptions=True)
    background_tasks.clear()
    logger.info("Shutdown complete.")


app = FastAPI(
    title="Particle Events Fixture Server",
    description="Local stand-in for the cloud event stream endpoints",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(events.router, tags=["Events"])

@app.get("/healthz", tags=["Ops"])
async def health_check():
    return {"status": "ok"}

@app.get("/stats", tags=["Ops"])
async def get_stats():
    return manager.get_stats()
