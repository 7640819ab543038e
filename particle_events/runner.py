"""
CLI entrypoint for particle-events.
"""
import asyncio
import sys

import typer
from loguru import logger

from particle_events.client.api import get_event_stream
from particle_events.client.visualizer import Visualizer
from particle_events.shared.config import settings
from particle_events.shared.errors import EventStreamError
from particle_events.shared.models import StreamSignal, StreamState

app = typer.Typer(help="Particle Cloud event stream listener")

def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level=level.upper(),
    )

async def _listen(device, name, org, product, token, base_url, duration, plain):
    try:
        stream = await get_event_stream(
            device_id=device, name=name, org=org, product=product, auth=token, base_url=base_url
        )
    except EventStreamError as e:
        typer.echo(f"Could not connect: {e}", err=True)
        raise typer.Exit(1)

    try:
        if plain:
            stream.on("event", lambda event: typer.echo(event.model_dump_json()))
            for signal in (StreamSignal.DISCONNECT, StreamSignal.RECONNECT, StreamSignal.RECONNECT_SUCCESS):
                stream.on(signal, lambda s=signal: typer.echo(f"# {s.value}", err=True))
            stream.on(StreamSignal.ERROR, lambda err: typer.echo(f"# error: {err}", err=True))

            loop = asyncio.get_running_loop()
            deadline = loop.time() + duration
            while loop.time() < deadline and stream.state is not StreamState.ABORTED:
                await asyncio.sleep(0.25)
        else:
            await Visualizer(stream).run(duration)
    finally:
        await stream.close()

@app.command()
def listen(
    device: str = typer.Option(None, help="Device id, or 'mine' for all owned devices"),
    name: str = typer.Option(None, help="Event name prefix to filter on"),
    org: str = typer.Option(None, help="Organization slug"),
    product: str = typer.Option(None, help="Product id or slug"),
    token: str = typer.Option(None, help="Access token (defaults to PARTICLE_API_TOKEN)"),
    base_url: str = typer.Option(None, help="API base URL (defaults to PARTICLE_API_BASE_URL)"),
    duration: float = typer.Option(60.0, help="How long to listen, in seconds"),
    plain: bool = typer.Option(False, "--plain", help="Print one JSON line per event instead of the dashboard"),
):
    """Subscribe to an event stream and show events as they arrive."""
    configure_logging(settings.LOG_LEVEL)
    try:
        asyncio.run(_listen(device, name, org, product, token, base_url, duration, plain))
    except KeyboardInterrupt:
        pass

@app.command()
def server():
    """Start the local fixture event server using Uvicorn."""
    import uvicorn
    configure_logging(settings.LOG_LEVEL)
    typer.echo(f"Starting fixture server on port {settings.PORT} (token: {settings.FIXTURE_ACCESS_TOKEN})...")
    uvicorn.run("particle_events.server.main:app", host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL.lower())

if __name__ == "__main__":
    app()
