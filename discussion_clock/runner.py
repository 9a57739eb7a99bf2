"""
CLI entrypoint for the discussion clock.
"""
import sys
import asyncio

import httpx
import typer
from loguru import logger

from discussion_clock.shared.config import settings

app = typer.Typer(help="Discussion Clock CLI Manager")


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def base_url() -> str:
    return f"http://{settings.HOST}:{settings.PORT}"


@app.callback()
def main(log_level: str = typer.Option(settings.LOG_LEVEL, help="Log level for the loguru sink")):
    configure_logging(log_level)


@app.command()
def server():
    """Start the FastAPI facade (and its responsive clock) using Uvicorn."""
    import uvicorn
    typer.echo(f"Starting facade on {settings.HOST}:{settings.PORT}, upstream {settings.API_BASE_URL}...")
    uvicorn.run(
        "discussion_clock.server.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


@app.command()
def status():
    """Print the current universal snapshot and clock status."""
    resp = httpx.get(f"{base_url()}/api/universal")
    resp.raise_for_status()
    typer.echo(resp.text)


@app.command()
def trigger(action: str = typer.Option("cli", help="Reason recorded with the trigger")):
    """Force an immediate refresh and a Burst window."""
    resp = httpx.post(f"{base_url()}/api/trigger", json={"action": action})
    resp.raise_for_status()
    typer.echo(resp.text)


@app.command()
def seat(
    seat_number: int = typer.Argument(..., min=1),
    mic: bool = typer.Option(False, "--mic/--no-mic", help="Microphone on"),
    request: bool = typer.Option(False, "--request/--no-request", help="Requesting to speak"),
):
    """Switch a seat's microphone / request flags."""
    resp = httpx.put(
        f"{base_url()}/api/seat/{seat_number}",
        json={"microphoneOn": mic, "requestingToSpeak": request},
    )
    if resp.status_code >= 400:
        typer.echo(f"Seat update failed ({resp.status_code}): {resp.text}", err=True)
        raise typer.Exit(1)
    typer.echo(resp.text)


@app.command()
def watch(duration: float = typer.Option(300.0, help="Duration to run the dashboard in seconds")):
    """Run the live Rich dashboard against a running facade."""
    from discussion_clock.client.facade_client import FacadeClient
    from discussion_clock.client.visualizer import Visualizer

    visualizer = Visualizer(FacadeClient(base_url()))
    try:
        asyncio.run(visualizer.run(duration))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    app()
