# ABOUTME: The `shelfscan serve` command: run the scan API with uvicorn.
# ABOUTME: Settings are read from the environment when the app starts.

import click
import uvicorn

from shelfscan.api.app import create_app


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", type=int, default=8000, show_default=True, help="Port to listen on.")
def serve(host: str, port: int) -> None:
    """Serve the scan API over HTTP."""
    uvicorn.run(create_app(), host=host, port=port)
