"""Main entry point for the genbatch application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler or the
web server.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Coroutine, Dict, Optional

import typer
import uvicorn
from typing_extensions import Annotated

from genbatch import __version__

# --- Core Layer ---
from genbatch.core.command_handler import CommandHandler
from genbatch.core.run_context import RunContext
from genbatch.core.run_controller import RunController
from genbatch.core.services.batch_driver import BatchDriver, Providers
from genbatch.domain.models.errors import ConfigurationError
from genbatch.domain.models.job import RunSettings

# --- Infrastructure Layer ---
from genbatch.infrastructure.ai.fal_client import FalClient
from genbatch.infrastructure.ai.gemini_client import GeminiClient
from genbatch.infrastructure.cli.display import ConsoleDisplay
from genbatch.infrastructure.config.settings import (
    get_airtable_base_id, get_airtable_token, get_config, get_downloads_dir, get_page_size, get_server_port,
    load_configuration,
)
from genbatch.infrastructure.filesystem.http_sink import HttpArtifactSink
from genbatch.infrastructure.filesystem.local_fs import LocalFileSystem
from genbatch.infrastructure.monitoring.logger_setup import RunLogBuffer, setup_logging
from genbatch.infrastructure.store.airtable_store import AirtableJobStore
from genbatch.infrastructure.web.server import create_app

logger = logging.getLogger(__name__)


def build_providers(settings: RunSettings, context: RunContext) -> Providers:
    """Builds the provider clients for one run from its settings."""
    generator = FalClient(settings.generation_api_key, upload_limiter=context.upload_limiter)
    vision = GeminiClient(settings.vision_api_key) if settings.vision_enabled else None
    return Providers(generator=generator, vision=vision)


# --- Dependency Injection Container (Manual) ---

def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    dependencies: Dict[str, Any] = {}
    try:
        # 1. Load Configuration First
        load_configuration()
        log_level_name = str(get_config('logging.level', 'INFO')).upper()
        log_level = getattr(logging, log_level_name, logging.INFO)
        log_file = get_config('logging.file')
        log_format = get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        log_buffer = RunLogBuffer()
        setup_logging(log_level=log_level, log_file=log_file, log_format=log_format, log_buffer=log_buffer)
        dependencies['log_buffer'] = log_buffer
        logger.info("Configuration and logging initialized.")

        # 2. Infrastructure adapters
        ui = ConsoleDisplay()
        dependencies['ui'] = ui
        dependencies['downloads'] = LocalFileSystem(get_downloads_dir())
        dependencies['sink'] = HttpArtifactSink()

        token, base_id = get_airtable_token(), get_airtable_base_id()
        if token and base_id:
            dependencies['store'] = AirtableJobStore(token=token, base_id=base_id)
        else:
            # Only 'run' and the web trigger need the store.
            logger.warning("Airtable credentials not configured (AIRTABLE_TOKEN, AIRTABLE_BASE_ID).")
            dependencies['store'] = None
        page_size = get_page_size()

        def driver_factory() -> BatchDriver:
            if dependencies['store'] is None:
                raise ConfigurationError("Airtable credentials not configured (AIRTABLE_TOKEN, AIRTABLE_BASE_ID)")
            return BatchDriver(
                store=dependencies['store'],
                sink=dependencies['sink'],
                provider_factory=build_providers,
                ui=ui,
                downloads_dir=dependencies['downloads'].root,
                page_size=page_size,
            )

        # 3. Core services
        dependencies['command_handler'] = CommandHandler(
            driver_factory=driver_factory,
            downloads=dependencies['downloads'],
            ui=ui,
        )
        dependencies['run_controller'] = RunController(
            driver_factory=driver_factory,
            downloads=dependencies['downloads'],
            log_buffer=log_buffer,
        )
        logger.info("All dependencies initialized successfully.")
        return dependencies

    except Exception as e:
        logger.error(f"Fatal Error during application initialization: {e}", exc_info=True)
        if dependencies.get('ui'):
            dependencies['ui'].display_error(f"Application Initialization Failed: {e}")
        else:
            print(f"FATAL ERROR during initialization: {e}", file=sys.stderr)
        sys.exit(1)


_dependencies: Optional[Dict[str, Any]] = None


def get_dependencies() -> Dict[str, Any]:
    """Returns the wired-up dependencies, creating them on first use."""
    global _dependencies
    if _dependencies is None:
        _dependencies = create_dependencies()
    return _dependencies


def reset_dependencies() -> None:
    global _dependencies
    _dependencies = None


# --- Typer App Definition ---
app = typer.Typer(
    name="genbatch",
    help=f"genbatch v{__version__}: resilient batch image and video generation from an Airtable queue.",
    add_completion=False,
)


def run_async(coro: Coroutine[Any, Any, int]) -> int:
    """Runs an async command handler from a sync Typer command and returns its exit code."""
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130


# --- CLI Commands ---

@app.command()
def run():
    """Process every pending job once, then exit."""
    handler: CommandHandler = get_dependencies()['command_handler']
    exit_code = run_async(handler.handle_run())
    if exit_code:
        raise typer.Exit(code=exit_code)


@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Interface to bind. Defaults to server.host.")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port to bind. Defaults to server.port.")] = None,
):
    """Serve the web trigger, status and download endpoints."""
    dependencies = get_dependencies()
    web_app = create_app(dependencies['run_controller'])
    bind_host = host or str(get_config('server.host', '0.0.0.0'))
    bind_port = port or get_server_port()
    logger.info(f"Starting web server on {bind_host}:{bind_port}")
    uvicorn.run(web_app, host=bind_host, port=bind_port, log_config=None)


@app.command()
def bundle(
    output: Annotated[Path, typer.Option("--output", "-o", resolve_path=True,
                                         help="Path of the zip archive to write.")] = Path("generated-files.zip"),
):
    """Bundle every downloaded artifact into a zip archive."""
    handler: CommandHandler = get_dependencies()['command_handler']
    exit_code = run_async(handler.handle_bundle(output))
    if exit_code:
        raise typer.Exit(code=exit_code)


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
