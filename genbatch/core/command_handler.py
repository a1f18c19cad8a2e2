"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the work
to the BatchDriver or the local downloads helper, reporting failures through
the UserInterface.
"""

import logging
from pathlib import Path
from typing import Callable

from genbatch.core.services.batch_driver import BatchDriver
from genbatch.domain.interfaces.user_interface import UserInterface
from genbatch.domain.models.errors import ConfigurationError, ProviderError
from genbatch.infrastructure.filesystem.local_fs import LocalFileSystem

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        driver_factory: Callable[[], BatchDriver],
        downloads: LocalFileSystem,
        ui: UserInterface,
    ):
        self.driver_factory = driver_factory
        self.downloads = downloads
        self.ui = ui

    async def handle_run(self) -> int:
        """Handles the 'run' command. Returns the process exit code."""
        logger.info("Handling 'run' command")
        try:
            driver = self.driver_factory()
            tally = await driver.run()
        except ConfigurationError as e:
            logger.error(f"Configuration error: {e}")
            self.ui.display_error(f"Configuration error: {e}")
            return 1
        except ProviderError as e:
            logger.error(f"Run aborted: {e}")
            self.ui.display_error(f"Run aborted: {e}")
            return 1
        except Exception as e:
            logger.error(f"Unexpected error during run: {e}", exc_info=True)
            self.ui.display_error(f"Unexpected error during run: {e}")
            return 1

        if tally.processed == 0:
            self.ui.display_info("No pending jobs found.")
        return 0

    async def handle_bundle(self, output: Path) -> int:
        """Handles the 'bundle' command."""
        logger.info(f"Handling 'bundle' command: {output}")
        try:
            count = await self.downloads.create_archive(output)
        except FileNotFoundError:
            self.ui.display_warning("No files to bundle yet.")
            return 1
        except OSError as e:
            logger.error(f"Failed to write archive {output}: {e}")
            self.ui.display_error(f"Failed to write archive: {e}")
            return 1

        self.ui.display_info(f"Bundled {count} files into {output}")
        return 0
