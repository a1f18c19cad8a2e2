"""Local file system helper for the downloads directory.

Lists downloaded artifacts and bundles them into a zip archive for retrieval.
"""

import asyncio
import logging
import zipfile
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


class LocalFileSystem:
    """Operations on the local downloads directory."""

    def __init__(self, root: Path):
        """Initializes the LocalFileSystem adapter.

        Args:
            root: Directory holding downloaded artifacts.
        """
        self.root = Path(root)

    def ensure_root(self) -> Path:
        created = not self.root.exists()
        self.root.mkdir(parents=True, exist_ok=True)
        if created:
            logger.info(f"Created downloads directory: {self.root}")
        return self.root

    def list_files(self) -> List[Path]:
        """All regular files under root, recursively, sorted. Partial downloads are skipped."""
        if not self.root.is_dir():
            return []
        return sorted(
            path for path in self.root.rglob("*")
            if path.is_file() and not path.name.endswith(".part")
        )

    def _write_archive(self, archive_path: Path, files: List[Path]) -> None:
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
            for path in files:
                archive.write(path, arcname=path.relative_to(self.root).as_posix())

    async def create_archive(self, archive_path: Path) -> int:
        """Zips every downloaded file into archive_path.

        Returns:
            Number of files archived.

        Raises:
            FileNotFoundError: If there is nothing to archive.
        """
        files = self.list_files()
        if not files:
            raise FileNotFoundError(f"No files found in {self.root}")
        await asyncio.to_thread(self._write_archive, Path(archive_path), files)
        logger.info(f"ZIP archive: {len(files)} files -> {archive_path}")
        return len(files)
