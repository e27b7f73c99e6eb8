"""
On-disk image file store.

Files live under the upload directory with generated names and are
referenced from the database by URL path (``/uploads/images/<name>``).
The store maps between the two and keeps every resolved path inside
the base directory.
"""

import logging
import random
import re
import time
from pathlib import Path, PurePosixPath
from typing import Optional

from .config import Settings
from .errors import FileSystemError

logger = logging.getLogger(__name__)

SAFE_EXTENSION = re.compile(r"\.[A-Za-z0-9]{1,10}")

FALLBACK_INDEX_HTML = """<!DOCTYPE html>
<html>
  <head>
    <title>Fallback Page</title>
    <style>
      body { font-family: sans-serif; text-align: center; padding: 2rem; }
    </style>
  </head>
  <body>
    <h1>Image Uploader API</h1>
    <p>No frontend build found. Please build your frontend and copy it to the "public" folder.</p>
  </body>
</html>
"""


def generate_filename(original_filename: Optional[str]) -> str:
    """
    Build a storage name from the current time, a random number and the
    original extension, e.g. ``1715685180043-482913377.png``.
    """
    extension = PurePosixPath(original_filename or "").suffix
    if not SAFE_EXTENSION.fullmatch(extension):
        extension = ""
    return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}{extension}"


class ImageFileStore:
    """Writes, resolves and removes image files."""

    def __init__(self, settings: Settings):
        assert settings is not None, "Settings object is required"

        self.base_path = settings.base_path
        self.upload_path = settings.upload_path
        self.public_path = settings.public_path
        self._url_prefix = "/" + settings.upload_dir.as_posix().strip("/")

    def setup(self) -> None:
        """
        Create the upload directory and the fallback frontend page.

        Raises:
            FileSystemError: If the directories cannot be prepared
        """
        try:
            self.upload_path.mkdir(parents=True, exist_ok=True)
            logger.info(f"Image storage path: {self.upload_path}")

            index_file = self.public_path / "index.html"
            if not index_file.exists():
                logger.warning(
                    f"No frontend build found in {self.public_path}. "
                    "Creating fallback index.html"
                )
                self.public_path.mkdir(parents=True, exist_ok=True)
                index_file.write_text(FALLBACK_INDEX_HTML, encoding="utf-8")

        except OSError as e:
            error_msg = f"Failed to setup storage directories: {e}"
            logger.error(error_msg)
            raise FileSystemError(error_msg, details=str(e)) from e

    def url_path(self, filename: str) -> str:
        """URL path recorded in the database for a stored file."""
        return f"{self._url_prefix}/{filename}"

    def write(self, filename: str, data: bytes) -> Path:
        """
        Write a new file into the upload directory.

        Returns:
            Absolute path of the written file

        Raises:
            FileSystemError: If the file cannot be written
        """
        assert filename and "/" not in filename, f"Invalid filename: {filename}"

        file_path = self.upload_path / filename
        try:
            with open(file_path, "xb") as f:
                f.write(data)
        except OSError as e:
            error_msg = f"Failed to write {file_path}: {e}"
            logger.error(error_msg)
            raise FileSystemError("File write failed", details=str(e)) from e

        logger.info(f"Saved file: {file_path} ({len(data)} bytes)")
        return file_path

    def resolve(self, stored_path: str) -> Path:
        """
        Map a stored URL path to its location on disk.

        Raises:
            FileSystemError: If the path points outside the base directory
        """
        relative = stored_path.lstrip("/\\")
        full_path = (self.base_path / relative).resolve()
        if not full_path.is_relative_to(self.base_path):
            raise FileSystemError(
                "Refusing to touch a file outside the storage directory",
                details=stored_path,
            )
        return full_path

    def remove(self, file_path: Path) -> bool:
        """
        Delete a file if it exists.

        Returns:
            True if a file was deleted, False if it was already gone

        Raises:
            FileSystemError: If the file exists but cannot be deleted
        """
        try:
            file_path.unlink()
        except FileNotFoundError:
            logger.warning(f"File not found: {file_path}")
            return False
        except OSError as e:
            error_msg = f"Failed to delete {file_path}: {e}"
            logger.error(error_msg)
            raise FileSystemError("File delete failed", details=str(e)) from e

        logger.info(f"Deleted file: {file_path}")
        return True
