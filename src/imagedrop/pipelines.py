"""
Upload and deletion pipelines.

Each pipeline validates its input before any side effect, then drives the
file store and the storage service in the order that keeps files and rows
in correspondence:

- upload: write file, insert row; a failed insert removes the file
- delete: look up row, remove file (already missing is fine), delete row
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .compensation import run_with_compensation
from .config import Settings
from .errors import ResourceNotFoundError, ValidationError
from .files import ImageFileStore, generate_filename
from .storage import StorageService

logger = logging.getLogger(__name__)

# Largest value the INT id column holds
MAX_IMAGE_ID = 2**31 - 1


@dataclass(frozen=True)
class IncomingImage:
    """An uploaded file as received from the client."""

    original_filename: Optional[str]
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class UploadResult:
    """Outcome of a successful upload."""

    id: int
    path: str
    filename: str


def parse_image_id(raw_id: str) -> int:
    """
    Parse an image identifier from the request path.

    Raises:
        ValidationError: Unless the value is a positive decimal integer that
            fits the id column
    """
    candidate = (raw_id or "").strip()
    if not candidate.isdecimal() or not candidate.isascii():
        raise ValidationError("Invalid ID format")

    image_id = int(candidate)
    if not 1 <= image_id <= MAX_IMAGE_ID:
        raise ValidationError("Invalid ID format")
    return image_id


class UploadPipeline:
    """Validates, stores and records one uploaded image."""

    def __init__(
        self, storage: StorageService, files: ImageFileStore, settings: Settings
    ):
        assert storage is not None, "Storage service is required"
        assert files is not None, "File store is required"

        self.storage = storage
        self.files = files
        self.allowed_types = set(settings.allowed_image_types)
        self.max_size = settings.max_upload_size

    def validate(self, upload: Optional[IncomingImage]) -> IncomingImage:
        """
        Check the upload against type and size limits.

        Raises:
            ValidationError: If no file was sent, its type is not accepted
                or it exceeds the size limit
        """
        if upload is None:
            raise ValidationError("No file uploaded")

        if upload.content_type not in self.allowed_types:
            allowed = ", ".join(sorted(self.allowed_types))
            raise ValidationError(
                f"Invalid file type: {upload.content_type}. Allowed: {allowed}"
            )

        if upload.size > self.max_size:
            raise ValidationError(
                f"File too large: limit is {self.max_size} bytes"
            )

        return upload

    def run(self, upload: Optional[IncomingImage]) -> UploadResult:
        """
        Store an uploaded image and record it.

        Args:
            upload: The received file, or None if the request carried none

        Returns:
            Assigned id, URL path and generated filename

        Raises:
            ValidationError: If the upload is rejected before storage
            FileSystemError: If the file cannot be written
            DatabaseError: If the row insert fails (the file is removed first)
        """
        upload = self.validate(upload)

        filename = generate_filename(upload.original_filename)
        file_path = self.files.write(filename, upload.data)
        image_path = self.files.url_path(filename)

        image_id = run_with_compensation(
            lambda: self.storage.insert(image_path),
            lambda: self.files.remove(file_path),
            description=f"insert of {image_path}",
        )

        logger.info(f"Image uploaded: id={image_id} path={image_path}")
        return UploadResult(id=image_id, path=image_path, filename=filename)


class DeletionPipeline:
    """Removes an image file and its row."""

    def __init__(self, storage: StorageService, files: ImageFileStore):
        assert storage is not None, "Storage service is required"
        assert files is not None, "File store is required"

        self.storage = storage
        self.files = files

    def run(self, raw_id: str) -> int:
        """
        Delete the image with the given identifier.

        Args:
            raw_id: Identifier as received in the request path

        Returns:
            The deleted image id

        Raises:
            ValidationError: If the identifier is not a positive integer
            ResourceNotFoundError: If no such image exists
            FileSystemError: If the file exists but cannot be removed
            DatabaseError: If the lookup or row delete fails
        """
        image_id = parse_image_id(raw_id)

        removed_path = self.storage.find_and_remove(
            image_id, before_delete=self._remove_file
        )
        if removed_path is None:
            raise ResourceNotFoundError("Image not found")

        logger.info(f"Image deleted: id={image_id} path={removed_path}")
        return image_id

    def _remove_file(self, stored_path: str) -> None:
        self.files.remove(self.files.resolve(stored_path))
