"""
Storage layer for image metadata rows.

This module owns every read and write of the image table. It keeps no
in-process cache: each call goes to the store through the connection pool.
"""

import logging
from typing import Callable, List, Optional

from sqlalchemy import delete, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .database import images
from .errors import DatabaseError
from .models.schemas import ImageRecord

logger = logging.getLogger(__name__)


class StorageService:
    """
    Row-level operations on the image table.

    Database failures surface as DatabaseError with the message the API
    reports for the operation; the original cause goes into ``details``.
    """

    def __init__(self, engine: Engine):
        """
        Initialize storage service.

        Args:
            engine: Pooled SQLAlchemy engine
        """
        assert engine is not None, "Engine is required"
        self.engine = engine

    def list_all(self) -> List[ImageRecord]:
        """
        List every stored image in id order.

        Raises:
            DatabaseError: If the query fails
        """
        query = select(images.c.id, images.c.image_path, images.c.upload_date).order_by(
            images.c.id
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to list images: {e}")
            raise DatabaseError("DB fetch failed", details=str(e)) from e

        return [
            ImageRecord(id=row.id, path=row.image_path, uploaded_at=row.upload_date)
            for row in rows
        ]

    def insert(self, path: str) -> int:
        """
        Record a stored file.

        Args:
            path: URL path of the file

        Returns:
            Identifier assigned by the store

        Raises:
            DatabaseError: If the insert fails
        """
        assert path, "Image path is required"

        try:
            with self.engine.begin() as conn:
                result = conn.execute(insert(images).values(image_path=path))
                image_id = result.inserted_primary_key[0]
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert image row for {path}: {e}")
            raise DatabaseError("DB insert failed", details=str(e)) from e

        logger.info(f"Recorded image {image_id}: {path}")
        return image_id

    def find_and_remove(
        self,
        image_id: int,
        before_delete: Optional[Callable[[str], None]] = None,
    ) -> Optional[str]:
        """
        Look up a row, run ``before_delete`` on its path, then delete it.

        All three steps share one transaction. If ``before_delete`` raises,
        the transaction is rolled back and the exception propagates as is.

        Args:
            image_id: Image identifier
            before_delete: Hook called with the stored path before the row goes

        Returns:
            The stored path, or None if no such row exists

        Raises:
            DatabaseError: If the lookup or delete fails
        """
        assert image_id is not None, "Image ID is required"

        lookup = (
            select(images.c.image_path)
            .where(images.c.id == image_id)
            .with_for_update()
        )
        try:
            with self.engine.begin() as conn:
                row = conn.execute(lookup).first()
                if row is None:
                    return None

                if before_delete is not None:
                    before_delete(row.image_path)

                result = conn.execute(delete(images).where(images.c.id == image_id))
                if result.rowcount == 0:
                    # Removed by a concurrent delete between lookup and delete
                    return None
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete image {image_id}: {e}")
            raise DatabaseError("Delete failed", details=str(e)) from e

        logger.info(f"Deleted image row: {image_id}")
        return row.image_path
