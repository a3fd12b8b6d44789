"""
Embedding metadata persistence.

Keeps a small JSON record of the model and vector dimension last served,
so a dimension change between runs can be detected and reported.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, PositiveInt, ValidationError

logger = logging.getLogger(__name__)


class EmbeddingMetadata(BaseModel):
    """
    Durable record of the active embedding configuration.

    Attributes:
        model: Model identifier (file name).
        dimensions: Vector dimension produced by the model.
        last_changed: When the record was last rewritten.
    """

    model: str
    dimensions: PositiveInt
    last_changed: datetime = Field(alias="lastChanged")

    class Config:
        """Pydantic configuration."""
        populate_by_name = True

    @classmethod
    def now(cls, model: str, dimensions: int) -> "EmbeddingMetadata":
        """Create a record stamped with the current UTC time."""
        return cls(
            model=model,
            dimensions=dimensions,
            last_changed=datetime.now(timezone.utc),
        )


class MetadataStore:
    """
    Reads and writes the metadata record at a fixed path.

    Both operations are best-effort: a missing or corrupt file reads as
    no record, and a failed write is logged rather than raised.

    Attributes:
        path: Location of the JSON record.
    """

    __slots__ = ("path",)

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> Optional[EmbeddingMetadata]:
        """
        Read the stored record.

        Returns:
            The record, or None if absent or invalid.
        """
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Could not read embedding metadata {self.path}: {e}")
            return None

        try:
            return EmbeddingMetadata.model_validate_json(content)
        except ValidationError as e:
            logger.warning(
                f"Ignoring corrupt embedding metadata at {self.path}: "
                f"{e.error_count()} validation error(s)"
            )
            return None

    def write(self, record: EmbeddingMetadata) -> bool:
        """
        Persist the record, creating parent directories as needed.

        Args:
            record: Record to store.

        Returns:
            True if the record was written, False otherwise.
        """
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                record.model_dump_json(by_alias=True, indent=2),
                encoding="utf-8",
            )
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning(f"Failed to write embedding metadata {self.path}: {e}")
            return False

        logger.debug(
            f"Embedding metadata written: model={record.model}, "
            f"dimensions={record.dimensions}"
        )
        return True
