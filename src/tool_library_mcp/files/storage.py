"""Paths and cleanup for uploaded files on disk."""

import logging
import mimetypes
import uuid
from collections.abc import Iterable
from pathlib import Path

from ..models.file import EntityType

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(file_name: str, declared: str | None = None) -> str:
    if declared and declared.strip():
        return declared.strip().lower()
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or DEFAULT_CONTENT_TYPE


def new_file_path(base_path: Path, entity_type: EntityType, file_name: str, content_type: str) -> Path:
    """``<base>/<entity type>/<uuid><ext>``; the directory is created if needed."""
    directory = base_path / EntityType(entity_type).value.lower()
    directory.mkdir(parents=True, exist_ok=True)

    extension = Path(file_name).suffix.lower()
    if not extension:
        extension = mimetypes.guess_extension(content_type) or ""
    return directory / f"{uuid.uuid4()}{extension}"


def remove_stored_files(paths: Iterable[str | Path]) -> int:
    """Delete files from disk, logging the ones that could not be removed."""
    removed = 0
    for path in paths:
        try:
            Path(path).unlink(missing_ok=True)
            removed += 1
        except OSError:
            logger.exception("Could not remove stored file %s", path)
    return removed
