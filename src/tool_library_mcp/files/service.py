"""
File service for the Tool Library MCP Server.

Stores uploads under ``<upload_base_path>/<entity type>/<uuid><ext>`` and
records a File row linking the upload to exactly one owner record.

The disk write happens first. If the database insert then fails, the file
is deleted again so no orphan files are left behind.
"""

import base64
import binascii
import logging
from pathlib import Path

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_config
from ..database.errors import NotFoundError, RepositoryException, StorageError, ValidationError
from ..database.schema import DamageReport as DamageReportDB
from ..database.schema import EntityTypeEnum
from ..database.schema import File as FileDB
from ..database.schema import Patron as PatronDB
from ..database.schema import Tool as ToolDB
from ..database.schema import User as UserDB
from ..database.session import safe_query
from ..models.file import EntityType, FileRecord
from .images import is_optimizable, optimize_image
from .storage import guess_content_type, new_file_path, remove_stored_files
from .targets import AttachmentTarget, owner_column

logger = logging.getLogger(__name__)

OWNER_MODELS = {
    EntityType.TOOL: ToolDB,
    EntityType.PATRON: PatronDB,
    EntityType.VOLUNTEER: UserDB,
    EntityType.DAMAGE_REPORT: DamageReportDB,
}


class UploadedFile(BaseModel):
    """An upload as received: original name, declared type and raw bytes."""

    file_name: str = Field(..., min_length=1)
    content_type: str | None = None
    data: bytes

    @classmethod
    def from_base64(cls, file_name: str, content_base64: str, content_type: str | None = None):
        try:
            data = base64.b64decode(content_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError("File content is not valid base64", field="content_base64") from e
        return cls(file_name=file_name, content_type=content_type, data=data)


class FileWriteFailure(BaseModel):
    file_name: str
    error: str


class BatchFileWriteResult(BaseModel):
    """Outcome of a batch upload; one failure does not stop the others."""

    successful: list[FileRecord] = Field(default_factory=list)
    failed: list[FileWriteFailure] = Field(default_factory=list)


class StoredFile(BaseModel):
    record: FileRecord
    data: bytes

    @property
    def content_type(self) -> str:
        return self.record.file_type


class FileService:
    """Writes, records and reads uploaded files."""

    def __init__(
        self,
        session: Session,
        base_path: Path | None = None,
        max_width: int | None = None,
        quality: int | None = None,
    ):
        config = get_config()
        self.session = session
        self.base_path = Path(base_path or config.upload_base_path)
        self.max_width = max_width or config.image_max_width
        self.quality = quality or config.image_quality

    def _check_owner(self, entity_type: EntityType, owner_id: int) -> None:
        model = OWNER_MODELS[entity_type]
        owner = safe_query(
            self.session, lambda s: s.get(model, owner_id), "Failed to look up file owner"
        )
        if owner is None:
            raise NotFoundError(
                f"{entity_type.value.replace('_', ' ').title()} {owner_id} not found",
                field="entity_id",
            )

    def write_file(
        self,
        upload: UploadedFile,
        target: AttachmentTarget,
        uploaded_by: int,
        label: str | None = None,
    ) -> FileRecord:
        """
        Store one upload and link it to its owner.

        Raises:
            NotFoundError: If the owner record does not exist
            ValidationError: If an image upload cannot be decoded
            StorageError: If the disk write or database insert fails
        """
        entity_type, column, owner_id = owner_column(target)
        self._check_owner(entity_type, owner_id)

        content_type = guess_content_type(upload.file_name, upload.content_type)
        data = upload.data
        if is_optimizable(content_type):
            data = optimize_image(data, content_type, self.max_width, self.quality)

        try:
            path = new_file_path(self.base_path, entity_type, upload.file_name, content_type)
        except OSError as e:
            raise StorageError(f"Could not write {upload.file_name}: {e}", field="file") from e
        try:
            path.write_bytes(data)
        except OSError as e:
            # A failed write can leave a truncated file behind
            remove_stored_files([path])
            logger.exception("Failed to write %s; removed %s", upload.file_name, path)
            raise StorageError(f"Could not write {upload.file_name}: {e}", field="file") from e

        db_file = FileDB(
            entity_type=EntityTypeEnum(entity_type),
            file_path=str(path),
            file_name=upload.file_name,
            file_type=content_type,
            label=(label or "").strip() or None,
            uploaded_by=uploaded_by,
            **{column: owner_id},
        )
        try:
            self.session.add(db_file)
            self.session.commit()
            self.session.refresh(db_file)
        except SQLAlchemyError as e:
            self.session.rollback()
            remove_stored_files([path])
            logger.exception("Failed to record %s; removed %s", upload.file_name, path)
            raise StorageError(f"Could not save file record for {upload.file_name}") from e

        logger.info(
            "Stored %s for %s %s as %s (%d bytes)",
            upload.file_name,
            entity_type.value,
            owner_id,
            path,
            len(data),
        )
        return FileRecord.model_validate(db_file)

    def write_many(
        self,
        uploads: list[UploadedFile],
        target: AttachmentTarget,
        uploaded_by: int,
        label: str | None = None,
    ) -> BatchFileWriteResult:
        """Store several uploads, collecting successes and failures separately."""
        result = BatchFileWriteResult()
        for upload in uploads:
            try:
                result.successful.append(self.write_file(upload, target, uploaded_by, label))
            except RepositoryException as e:
                logger.warning("Upload of %s failed: %s", upload.file_name, e.message)
                result.failed.append(FileWriteFailure(file_name=upload.file_name, error=e.message))
        return result

    def write_files_and_get_ids(
        self,
        uploads: list[UploadedFile],
        target: AttachmentTarget,
        uploaded_by: int,
        label: str | None = None,
    ) -> list[int]:
        """
        Store several uploads and return their File ids.

        Raises:
            StorageError: If any upload failed; the successful ones are kept
        """
        result = self.write_many(uploads, target, uploaded_by, label)
        if result.failed:
            names = ", ".join(f.file_name for f in result.failed)
            raise StorageError(f"Failed to upload {len(result.failed)} file(s): {names}")
        return [record.id for record in result.successful]

    def read_file(self, file_id: int) -> StoredFile:
        """
        Load a stored file's bytes.

        Raises:
            NotFoundError: If there is no File row with this id
            StorageError: If the file cannot be read from disk
        """
        db_file = safe_query(self.session, lambda s: s.get(FileDB, file_id), "Failed to get file")
        if db_file is None:
            raise NotFoundError(f"File {file_id} not found", field="file_id")

        try:
            data = Path(db_file.file_path).read_bytes()
        except OSError as e:
            logger.exception("Error reading file %s", db_file.file_path)
            raise StorageError("Failed to read file") from e

        return StoredFile(record=FileRecord.model_validate(db_file), data=data)
