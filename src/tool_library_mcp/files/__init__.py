"""
File uploads: attachment targets, image optimisation and the FileService.
"""

from .storage import remove_stored_files
from .targets import (
    AttachmentTarget,
    DamageReportTarget,
    PatronTarget,
    ToolTarget,
    VolunteerTarget,
    owner_column,
    target_for,
)
from .service import BatchFileWriteResult, FileService, StoredFile, UploadedFile

__all__ = [
    "AttachmentTarget",
    "BatchFileWriteResult",
    "DamageReportTarget",
    "FileService",
    "PatronTarget",
    "StoredFile",
    "ToolTarget",
    "UploadedFile",
    "VolunteerTarget",
    "owner_column",
    "remove_stored_files",
    "target_for",
]
