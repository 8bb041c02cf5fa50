"""
Exception hierarchy shared by repositories, services and MCP handlers.

Every error carries an optional ``field`` naming the offending input so tool
handlers can report it back to the caller.
"""


class RepositoryException(Exception):
    """Base exception for repository operations."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(RepositoryException):
    """Raised for malformed or missing input."""


class NotFoundError(RepositoryException):
    """Raised when an entity is not found."""


class DuplicateError(RepositoryException):
    """Raised when attempting to create a duplicate entity."""


class CycleError(RepositoryException):
    """Raised when a category update would make a category its own ancestor."""


class UnavailableError(RepositoryException):
    """Raised when a requested tool has no units left to lend."""

    def __init__(self, message: str, tool_id: int | None = None, tool_name: str | None = None):
        super().__init__(message, field="tool_ids")
        self.tool_id = tool_id
        self.tool_name = tool_name


class AlreadyReturnedError(RepositoryException):
    """Raised when checking in a checkout that is already RETURNED."""


class StorageError(RepositoryException):
    """Raised when filesystem or database I/O fails."""
