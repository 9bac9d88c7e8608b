"""
Error taxonomy for the music sorter.

All application errors are raised as a single exception type tagged with an
``ErrorKind``. Callers dispatch on ``error.kind`` rather than on subclass
identity, and the kind determines the status code reported at the boundary.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Kinds of failure, each paired with a status code."""

    CONFIGURATION_ERROR = ("Configuration error", 500)
    DIRECTORY_OPERATION_ERROR = ("Directory operation failed", 500)
    FILE_PROCESSING_ERROR = ("File processing failed", 500)
    FILE_NOT_FOUND = ("File not found", 404)
    METADATA_EXTRACTION_ERROR = ("Failed to extract metadata", 400)
    INVALID_FILE_TYPE = ("Unsupported file type", 400)

    def __init__(self, label: str, status_code: int):
        self.label = label
        self.status_code = status_code


class MusicSorterError(Exception):
    """Base error for the application, tagged with an ``ErrorKind``."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        source_path: Optional[str] = None,
        dest_path: Optional[str] = None,
    ):
        self.kind = kind
        self.message = message
        self.source_path = source_path
        self.dest_path = dest_path
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def to_dict(self) -> dict:
        """Serializable form used by the CLI error output."""
        result = {
            'error': self.kind.name,
            'message': self.message,
            'status': self.status_code,
        }
        if self.source_path:
            result['source'] = self.source_path
        if self.dest_path:
            result['destination'] = self.dest_path
        return result

    def __repr__(self) -> str:
        return f"MusicSorterError({self.kind.name}, {self.message!r})"


def configuration_error(reason: str) -> MusicSorterError:
    """Raised when configuration is missing or invalid."""
    return MusicSorterError(
        ErrorKind.CONFIGURATION_ERROR,
        f"{ErrorKind.CONFIGURATION_ERROR.label}: {reason}",
    )


def directory_operation_error(path: str, operation: str, reason: str = None) -> MusicSorterError:
    """Raised when a directory cannot be read or created."""
    message = f"{ErrorKind.DIRECTORY_OPERATION_ERROR.label}: unable to {operation} directory {path}"
    if reason:
        message += f" - {reason}"
    return MusicSorterError(ErrorKind.DIRECTORY_OPERATION_ERROR, message, source_path=path)


def file_processing_error(
    message: str, source_path: str = None, dest_path: str = None
) -> MusicSorterError:
    """Raised for move failures and as the wrapper for fatal batch errors."""
    return MusicSorterError(
        ErrorKind.FILE_PROCESSING_ERROR, message,
        source_path=source_path, dest_path=dest_path,
    )


def file_not_found_error(path: str) -> MusicSorterError:
    return MusicSorterError(
        ErrorKind.FILE_NOT_FOUND,
        f"{ErrorKind.FILE_NOT_FOUND.label}: {path}",
        source_path=path,
    )


def metadata_extraction_error(path: str, reason: str = None) -> MusicSorterError:
    """Raised when tags cannot be read from an audio file."""
    message = f"{ErrorKind.METADATA_EXTRACTION_ERROR.label} from {path}"
    if reason:
        message += f" - {reason}"
    return MusicSorterError(ErrorKind.METADATA_EXTRACTION_ERROR, message, source_path=path)


def invalid_file_type_error(path: str, extension: str) -> MusicSorterError:
    return MusicSorterError(
        ErrorKind.INVALID_FILE_TYPE,
        f"{ErrorKind.INVALID_FILE_TYPE.label}: {extension or '(none)'}",
        source_path=path,
    )
