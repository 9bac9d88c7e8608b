"""
Robust, cross-platform filesystem operations using pathlib.

This module provides the enumeration, directory creation and move primitives
used by the organizer, mapping OS failures onto the application's error kinds.
"""

import errno
import logging
import os
import shutil
from pathlib import Path
from typing import Iterable, List, Optional

from utils.exceptions import (
    directory_operation_error, file_not_found_error, file_processing_error,
    invalid_file_type_error
)

logger = logging.getLogger(__name__)

# Hard links are unavailable across volumes and on some filesystems (FAT, SMB)
_COPY_FALLBACK_ERRNOS = {
    code for code in (
        errno.EXDEV, errno.EPERM, errno.EMLINK,
        getattr(errno, "ENOTSUP", None), getattr(errno, "EOPNOTSUPP", None),
        getattr(errno, "ENOSYS", None),
    ) if code is not None
}


class FileSystemOperations:
    """Handles all filesystem operations with proper error handling."""

    def __init__(self, audio_extensions: Iterable[str]):
        """
        Initialize filesystem operations.

        Args:
            audio_extensions: Supported audio file extensions (with dots)
        """
        self.audio_extensions = {ext.lower() for ext in audio_extensions}

    def list_files(
        self,
        root_dir: Path,
        recursive: bool = True,
        exclude: Optional[Path] = None
    ) -> List[Path]:
        """
        List regular files under a directory, sorted by path.

        Every file is returned regardless of extension; type filtering is the
        caller's decision so that skipped files can be counted.

        Args:
            root_dir: Root directory to scan
            recursive: Whether to scan subdirectories recursively
            exclude: Directory whose contents are left out (e.g. a destination
                tree nested inside the source)

        Raises:
            MusicSorterError: DIRECTORY_OPERATION_ERROR if the root directory
                cannot be read
        """
        if not root_dir.exists():
            raise directory_operation_error(str(root_dir), "read", "Directory does not exist")

        if not root_dir.is_dir():
            raise directory_operation_error(str(root_dir), "read", "Path is not a directory")

        def _raise(error: OSError):
            raise error

        files = []
        try:
            if recursive:
                walker = os.walk(root_dir, onerror=_raise)
            else:
                walker = [next(os.walk(root_dir, onerror=_raise), (str(root_dir), [], []))]

            for dirpath, dirnames, filenames in walker:
                current = Path(dirpath)
                if exclude is not None:
                    dirnames[:] = [d for d in dirnames if current / d != exclude]
                for name in filenames:
                    path = current / name
                    if path.is_file():
                        files.append(path)
        except PermissionError as e:
            raise directory_operation_error(str(root_dir), "read", f"Permission denied: {e}") from e
        except OSError as e:
            raise directory_operation_error(str(root_dir), "read", f"OS error: {e}") from e

        files.sort()
        return files

    def is_supported(self, file_path: Path) -> bool:
        """Case-insensitive extension check against the supported set."""
        return file_path.suffix.lower() in self.audio_extensions

    def validate_audio_file(self, file_path: Path) -> str:
        """
        Validate that a file exists and has a supported extension.

        Returns:
            The lower-cased extension including the dot

        Raises:
            MusicSorterError: INVALID_FILE_TYPE or FILE_NOT_FOUND
        """
        extension = file_path.suffix.lower()
        if extension not in self.audio_extensions:
            raise invalid_file_type_error(str(file_path), extension)

        if not file_path.exists():
            raise file_not_found_error(str(file_path))

        return extension

    @staticmethod
    def file_exists(file_path: Path) -> bool:
        try:
            return file_path.exists()
        except OSError as e:
            raise file_processing_error(
                f"Unable to check file existence: {file_path}", source_path=str(file_path)
            ) from e

    def ensure_directory(self, directory: Path) -> None:
        """
        Create a directory and any missing parents.

        An existing directory is not an error.

        Raises:
            MusicSorterError: DIRECTORY_OPERATION_ERROR on failure
        """
        if directory.is_dir():
            return
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise directory_operation_error(str(directory), "create", str(e)) from e
        logger.info(f"Created directory: {directory}")

    def move_file(self, source: Path, target_directory: Path, filename: Optional[str] = None) -> Path:
        """
        Move a file into a target directory.

        The file is hard-linked into place and the source unlinked, so an
        existing destination is never overwritten even if it appears after
        the directory was checked. Across volumes, or where hard links are
        not supported, the file is copied into an exclusively created
        destination and the source deleted.

        Args:
            source: Source file path
            target_directory: Fully resolved directory to move into
            filename: Name at the destination (defaults to the source name)

        Returns:
            The destination file path

        Raises:
            MusicSorterError: FILE_PROCESSING_ERROR if the source is missing,
                the destination exists or the move fails;
                DIRECTORY_OPERATION_ERROR if the target directory cannot be created
        """
        destination = target_directory / (filename or source.name)

        if not source.is_file():
            raise file_processing_error(
                f"Unable to move file from {source} to {destination}: source file does not exist",
                source_path=str(source), dest_path=str(destination)
            )

        self.ensure_directory(target_directory)

        try:
            os.link(source, destination)
        except FileExistsError as e:
            raise self._destination_exists(source, destination) from e
        except OSError as e:
            if e.errno not in _COPY_FALLBACK_ERRNOS:
                raise file_processing_error(
                    f"Unable to move file from {source} to {destination}: {e}",
                    source_path=str(source), dest_path=str(destination)
                ) from e
            self._copy_into_place(source, destination)

        self._remove_source(source, destination)

        logger.info(f"Moved file: {source} -> {destination}")
        return destination

    @staticmethod
    def _destination_exists(source: Path, destination: Path):
        return file_processing_error(
            f"Unable to move file from {source} to {destination}: destination already exists",
            source_path=str(source), dest_path=str(destination)
        )

    def _copy_into_place(self, source: Path, destination: Path) -> None:
        """Copy into a newly created destination. A partial copy is removed on failure."""
        logger.debug(f"Hard link not possible, copying {source} -> {destination}")
        try:
            dest_file = open(destination, 'xb')
        except FileExistsError as e:
            raise self._destination_exists(source, destination) from e
        except OSError as e:
            raise file_processing_error(
                f"Unable to create {destination}: {e}",
                source_path=str(source), dest_path=str(destination)
            ) from e

        try:
            with dest_file, open(source, 'rb') as source_file:
                shutil.copyfileobj(source_file, dest_file)
            shutil.copystat(source, destination)
        except OSError as e:
            self._remove_partial(destination)
            raise file_processing_error(
                f"Unable to copy file from {source} to {destination}: {e}",
                source_path=str(source), dest_path=str(destination)
            ) from e

    def _remove_source(self, source: Path, destination: Path) -> None:
        try:
            source.unlink()
        except OSError as e:
            # Leave the file only at its original location
            self._remove_partial(destination)
            raise file_processing_error(
                f"Unable to remove {source} after placing it at {destination}: {e}",
                source_path=str(source), dest_path=str(destination)
            ) from e

    @staticmethod
    def _remove_partial(destination: Path) -> None:
        try:
            destination.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Could not remove partial copy {destination}: {e}")
