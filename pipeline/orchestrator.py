"""
Pipeline orchestrator that organizes a source directory into the
<album artist>/<album> destination tree.

Files are processed strictly one at a time. A failure on one file is logged
and counted and never stops the batch; only a failure to enumerate the source
directory aborts the whole run.
"""

import logging
import time
from pathlib import Path
from typing import Optional

from filesystem.file_ops import FileSystemOperations
from filesystem.metadata_reader import MetadataReader
from pipeline.schemas import OrganizeStats, ProcessedFile
from pipeline.stages import MetadataReaderFn, Stage1Triage, Stage2Identity, Stage3TargetPath
from utils.config_loader import SorterConfig
from utils.exceptions import MusicSorterError, file_processing_error
from utils.logging_config import log_processing_progress

logger = logging.getLogger(__name__)

FATAL_MESSAGE = "Failed to organize music collection"


class MusicOrganizer:
    """
    Main orchestrator for organizing music files by tags.
    """

    def __init__(
        self,
        config: SorterConfig,
        metadata_reader: Optional[MetadataReaderFn] = None,
        filesystem_ops: Optional[FileSystemOperations] = None
    ):
        """
        Initialize the organizer.

        Args:
            config: Loaded configuration
            metadata_reader: Callable returning RawTags for a path (defaults to mutagen)
            filesystem_ops: Filesystem primitives (defaults to the configured formats)
        """
        self.config = config
        self.filesystem_ops = filesystem_ops or FileSystemOperations(config.supported_formats)
        self.metadata_reader = metadata_reader or MetadataReader()

        self.stage1 = Stage1Triage(self.filesystem_ops, self.metadata_reader)
        self.stage2 = Stage2Identity(config.metadata)

    def organize(
        self,
        source_directory: Optional[Path] = None,
        destination_directory: Optional[Path] = None
    ) -> OrganizeStats:
        """
        Move every supported file under the source into the destination tree.

        Args:
            source_directory: Directory to scan (defaults to config.source_path)
            destination_directory: Destination root (defaults to config.destination_path)

        Returns:
            OrganizeStats for this invocation

        Raises:
            MusicSorterError: FILE_PROCESSING_ERROR if the source cannot be enumerated
        """
        source = Path(source_directory or self.config.source_path).expanduser().resolve()
        destination = Path(destination_directory or self.config.destination_path).expanduser().resolve()

        logger.info(f"Starting music organization: {source} -> {destination}")
        start_time = time.time()

        try:
            files = self.filesystem_ops.list_files(
                source, recursive=self.config.recursive, exclude=destination
            )
        except MusicSorterError as e:
            logger.error(f"{FATAL_MESSAGE}: {e}")
            raise file_processing_error(FATAL_MESSAGE, source_path=str(source)) from e

        logger.info(f"Found {len(files)} files to process")

        stats = OrganizeStats()
        stage3 = Stage3TargetPath(destination)

        for index, file_path in enumerate(files, start=1):
            self._process_file(file_path, stage3, stats)
            log_processing_progress(index, len(files), logger)

        elapsed = time.time() - start_time
        logger.info(
            f"Music organization completed in {elapsed:.2f}s: "
            f"{stats.successful} successful, {stats.failed} failed, {stats.skipped} skipped"
        )
        return stats

    def process_file(self, file_path: Path, destination_directory: Path) -> Optional[Path]:
        """
        Run the full pipeline for one file and move it.

        Returns:
            The destination path, or None if the file type is unsupported

        Raises:
            MusicSorterError: on any metadata, directory or move failure
        """
        processed = self._prepare(file_path, Stage3TargetPath(destination_directory))
        if processed is None:
            return None
        return self._move(processed)

    def _process_file(self, file_path: Path, stage3: Stage3TargetPath, stats: OrganizeStats):
        """Process one file, recording the outcome in stats. Never raises."""
        try:
            processed = self._prepare(file_path, stage3)
            if processed is None:
                stats.skipped += 1
                return
            self._move(processed)
        except MusicSorterError as e:
            stats.failed += 1
            logger.error(f"Failed to process file: {file_path} [{e.kind.name}] {e}")
            return
        except Exception as e:
            stats.failed += 1
            logger.error(f"Failed to process file: {file_path} (unexpected error: {e})")
            logger.debug("Traceback:", exc_info=True)
            return

        stats.successful += 1

    def _prepare(self, file_path: Path, stage3: Stage3TargetPath) -> Optional[ProcessedFile]:
        raw_tags = self.stage1.process(file_path)
        if raw_tags is None:
            return None

        identity, sanitized = self.stage2.process(raw_tags)
        processed = stage3.process(file_path, identity, sanitized)

        logger.debug(
            f"Processing file {file_path.name}: album artist={identity.album_artist!r}, "
            f"album={identity.album!r}"
        )
        return processed

    def _move(self, processed: ProcessedFile) -> Path:
        destination = self.filesystem_ops.move_file(
            processed.original_path, processed.target_directory, processed.filename
        )
        logger.info(
            f"Successfully processed file: {processed.filename} -> {processed.target_directory}"
        )
        return destination
