"""
Organizer for the camera-trap ordering tool.
Moves discovered media into taxon/locality/station folders using the
records index, and reports what happened.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple

from .config import Config, config as default_config
from .file_scanner import Finder, MediaFile
from .file_utils import FileOperations
from .logger_module import OrderingLogger
from .record_store import DestinationIndex, RecordSet, RecordStore


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class FileState(Enum):
    """Lifecycle of one file during a run."""
    DISCOVERED = "discovered"
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    MOVE_ATTEMPTED = "move_attempted"
    MOVED = "moved"
    FAILED = "failed"
    SKIPPED = "skipped"  # already at its destination


@dataclass
class PlannedMove:
    """Destination decision and outcome for one file."""
    media: MediaFile
    destination: Path
    matched: bool
    state: FileState = FileState.DISCOVERED
    method: Optional[str] = None
    error: Optional[str] = None

    @property
    def source(self) -> Path:
        return self.media.path


@dataclass
class OrganizeReport:
    """Counts for one organize run."""
    discovered: int = 0
    matched: int = 0
    unmatched: int = 0
    moved: int = 0
    skipped: int = 0
    errored: int = 0
    records: int = 0
    taxa: int = 0
    rejected_records: int = 0
    overwritten_records: int = 0
    scan_errors: int = 0
    removed_dirs: int = 0
    failures: List[Tuple[Path, str]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, int]:
        """Counts only, in display order."""
        return {
            'Discovered': self.discovered,
            'Matched': self.matched,
            'Unmatched': self.unmatched,
            'Moved': self.moved,
            'Already in place': self.skipped,
            'Errored': self.errored,
            'Record counts': self.records,
            'Taxon counts': self.taxa,
            'Rejected records': self.rejected_records,
            'Duplicate ids': self.overwritten_records,
            'Unreadable entries': self.scan_errors,
            'Removed dirs': self.removed_dirs,
        }

    def __str__(self) -> str:
        return (
            f"discovered={self.discovered}, moved={self.moved}, "
            f"skipped={self.skipped}, errored={self.errored}"
        )


class Organizer:
    """
    Organizes media files by taxon.

    Stages:
    1. SCANNING: find media files under the source directory
    2. RECORDS: load the records file and build the destination index
    3. PLANNING: decide every destination before anything moves
    4. MOVING: move files (optionally on a thread pool)
    5. CLEANUP: remove source directories left empty

    Files without a record go to <output>/unknown/. Two files planned for
    the same destination are never both moved: the later one fails.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        action_logger: Optional[OrderingLogger] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """
        Initialize the organizer.

        Args:
            config: Configuration object
            action_logger: Optional session logger for per-file actions
            progress_callback: Called with a message as files are processed
        """
        self.config = config or default_config
        self.action_logger = action_logger
        self.progress_callback = progress_callback
        self.file_ops = FileOperations(verify_copies=self.config.verify_copies)
        self.report = OrganizeReport()

    def _report_progress(self, current: int, total: int, item: Optional[PlannedMove] = None):
        if not self.progress_callback:
            return
        if current != total and current % self.config.progress_interval != 0:
            return
        message = f"Organizing images by taxa: {current}/{total}"
        if item is not None:
            message += f" | {item.media.name}: {item.state.value}"
        self.progress_callback(message)

    def _stage_start(self, name: str, detail: str = ""):
        if self.action_logger:
            self.action_logger.stage_start(name, detail)
        else:
            logger.info(f"Stage {name} {detail}".rstrip())

    # === Planning ===

    def plan(self, files: List[MediaFile], index: DestinationIndex, output_dir: Path) -> List[PlannedMove]:
        """
        Decide the destination of every discovered file.

        Args:
            files: Discovered media files
            index: Normalized key -> relative destination folder
            output_dir: Root of the organized tree

        Returns:
            One PlannedMove per file, in source path order
        """
        planned = []
        claimed: Dict[Path, Path] = {}

        for media in sorted(files, key=lambda m: str(m.path)):
            subpath = index.get(media.key)
            if subpath is not None:
                destination = output_dir.joinpath(*subpath.parts, media.name)
                item = PlannedMove(media, destination, matched=True, state=FileState.MATCHED)
                reason = f"taxon={subpath.parts[0]}"
            else:
                destination = output_dir / self.config.unknown_dir_name / media.name
                item = PlannedMove(media, destination, matched=False, state=FileState.UNMATCHED)
                reason = "no record"

            source_abs = media.path.resolve()
            dest_abs = destination.resolve()
            if source_abs == dest_abs:
                item.state = FileState.SKIPPED
            elif dest_abs in claimed:
                item.state = FileState.FAILED
                item.error = f"destination collision with {claimed[dest_abs]}"
            else:
                claimed[dest_abs] = media.path

            if self.action_logger:
                self.action_logger.file_destination(media.path, destination, reason=reason)
            planned.append(item)

        return planned

    # === Moving ===

    def _move_one(self, item: PlannedMove) -> PlannedMove:
        """Move a single planned file. OSErrors are recorded, not raised."""
        item.state = FileState.MOVE_ATTEMPTED
        try:
            item.method = self.file_ops.move_file(item.source, item.destination)
            item.state = FileState.MOVED
        except OSError as e:
            item.state = FileState.FAILED
            item.error = f"{type(e).__name__}: {e}"
        return item

    def _record_outcome(self, item: PlannedMove, moved_from: Set[Path]):
        report = self.report
        if item.state == FileState.MOVED:
            report.moved += 1
            moved_from.add(item.source.parent)
            if self.action_logger:
                self.action_logger.file_moved(item.source, item.destination, method=item.method)
            else:
                logger.debug(f"Moved {item.source} -> {item.destination} ({item.method})")
        elif item.state == FileState.SKIPPED:
            report.skipped += 1
            if self.action_logger:
                self.action_logger.file_skipped(item.source, "already at destination")
        else:
            report.errored += 1
            report.failures.append((item.source, item.error or "unknown error"))
            if self.action_logger:
                self.action_logger.file_failed(item.source, item.destination, item.error)
            else:
                logger.error(f"Could not move {item.source} -> {item.destination}: {item.error}")

    def execute(self, planned: List[PlannedMove]) -> Set[Path]:
        """
        Carry out a plan, updating self.report.

        Returns:
            Source directories that had at least one file moved out
        """
        moved_from: Set[Path] = set()
        pending = [p for p in planned if p.state in (FileState.MATCHED, FileState.UNMATCHED)]
        total = len(planned)
        done = 0

        # Skipped files and collisions need no filesystem work
        for item in planned:
            if item.state in (FileState.SKIPPED, FileState.FAILED):
                self._record_outcome(item, moved_from)
                done += 1
                self._report_progress(done, total, item)

        if self.config.workers <= 1:
            for item in pending:
                self._record_outcome(self._move_one(item), moved_from)
                done += 1
                self._report_progress(done, total, item)
            return moved_from

        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            futures = [executor.submit(self._move_one, item) for item in pending]
            try:
                for future in as_completed(futures):
                    item = future.result()
                    self._record_outcome(item, moved_from)
                    done += 1
                    self._report_progress(done, total, item)
            except KeyboardInterrupt:
                for future in futures:
                    future.cancel()
                raise

        return moved_from

    def _cleanup_empty_directories(self, directories: Set[Path], source_root: Path):
        """Remove source directories emptied by the move (never the root)."""
        for directory in sorted(directories, key=lambda p: len(p.parts), reverse=True):
            for removed in self.file_ops.remove_empty_parents(directory, source_root):
                self.report.removed_dirs += 1
                if self.action_logger:
                    self.action_logger.dir_empty_deleted(removed)
                else:
                    logger.debug(f"Deleted empty directory: {removed}")

        if self.report.removed_dirs:
            logger.info(f"Cleaned up {self.report.removed_dirs} empty directories")

    # === Entry point ===

    def organize(
        self,
        source_dir: Path | str,
        records_path: Path | str,
        output_dir: Optional[Path | str] = None,
    ) -> OrganizeReport:
        """
        Organize every media file under source_dir.

        Args:
            source_dir: Directory to scan (recursively)
            records_path: Records file (CSV or Excel)
            output_dir: Root of the organized tree (default: source_dir)

        Returns:
            OrganizeReport with the counts of this run

        Raises:
            FileNotFoundError / NotADirectoryError: If source_dir is unusable
            OSError: If source_dir cannot be listed
            RecordStoreError: If the records file cannot be loaded
        """
        source_dir = Path(source_dir).resolve()
        output_dir = Path(output_dir).resolve() if output_dir else source_dir
        self.report = OrganizeReport()

        self._stage_start("SCANNING", str(source_dir))
        finder = Finder(source_dir, self.config)
        files = finder.scan()
        self.report.discovered = len(files)
        self.report.scan_errors = finder.stats.errors

        self._stage_start("RECORDS", str(records_path))
        record_set: RecordSet = RecordStore(self.config, self.action_logger).load(records_path)
        self.report.records = len(record_set.records)
        self.report.taxa = len(record_set.taxa)
        self.report.rejected_records = len(record_set.rejected)
        self.report.overwritten_records = len(record_set.index.overwritten_keys)

        self._stage_start("PLANNING", f"output={output_dir}")
        planned = self.plan(files, record_set.index, output_dir)
        self.report.matched = sum(1 for p in planned if p.matched)
        self.report.unmatched = len(planned) - self.report.matched

        self._stage_start("MOVING", f"workers={self.config.workers}")
        moved_from = self.execute(planned)
        if self.action_logger:
            self.action_logger.stage_end("MOVING", str(self.report))

        if self.config.remove_empty_dirs:
            self._stage_start("CLEANUP")
            self._cleanup_empty_directories(moved_from, source_dir)

        if self.action_logger:
            self.action_logger.report("Organize report", self.report.as_dict())
        else:
            logger.info(f"Organize report: {self.report}")
        return self.report


def organize(
    source_dir: Path | str,
    records_path: Path | str,
    output_dir: Optional[Path | str] = None,
    config: Optional[Config] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> OrganizeReport:
    """
    Convenience function to run one organize pass.

    Args:
        source_dir: Directory to scan
        records_path: Records file
        output_dir: Output root (default: source_dir)
        config: Optional configuration
        progress_callback: Optional progress callback

    Returns:
        OrganizeReport
    """
    organizer = Organizer(config=config, progress_callback=progress_callback)
    return organizer.organize(source_dir, records_path, output_dir)
