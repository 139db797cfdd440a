"""
Logging module for the camera-trap ordering tool.
Provides structured logging to both console and a rotating log file.
"""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from datetime import datetime
from typing import Optional
from enum import Enum

PACKAGE_LOGGER = "camtrap_ordering"


class LogAction(Enum):
    """Types of actions that can be logged."""
    # Stage transitions
    STAGE_START = "STAGE_START"
    STAGE_END = "STAGE_END"

    # Directory operations
    DIR_EMPTY_DELETED = "DIR_EMPTY_DELETED"

    # File operations
    FILE_MOVED = "FILE_MOVED"
    FILE_SKIPPED = "FILE_SKIPPED"
    FILE_FAILED = "FILE_FAILED"
    FILE_DESTINATION = "FILE_DESTINATION"

    # Records
    RECORD_OVERWRITTEN = "RECORD_OVERWRITTEN"
    RECORD_REJECTED = "RECORD_REJECTED"

    # Final counts
    REPORT = "REPORT"

    # Errors and warnings
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


class OrderingLogger:
    """
    Logger for an ordering session.
    Logs to the console and to a size-rotated file in log_dir.

    Handlers are attached to the package logger, so messages emitted through
    module loggers (logging.getLogger(__name__)) end up in the same file.
    """

    def __init__(
        self,
        log_dir: Path,
        session_name: Optional[str] = None,
        verbose: bool = False,
        max_bytes: int = 5 * 1024 * 1024,
        backup_count: int = 3,
    ):
        """
        Initialize the logger.

        Args:
            log_dir: Directory where log files will be stored
            session_name: Optional name for this session (default: timestamp)
            verbose: Show DEBUG messages on the console
            max_bytes: Size at which the log file is rotated
            backup_count: Number of rotated files to keep
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.session_name = session_name or datetime.now().strftime("%Y%m%d_%H%M%S")
        self.log_file = self.log_dir / "camtrap_ordering.log"

        self.logger = logging.getLogger(PACKAGE_LOGGER)
        self.logger.setLevel(logging.DEBUG)

        # Prevent duplicate handlers from a previous session in this process
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        file_handler = RotatingFileHandler(
            self.log_file, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)-8s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        self.logger.addHandler(file_handler)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        console_handler.setFormatter(logging.Formatter('%(levelname)-8s | %(message)s'))
        self.logger.addHandler(console_handler)

        self._handlers = [file_handler, console_handler]

        self.log(LogAction.INFO, f"Session started: {self.session_name}")
        self.log(LogAction.INFO, f"Log file: {self.log_file}")

    def log(self, action: LogAction, message: str, **kwargs):
        """
        Log an action with optional extra data.

        Args:
            action: The type of action being logged
            message: Human-readable message
            **kwargs: Additional data to include in the log
        """
        extra_str = ""
        if kwargs:
            extra_str = " | " + " | ".join(f"{k}={v}" for k, v in kwargs.items())

        full_message = f"[{action.value}] {message}{extra_str}"

        if action in (LogAction.ERROR, LogAction.FILE_FAILED):
            self.logger.error(full_message)
        elif action in (LogAction.WARNING, LogAction.RECORD_OVERWRITTEN, LogAction.RECORD_REJECTED):
            self.logger.warning(full_message)
        elif action in (LogAction.FILE_DESTINATION, LogAction.DIR_EMPTY_DELETED, LogAction.FILE_SKIPPED):
            # One line per file; file-only unless verbose
            self.logger.debug(full_message)
        else:
            self.logger.info(full_message)

    def stage_start(self, stage_name: str, detail: str = ""):
        """Log the start of a stage."""
        self.log(LogAction.STAGE_START, f"=== STAGE START: {stage_name} === {detail}")

    def stage_end(self, stage_name: str, detail: str = ""):
        """Log the end of a stage."""
        self.log(LogAction.STAGE_END, f"=== STAGE END: {stage_name} === {detail}")

    def file_destination(self, source: Path, dest: Path, reason: str = ""):
        """Log the destination decision for a file."""
        self.log(LogAction.FILE_DESTINATION, f"{source.name} -> {dest}", reason=reason)

    def file_moved(self, source: Path, dest: Path, method: str = "rename"):
        """Log file movement."""
        self.log(LogAction.FILE_MOVED, f"{source} -> {dest}", method=method)

    def file_skipped(self, path: Path, reason: str):
        self.log(LogAction.FILE_SKIPPED, f"Skipped: {path}", reason=reason)

    def file_failed(self, source: Path, dest: Optional[Path], error: str):
        """Log a failed move."""
        self.log(LogAction.FILE_FAILED, f"Could not move {source}", dest=dest, error=error)

    def dir_empty_deleted(self, path: Path):
        """Log deletion of empty directory."""
        self.log(LogAction.DIR_EMPTY_DELETED, f"Deleted empty directory: {path}")

    def record_overwritten(self, key: str, old: str, new: str):
        self.log(LogAction.RECORD_OVERWRITTEN, f"Duplicate image id {key}", old=old, new=new)

    def record_rejected(self, row: int, reason: str):
        self.log(LogAction.RECORD_REJECTED, f"Rejected record at row {row}", reason=reason)

    def report(self, title: str, counts: dict):
        """Log a block of aligned counts."""
        self.log(LogAction.REPORT, title)
        for name, value in counts.items():
            self.logger.info(f"{name:18}: {value}")

    def error(self, message: str, exception: Optional[Exception] = None):
        """Log an error."""
        if exception:
            self.log(LogAction.ERROR, f"{message}: {type(exception).__name__}: {exception}")
        else:
            self.log(LogAction.ERROR, message)

    def warning(self, message: str):
        """Log a warning."""
        self.log(LogAction.WARNING, message)

    def info(self, message: str):
        """Log info message."""
        self.log(LogAction.INFO, message)

    def close(self):
        """Close the logger and finalize the session."""
        self.log(LogAction.INFO, "Session ended")
        for handler in self._handlers:
            self.logger.removeHandler(handler)
            handler.close()
        self._handlers = []
