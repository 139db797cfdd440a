"""
File Scanner Module for the camera-trap ordering tool.
Walks a source directory and collects the media files to organize.
"""
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from .config import Config, config as default_config, EXIF_EXTENSIONS, MEDIA_EXTENSIONS


logger = logging.getLogger(__name__)


def build_extension_pattern(extensions: Iterable[str] = MEDIA_EXTENSIONS) -> re.Pattern:
    """Build the allow-list regex. Longer names first so alternation is greedy."""
    names = sorted({e.lower().lstrip('.') for e in extensions}, key=len, reverse=True)
    return re.compile("(" + "|".join(re.escape(n) for n in names) + ")", re.IGNORECASE)


EXTENSION_PATTERN = build_extension_pattern()


def match_extension(ext: str, pattern: re.Pattern = EXTENSION_PATTERN) -> bool:
    """
    Check a file extension (without the dot) against the allow-list.

    This is a prefix match: 'JPG', 'jpeg' and also 'jpgx' are accepted.
    """
    return pattern.match(ext) is not None


@dataclass(frozen=True)
class MediaFile:
    """A discovered media file."""
    path: Path
    extension: str  # lowercase, no dot
    key: str        # uppercase filename stem

    @classmethod
    def from_path(cls, path: Path) -> 'MediaFile':
        return cls(
            path=path,
            extension=path.suffix[1:].lower(),
            key=path.stem.upper(),
        )

    @property
    def name(self) -> str:
        return self.path.name


@dataclass
class ScanStats:
    """Counters for one walk."""
    files_seen: int = 0
    matched: int = 0
    skipped: int = 0
    symlinks: int = 0
    errors: int = 0

    def __str__(self) -> str:
        return (
            f"Seen: {self.files_seen} | Matched: {self.matched} | "
            f"Skipped: {self.skipped} | Symlinks: {self.symlinks} | Errors: {self.errors}"
        )


class Finder:
    """
    Recursively finds media files under a root directory.

    Symbolic links are never followed. Entries that cannot be read are
    skipped and counted in stats.errors instead of aborting the walk.
    """

    def __init__(self, root: Path, config: Optional[Config] = None):
        self.root = Path(root)
        self.config = config or default_config
        self.pattern = build_extension_pattern(self.config.media_extensions)
        self.stats = ScanStats()

    def _check_root(self):
        if not self.root.exists():
            raise FileNotFoundError(f"Directory not found: {self.root}")
        if not self.root.is_dir():
            raise NotADirectoryError(f"Not a directory: {self.root}")

    def _walk(self, directory: Path) -> Iterator[Path]:
        """Yield regular files under directory, depth-first."""
        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            # An unreadable root is a startup error, not a skipped entry
            if directory == self.root:
                raise
            logger.debug(f"Cannot list {directory}: {e}")
            self.stats.errors += 1
            return

        for entry in entries:
            try:
                if entry.is_symlink():
                    self.stats.symlinks += 1
                    continue
                if entry.is_dir():
                    yield from self._walk(entry)
                elif entry.is_file():
                    yield entry
            except OSError as e:
                logger.debug(f"Cannot stat {entry}: {e}")
                self.stats.errors += 1

    def iter_files(self) -> Iterator[Path]:
        """Yield every regular file under the root."""
        self._check_root()
        for path in self._walk(self.root):
            self.stats.files_seen += 1
            yield path

    def iter_media(self) -> Iterator[MediaFile]:
        """Yield the files whose extension passes the allow-list."""
        for path in self.iter_files():
            ext = path.suffix[1:]
            if ext and match_extension(ext, self.pattern):
                self.stats.matched += 1
                yield MediaFile.from_path(path)
            else:
                self.stats.skipped += 1

    def scan(self) -> List[MediaFile]:
        """
        Scan the root directory.

        Returns:
            Matched media files (no ordering guarantee)

        Raises:
            FileNotFoundError / NotADirectoryError: If root is unusable
            OSError: If root cannot be listed (e.g. PermissionError)
        """
        self.stats = ScanStats()
        files = list(self.iter_media())
        logger.info(f"Scan of {self.root} complete: {self.stats}")
        if self.stats.errors:
            logger.warning(f"{self.stats.errors} entries could not be read under {self.root}")
        return files

    def find_jpeg(self) -> List[Path]:
        """List JPEG images directly inside the root (not recursive)."""
        self._check_root()
        return sorted(
            p for p in self.root.iterdir()
            if p.suffix.lower() in EXIF_EXTENSIONS and p.is_file()
        )


# Convenience function
def scan_directory(directory: Path | str, config: Optional[Config] = None) -> List[MediaFile]:
    """
    Quick function to scan a directory.

    Args:
        directory: Directory to scan
        config: Optional configuration

    Returns:
        Matched media files
    """
    return Finder(Path(directory), config).scan()
