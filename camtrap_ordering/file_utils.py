"""
File system utilities for the camera-trap ordering tool.
Handles safe moves, directory creation/cleanup and EXIF field extraction.
"""
import errno
import hashlib
import logging
import os
import shutil
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from PIL import ExifTags, Image


logger = logging.getLogger(__name__)

# Exif sub-IFD pointer; most capture settings live there rather than in IFD0
EXIF_IFD_POINTER = 0x8769


class ExifField(NamedTuple):
    """One printable EXIF field."""
    tag: str
    label: str
    fallback: str


EXIF_FIELDS = (
    ExifField('Make', 'Camera make', 'No camera make found'),
    ExifField('Model', 'Camera model', 'No camera model found'),
    ExifField('DateTimeOriginal', 'Date taken', 'No capture date found'),
    ExifField('ExposureTime', 'Exposure time', 'No exposure time found'),
    ExifField('FNumber', 'F-number', 'No f-number found'),
    ExifField('ISOSpeedRatings', 'ISO', 'No ISO found'),
    ExifField('Flash', 'Flash', 'No flash information found'),
    ExifField('ExifImageWidth', 'Width', 'No width found'),
    ExifField('ExifImageHeight', 'Height', 'No height found'),
)


def get_file_checksum(file_path: Path, algorithm: str = "md5") -> str:
    """
    Calculate checksum of a file.

    Args:
        file_path: Path to the file
        algorithm: Hash algorithm (md5, sha256, etc.)

    Returns:
        Hex digest of the file's checksum
    """
    hash_func = hashlib.new(algorithm)
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            hash_func.update(chunk)
    return hash_func.hexdigest()


def files_are_identical(file1: Path, file2: Path) -> bool:
    """Check if two files have identical content (size first, then MD5)."""
    if file1.stat().st_size != file2.stat().st_size:
        return False
    return get_file_checksum(file1) == get_file_checksum(file2)


class FileOperations:
    """File operations used while organizing."""

    def __init__(self, verify_copies: bool = True):
        self.verify_copies = verify_copies

    @staticmethod
    def ensure_directory(path: Path):
        """
        Create a directory tree if it doesn't exist.

        Safe under concurrent callers: an already existing directory is not
        an error. A non-directory in the way raises FileExistsError.
        """
        path.mkdir(parents=True, exist_ok=True)

    def move_file(self, source: Path, dest: Path) -> str:
        """
        Move a file, never overwriting an existing destination.

        Uses rename when source and destination share a filesystem, and
        falls back to copy -> verify -> delete across devices.

        Args:
            source: Source file path
            dest: Destination file path

        Returns:
            "rename" or "copy", depending on the strategy used

        Raises:
            FileExistsError: If dest already exists
            OSError: If the directory, rename, copy or verification fails
        """
        if dest.exists() or dest.is_symlink():
            raise FileExistsError(errno.EEXIST, "Destination already exists", str(dest))

        self.ensure_directory(dest.parent)

        try:
            os.rename(source, dest)
            return "rename"
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise

        logger.debug(f"Cross-device move, copying: {source} -> {dest}")
        try:
            shutil.copy2(source, dest)
            if self.verify_copies and not files_are_identical(source, dest):
                raise OSError(errno.EIO, "Copy verification failed", str(dest))
        except OSError:
            # Remove a partial copy, the source is still intact
            if dest.exists():
                dest.unlink()
            raise

        source.unlink()
        return "copy"

    @staticmethod
    def delete_empty_directory(path: Path) -> bool:
        """
        Delete a directory if it's empty.

        Returns:
            True if directory was deleted
        """
        try:
            if path.is_dir() and not path.is_symlink() and not any(path.iterdir()):
                path.rmdir()
                return True
        except OSError as e:
            logger.debug(f"Could not delete {path}: {e}")
        return False

    def remove_empty_parents(self, start: Path, stop: Path) -> List[Path]:
        """
        Delete start and its ancestors while they are empty.

        Never deletes stop itself or anything outside it.

        Returns:
            Directories that were deleted, deepest first
        """
        removed = []
        stop = stop.resolve()
        current = start.resolve()

        while current != stop and stop in current.parents:
            if not self.delete_empty_directory(current):
                break
            removed.append(current)
            current = current.parent

        return removed


class MetadataExtractor:
    """Extracts printable EXIF fields from image files."""

    def __init__(self, fields=EXIF_FIELDS):
        self.fields = fields

    def read_tags(self, path: Path) -> Dict[str, object]:
        """Read raw EXIF tags (IFD0 + Exif sub-IFD) keyed by tag name."""
        with Image.open(path) as img:
            exif = img.getexif()
            tags = {ExifTags.TAGS.get(k, k): v for k, v in exif.items()}
            sub_ifd = exif.get_ifd(EXIF_IFD_POINTER)
            tags.update({ExifTags.TAGS.get(k, k): v for k, v in sub_ifd.items()})
        return tags

    def extract(self, path: Path) -> Dict[str, str]:
        """
        Extract the configured fields from an image.

        Args:
            path: Path to the image file

        Returns:
            Dictionary of label -> value (or the field's fallback message)
        """
        try:
            tags = self.read_tags(path)
        except (OSError, ValueError) as e:
            logger.debug(f"Could not read EXIF from {path}: {e}")
            tags = {}

        result = {}
        for field in self.fields:
            value: Optional[object] = tags.get(field.tag)
            if isinstance(value, bytes):
                value = value.decode('utf-8', errors='replace')
            if isinstance(value, str):
                value = value.strip('\x00 ').strip()
            result[field.label] = str(value) if value not in (None, "") else field.fallback
        return result
