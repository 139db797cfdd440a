"""
Records manager for the camera-trap ordering tool.
Parses the taxonomic records file (CSV or Excel) and builds the index that
maps normalized image ids to destination folders.
"""
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple

import pandas as pd

from .config import (
    Config, config as default_config, RECORD_FIELDS, RECORDS_EXCEL_EXTENSIONS
)
from .file_scanner import EXTENSION_PATTERN, build_extension_pattern, match_extension
from .logger_module import OrderingLogger


logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_PATH_SEPARATORS = re.compile(r"[\\/]")


class RecordStoreError(Exception):
    """The records file cannot be used; nothing should be moved."""


class RecordSchemaError(RecordStoreError):
    """The records file header does not match the declared schema."""


def sanitize(name: str) -> str:
    """
    Turn a taxon name into a folder name.

    Periods are removed, surrounding whitespace trimmed and every whitespace
    run replaced by one underscore, so "Genus sp. " gives "Genus_sp".
    """
    return _WHITESPACE.sub("_", name.replace(".", "").strip())


def normalize_key(image_id: str, pattern: re.Pattern = EXTENSION_PATTERN) -> str:
    """
    Normalize an image id into the join key used against file stems.

    Path-like values are reduced to their file name, a media extension is
    dropped, and the result is uppercased.
    """
    name = _PATH_SEPARATORS.split(image_id.strip())[-1].strip()
    stem, dot, ext = name.rpartition(".")
    if dot and stem and match_extension(ext, pattern):
        name = stem
    return name.upper()


def check_component(value: str) -> Optional[str]:
    """Return a reason if value is not usable as a single folder name."""
    if not value:
        return "empty folder name"
    if value in (".", ".."):
        return f"'{value}' is not a valid folder name"
    if _PATH_SEPARATORS.search(value) or "\x00" in value:
        return f"'{value}' contains a path separator"
    return None


@dataclass(frozen=True)
class TaxonRecord:
    """One row of the records file."""
    image_id: str
    scientific_id: str
    locality_id: str
    station: str

    @property
    def taxon_folder(self) -> str:
        return sanitize(self.scientific_id)

    def destination(self) -> PurePosixPath:
        """Relative destination folder: taxon/locality/station."""
        return PurePosixPath(self.taxon_folder, self.locality_id, self.station)


class DestinationIndex(Mapping):
    """
    Read-only mapping of normalized image key -> relative destination folder.
    """

    def __init__(self, entries: Dict[str, PurePosixPath], overwritten_keys: Tuple[str, ...] = ()):
        self._entries = MappingProxyType(dict(entries))
        self.overwritten_keys = tuple(overwritten_keys)

    def __getitem__(self, key: str) -> PurePosixPath:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"DestinationIndex({len(self)} keys, {len(self.overwritten_keys)} overwritten)"


@dataclass(frozen=True)
class RecordSet:
    """Everything loaded from one records file."""
    records: Tuple[TaxonRecord, ...]
    index: DestinationIndex
    taxa: FrozenSet[str]
    rejected: Tuple[Tuple[int, str], ...] = ()

    def get_stats(self) -> Dict[str, int]:
        """Get counts for reporting."""
        return {
            'records': len(self.records),
            'indexed_keys': len(self.index),
            'taxa': len(self.taxa),
            'overwritten': len(self.index.overwritten_keys),
            'rejected': len(self.rejected),
        }


class RecordStore:
    """
    Loads taxonomic records and builds the destination index.

    The whole file is validated before an index is returned: any malformed
    row aborts the load with RecordStoreError.
    """

    def __init__(self, config: Optional[Config] = None, action_logger: Optional[OrderingLogger] = None):
        """
        Initialize the record store.

        Args:
            config: Configuration (the record schema is read from it)
            action_logger: Optional session logger for overwrite/reject events
        """
        self.config = config or default_config
        self.columns = self.config.schema_columns()
        self.action_logger = action_logger
        self.pattern = build_extension_pattern(self.config.media_extensions)

    # === Reading ===

    def _read_frame(self, path: Path) -> pd.DataFrame:
        """
        Read the records file into a dataframe of strings.

        The header row is read as data so that pandas never takes a longer
        first row as an index column: every row must fit the header width.
        The returned frame is indexed by file line number (header = line 1)
        with blank lines dropped.
        """
        if not path.is_file():
            raise RecordStoreError(f"Records file not found: {path}")

        try:
            if path.suffix.lower() in RECORDS_EXCEL_EXTENSIONS:
                raw = pd.read_excel(path, header=None, dtype=str, keep_default_na=False)
            else:
                raw = pd.read_csv(
                    path, header=None, dtype=str, keep_default_na=False,
                    skip_blank_lines=False, encoding='utf-8-sig',
                )
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise RecordStoreError(f"Malformed records file {path}: {e}") from e
        except (OSError, ValueError) as e:
            raise RecordStoreError(f"Could not read records file {path}: {e}") from e

        if raw.empty:
            raise RecordStoreError(f"Malformed records file {path}: no header row")

        header = [str(c).strip() if isinstance(c, str) else "" for c in raw.iloc[0]]
        df = raw.iloc[1:].copy()
        df.columns = header
        df.index = df.index + 1

        keep = [
            any(isinstance(v, str) and v.strip() for v in row)
            for row in df.itertuples(index=False, name=None)
        ]
        return df.loc[keep]

    def _check_header(self, df: pd.DataFrame, path: Path):
        missing = [header for header in self.columns.values() if header not in df.columns]
        if missing:
            raise RecordSchemaError(
                f"{path}: missing column(s) {missing} for schema "
                f"'{self.config.record_schema}' (found: {list(df.columns)})"
            )

    def parse_records(self, df: pd.DataFrame) -> List[TaxonRecord]:
        """
        Convert dataframe rows into records.

        Args:
            df: Dataframe with the schema columns, indexed by file line number

        Raises:
            RecordStoreError: On the first row with a missing or empty field
        """
        headers = [self.columns[name] for name in RECORD_FIELDS]
        records = []
        for line, *row in df[headers].itertuples(index=True, name=None):
            values = {}
            for field_name, header, value in zip(RECORD_FIELDS, headers, row):
                # Short rows come back empty or NaN
                if not isinstance(value, str) or not value.strip():
                    raise RecordStoreError(f"Row {line}: missing value for '{header}'")
                values[field_name] = value.strip()
            records.append(TaxonRecord(**values))
        return records

    # === Index ===

    def _reject(self, row: int, reason: str, rejected: list):
        rejected.append((row, reason))
        if self.action_logger:
            self.action_logger.record_rejected(row, reason)
        else:
            logger.warning(f"Rejected record at row {row}: {reason}")

    def build_index(
        self,
        records: List[TaxonRecord],
        rows: Optional[Sequence[int]] = None,
    ) -> Tuple[DestinationIndex, list]:
        """
        Build the destination index from parsed records.

        Later records overwrite earlier ones with the same key; each
        overwrite is logged. Records whose key or folders would be unsafe
        are rejected and left out; if such a record repeats an indexed key,
        the earlier destination is kept and that is logged too.

        Args:
            records: Parsed records in file order
            rows: File line number of each record (default: 2, 3, ...)
        """
        if rows is None:
            rows = range(2, 2 + len(records))

        entries: Dict[str, PurePosixPath] = {}
        overwritten: List[str] = []
        rejected: List[Tuple[int, str]] = []

        for row, record in zip(rows, records):
            key = normalize_key(record.image_id, self.pattern)
            if not key:
                self._reject(row, f"image id '{record.image_id}' has no file name", rejected)
                continue

            reason = None
            for component in (record.taxon_folder, record.locality_id, record.station):
                reason = check_component(component)
                if reason:
                    break
            if reason:
                self._reject(row, reason, rejected)
                if key in entries:
                    message = (
                        f"Duplicate image id {key} at row {row} was rejected, "
                        f"keeping {entries[key]}"
                    )
                    if self.action_logger:
                        self.action_logger.warning(message)
                    else:
                        logger.warning(message)
                continue

            destination = record.destination()
            if key in entries:
                overwritten.append(key)
                if self.action_logger:
                    self.action_logger.record_overwritten(key, str(entries[key]), str(destination))
                else:
                    logger.warning(
                        f"Duplicate image id {key} at row {row}: "
                        f"{entries[key]} replaced by {destination}"
                    )
            entries[key] = destination

        return DestinationIndex(entries, tuple(overwritten)), rejected

    def load(self, path: Path | str) -> RecordSet:
        """
        Load a records file.

        Args:
            path: CSV (or Excel) file with a header row

        Returns:
            RecordSet with records, index, taxa and rejected rows

        Raises:
            RecordStoreError: If the file is unreadable or any row is malformed
        """
        path = Path(path)
        df = self._read_frame(path)
        self._check_header(df, path)

        records = self.parse_records(df)
        index, rejected = self.build_index(records, list(df.index))
        taxa = frozenset(r.scientific_id for r in records)

        record_set = RecordSet(
            records=tuple(records),
            index=index,
            taxa=taxa,
            rejected=tuple(rejected),
        )
        logger.info(f"Loaded records from {path}: {record_set.get_stats()}")
        return record_set


# Convenience function
def load_records(path: Path | str, config: Optional[Config] = None) -> RecordSet:
    """Load a records file with the given (or default) configuration."""
    return RecordStore(config).load(path)
