"""
Configuration for the camera-trap ordering tool.
"""
import os
from pathlib import Path
from dataclasses import dataclass, field, fields
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv


# === Media extensions ===
# Matched as case-insensitive prefixes of the file extension (see file_scanner)
MEDIA_EXTENSIONS: Tuple[str, ...] = ('jpg', 'jpeg', 'avi', 'm4a', 'm4v', 'mp4')

# Extensions listed by the `metadata` command (EXIF-capable stills)
EXIF_EXTENSIONS = {'.jpg', '.jpeg'}

RECORDS_CSV_EXTENSIONS = {'.csv', '.txt'}
RECORDS_EXCEL_EXTENSIONS = {'.xlsx', '.xls'}


# === Record schemas ===
# Each schema maps the logical record fields to the header names expected in
# the records file. The schema in use must be chosen explicitly; the two
# names below are the layouts seen in field spreadsheets.
RECORD_FIELDS = ('image_id', 'scientific_id', 'locality_id', 'station')

RECORD_SCHEMAS: Dict[str, Dict[str, str]] = {
    'default': {
        'image_id': 'image_id',
        'scientific_id': 'scientific_id',
        'locality_id': 'locality_id',
        'station': 'station',
    },
    'locality': {
        'image_id': 'image_id',
        'scientific_id': 'scientific_id',
        'locality_id': 'locality',
        'station': 'station',
    },
}

ENV_PREFIX = "CAMTRAP_"


@dataclass
class Config:
    """Main configuration class."""

    # === Records ===
    record_schema: str = 'default'

    # === Organizing ===
    unknown_dir_name: str = 'unknown'
    workers: int = 1
    remove_empty_dirs: bool = True
    verify_copies: bool = True
    progress_interval: int = 1
    media_extensions: Tuple[str, ...] = MEDIA_EXTENSIONS

    # === Summary ===
    manifest_name: str = 'summary.txt'

    # === Logging ===
    log_dir: Path = Path('logs')
    log_max_bytes: int = 5 * 1024 * 1024
    log_backup_count: int = 3

    def __post_init__(self):
        self.log_dir = Path(self.log_dir)
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.progress_interval < 1:
            raise ValueError(f"progress_interval must be >= 1, got {self.progress_interval}")
        # Fail early on an undeclared schema
        self.schema_columns()

    def schema_columns(self) -> Dict[str, str]:
        """
        Get the column mapping of the configured record schema.

        Returns:
            Dictionary of logical field -> header name

        Raises:
            ValueError: If the schema name is not one of RECORD_SCHEMAS
        """
        try:
            return dict(RECORD_SCHEMAS[self.record_schema])
        except KeyError:
            known = ", ".join(sorted(RECORD_SCHEMAS))
            raise ValueError(
                f"Unknown record schema '{self.record_schema}' (known: {known})"
            ) from None

    def replace(self, **changes) -> 'Config':
        """Return a copy with the given fields changed (None values are ignored)."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in changes.items() if v is not None})
        return Config(**values)

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> 'Config':
        """
        Build a configuration from CAMTRAP_* environment variables.

        A .env file (current directory, or env_file) is loaded first without
        overriding variables that are already set.
        """
        load_dotenv(dotenv_path=env_file)

        changes = {}
        for f in fields(cls):
            raw = os.environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            if f.type in (int, 'int'):
                changes[f.name] = int(raw)
            elif f.type in (bool, 'bool'):
                changes[f.name] = raw.strip().lower() in ('1', 'true', 'yes', 'on')
            elif f.type in (Path, 'Path'):
                changes[f.name] = Path(raw)
            elif f.name == 'media_extensions':
                changes[f.name] = tuple(e.strip().lstrip('.').lower() for e in raw.split(',') if e.strip())
            else:
                changes[f.name] = raw.strip()
        return cls(**changes)


# Global config instance
config = Config()
