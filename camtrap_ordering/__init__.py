"""
Camera-trap Ordering Tool
=========================

A tool for organizing camera-trap images and videos into
Taxon/Locality/Station folders from a records file.

Modules:
- config: Configuration settings and record schemas
- logger_module: Structured logging (console + rotating file)
- file_utils: Safe moves, directory cleanup, EXIF fields
- file_scanner: Media file discovery
- record_store: Records file parsing and destination index
- organizer: Main organize pass
- summary: Extension counts and manifest
"""

__version__ = "0.3.0"

from .config import Config, config, RECORD_SCHEMAS, MEDIA_EXTENSIONS
from .logger_module import OrderingLogger, LogAction
from .file_utils import FileOperations, MetadataExtractor, ExifField, EXIF_FIELDS
from .file_scanner import Finder, MediaFile, ScanStats, match_extension, scan_directory
from .record_store import (
    RecordStore, RecordSet, TaxonRecord, DestinationIndex,
    RecordStoreError, RecordSchemaError, sanitize, normalize_key, load_records
)
from .organizer import Organizer, OrganizeReport, FileState, PlannedMove, organize
from .summary import SummaryResult, summarize, write_manifest, get_taxon_distribution

__all__ = [
    'Config', 'config', 'RECORD_SCHEMAS', 'MEDIA_EXTENSIONS',
    'OrderingLogger', 'LogAction',
    'FileOperations', 'MetadataExtractor', 'ExifField', 'EXIF_FIELDS',
    'Finder', 'MediaFile', 'ScanStats', 'match_extension', 'scan_directory',
    'RecordStore', 'RecordSet', 'TaxonRecord', 'DestinationIndex',
    'RecordStoreError', 'RecordSchemaError', 'sanitize', 'normalize_key', 'load_records',
    'Organizer', 'OrganizeReport', 'FileState', 'PlannedMove', 'organize',
    'SummaryResult', 'summarize', 'write_manifest', 'get_taxon_distribution',
]
