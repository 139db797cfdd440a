#!/usr/bin/env python
"""
Camera-trap Ordering Tool - Command Line Interface
==================================================

Usage:
    # Print EXIF fields of the JPEG images in a folder
    camtrap-ordering metadata --dir ./DCIM

    # Move media into Taxon/Locality/Station folders
    camtrap-ordering organize --dir ./DCIM --input records.csv --output ./organized

    # Count media files by extension and write summary.txt
    camtrap-ordering summarize --dir ./DCIM
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config import Config, RECORD_SCHEMAS
from .file_scanner import Finder
from .file_utils import MetadataExtractor
from .logger_module import OrderingLogger
from .organizer import Organizer
from .record_store import RecordStoreError
from .summary import get_taxon_distribution, summarize, write_manifest


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="camtrap-ordering",
        description="Organize camera-trap images and videos by taxon",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Organize in place (output defaults to --dir)
  camtrap-ordering organize --dir ./DCIM --input records.csv

  # Records file that uses a 'locality' column
  camtrap-ordering organize --dir ./DCIM --input records.csv --schema locality

  # Move with 4 worker threads
  camtrap-ordering organize --dir ./DCIM --input records.csv --output ./out --workers 4
        """
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        '--dir', '-d',
        type=Path,
        required=True,
        help='Directory to scan'
    )
    common.add_argument(
        '--log-dir',
        type=Path,
        help='Directory for the rotating log file (default: ./logs)'
    )
    common.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Show debug messages on the console'
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "metadata", parents=[common], help="Print EXIF fields of the JPEG images in --dir"
    )

    organize_parser = subparsers.add_parser(
        "organize", parents=[common], help="Move media into Taxon/Locality/Station folders"
    )
    organize_parser.add_argument(
        '--input', '-i',
        type=Path,
        required=True,
        help='Records file (CSV or Excel) mapping image ids to taxa'
    )
    organize_parser.add_argument(
        '--output', '-o',
        type=Path,
        help='Output directory (default: same as --dir)'
    )
    organize_parser.add_argument(
        '--schema',
        choices=sorted(RECORD_SCHEMAS),
        help="Records column layout (default: 'default' = image_id, scientific_id, locality_id, station)"
    )
    organize_parser.add_argument(
        '--workers', '-w',
        type=int,
        help='Number of threads used to move files (default: 1)'
    )
    organize_parser.add_argument(
        '--keep-empty-dirs',
        action='store_true',
        help='Do not remove source directories left empty'
    )
    organize_parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Suppress progress output'
    )

    summarize_parser = subparsers.add_parser(
        "summarize", parents=[common], help="Count media files by extension"
    )
    summarize_parser.add_argument(
        '--manifest',
        type=Path,
        help='Manifest file listing every path found (default: summary.txt)'
    )
    summarize_parser.add_argument(
        '--no-manifest',
        action='store_true',
        help='Do not write the manifest file'
    )
    summarize_parser.add_argument(
        '--by-taxon',
        action='store_true',
        help='Also count files per taxon folder (for an organized tree)'
    )

    return parser


def validate_args(args: argparse.Namespace) -> bool:
    """Validate command line arguments."""
    if not args.dir.exists():
        print(f"Error: Directory not found: {args.dir}")
        return False
    if not args.dir.is_dir():
        print(f"Error: Not a directory: {args.dir}")
        return False

    if args.command == "organize":
        if not args.input.is_file():
            print(f"Error: Records file not found: {args.input}")
            return False
        if args.workers is not None and args.workers < 1:
            print("Error: --workers must be at least 1")
            return False
        if args.output is not None and args.output.exists() and not args.output.is_dir():
            print(f"Error: Output is not a directory: {args.output}")
            return False

    if args.command == "summarize" and args.manifest and args.no_manifest:
        print("Error: Cannot specify both --manifest and --no-manifest")
        return False

    return True


def build_config(args: argparse.Namespace) -> Config:
    """Environment/.env configuration overridden by command line options."""
    cfg = Config.from_env()
    changes = {'log_dir': args.log_dir}
    if args.command == "organize":
        changes.update(
            record_schema=args.schema,
            workers=args.workers,
            remove_empty_dirs=False if args.keep_empty_dirs else None,
        )
    return cfg.replace(**changes)


def run_metadata(args: argparse.Namespace, action_logger: OrderingLogger) -> int:
    extractor = MetadataExtractor()
    images = Finder(args.dir).find_jpeg()
    action_logger.info(f"Found {len(images)} JPEG images in {args.dir}")

    for image in images:
        print(f"\n{image.name}")
        for label, value in extractor.extract(image).items():
            print(f"  {label:18}: {value}")
    return 0


def run_organize(args: argparse.Namespace, cfg: Config, action_logger: OrderingLogger) -> int:
    def progress_callback(message: str):
        print(f"\r  {message}", end="", flush=True)

    action_logger.report("Input", {
        'Config file': args.input,
        'Input directory': args.dir,
        'Output directory': args.output or args.dir,
        'Record schema': cfg.record_schema,
        'Workers': cfg.workers,
    })

    organizer = Organizer(
        config=cfg,
        action_logger=action_logger,
        progress_callback=None if args.quiet else progress_callback,
    )
    try:
        report = organizer.organize(args.dir, args.input, args.output)
    except KeyboardInterrupt:
        print("\n\nInterrupted! Files already moved stay in place.")
        action_logger.report("Partial report", organizer.report.as_dict())
        return 130

    if not args.quiet:
        print()
    print_summary(report)
    return 0


def run_summarize(args: argparse.Namespace, cfg: Config, action_logger: OrderingLogger) -> int:
    paths = [media.path for media in Finder(args.dir, cfg).scan()]
    result = summarize(paths)
    result.log(action_logger.logger)

    if not args.no_manifest:
        write_manifest(paths, args.manifest or Path(cfg.manifest_name))

    if args.by_taxon:
        action_logger.report("Files per taxon", get_taxon_distribution(args.dir, cfg.unknown_dir_name))
    return 0


def print_summary(report):
    """Print organize summary."""
    print("\n" + "=" * 60)
    print("ORGANIZING COMPLETE")
    print("=" * 60)
    for name, value in report.as_dict().items():
        print(f"{name:18}: {value}")

    if report.failures:
        print(f"\nFailed files ({len(report.failures)}):")
        for path, reason in report.failures[:20]:
            print(f"  {path}: {reason}")
        if len(report.failures) > 20:
            print(f"  ... +{len(report.failures) - 20} more (see log file)")


def run_cli(args: argparse.Namespace) -> int:
    """Run the selected command."""
    try:
        cfg = build_config(args)
        action_logger = OrderingLogger(
            cfg.log_dir,
            verbose=args.verbose,
            max_bytes=cfg.log_max_bytes,
            backup_count=cfg.log_backup_count,
        )
    except (ValueError, OSError) as e:
        print(f"Error: {e}")
        return 1

    try:
        if args.command == "metadata":
            return run_metadata(args, action_logger)
        if args.command == "organize":
            return run_organize(args, cfg, action_logger)
        return run_summarize(args, cfg, action_logger)

    except (RecordStoreError, OSError) as e:
        action_logger.error("Aborted", e)
        print(f"\nError: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    finally:
        action_logger.close()


def main(argv: Optional[list] = None):
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if not validate_args(args):
        sys.exit(1)

    sys.exit(run_cli(args))


if __name__ == "__main__":
    main()
