"""
Summary of discovered media for the camera-trap ordering tool.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional


logger = logging.getLogger(__name__)


@dataclass
class SummaryResult:
    """File counts grouped by extension."""
    total: int = 0
    extension_counts: Dict[str, int] = field(default_factory=dict)
    without_extension: int = 0

    @property
    def extensions(self) -> List[str]:
        """Distinct extensions, sorted."""
        return sorted(self.extension_counts)

    def log(self, log: Optional[logging.Logger] = None):
        """Write the summary table to a logger."""
        log = log or logger
        log.info("Summary")
        log.info(f"{'File counts':18}: {self.total}")
        log.info(f"{'Filetype counts':18}: {len(self.extension_counts)}")
        if self.without_extension:
            log.info(f"{'No extension':18}: {self.without_extension}")
        log.info("")
        log.info("Filetypes")
        for ext in self.extensions:
            log.info(f"{ext:18}: {self.extension_counts[ext]}")


def summarize(paths: Iterable[Path | str]) -> SummaryResult:
    """
    Count paths by lowercase extension.

    Paths without an extension are counted in total and without_extension
    but left out of the extension counts.
    """
    counts = defaultdict(int)
    result = SummaryResult()

    for path in paths:
        result.total += 1
        ext = Path(path).suffix[1:].lower()
        if not ext:
            result.without_extension += 1
            continue
        counts[ext] += 1

    result.extension_counts = dict(sorted(counts.items()))
    return result


def write_manifest(paths: Iterable[Path | str], manifest_path: Path | str = "summary.txt") -> Path:
    """
    Write one path per line.

    Returns:
        The manifest path
    """
    manifest_path = Path(manifest_path)
    manifest_path.parent.mkdir(parents=True, exist_ok=True)
    with open(manifest_path, 'w', encoding='utf-8') as f:
        for path in paths:
            f.write(f"{path}\n")
    logger.info(f"Wrote manifest to {manifest_path}")
    return manifest_path


def get_taxon_distribution(output_dir: Path, unknown_dir_name: str = "unknown") -> Dict[str, int]:
    """
    Count files per taxon folder in an organized tree.

    Directory structure: Taxon/Locality/Station/file

    Returns:
        Dictionary with taxon folder names and file counts
    """
    distribution = defaultdict(int)

    for taxon_dir in Path(output_dir).iterdir():
        if not taxon_dir.is_dir() or taxon_dir.is_symlink():
            continue
        count = sum(1 for f in taxon_dir.rglob('*') if f.is_file())
        if count > 0:
            distribution[taxon_dir.name] += count

    # Keep the catch-all bucket last
    unknown = distribution.pop(unknown_dir_name, 0)
    result = dict(sorted(distribution.items()))
    if unknown:
        result[unknown_dir_name] = unknown
    return result
