"""
Phase 2: File Discovery Tests
Tests for the file_scanner and summary modules.
"""
import errno
import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

# Add parent to path for imports when running directly
sys.path.insert(0, str(Path(__file__).parent.parent))

from camtrap_ordering.config import Config
from camtrap_ordering.file_scanner import Finder, MediaFile, match_extension, scan_directory
from camtrap_ordering.summary import summarize, write_manifest, get_taxon_distribution


def create_test_tree(base_dir: Path) -> Path:
    """Create a small camera-trap card layout."""
    root = base_dir / "DCIM"
    (root / "100RECNX").mkdir(parents=True)
    (root / "101RECNX" / "deep" / "deeper").mkdir(parents=True)

    (root / "IMG_0001.JPG").write_text("img")
    (root / "100RECNX" / "IMG_0002.jpg").write_text("img")
    (root / "100RECNX" / "CLIP_0003.Mp4").write_text("vid")
    (root / "100RECNX" / "notes.txt").write_text("not media")
    (root / "101RECNX" / "deep" / "deeper" / "CALL_0004.M4A").write_text("audio")
    (root / "101RECNX" / "thumb.png").write_text("not media")
    (root / "101RECNX" / "README").write_text("no extension")
    return root


def test_match_extension():
    """Test the extension allow-list in every case combination."""
    for ext in ('jpg', 'jpeg', 'avi', 'm4a', 'm4v', 'mp4'):
        for variant in (ext, ext.upper(), ext.capitalize(), ext[0] + ext[1:].upper()):
            assert match_extension(variant), f"{variant} should match"

    for ext in ('txt', 'png', 'mov', 'csv', 'xjpg', ''):
        assert not match_extension(ext), f"{ext} should not match"

    # Prefix match: longer extensions starting with an allowed one pass
    assert match_extension('jpgx')
    assert match_extension('MP4V')
    print("✓ Extension matching works")


def test_media_file():
    media = MediaFile.from_path(Path("/cards/100RECNX/Img_0002.JpG"))
    assert media.extension == "jpg"
    assert media.key == "IMG_0002"
    assert media.name == "Img_0002.JpG"
    print("✓ MediaFile keys work")


def test_finder_recursive_scan():
    """Test recursive discovery at any depth."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = create_test_tree(Path(tmpdir))

        finder = Finder(root)
        files = finder.scan()

        names = sorted(m.name for m in files)
        assert names == ["CALL_0004.M4A", "CLIP_0003.Mp4", "IMG_0001.JPG", "IMG_0002.jpg"]
        assert finder.stats.files_seen == 7
        assert finder.stats.matched == 4
        assert finder.stats.skipped == 3
        assert finder.stats.errors == 0

        assert sorted(m.path for m in scan_directory(root)) == sorted(m.path for m in files)
    print("✓ Recursive scan works")


def test_finder_skips_symlinks():
    """Symbolic links are not followed (no loops, no duplicates)."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = create_test_tree(Path(tmpdir))
        try:
            os.symlink(root, root / "loop", target_is_directory=True)
            os.symlink(root / "IMG_0001.JPG", root / "LINK_0001.JPG")
        except (OSError, NotImplementedError):
            print("  (symlinks not supported here, skipping)")
            return

        finder = Finder(root)
        files = finder.scan()

        assert len(files) == 4
        assert finder.stats.symlinks == 2
    print("✓ Symlinks are skipped")


def test_finder_unreadable_directory():
    """An unreadable directory is counted and skipped, not fatal."""
    if os.name != "posix" or os.geteuid() == 0:
        print("  (cannot drop permissions here, skipping)")
        return

    with tempfile.TemporaryDirectory() as tmpdir:
        root = create_test_tree(Path(tmpdir))
        locked = root / "101RECNX"
        locked.chmod(0)
        try:
            finder = Finder(root)
            files = finder.scan()
        finally:
            locked.chmod(0o755)

        assert sorted(m.name for m in files) == ["CLIP_0003.Mp4", "IMG_0001.JPG", "IMG_0002.jpg"]
        assert finder.stats.errors == 1
    print("✓ Unreadable entries are skipped")


def test_finder_unreadable_root():
    """A root that cannot be listed stops the scan."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = create_test_tree(Path(tmpdir))
        real_iterdir = Path.iterdir

        def locked_iterdir(self):
            if self.resolve() == root.resolve():
                raise PermissionError(errno.EACCES, "Permission denied", str(self))
            return real_iterdir(self)

        with patch.object(Path, "iterdir", locked_iterdir):
            try:
                Finder(root).scan()
                assert False, "Unreadable root should raise"
            except PermissionError:
                pass
    print("✓ Unreadable root is reported")


def test_finder_bad_root():
    with tempfile.TemporaryDirectory() as tmpdir:
        missing = Path(tmpdir) / "missing"
        try:
            Finder(missing).scan()
            assert False, "Missing root should raise"
        except FileNotFoundError:
            pass

        a_file = Path(tmpdir) / "file.jpg"
        a_file.write_text("x")
        try:
            Finder(a_file).scan()
            assert False, "File root should raise"
        except NotADirectoryError:
            pass
    print("✓ Bad roots are reported")


def test_finder_custom_extensions():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = create_test_tree(Path(tmpdir))
        files = Finder(root, Config(media_extensions=('png',))).scan()
        assert [m.name for m in files] == ["thumb.png"]
    print("✓ Custom extension allow-list works")


def test_find_jpeg():
    """find_jpeg only looks at the top level."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = create_test_tree(Path(tmpdir))
        (root / "IMG_0005.jpeg").write_text("img")
        assert [p.name for p in Finder(root).find_jpeg()] == ["IMG_0001.JPG", "IMG_0005.jpeg"]
    print("✓ find_jpeg works")


def test_summarize():
    """Test extension aggregation."""
    paths = [
        Path("a/IMG_1.JPG"),
        Path("a/IMG_2.jpg"),
        Path("b/CLIP.mp4"),
        Path("b/README"),
        "c/CALL.M4A",
    ]
    result = summarize(paths)

    assert result.total == 5
    assert result.extension_counts == {'jpg': 2, 'm4a': 1, 'mp4': 1}
    assert result.extensions == ['jpg', 'm4a', 'mp4']
    assert result.without_extension == 1

    empty = summarize([])
    assert empty.total == 0 and empty.extensions == []
    print("✓ Summary works")


def test_write_manifest():
    with tempfile.TemporaryDirectory() as tmpdir:
        manifest = Path(tmpdir) / "reports" / "summary.txt"
        paths = [Path("/cards/A1.JPG"), Path("/cards/B2.JPG")]
        assert write_manifest(paths, manifest) == manifest
        assert manifest.read_text(encoding='utf-8').splitlines() == ["/cards/A1.JPG", "/cards/B2.JPG"]
    print("✓ Manifest writing works")


def test_taxon_distribution():
    with tempfile.TemporaryDirectory() as tmpdir:
        out = Path(tmpdir)
        (out / "Felis_catus" / "L1" / "S1").mkdir(parents=True)
        (out / "Felis_catus" / "L1" / "S1" / "A1.JPG").write_text("x")
        (out / "Felis_catus" / "L1" / "S1" / "A2.JPG").write_text("x")
        (out / "unknown").mkdir()
        (out / "unknown" / "B2.JPG").write_text("x")
        (out / "Aves").mkdir()
        (out / "Aves" / "C3.JPG").write_text("x")

        distribution = get_taxon_distribution(out)
        assert distribution == {'Aves': 1, 'Felis_catus': 2, 'unknown': 1}
        assert list(distribution)[-1] == 'unknown'
    print("✓ Taxon distribution works")


if __name__ == "__main__":
    print("=" * 50)
    print("Phase 2: File Discovery Tests")
    print("=" * 50)

    tests = [
        test_match_extension,
        test_media_file,
        test_finder_recursive_scan,
        test_finder_skips_symlinks,
        test_finder_unreadable_directory,
        test_finder_unreadable_root,
        test_finder_bad_root,
        test_finder_custom_extensions,
        test_find_jpeg,
        test_summarize,
        test_write_manifest,
        test_taxon_distribution,
    ]

    failed = 0
    for test in tests:
        try:
            test()
        except Exception as e:
            print(f"✗ {test.__name__} failed with exception: {e}")
            failed += 1

    print(f"\nTotal: {len(tests) - failed} passed, {failed} failed")
    sys.exit(0 if failed == 0 else 1)
