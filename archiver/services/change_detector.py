"""
Content-level change detection between two zip archives.

Archives produced from identical trees can still differ byte-for-byte
(entry timestamps, compression level, entry order), so the comparison runs
on the decompressed trees: same set of entries, same sizes, same bytes.
"""

import filecmp
import os
import shutil
import tempfile
import zipfile
import zlib
from pathlib import Path
from typing import Dict, Optional, Set, Tuple

from archiver.errors import ArchiveError
from archiver.utils.logging import get_logger


logger = get_logger(__name__)


def _extract(archive_path: Path, destination: Path) -> None:
    """
    Extract a zip archive.

    Raises:
        ArchiveError: If the archive is unreadable or corrupt
    """
    try:
        with zipfile.ZipFile(archive_path) as archive:
            bad_entry = archive.testzip()
            if bad_entry is not None:
                raise ArchiveError(f"Corrupt entry {bad_entry} in {archive_path}")
            archive.extractall(destination)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, OSError, EOFError,
            NotImplementedError, RuntimeError, ValueError) as e:
        # zlib.error: corrupt deflate stream; NotImplementedError, RuntimeError: unsupported or encrypted entries
        raise ArchiveError(f"Unable to decompress {archive_path}: {e}") from e


def _scan_tree(root: Path) -> Tuple[Set[str], Dict[str, int]]:
    """Return (directory set, {file: size}) relative to ``root``."""
    directories: Set[str] = set()
    files: Dict[str, int] = {}

    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = os.path.relpath(dirpath, root)
        for name in dirnames:
            directories.add(os.path.normpath(os.path.join(rel_dir, name)))
        for name in filenames:
            rel_path = os.path.normpath(os.path.join(rel_dir, name))
            files[rel_path] = os.path.getsize(os.path.join(dirpath, name))

    return directories, files


def trees_identical(left: Path, right: Path) -> bool:
    """
    Recursively compare two directory trees by entry set, size and content.

    Args:
        left: First tree root
        right: Second tree root

    Returns:
        True if both trees hold the same entries with the same bytes
    """
    left_dirs, left_files = _scan_tree(left)
    right_dirs, right_files = _scan_tree(right)

    if left_dirs != right_dirs or left_files.keys() != right_files.keys():
        return False

    for rel_path, size in left_files.items():
        if right_files[rel_path] != size:
            return False

    for rel_path in left_files:
        if not filecmp.cmp(left / rel_path, right / rel_path, shallow=False):
            return False

    return True


class ChangeDetector:
    """Decides whether a newly produced archive differs from the stored one."""

    def __init__(self, scratch_root: Optional[Path] = None):
        """
        Args:
            scratch_root: Parent directory for extraction scratch space
        """
        self.scratch_root = scratch_root

    def is_unchanged(self, previous_archive: Optional[Path], new_archive: Path) -> bool:
        """
        Return True only if both archives decompress to identical trees.

        A missing previous archive means "changed" without any comparison.
        Decompression failure on either side also means "changed", so a
        doubtful comparison always leads to a new upload.
        """
        if previous_archive is None:
            return False

        scratch = Path(tempfile.mkdtemp(prefix="zip-compare-", dir=self.scratch_root))
        try:
            old_dir = scratch / "old"
            new_dir = scratch / "new"
            old_dir.mkdir()
            new_dir.mkdir()

            try:
                _extract(previous_archive, old_dir)
                _extract(new_archive, new_dir)
            except ArchiveError as e:
                logger.warning(f"Treating archive as changed: {e}")
                return False

            return trees_identical(old_dir, new_dir)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)
