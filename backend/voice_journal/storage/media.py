"""Filesystem access for recorded media files."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from voice_journal.utils.ids import media_file_name

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


class MediaStore:
    """Owns the recordings directory: path generation, stats and deletion.

    Paths are handled as normalized absolute strings so they can be compared
    directly with the references stored on entries.
    """

    def __init__(self, media_dir: Path, extension: str = ".wav") -> None:
        self.media_dir = media_dir.expanduser()
        self.extension = extension

    def ensure_directory(self) -> None:
        self.media_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def normalize(path: str | os.PathLike[str]) -> str:
        return os.path.abspath(os.path.expanduser(os.fspath(path)))

    def new_media_path(self) -> str:
        self.ensure_directory()
        return self.normalize(self.media_dir / media_file_name(self.extension))

    def contains(self, path: str | os.PathLike[str]) -> bool:
        """True when ``path`` resolves to a file below the recordings directory.

        Symlinks are resolved on both sides, so a link inside the directory
        that points elsewhere is not contained.
        """
        root = os.path.realpath(self.normalize(self.media_dir))
        target = os.path.realpath(self.normalize(path))
        try:
            return target != root and os.path.commonpath([root, target]) == root
        except ValueError:
            # different drives
            return False

    def exists(self, path: str | os.PathLike[str]) -> bool:
        return os.path.isfile(self.normalize(path))

    def size(self, path: str | os.PathLike[str]) -> int:
        """Return the file size in bytes, 0 when missing or unreadable."""
        try:
            return os.path.getsize(self.normalize(path))
        except OSError:
            return 0

    def delete(self, path: str | os.PathLike[str]) -> bool:
        """Delete a media file; an already-missing file counts as deleted."""
        target = self.normalize(path)
        if not os.path.exists(target):
            return True
        try:
            os.remove(target)
        except OSError as exc:
            logger.warning("Failed to delete media file %s: %s", target, exc)
            return False
        logger.debug("Deleted media file %s", target)
        return True

    def list_all(self) -> list[str]:
        """List every media file in the recordings directory."""
        if not self.media_dir.is_dir():
            return []
        return sorted(
            self.normalize(entry.path)
            for entry in os.scandir(self.media_dir)
            if entry.is_file() and entry.name.lower().endswith(self.extension)
        )

    def total_size(self) -> int:
        return sum(self.size(path) for path in self.list_all())

    def available_free_space(self) -> int:
        """Free bytes on the volume holding the recordings directory."""
        anchor = self.media_dir
        while not anchor.exists() and anchor != anchor.parent:
            anchor = anchor.parent
        try:
            return shutil.disk_usage(anchor).free
        except OSError as exc:
            logger.warning("Failed to read free space for %s: %s", anchor, exc)
            return 0

    def read_bytes(self, path: str | os.PathLike[str]) -> bytes:
        return Path(self.normalize(path)).read_bytes()


def bytes_to_mb(value: int) -> int:
    return int(value // BYTES_PER_MB)


__all__ = ["MediaStore", "BYTES_PER_MB", "bytes_to_mb"]
