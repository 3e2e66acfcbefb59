import logging
import os
from pathlib import Path
from typing import Iterable

class HousekeepingService:
    """Service for measuring and cleaning the thumbnail/preview cache."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def cache_size_bytes(self, directories: Iterable[Path]) -> int:
        """Recursively sums file sizes in the given directories."""
        total = 0
        for directory in directories:
            for root, dirs, files in os.walk(directory):
                for file in files:
                    try:
                        total += (Path(root) / file).stat().st_size
                    except OSError:
                        pass
        return total

    def clear_directory(self, directory: Path) -> int:
        """Removes all files directly inside directory; returns how many were deleted."""
        if not directory.exists():
            return 0
        deleted = 0
        for entry in directory.iterdir():
            if not entry.is_file():
                continue
            try:
                entry.unlink()
                deleted += 1
            except OSError as e:
                self.logger.error(f"Failed to delete {entry}: {e}")
        return deleted

    def cleanup_previews(self, preview_dir: Path) -> int:
        """Removes leftover temp_*.mp4 preview clips from earlier sessions."""
        if not preview_dir.exists():
            return 0
        deleted = 0
        for entry in preview_dir.glob("temp_*.mp4"):
            try:
                entry.unlink()
                deleted += 1
            except OSError as e:
                self.logger.warning(f"Failed to delete stale preview {entry}: {e}")
        return deleted


def format_cache_size(size_bytes: int) -> str:
    return f"{size_bytes / (1024 * 1024):.2f} MB"
