import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set, Union
from vidshelf.domain.errors import DiscoveryError
from vidshelf.domain.models import VIDEO_EXTENSIONS

PathLike = Union[str, Path]


class FileDiscovery:
    """Recursively collects video files from a list of files and directories.

    Traversal is depth-first in the order the filesystem returns directory
    entries; nothing is sorted. A directory whose real path is already on the
    current descent chain is a symlink loop and is not entered again.
    Repeated or overlapping inputs are walked again.
    """

    def __init__(self, extensions: Optional[Iterable[str]] = None):
        exts = VIDEO_EXTENSIONS if extensions is None else extensions
        self.extensions = {(ext if ext.startswith(".") else f".{ext}").lower() for ext in exts}
        self.logger = logging.getLogger(__name__)

    def is_video(self, path: PathLike) -> bool:
        return os.path.splitext(str(path))[1].lower() in self.extensions

    def discover(self, paths: Iterable[PathLike]) -> List[str]:
        """Returns absolute paths of all recognized video files under `paths`."""
        return list(self.iter_candidates(paths))

    def iter_candidates(self, paths: Iterable[PathLike]) -> Iterator[str]:
        if isinstance(paths, (str, bytes, Path)):
            raise DiscoveryError(f"Expected a list of paths, got a single path: {paths!r}")
        try:
            entries = list(paths)
        except TypeError as e:
            raise DiscoveryError(f"Input paths are not iterable: {e}") from e

        for entry in entries:
            path = os.path.abspath(os.fspath(entry))
            if not os.path.exists(path):
                self.logger.debug(f"Discovery: skipping missing path {path}")
                continue
            if os.path.isdir(path):
                yield from self._walk(path, set())
            elif self.is_video(path):
                yield path

    def _walk(self, directory: str, ancestors: Set[str]) -> Iterator[str]:
        real = os.path.realpath(directory)
        if real in ancestors:
            self.logger.warning(f"Discovery: directory cycle detected at {directory}, not descending")
            return
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            self.logger.warning(f"Discovery: cannot read directory {directory}: {e}")
            return

        ancestors.add(real)
        try:
            for entry in entries:
                try:
                    is_dir = entry.is_dir()
                    is_file = not is_dir and entry.is_file()
                except OSError:
                    continue
                if is_dir:
                    yield from self._walk(entry.path, ancestors)
                elif is_file and self.is_video(entry.name):
                    yield entry.path
        finally:
            ancestors.discard(real)
