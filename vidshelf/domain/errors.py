"""Error taxonomy for ingestion, extraction and storage.

Per-file errors (extraction and store failures) are caught by the ingestion
pipeline and reported through progress events. Only ``DiscoveryError`` is
allowed to escape a batch.
"""

from pathlib import Path
from typing import Optional, Union


class VidshelfError(Exception):
    """Base class for all catalog errors."""


class DiscoveryError(VidshelfError):
    """The list of input paths itself cannot be walked."""


class ExtractionError(VidshelfError):
    """Metadata or thumbnail extraction failed for one file."""

    def __init__(self, path: Union[str, Path], cause: Optional[Union[str, BaseException]] = None):
        self.path = str(path)
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"{type(self).__name__} for {self.path}{detail}")


class ProbeFailed(ExtractionError):
    """ffprobe could not parse the container."""


class NoVideoStream(ExtractionError):
    """The container has no stream with codec_type == "video"."""


class ThumbnailGenerationFailed(ExtractionError):
    """ffmpeg could not write the thumbnail frame."""


class PreviewGenerationFailed(ExtractionError):
    """ffmpeg could not transcode the preview clip."""


class StoreError(VidshelfError):
    pass


class StorePersistenceFailed(StoreError):
    pass


class StoreDuplicateKey(StoreError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Record already exists: {path}")


class TagError(VidshelfError, ValueError):
    pass


class TagAlreadyPresent(TagError):
    pass


class RecordNotFound(VidshelfError, KeyError):
    pass
