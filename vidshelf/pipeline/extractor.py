import logging
import os
import time
from pathlib import Path
from typing import Optional, Union
from vidshelf.config.models import ThumbnailConfig
from vidshelf.domain.errors import ExtractionError, ProbeFailed, ThumbnailGenerationFailed
from vidshelf.domain.models import VideoRecord
from vidshelf.infrastructure.ffmpeg import FFmpegAdapter
from vidshelf.infrastructure.ffprobe import FFprobeAdapter


class MetadataExtractor:
    """Probes one file and renders its thumbnail.

    The two external calls are strictly sequential: the thumbnail is only
    attempted once ffprobe confirmed a video stream. Any failure surfaces as an
    ExtractionError subclass; nothing is written to the catalog here.
    """

    def __init__(
        self,
        ffprobe_adapter: FFprobeAdapter,
        ffmpeg_adapter: FFmpegAdapter,
        thumbnail_config: Optional[ThumbnailConfig] = None,
        debug: bool = False,
    ):
        self.ffprobe_adapter = ffprobe_adapter
        self.ffmpeg_adapter = ffmpeg_adapter
        self.thumbnail_config = thumbnail_config or ThumbnailConfig()
        self.debug = debug
        self.logger = logging.getLogger(__name__)

    def extract(self, file_path: Union[str, Path], thumbnail_dir: Union[str, Path]) -> VideoRecord:
        path = os.path.abspath(os.fspath(file_path))
        start_time = time.monotonic() if self.debug else None

        try:
            stream_info = self.ffprobe_adapter.get_stream_info(Path(path))
        except ExtractionError:
            raise
        except Exception as e:
            raise ProbeFailed(path, e) from e

        try:
            thumbnail = self.ffmpeg_adapter.generate_thumbnail(path, thumbnail_dir, self.thumbnail_config)
        except ExtractionError:
            raise
        except OSError as e:
            raise ThumbnailGenerationFailed(path, e) from e

        record = VideoRecord.for_path(
            Path(path),
            thumbnail_path=str(thumbnail),
            preview_path="",
            codec=stream_info.get("codec"),
            width=stream_info.get("width"),
            height=stream_info.get("height"),
            fps=stream_info.get("fps"),
            tags="",
        )

        if self.debug and start_time is not None:
            self.logger.debug(
                f"EXTRACT_DONE: {record.name} codec={record.codec} "
                f"{record.width}x{record.height}@{record.fps} "
                f"elapsed={time.monotonic() - start_time:.2f}s"
            )
        return record
