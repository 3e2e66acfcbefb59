import logging
import secrets
import string
import subprocess
import time
from pathlib import Path
from typing import List, Optional, Union
from vidshelf.config.models import PreviewConfig, ThumbnailConfig
from vidshelf.domain.errors import PreviewGenerationFailed, ThumbnailGenerationFailed

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ID_ALPHABET[rem])
    return "".join(reversed(digits)) or "0"


def unique_file_id(suffix_len: int = 5) -> str:
    """Time-based id with a random suffix; collisions are not retried."""
    random_part = "".join(secrets.choice(_ID_ALPHABET) for _ in range(suffix_len))
    return f"{_base36(time.time_ns() // 1000)}{random_part}"


class FFmpegAdapter:
    """Wrapper around ffmpeg for thumbnails and playback previews."""

    def __init__(self, binary: str = "ffmpeg", timeout_s: Optional[float] = 60.0):
        self.binary = binary
        self.timeout_s = timeout_s
        self.logger = logging.getLogger(__name__)

    def _build_thumbnail_command(self, video_path: Path, output_path: Path, config: ThumbnailConfig) -> List[str]:
        return [
            self.binary,
            "-y",
            "-hide_banner",
            "-loglevel", "error",
            "-threads", "1",
            "-ss", f"{config.offset_s:g}",
            "-i", str(video_path),
            "-frames:v", "1",
            "-vf", f"scale={config.width}:-2",
            str(output_path),
        ]

    def _build_preview_command(self, video_path: Path, output_path: Path, config: PreviewConfig) -> List[str]:
        return [
            self.binary,
            "-y",
            "-hide_banner",
            "-loglevel", "error",
            "-threads", "1",
            "-ss", f"{config.start_s:g}",
            "-i", str(video_path),
            "-t", f"{config.duration_s:g}",
            "-vf", f"scale={config.width}:-2",
            "-an",
            "-c:v", "libx264",
            "-preset", config.preset,
            "-crf", str(config.crf),
            str(output_path),
        ]

    def _execute(self, cmd: List[str], output_path: Path) -> Optional[str]:
        """Runs ffmpeg; returns an error description or None when output_path was written."""
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout_s)
        except subprocess.TimeoutExpired:
            error = f"ffmpeg timed out after {self.timeout_s}s"
        except OSError as e:
            error = str(e)
        else:
            if result.returncode != 0:
                error = f"ffmpeg exited with {result.returncode}: {(result.stderr or '').strip()}"
            elif not output_path.exists() or output_path.stat().st_size == 0:
                error = "ffmpeg produced no output"
            else:
                return None

        if output_path.exists():
            try:
                output_path.unlink()
            except OSError as e:
                self.logger.warning(f"Failed to remove partial output {output_path}: {e}")
        return error

    def generate_thumbnail(
        self,
        video_path: Union[str, Path],
        thumbnail_dir: Union[str, Path],
        config: Optional[ThumbnailConfig] = None,
    ) -> Path:
        """Writes one scaled frame as <unique id>.jpg inside thumbnail_dir."""
        config = config or ThumbnailConfig()
        video_path = Path(video_path)
        thumbnail_dir = Path(thumbnail_dir)
        thumbnail_dir.mkdir(parents=True, exist_ok=True)
        output_path = thumbnail_dir / f"{unique_file_id()}.jpg"

        cmd = self._build_thumbnail_command(video_path, output_path, config)
        self.logger.debug(f"THUMBNAIL_CMD: {' '.join(cmd)}")
        error = self._execute(cmd, output_path)
        if error:
            raise ThumbnailGenerationFailed(video_path, error)
        return output_path

    def generate_preview(
        self,
        video_path: Union[str, Path],
        preview_dir: Union[str, Path],
        config: Optional[PreviewConfig] = None,
    ) -> Path:
        """Transcodes a short silent H.264 clip for playback of codecs players can't handle."""
        config = config or PreviewConfig()
        video_path = Path(video_path)
        preview_dir = Path(preview_dir)
        preview_dir.mkdir(parents=True, exist_ok=True)
        output_path = preview_dir / f"temp_{unique_file_id()}.mp4"

        start_time = time.monotonic()
        cmd = self._build_preview_command(video_path, output_path, config)
        self.logger.debug(f"PREVIEW_CMD: {' '.join(cmd)}")
        error = self._execute(cmd, output_path)
        if error:
            raise PreviewGenerationFailed(video_path, error)
        self.logger.info(
            f"Preview generated for {video_path.name} in {time.monotonic() - start_time:.2f}s"
        )
        return output_path


def needs_preview(codec: Optional[str], path: Union[str, Path], config: Optional[PreviewConfig] = None) -> bool:
    """True when the file should be played through a transcoded preview clip."""
    config = config or PreviewConfig()
    codec = (codec or "").lower()
    if any(marker in codec for marker in config.codecs):
        return True
    return Path(path).suffix.lower() in config.extensions
