import subprocess
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Union
from vidshelf.domain.errors import NoVideoStream, ProbeFailed
from vidshelf.domain.models import format_fps


def parse_frame_rate(value: Optional[str]) -> str:
    """Parses ffprobe's frame rate ("30000/1001" or "30") into a 2-decimal string.

    Zero denominators and anything unparsable give "0.00".
    """
    if not value:
        return "0.00"
    text = str(value).strip()
    parts = text.split("/")
    if len(parts) == 2:
        try:
            num, den = float(parts[0]), float(parts[1])
        except ValueError:
            return "0.00"
        if den == 0:
            return "0.00"
        return format_fps(num / den)
    try:
        return format_fps(float(text))
    except ValueError:
        return "0.00"


class FFprobeAdapter:
    """Wrapper around ffprobe to extract stream information."""

    def __init__(self, binary: str = "ffprobe", timeout_s: Optional[float] = 60.0):
        self.binary = binary
        self.timeout_s = timeout_s
        self.logger = logging.getLogger(__name__)

    def _run(self, file_path: Path) -> Dict[str, Any]:
        cmd = [
            self.binary,
            "-v", "quiet",
            "-print_format", "json",
            "-show_streams",
            "-show_format",
            str(file_path)
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout_s)
        except subprocess.TimeoutExpired as e:
            raise ProbeFailed(file_path, f"ffprobe timed out after {self.timeout_s}s") from e
        except OSError as e:
            raise ProbeFailed(file_path, e) from e

        if result.returncode != 0:
            raise ProbeFailed(file_path, f"ffprobe failed: {(result.stderr or '').strip()}")

        try:
            data = json.loads(result.stdout or "")
        except json.JSONDecodeError as e:
            raise ProbeFailed(file_path, f"invalid ffprobe output: {e}") from e
        if not isinstance(data, dict):
            raise ProbeFailed(file_path, "invalid ffprobe output")
        return data

    def get_stream_info(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        """Executes ffprobe and returns the first video stream's description."""
        file_path = Path(file_path)
        data = self._run(file_path)

        video_stream = next(
            (s for s in data.get("streams") or [] if s.get("codec_type") == "video"),
            None,
        )
        if not video_stream:
            raise NoVideoStream(file_path, "no stream with codec_type 'video'")

        # r_frame_rate is what players report; avg_frame_rate only as a fallback
        fps_text = video_stream.get("r_frame_rate") or video_stream.get("avg_frame_rate")

        return {
            "width": self._to_int(video_stream.get("width")),
            "height": self._to_int(video_stream.get("height")),
            "codec": video_stream.get("codec_name") or "unknown",
            "fps": parse_frame_rate(fps_text),
        }

    @staticmethod
    def _to_int(value: Any) -> int:
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            return 0
