import pytest
import shutil
import yaml
from pathlib import Path
from vidshelf.config.models import AppConfig
from vidshelf.domain.models import VideoRecord
from vidshelf.infrastructure.event_bus import EventBus
from vidshelf.infrastructure.store import RecordStore

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config(tmp_path):
    """Returns an AppConfig rooted in a temporary data directory, without throttling."""
    return AppConfig(
        general={
            "threads": 1,
            "throttle_every": 5,
            "throttle_delay_ms": 0,
            "debug": False,
        },
        paths={"data_dir": str(tmp_path / "data")},
    )


@pytest.fixture
def config_yaml_path(tmp_path):
    """Writes a minimal YAML config and returns its path."""
    config_path = tmp_path / "vidshelf.yaml"
    config_path.write_text(yaml.safe_dump({
        "general": {"threads": 2, "throttle_delay_ms": 0},
        "thumbnail": {"width": 160},
        "data_dir": str(tmp_path / "data"),
    }))
    return config_path

# ============================================================================
# Infrastructure Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def memory_store():
    store = RecordStore(":memory:")
    yield store
    store.close()

# ============================================================================
# File Fixtures
# ============================================================================

@pytest.fixture
def video_tree(tmp_path):
    """Directory with a mix of video and non-video files, one level nested."""
    root = tmp_path / "videos"
    root.mkdir()
    (root / "a.mp4").write_bytes(b"a" * 10)
    (root / "b.txt").write_text("not a video")
    (root / "c.MKV").write_bytes(b"c" * 10)
    nested = root / "nested"
    nested.mkdir()
    (nested / "d.mov").write_bytes(b"d" * 10)
    return root


@pytest.fixture
def make_record():
    def _make(path="/videos/clip.mp4", **fields):
        fields.setdefault("codec", "h264")
        fields.setdefault("width", 1920)
        fields.setdefault("height", 1080)
        fields.setdefault("fps", "30.00")
        return VideoRecord.for_path(Path(path), **fields)
    return _make


@pytest.fixture
def ffmpeg_available():
    if not shutil.which("ffmpeg") or not shutil.which("ffprobe"):
        pytest.skip("ffmpeg/ffprobe not installed")
    return True
