from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from vidshelf.domain.models import VIDEO_EXTENSIONS


class GeneralConfig(BaseModel):
    threads: int = Field(default=1, gt=0, le=16)
    extensions: List[str] = Field(default_factory=lambda: list(VIDEO_EXTENSIONS))
    throttle_every: int = Field(default=5, ge=1)
    throttle_delay_ms: int = Field(default=30, ge=0)
    ffprobe_bin: str = "ffprobe"
    ffmpeg_bin: str = "ffmpeg"
    probe_timeout_s: Optional[float] = Field(default=60.0, gt=0)
    ffmpeg_timeout_s: Optional[float] = Field(default=120.0, gt=0)
    log_path: Optional[str] = None
    debug: bool = False

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        normalized = []
        for ext in v:
            ext = ext.strip().lower()
            if not ext:
                continue
            ext = ext if ext.startswith(".") else f".{ext}"
            if ext not in normalized:
                normalized.append(ext)
        if not normalized:
            raise ValueError("extensions must contain at least one entry")
        return normalized


class ThumbnailConfig(BaseModel):
    offset_s: float = Field(default=1.0, ge=0)
    width: int = Field(default=320, gt=0)


class PreviewConfig(BaseModel):
    start_s: float = Field(default=1.0, ge=0)
    duration_s: float = Field(default=3.0, gt=0)
    width: int = Field(default=480, gt=0)
    crf: int = Field(default=28, ge=0, le=51)
    preset: str = "ultrafast"
    # Codec substrings / containers that get a transcoded preview instead of direct playback
    codecs: List[str] = Field(default_factory=lambda: ["hap", "dxv"])
    extensions: List[str] = Field(default_factory=lambda: [".mov", ".mkv"])


class PathsConfig(BaseModel):
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".vidshelf")

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_user(cls, v):
        return Path(v).expanduser()

    @property
    def db_path(self) -> Path:
        return self.data_dir / "database.sqlite"

    @property
    def cache_dir(self) -> Path:
        return self.data_dir / "cache"

    @property
    def thumbnail_dir(self) -> Path:
        return self.data_dir / "thumbnails"

    @property
    def preview_dir(self) -> Path:
        return self.data_dir / "previews"

    @property
    def presets_path(self) -> Path:
        return self.data_dir / "presets.json"

    def ensure(self) -> None:
        for directory in (self.data_dir, self.cache_dir, self.thumbnail_dir, self.preview_dir):
            directory.mkdir(parents=True, exist_ok=True)


class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    thumbnail: ThumbnailConfig = Field(default_factory=ThumbnailConfig)
    preview: PreviewConfig = Field(default_factory=PreviewConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
