from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Set
from pydantic import BaseModel, ConfigDict, Field, field_validator

VIDEO_EXTENSIONS = (".mp4", ".mov", ".m4v", ".avi", ".mkv", ".webm")

RESOLUTION_CLASSES = ("4k", "1080p", "720p", "sd")


def resolution_class(height: int) -> str:
    """Maps a frame height to its resolution bucket (4k/1080p/720p/sd)."""
    if height >= 2160:
        return "4k"
    if height >= 1080:
        return "1080p"
    if height >= 720:
        return "720p"
    return "sd"


def format_fps(value: Any) -> str:
    try:
        fps = float(value)
    except (TypeError, ValueError):
        return "0.00"
    if fps != fps or fps in (float("inf"), float("-inf")) or fps < 0:
        return "0.00"
    return f"{fps:.2f}"


def split_tags(tags: Optional[str]) -> List[str]:
    """Splits a comma-joined tag string into trimmed, non-empty, unique tags (order kept)."""
    result: List[str] = []
    if not tags:
        return result
    for raw in tags.split(","):
        tag = raw.strip()
        if tag and tag not in result:
            result.append(tag)
    return result


class VideoRecord(BaseModel):
    """One catalog entry per unique file path."""

    path: str
    name: str = ""
    thumbnail_path: str = ""
    preview_path: str = ""
    codec: str = "unknown"
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    fps: str = "0.00"
    tags: str = ""

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not str(v).strip():
            raise ValueError("path must not be empty")
        return str(v)

    @field_validator("codec", mode="before")
    @classmethod
    def normalize_codec(cls, v: Any) -> str:
        text = str(v or "").strip().lower()
        return text or "unknown"

    @field_validator("width", "height", mode="before")
    @classmethod
    def default_dimension(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("fps", mode="before")
    @classmethod
    def canonical_fps(cls, v: Any) -> str:
        return format_fps(v)

    @field_validator("thumbnail_path", "preview_path", mode="before")
    @classmethod
    def empty_path(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: Any) -> str:
        return ",".join(split_tags(v))

    @classmethod
    def for_path(cls, path: Path, **fields: Any) -> "VideoRecord":
        """Builds a record whose display name is derived from the path."""
        return cls(path=str(path), name=Path(path).name, **fields)

    @property
    def tag_list(self) -> List[str]:
        return split_tags(self.tags)

    @property
    def resolution(self) -> str:
        return resolution_class(self.height)


class FilterClause(str, Enum):
    AND = "and"
    OR = "or"
    NOT = "not"


class FilterSpec(BaseModel):
    """AND / OR / NOT term sets; an empty set disables its clause."""

    model_config = ConfigDict(populate_by_name=True)

    and_terms: Set[str] = Field(default_factory=set, alias="and")
    or_terms: Set[str] = Field(default_factory=set, alias="or")
    not_terms: Set[str] = Field(default_factory=set, alias="not")

    @field_validator("and_terms", "or_terms", "not_terms", mode="before")
    @classmethod
    def normalize_terms(cls, v: Any) -> Set[str]:
        if v is None:
            return set()
        if isinstance(v, str):
            v = v.split(",")
        return {str(term).strip().lower() for term in v if str(term).strip()}

    def terms(self, clause: FilterClause) -> Set[str]:
        return getattr(self, f"{FilterClause(clause).value}_terms")

    def add_term(self, clause: FilterClause, term: str) -> bool:
        term = term.strip().lower()
        terms = self.terms(clause)
        if not term or term in terms:
            return False
        terms.add(term)
        return True

    def remove_term(self, clause: FilterClause, term: str) -> bool:
        terms = self.terms(clause)
        term = term.strip().lower()
        if term not in terms:
            return False
        terms.discard(term)
        return True

    def clear(self) -> None:
        self.and_terms.clear()
        self.or_terms.clear()
        self.not_terms.clear()

    def is_empty(self) -> bool:
        return not (self.and_terms or self.or_terms or self.not_terms)


class Preset(BaseModel):
    """Named, saved filter selection."""

    id: str
    name: str
    filters: FilterSpec = Field(default_factory=FilterSpec)
    untagged_only: bool = False


class ExportError(BaseModel):
    file: str
    error: str


class ExportResult(BaseModel):
    success: int = 0
    failed: int = 0
    total_size: int = 0
    errors: List[ExportError] = Field(default_factory=list)
