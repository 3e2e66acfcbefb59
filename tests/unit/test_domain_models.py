import pytest
from pathlib import Path
from pydantic import ValidationError
from vidshelf.domain.models import (
    ExportResult,
    FilterClause,
    FilterSpec,
    Preset,
    VideoRecord,
    format_fps,
    resolution_class,
    split_tags,
)


@pytest.mark.parametrize("height,expected", [
    (2160, "4k"),
    (4320, "4k"),
    (2159, "1080p"),
    (1080, "1080p"),
    (1079, "720p"),
    (720, "720p"),
    (719, "sd"),
    (100, "sd"),
    (0, "sd"),
])
def test_resolution_class_boundaries(height, expected):
    assert resolution_class(height) == expected


@pytest.mark.parametrize("value,expected", [
    (29.97002997, "29.97"),
    ("25", "25.00"),
    (0, "0.00"),
    (None, "0.00"),
    ("abc", "0.00"),
    (float("nan"), "0.00"),
    (float("inf"), "0.00"),
    (-5, "0.00"),
])
def test_format_fps(value, expected):
    assert format_fps(value) == expected


def test_split_tags_trims_and_dedupes():
    assert split_tags(" beach, Sunset ,,beach, ") == ["beach", "Sunset"]
    assert split_tags("") == []
    assert split_tags(None) == []


def test_video_record_for_path_derives_name():
    record = VideoRecord.for_path(Path("/videos/holiday/clip.mp4"), codec="H264", width=1280, height=720, fps=25)

    assert record.name == "clip.mp4"
    assert record.path == "/videos/holiday/clip.mp4"
    assert record.codec == "h264"
    assert record.fps == "25.00"
    assert record.resolution == "720p"


def test_video_record_defaults():
    record = VideoRecord(path="/x.mov", codec=None, width=None, height=None, preview_path=None)

    assert record.codec == "unknown"
    assert record.width == 0
    assert record.height == 0
    assert record.fps == "0.00"
    assert record.preview_path == ""
    assert record.tags == ""
    assert record.resolution == "sd"


def test_video_record_rejects_empty_path_and_negative_dims():
    with pytest.raises(ValidationError):
        VideoRecord(path="   ")
    with pytest.raises(ValidationError):
        VideoRecord(path="/x.mp4", width=-1)


def test_video_record_normalizes_tags():
    record = VideoRecord(path="/x.mp4", tags=" a , b,,a ")
    assert record.tags == "a,b"
    assert record.tag_list == ["a", "b"]


def test_filter_spec_normalizes_terms_and_aliases():
    spec = FilterSpec(**{"and": [" Beach ", "H264"], "or": "4K, 1080p", "not": None})

    assert spec.and_terms == {"beach", "h264"}
    assert spec.or_terms == {"4k", "1080p"}
    assert spec.not_terms == set()
    assert spec.model_dump(by_alias=True)["and"] == {"beach", "h264"}


def test_filter_spec_add_remove_clear():
    spec = FilterSpec()
    assert spec.is_empty()

    assert spec.add_term(FilterClause.AND, "Beach") is True
    assert spec.add_term(FilterClause.AND, "beach") is False
    assert spec.add_term("not", "sd") is True
    assert spec.terms(FilterClause.NOT) == {"sd"}

    assert spec.remove_term(FilterClause.OR, "beach") is False
    assert spec.remove_term(FilterClause.AND, " BEACH ") is True

    spec.clear()
    assert spec.is_empty()


def test_preset_and_export_result_defaults():
    preset = Preset(id="p1", name="Beach 4k", filters={"and": ["beach", "4k"]})
    assert preset.filters.and_terms == {"beach", "4k"}
    assert preset.untagged_only is False

    result = ExportResult()
    assert (result.success, result.failed, result.total_size, result.errors) == (0, 0, 0, [])
