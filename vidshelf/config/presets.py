"""Saved filter presets, kept in a small JSON file next to the catalog."""

import json
import logging
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field, ValidationError
from vidshelf.domain.models import Preset

PRESETS_VERSION = "1.0.0"

logger = logging.getLogger(__name__)


class PresetFile(BaseModel):
    version: str = PRESETS_VERSION
    presets: List[Preset] = Field(default_factory=list)


class PresetResult(BaseModel):
    success: bool
    error: Optional[str] = None


def _write(path: Path, data: PresetFile) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data.model_dump(mode="json", by_alias=True), indent=2, sort_keys=False))


def ensure_presets_file(path: Path) -> None:
    try:
        if not path.exists():
            _write(path, PresetFile())
    except OSError as e:
        logger.error(f"Failed to create presets file {path}: {e}")


def load_presets(path: Path) -> PresetFile:
    """Reads the presets file; an unreadable file yields an empty preset list."""
    ensure_presets_file(path)
    try:
        return PresetFile(**json.loads(path.read_text()))
    except (OSError, ValueError, ValidationError) as e:
        logger.error(f"Failed to load presets from {path}: {e}")
        return PresetFile()


def save_preset(path: Path, preset: Preset) -> PresetResult:
    """Inserts the preset, or replaces the one with the same id."""
    ensure_presets_file(path)
    try:
        data = PresetFile(**json.loads(path.read_text()))
        for index, existing in enumerate(data.presets):
            if existing.id == preset.id:
                data.presets[index] = preset
                break
        else:
            data.presets.append(preset)
        _write(path, data)
        return PresetResult(success=True)
    except (OSError, ValueError, ValidationError) as e:
        logger.error(f"Failed to save preset {preset.id}: {e}")
        return PresetResult(success=False, error=str(e))


def delete_preset(path: Path, preset_id: str) -> PresetResult:
    try:
        data = PresetFile(**json.loads(path.read_text()))
        data.presets = [p for p in data.presets if p.id != preset_id]
        _write(path, data)
        return PresetResult(success=True)
    except (OSError, ValueError, ValidationError) as e:
        logger.error(f"Failed to delete preset {preset_id}: {e}")
        return PresetResult(success=False, error=str(e))


def find_preset(path: Path, key: str) -> Optional[Preset]:
    """Looks a preset up by id, then by name."""
    presets = load_presets(path).presets
    for preset in presets:
        if preset.id == key:
            return preset
    for preset in presets:
        if preset.name == key:
            return preset
    return None
