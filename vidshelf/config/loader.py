import yaml
from pathlib import Path
from .models import AppConfig

def load_config(config_path: Path) -> AppConfig:
    """Loads YAML config and parses it into AppConfig Pydantic model."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    # A bare `data_dir` at the root is accepted as shorthand for paths.data_dir
    data_dir = data.pop("data_dir", None)
    if data_dir is not None:
        data.setdefault("paths", {})["data_dir"] = data_dir

    return AppConfig(**data)
