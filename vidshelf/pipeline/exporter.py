import logging
import shutil
from pathlib import Path
from typing import Iterable, Optional, Union

from rich.progress import Progress, BarColumn, SpinnerColumn, TextColumn, TimeRemainingColumn

from vidshelf.domain.models import ExportError, ExportResult


def collision_free_path(destination_dir: Path, file_name: str) -> Path:
    """Returns destination_dir/file_name, or name_1.ext, name_2.ext... if taken."""
    dest = destination_dir / file_name
    if not dest.exists():
        return dest
    stem, suffix = Path(file_name).stem, Path(file_name).suffix
    counter = 1
    while dest.exists():
        dest = destination_dir / f"{stem}_{counter}{suffix}"
        counter += 1
    return dest


def export_files(
    files: Iterable[Union[str, Path]],
    destination_dir: Union[str, Path],
    logger: Optional[logging.Logger] = None,
    show_progress: bool = False,
) -> ExportResult:
    """Copies each file into destination_dir without overwriting anything."""
    logger = logger or logging.getLogger(__name__)
    files = [Path(f) for f in files]
    destination_dir = Path(destination_dir)
    destination_dir.mkdir(parents=True, exist_ok=True)
    result = ExportResult()

    def copy_one(source: Path) -> None:
        try:
            dest = collision_free_path(destination_dir, source.name)
            shutil.copy2(source, dest)
            result.total_size += source.stat().st_size
            result.success += 1
        except OSError as e:
            result.failed += 1
            result.errors.append(ExportError(file=source.name, error=str(e)))
            logger.warning(f"Export failed for {source.name}: {e}")

    if show_progress and files:
        with Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeRemainingColumn(),
        ) as progress:
            task = progress.add_task("Exporting files", total=len(files))
            for source in files:
                copy_one(source)
                progress.advance(task)
    else:
        for source in files:
            copy_one(source)

    logger.info(
        f"Export to {destination_dir}: success={result.success}, failed={result.failed}, "
        f"bytes={result.total_size}"
    )
    return result
