import logging
import os
import traceback
import uuid
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from vidshelf.config.loader import load_config
from vidshelf.config.models import AppConfig
from vidshelf.config.presets import delete_preset, find_preset, load_presets, save_preset
from vidshelf.domain.errors import VidshelfError
from vidshelf.domain.events import CancelRequested
from vidshelf.domain.models import FilterSpec, Preset
from vidshelf.infrastructure.event_bus import EventBus
from vidshelf.infrastructure.ffmpeg import FFmpegAdapter, needs_preview
from vidshelf.infrastructure.ffprobe import FFprobeAdapter
from vidshelf.infrastructure.file_scanner import FileDiscovery
from vidshelf.infrastructure.housekeeping import HousekeepingService, format_cache_size
from vidshelf.infrastructure.logging import setup_logging
from vidshelf.infrastructure.store import RecordStore
from vidshelf.pipeline.exporter import export_files
from vidshelf.pipeline.extractor import MetadataExtractor
from vidshelf.pipeline.filtering import facet_vocabulary, filter_records
from vidshelf.pipeline.orchestrator import IngestionPipeline
from vidshelf.pipeline.tagging import TagService
from vidshelf.ui.dashboard import IngestDashboard, render_facets, render_records_table
from vidshelf.ui.manager import UIManager
from vidshelf.ui.state import CatalogState

DEFAULT_CONFIG_PATH = Path("conf/vidshelf.yaml")

app = typer.Typer(help="vidshelf - local video catalog with faceted filtering")
tag_app = typer.Typer(help="Add or remove tags on catalog records")
presets_app = typer.Typer(help="Manage saved filter presets")
app.add_typer(tag_app, name="tag")
app.add_typer(presets_app, name="presets")

console = Console()


def _fail(message: str, code: int = 1):
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


def _config(ctx: typer.Context) -> AppConfig:
    return ctx.obj["config"]


def _open_store(config: AppConfig) -> RecordStore:
    return RecordStore(config.paths.db_path)


def _resolve_filters(
    config: AppConfig,
    and_terms: Optional[List[str]],
    or_terms: Optional[List[str]],
    not_terms: Optional[List[str]],
    untagged: bool,
    preset_key: Optional[str],
):
    spec = FilterSpec()
    untagged_only = untagged
    if preset_key:
        preset = find_preset(config.paths.presets_path, preset_key)
        if preset is None:
            _fail(f"Preset not found: {preset_key}")
        spec = preset.filters.model_copy(deep=True)
        untagged_only = untagged_only or preset.untagged_only
    spec.and_terms |= FilterSpec(and_terms=and_terms or []).and_terms
    spec.or_terms |= FilterSpec(or_terms=or_terms or []).or_terms
    spec.not_terms |= FilterSpec(not_terms=not_terms or []).not_terms
    return spec, untagged_only


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to YAML config"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Load config and initialise logging for every command."""
    try:
        if config_path == DEFAULT_CONFIG_PATH and not config_path.exists():
            config = AppConfig()
        else:
            config = load_config(config_path)
    except FileNotFoundError as e:
        _fail(str(e))
    except ValueError as e:
        _fail(f"Invalid config {config_path}: {e}")

    if debug:
        config.general.debug = True
    log_path = Path(config.general.log_path) if config.general.log_path else None
    setup_logging(config.paths.data_dir, debug=config.general.debug, log_path=log_path)
    config.paths.ensure()
    ctx.obj = {"config": config}


@app.command()
def ingest(
    ctx: typer.Context,
    paths: List[Path] = typer.Argument(..., help="Files and/or directories to scan"),
    threads: Optional[int] = typer.Option(None, "--threads", "-t", help="Override number of worker threads"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not show the live progress panel"),
):
    """Discover videos under PATHS and add new ones to the catalog."""
    config = _config(ctx)
    if threads:
        config.general.threads = threads
    logger = logging.getLogger(__name__)

    try:
        bus = EventBus()
        with _open_store(config) as store:
            state = CatalogState(records=store.get_all())
            UIManager(bus, state)
            extractor = MetadataExtractor(
                FFprobeAdapter(config.general.ffprobe_bin, timeout_s=config.general.probe_timeout_s),
                FFmpegAdapter(config.general.ffmpeg_bin, timeout_s=config.general.ffmpeg_timeout_s),
                thumbnail_config=config.thumbnail,
                debug=config.general.debug,
            )
            pipeline = IngestionPipeline(
                config=config,
                event_bus=bus,
                file_discovery=FileDiscovery(config.general.extensions),
                extractor=extractor,
                store=store,
            )
            try:
                if quiet:
                    summary = pipeline.run(paths)
                else:
                    with IngestDashboard(state, console=console):
                        summary = pipeline.run(paths)
            except KeyboardInterrupt:
                bus.publish(CancelRequested())
                raise

        console.print(
            f"[bold]{summary.total}[/] found, [green]{summary.added} added[/], "
            f"[yellow]{summary.skipped} skipped[/], [red]{summary.failed} failed[/]"
            + (" [dim](cancelled)[/]" if summary.cancelled else "")
        )
        last_action = state.get_last_action()
        if last_action:
            console.print(last_action)
    except KeyboardInterrupt:
        logger.info("Ingestion interrupted by user")
        typer.secho("\nInterrupted.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=130)
    except VidshelfError as e:
        logger.error(f"Ingestion failed: {e}")
        _fail(str(e))
    except Exception as e:
        with open("error.log", "a") as f:
            traceback.print_exc(file=f)
        _fail(f"{e} (see error.log)")


@app.command("list")
def list_records(
    ctx: typer.Context,
    and_terms: Optional[List[str]] = typer.Option(None, "--and", help="Term every result must carry"),
    or_terms: Optional[List[str]] = typer.Option(None, "--or", help="Term of which at least one must match"),
    not_terms: Optional[List[str]] = typer.Option(None, "--not", help="Term no result may carry"),
    untagged: bool = typer.Option(False, "--untagged", help="Only records without tags"),
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="Apply a saved preset (id or name)"),
):
    """Show catalog records matching the given facet filter."""
    config = _config(ctx)
    spec, untagged_only = _resolve_filters(config, and_terms, or_terms, not_terms, untagged, preset)
    with _open_store(config) as store:
        records = filter_records(store.get_all(), spec, untagged_only)
    console.print(render_records_table(records, title=f"{len(records)} videos"))


@app.command()
def facets(ctx: typer.Context):
    """Show the codecs, resolution classes and tags present in the catalog."""
    with _open_store(_config(ctx)) as store:
        vocabulary = facet_vocabulary(store.get_all())
    console.print(render_facets(vocabulary))


@tag_app.command("add")
def tag_add(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Catalog path of the video"),
    tag: str = typer.Argument(..., help="Tag to add"),
):
    with _open_store(_config(ctx)) as store:
        try:
            record = TagService(store).add(os.path.abspath(path), tag)
        except VidshelfError as e:
            _fail(str(e))
    typer.secho(f"{record.name}: {record.tags}", fg=typer.colors.GREEN)


@tag_app.command("remove")
def tag_remove(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Catalog path of the video"),
    tag: str = typer.Argument(..., help="Tag to remove"),
):
    with _open_store(_config(ctx)) as store:
        try:
            record = TagService(store).remove(os.path.abspath(path), tag)
        except VidshelfError as e:
            _fail(str(e))
    typer.secho(f"{record.name}: {record.tags or '(no tags)'}", fg=typer.colors.GREEN)


@app.command()
def export(
    ctx: typer.Context,
    destination: Path = typer.Argument(..., help="Directory to copy the matching videos into"),
    and_terms: Optional[List[str]] = typer.Option(None, "--and"),
    or_terms: Optional[List[str]] = typer.Option(None, "--or"),
    not_terms: Optional[List[str]] = typer.Option(None, "--not"),
    untagged: bool = typer.Option(False, "--untagged"),
    preset: Optional[str] = typer.Option(None, "--preset", "-p"),
):
    """Copy the videos matching the filter into DESTINATION."""
    config = _config(ctx)
    spec, untagged_only = _resolve_filters(config, and_terms, or_terms, not_terms, untagged, preset)
    with _open_store(config) as store:
        records = filter_records(store.get_all(), spec, untagged_only)
    if not records:
        typer.echo("No videos match the filter.")
        return
    try:
        result = export_files([r.path for r in records], destination, show_progress=True)
    except OSError as e:
        _fail(f"Cannot export to {destination}: {e}")
    typer.secho(
        f"Exported {result.success} files ({format_cache_size(result.total_size)}), {result.failed} failed",
        fg=typer.colors.GREEN if not result.failed else typer.colors.YELLOW,
    )
    for error in result.errors:
        typer.secho(f"  {error.file}: {error.error}", fg=typer.colors.RED, err=True)


@app.command()
def preview(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Catalog path of the video"),
    force: bool = typer.Option(False, "--force", help="Transcode even when the codec plays directly"),
):
    """Produce a short playable clip for codecs that do not play directly."""
    config = _config(ctx)
    with _open_store(config) as store:
        record = store.get(os.path.abspath(path))
    if record is None:
        _fail(f"Not in catalog: {path}")
    if not force and not needs_preview(record.codec, record.path, config.preview):
        typer.echo(f"{record.name} plays directly: {record.path}")
        return
    HousekeepingService().cleanup_previews(config.paths.preview_dir)
    ffmpeg = FFmpegAdapter(config.general.ffmpeg_bin, timeout_s=config.general.ffmpeg_timeout_s)
    try:
        clip = ffmpeg.generate_preview(record.path, config.paths.preview_dir, config.preview)
    except VidshelfError as e:
        _fail(str(e))
    typer.echo(str(clip))


@presets_app.command("list")
def presets_list(ctx: typer.Context):
    presets = load_presets(_config(ctx).paths.presets_path).presets
    if not presets:
        typer.echo("No presets saved.")
        return
    for item in presets:
        clauses = [
            f"{name}={','.join(sorted(terms))}"
            for name, terms in (
                ("and", item.filters.and_terms),
                ("or", item.filters.or_terms),
                ("not", item.filters.not_terms),
            )
            if terms
        ]
        if item.untagged_only:
            clauses.append("untagged")
        typer.echo(f"{item.id}  {item.name}  {' '.join(clauses)}")


@presets_app.command("save")
def presets_save(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Preset name"),
    and_terms: Optional[List[str]] = typer.Option(None, "--and"),
    or_terms: Optional[List[str]] = typer.Option(None, "--or"),
    not_terms: Optional[List[str]] = typer.Option(None, "--not"),
    untagged: bool = typer.Option(False, "--untagged"),
    preset_id: Optional[str] = typer.Option(None, "--id", help="Replace the preset with this id"),
):
    config = _config(ctx)
    spec, untagged_only = _resolve_filters(config, and_terms, or_terms, not_terms, untagged, None)
    item = Preset(id=preset_id or uuid.uuid4().hex[:8], name=name, filters=spec, untagged_only=untagged_only)
    result = save_preset(config.paths.presets_path, item)
    if not result.success:
        _fail(result.error or "could not save preset")
    typer.secho(f"Saved preset {item.name} ({item.id})", fg=typer.colors.GREEN)


@presets_app.command("delete")
def presets_delete(ctx: typer.Context, preset_id: str = typer.Argument(..., help="Preset id")):
    result = delete_preset(_config(ctx).paths.presets_path, preset_id)
    if not result.success:
        _fail(result.error or "could not delete preset")
    typer.secho(f"Deleted preset {preset_id}", fg=typer.colors.GREEN)


@app.command()
def settings(ctx: typer.Context):
    """Show storage locations and cache usage."""
    paths = _config(ctx).paths
    size = HousekeepingService().cache_size_bytes([paths.cache_dir, paths.thumbnail_dir, paths.preview_dir])
    typer.echo(f"Data directory: {paths.data_dir}")
    typer.echo(f"Database:       {paths.db_path}")
    typer.echo(f"Thumbnails:     {paths.thumbnail_dir}")
    typer.echo(f"Previews:       {paths.preview_dir}")
    typer.echo(f"Cache size:     {format_cache_size(size)}")


@app.command("clear-cache")
def clear_cache(ctx: typer.Context):
    """Delete generated preview clips and cached files (thumbnails are kept)."""
    paths = _config(ctx).paths
    housekeeping = HousekeepingService()
    removed = housekeeping.clear_directory(paths.cache_dir) + housekeeping.clear_directory(paths.preview_dir)
    typer.secho(f"Removed {removed} cached files", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
