import threading
from typing import Iterable, List, Optional
from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text
from vidshelf.domain.models import VideoRecord
from vidshelf.pipeline.filtering import FacetVocabulary
from vidshelf.ui.state import CatalogState


def render_records_table(records: Iterable[VideoRecord], title: Optional[str] = None) -> Table:
    table = Table(title=title, expand=True)
    table.add_column("Name", overflow="fold")
    table.add_column("Codec")
    table.add_column("Resolution")
    table.add_column("FPS", justify="right")
    table.add_column("Class")
    table.add_column("Tags", overflow="fold")
    for record in records:
        table.add_row(
            record.name,
            record.codec,
            f"{record.width}x{record.height}",
            record.fps,
            record.resolution,
            ", ".join(record.tag_list),
        )
    return table


def render_facets(vocabulary: FacetVocabulary) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Codecs", " ".join(vocabulary.codecs) or "-")
    table.add_row("Resolutions", " ".join(vocabulary.resolutions) or "-")
    table.add_row("Tags", " ".join(vocabulary.tags) or "-")
    return table


class IngestDashboard:
    """Live progress panel for one ingestion batch."""

    def __init__(self, state: CatalogState, console: Optional[Console] = None):
        self.state = state
        self.console = console or Console()
        self._live: Optional[Live] = None
        self._refresh_thread: Optional[threading.Thread] = None
        self._stop_refresh = threading.Event()

    def create_display(self) -> RenderableType:
        with self.state._lock:
            current = self.state.progress_current
            total = self.state.progress_total
            label = self.state.progress_label
            added = self.state.added_count
            skipped = self.state.skipped_count
            failed = self.state.failed_count
            recent: List[str] = list(self.state.recent_labels)
            finished = self.state.ingest_finished

        pct = round(current / total * 100) if total else 0
        header = Text(f"{current}/{total}  {pct}%", style="bold green" if finished else "bold")
        bar = ProgressBar(total=max(total, 1), completed=current)
        counters = Text.assemble(
            ("added ", "dim"), (str(added), "green"), "  ",
            ("skipped ", "dim"), (str(skipped), "yellow"), "  ",
            ("errors ", "dim"), (str(failed), "red"),
        )
        feed = Text("\n".join(recent[1:]), style="dim") if len(recent) > 1 else Text("")
        return Panel(
            Group(header, bar, Text(label), counters, feed),
            title="Ingest",
            border_style="green" if finished else "cyan",
        )

    def _refresh_loop(self):
        while not self._stop_refresh.wait(0.25):
            if self._live:
                self._live.update(self.create_display())

    def start(self):
        self._live = Live(self.create_display(), console=self.console, refresh_per_second=4)
        self._live.start()
        self._stop_refresh.clear()
        self._refresh_thread = threading.Thread(target=self._refresh_loop, daemon=True)
        self._refresh_thread.start()
        return self

    def stop(self):
        self._stop_refresh.set()
        if self._refresh_thread:
            self._refresh_thread.join(timeout=1.0)
        if self._live:
            self._live.update(self.create_display())
            self._live.stop()

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
