import logging
from vidshelf.infrastructure.event_bus import EventBus
from vidshelf.ui.state import CatalogState
from vidshelf.domain.events import (
    ActionMessage,
    DiscoveryFinished,
    DiscoveryStarted,
    IngestFinished,
    IngestOutcome,
    IngestProgress,
    TagsChanged,
)

class UIManager:
    """Subscribes to EventBus and updates CatalogState."""

    def __init__(self, bus: EventBus, state: CatalogState):
        self.bus = bus
        self.state = state
        self.logger = logging.getLogger(__name__)
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(DiscoveryStarted, self.on_discovery_started)
        self.bus.subscribe(DiscoveryFinished, self.on_discovery_finished)
        self.bus.subscribe(IngestProgress, self.on_progress)
        self.bus.subscribe(IngestFinished, self.on_ingest_finished)
        self.bus.subscribe(TagsChanged, self.on_tags_changed)
        self.bus.subscribe(ActionMessage, self.on_action_message)

    def on_discovery_started(self, event: DiscoveryStarted):
        with self.state._lock:
            self.state.ingest_running = True
            self.state.ingest_finished = False
            self.state.progress_current = 0
            self.state.progress_total = 0
            self.state.progress_label = ""
            self.state.added_count = 0
            self.state.skipped_count = 0
            self.state.failed_count = 0

    def on_discovery_finished(self, event: DiscoveryFinished):
        with self.state._lock:
            self.state.progress_total = event.files_found

    def on_progress(self, event: IngestProgress):
        with self.state._lock:
            self.state.progress_current = event.current
            self.state.progress_total = event.total
            self.state.progress_label = event.label
            self.state.recent_labels.appendleft(event.label)
            if event.outcome == IngestOutcome.ADDED:
                self.state.added_count += 1
            elif event.outcome == IngestOutcome.SKIPPED:
                self.state.skipped_count += 1
            else:
                self.state.failed_count += 1
            if event.is_complete:
                self.state.ingest_finished = True
        if event.record is not None:
            self.state.upsert_record(event.record)

    def on_ingest_finished(self, event: IngestFinished):
        with self.state._lock:
            self.state.ingest_running = False
            self.state.ingest_finished = True
        if event.cancelled:
            self.state.set_last_action(f"Ingestion cancelled after {self.state.progress_current}/{event.total}")
        elif event.total:
            self.state.set_last_action("All videos processed")
        self.logger.debug(
            f"UI: ingest finished added={event.added} skipped={event.skipped} failed={event.failed}"
        )

    def on_tags_changed(self, event: TagsChanged):
        self.state.set_tags(event.path, event.tags)

    def on_action_message(self, event: ActionMessage):
        self.state.set_last_action(event.message)
