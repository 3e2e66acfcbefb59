import threading
from collections import deque
from datetime import datetime
from typing import List, Optional
from vidshelf.domain.models import FilterClause, FilterSpec, VideoRecord
from vidshelf.pipeline.filtering import FacetVocabulary, facet_vocabulary, filter_records


class CatalogState:
    """Thread-safe application state owned by the top-level process.

    Holds the in-memory record list, the active filter, ingest progress and the
    last action message. The filter engine only ever sees snapshots.
    """

    def __init__(self, records: Optional[List[VideoRecord]] = None, activity_feed_max_items: int = 5):
        self._lock = threading.RLock()

        self.records: List[VideoRecord] = list(records or [])
        self.filters = FilterSpec()
        self.untagged_only = False

        # Ingest progress
        self.progress_current = 0
        self.progress_total = 0
        self.progress_label = ""
        self.added_count = 0
        self.skipped_count = 0
        self.failed_count = 0
        self.ingest_running = False
        self.ingest_finished = False
        self.recent_labels = deque(maxlen=activity_feed_max_items)

        self.last_action: str = ""
        self.last_action_time: Optional[datetime] = None

    def snapshot(self) -> List[VideoRecord]:
        with self._lock:
            return list(self.records)

    def upsert_record(self, record: VideoRecord) -> None:
        """Replaces the record with the same path, or puts a new one first."""
        with self._lock:
            for index, existing in enumerate(self.records):
                if existing.path == record.path:
                    self.records[index] = record
                    return
            self.records.insert(0, record)

    def set_tags(self, path: str, tags: str) -> None:
        with self._lock:
            for index, existing in enumerate(self.records):
                if existing.path == path:
                    self.records[index] = existing.model_copy(update={"tags": tags})
                    return

    def add_filter(self, clause: FilterClause, term: str) -> bool:
        with self._lock:
            return self.filters.add_term(clause, term)

    def remove_filter(self, clause: FilterClause, term: str) -> bool:
        with self._lock:
            return self.filters.remove_term(clause, term)

    def clear_filters(self) -> None:
        with self._lock:
            self.filters.clear()

    def toggle_untagged(self) -> bool:
        with self._lock:
            self.untagged_only = not self.untagged_only
            return self.untagged_only

    def filtered_records(self) -> List[VideoRecord]:
        with self._lock:
            records = list(self.records)
            spec = self.filters.model_copy(deep=True)
            untagged_only = self.untagged_only
        return filter_records(records, spec, untagged_only)

    def vocabulary(self) -> FacetVocabulary:
        return facet_vocabulary(self.snapshot())

    def set_last_action(self, action: str):
        with self._lock:
            self.last_action = action
            self.last_action_time = datetime.now()

    def get_last_action(self) -> str:
        """Last action message; cleared after 60 seconds."""
        with self._lock:
            if self.last_action and self.last_action_time:
                elapsed = (datetime.now() - self.last_action_time).total_seconds()
                if elapsed > 60:
                    self.last_action = ""
                    self.last_action_time = None
            return self.last_action
