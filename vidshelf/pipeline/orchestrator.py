"""Ingestion pipeline: discovery → dedup → extraction → persistence → progress.

Key responsibilities:
- Discover candidate video files under the given inputs
- Skip paths already in the catalog (idempotent re-ingestion)
- Extract metadata and a thumbnail for new paths and insert the record
- Emit one IngestProgress event per candidate via the EventBus
- Isolate per-file failures so one bad file never aborts the batch
- Throttle after every Nth file and honour cancellation between items
"""

import concurrent.futures
import logging
import os
import queue
import threading
import time
from collections import deque
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set, Tuple, Union
from vidshelf.config.models import AppConfig
from vidshelf.domain.errors import DiscoveryError, ExtractionError, StoreError
from vidshelf.domain.events import (
    CancelRequested,
    DiscoveryFinished,
    DiscoveryStarted,
    IngestFinished,
    IngestOutcome,
    IngestProgress,
)
from vidshelf.domain.models import VideoRecord
from vidshelf.infrastructure.event_bus import EventBus
from vidshelf.infrastructure.file_scanner import FileDiscovery
from vidshelf.infrastructure.store import RecordStore
from vidshelf.pipeline.extractor import MetadataExtractor

ItemResult = Tuple[IngestOutcome, Optional[VideoRecord]]


class IngestionPipeline:
    """Drives ingestion of a list of files/directories into the catalog.

    With `general.threads == 1` files are processed strictly one at a time in
    discovery order. With more threads, extraction runs on a bounded pool using
    a submit-on-demand pattern (at most `threads` items in flight); progress is
    still emitted from the dispatching thread only, so `current` counts
    completed items and increases by one per event.

    Dedup check and insert are made atomic per path: a path is claimed before
    the existence check and released after the insert, and the insert itself
    is an insert-if-absent.

    Args:
        config: AppConfig (threads, throttling).
        event_bus: EventBus receiving discovery/progress/finish events.
        file_discovery: FileDiscovery used to expand the inputs.
        extractor: MetadataExtractor for probe + thumbnail.
        store: RecordStore holding catalog records.
        thumbnail_dir: Directory for generated thumbnails (defaults to config paths).
    """

    def __init__(
        self,
        config: AppConfig,
        event_bus: EventBus,
        file_discovery: FileDiscovery,
        extractor: MetadataExtractor,
        store: RecordStore,
        thumbnail_dir: Optional[Path] = None,
    ):
        self.config = config
        self.event_bus = event_bus
        self.file_discovery = file_discovery
        self.extractor = extractor
        self.store = store
        self.thumbnail_dir = Path(thumbnail_dir) if thumbnail_dir else config.paths.thumbnail_dir
        self.logger = logging.getLogger(__name__)

        # Paths currently between dedup check and insert
        self._claimed: Set[str] = set()
        self._claim_lock = threading.Condition()

        self._active_cancel: Optional[threading.Event] = None

        self.event_bus.subscribe(CancelRequested, self._on_cancel_requested)

    def _on_cancel_requested(self, event: CancelRequested):
        self.cancel()

    def cancel(self) -> None:
        """Stops the running batch after the items already in flight."""
        if self._active_cancel is not None:
            self.logger.info("Ingestion cancel requested")
            self._active_cancel.set()

    def _claim(self, path: str) -> None:
        with self._claim_lock:
            while path in self._claimed:
                self._claim_lock.wait()
            self._claimed.add(path)

    def _release(self, path: str) -> None:
        with self._claim_lock:
            self._claimed.discard(path)
            self._claim_lock.notify_all()

    def _discard_thumbnail(self, record: VideoRecord) -> None:
        if not record.thumbnail_path:
            return
        try:
            Path(record.thumbnail_path).unlink()
        except OSError:
            pass

    def _process_file(self, path: str) -> ItemResult:
        """Dedup + extract + insert for one path; never raises for per-file failures."""
        filename = os.path.basename(path)
        self._claim(path)
        try:
            if self.store.exists(path):
                self.logger.debug(f"Already in catalog, skipping: {path}")
                return IngestOutcome.SKIPPED, None

            record = self.extractor.extract(path, self.thumbnail_dir)

            try:
                inserted = self.store.insert_if_absent(record)
            except StoreError:
                self._discard_thumbnail(record)
                raise
            if not inserted:
                # Another writer (e.g. a second process) inserted the path first
                self.logger.warning(f"Record appeared concurrently, skipping: {path}")
                self._discard_thumbnail(record)
                return IngestOutcome.SKIPPED, None

            self.logger.info(
                f"Added: {filename} ({record.codec}, {record.width}x{record.height}, {record.fps} fps)"
            )
            return IngestOutcome.ADDED, record
        except ExtractionError as e:
            self.logger.warning(f"Extraction failed for {filename}: {e}")
            return IngestOutcome.ERROR, None
        except StoreError as e:
            self.logger.error(f"Persistence failed for {filename}: {e}")
            return IngestOutcome.ERROR, None
        finally:
            self._release(path)

    def _label(self, path: str, outcome: IngestOutcome, record: Optional[VideoRecord]) -> str:
        if outcome == IngestOutcome.ADDED and record is not None:
            return record.name
        if outcome == IngestOutcome.SKIPPED:
            return f"Skipped: {os.path.basename(path)}"
        return f"Error: {os.path.basename(path)}"

    def _throttle(self, current: int, outcome: IngestOutcome, cancel_event: threading.Event) -> None:
        general = self.config.general
        if outcome != IngestOutcome.ADDED or general.throttle_delay_ms <= 0:
            return
        if current % general.throttle_every == 0:
            cancel_event.wait(general.throttle_delay_ms / 1000.0)

    def run(
        self,
        paths: Iterable[Union[str, Path]],
        cancel_event: Optional[threading.Event] = None,
    ) -> IngestFinished:
        """Ingests `paths` and returns the batch summary.

        Discovery errors propagate; everything after discovery is reported
        per item through IngestProgress events.
        """
        cancel_event = cancel_event or threading.Event()
        self._active_cancel = cancel_event
        if isinstance(paths, (str, bytes, Path)):
            raise DiscoveryError(f"Expected a list of paths, got a single path: {paths!r}")
        try:
            paths = list(paths)
        except TypeError as e:
            raise DiscoveryError(f"Input paths are not iterable: {e}") from e

        self.event_bus.publish(DiscoveryStarted(paths=[str(p) for p in paths]))
        self.logger.info(f"Discovery started: {len(paths)} input paths")
        candidates = self.file_discovery.discover(paths)
        total = len(candidates)
        self.logger.info(f"Discovery finished: found={total}")
        self.event_bus.publish(DiscoveryFinished(files_found=total))

        summary = IngestFinished(total=total)
        if total == 0:
            self.logger.info("No files to ingest")
            self.event_bus.publish(summary)
            return summary

        start_time = time.monotonic()
        current = 0

        def emit(path: str, outcome: IngestOutcome, record: Optional[VideoRecord]) -> None:
            nonlocal current
            current += 1
            if outcome == IngestOutcome.ADDED:
                summary.added += 1
            elif outcome == IngestOutcome.SKIPPED:
                summary.skipped += 1
            else:
                summary.failed += 1
            self.event_bus.publish(IngestProgress(
                current=current,
                total=total,
                label=self._label(path, outcome, record),
                outcome=outcome,
                record=record,
            ))
            self._throttle(current, outcome, cancel_event)

        pending = deque(candidates)
        in_flight = {}  # future -> path
        max_inflight = self.config.general.threads

        with concurrent.futures.ThreadPoolExecutor(max_workers=max_inflight) as executor:
            def submit_batch():
                while len(in_flight) < max_inflight and pending and not cancel_event.is_set():
                    path = pending.popleft()
                    in_flight[executor.submit(self._process_file, path)] = path

            try:
                submit_batch()
                while in_flight:
                    done, _ = concurrent.futures.wait(
                        set(in_flight.keys()),
                        timeout=1.0,
                        return_when=concurrent.futures.FIRST_COMPLETED
                    )
                    for future in done:
                        path = in_flight.pop(future)
                        try:
                            outcome, record = future.result()
                        except Exception as e:
                            self.logger.error(f"Unexpected failure processing {os.path.basename(path)}: {e}")
                            outcome, record = IngestOutcome.ERROR, None
                        emit(path, outcome, record)
                    submit_batch()
            except KeyboardInterrupt:
                self.logger.info("Ctrl+C detected - stopping ingestion")
                cancel_event.set()
                for future in list(in_flight.keys()):
                    future.cancel()
                executor.shutdown(wait=False, cancel_futures=True)
                raise

        summary.cancelled = bool(pending) and cancel_event.is_set()
        if summary.cancelled:
            self.logger.info(f"Ingestion cancelled with {len(pending)} files not processed")
        self.logger.info(
            f"Ingestion finished: added={summary.added}, skipped={summary.skipped}, "
            f"failed={summary.failed}, elapsed={time.monotonic() - start_time:.2f}s"
        )
        self.event_bus.publish(summary)
        return summary

    def stream(self, paths: Iterable[Union[str, Path]], maxsize: int = 64) -> Iterator[IngestProgress]:
        """Runs ingestion in a background thread and yields its progress events.

        The channel is bounded, so a slow consumer holds the pipeline back.
        Closing the iterator early cancels the remaining items.
        """
        channel: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        done = object()
        failure: List[BaseException] = []
        cancel_event = threading.Event()

        def forward(event: IngestProgress):
            channel.put(event)

        def produce():
            try:
                self.run(paths, cancel_event=cancel_event)
            except BaseException as e:
                failure.append(e)
            finally:
                channel.put(done)

        self.event_bus.subscribe(IngestProgress, forward)
        producer = threading.Thread(target=produce, name="vidshelf-ingest", daemon=True)
        producer.start()

        finished = False
        try:
            while True:
                item = channel.get()
                if item is done:
                    finished = True
                    break
                yield item
        finally:
            if not finished:
                cancel_event.set()
                while channel.get() is not done:
                    pass
            producer.join()
            self.event_bus.unsubscribe(IngestProgress, forward)

        if failure:
            raise failure[0]
