import os
import threading
import time
import pytest
from pathlib import Path
from unittest.mock import MagicMock
from vidshelf.domain.errors import DiscoveryError, ProbeFailed, StorePersistenceFailed
from vidshelf.domain.events import (
    CancelRequested,
    DiscoveryFinished,
    DiscoveryStarted,
    IngestFinished,
    IngestOutcome,
    IngestProgress,
)
from vidshelf.domain.models import VideoRecord
from vidshelf.infrastructure.file_scanner import FileDiscovery
from vidshelf.pipeline.orchestrator import IngestionPipeline


def _fake_extract(failing=(), delay=0.0):
    def extract(path, thumbnail_dir):
        if delay:
            time.sleep(delay)
        if Path(path).name in failing:
            raise ProbeFailed(path, "moov atom not found")
        thumb = Path(thumbnail_dir) / f"{Path(path).stem}.jpg"
        thumb.parent.mkdir(parents=True, exist_ok=True)
        thumb.write_bytes(b"jpg")
        return VideoRecord.for_path(
            Path(path), codec="h264", width=1920, height=1080, fps="30.00", thumbnail_path=str(thumb)
        )
    return extract


def _pipeline(config, bus, store, extractor=None):
    if extractor is None:
        extractor = MagicMock()
        extractor.extract.side_effect = _fake_extract()
    return IngestionPipeline(
        config=config,
        event_bus=bus,
        file_discovery=FileDiscovery(),
        extractor=extractor,
        store=store,
    )


def _collect(bus, event_type):
    events = []
    bus.subscribe(event_type, events.append)
    return events


def _make_videos(directory, count):
    directory.mkdir(parents=True, exist_ok=True)
    for i in range(count):
        (directory / f"clip{i}.mp4").write_bytes(b"x")
    return directory


def test_run_adds_new_files(sample_config, event_bus, memory_store, video_tree):
    progress = _collect(event_bus, IngestProgress)
    started = _collect(event_bus, DiscoveryStarted)
    discovered = _collect(event_bus, DiscoveryFinished)
    finished = _collect(event_bus, IngestFinished)

    summary = _pipeline(sample_config, event_bus, memory_store).run([video_tree])

    assert started[0].paths == [str(video_tree)]
    assert discovered[0].files_found == 3
    assert [e.current for e in progress] == [1, 2, 3]
    assert all(e.total == 3 for e in progress)
    assert all(e.outcome == IngestOutcome.ADDED for e in progress)
    assert {e.label for e in progress} == {"a.mp4", "c.MKV", "d.mov"}
    assert all(e.record is not None for e in progress)
    assert progress[-1].is_complete
    assert memory_store.count() == 3
    assert (summary.total, summary.added, summary.skipped, summary.failed) == (3, 3, 0, 0)
    assert summary.cancelled is False
    assert finished == [summary]


def test_rerun_is_idempotent(sample_config, event_bus, memory_store, video_tree):
    pipeline = _pipeline(sample_config, event_bus, memory_store)
    pipeline.run([video_tree])
    before = memory_store.get_all()

    progress = _collect(event_bus, IngestProgress)
    summary = pipeline.run([video_tree])

    assert memory_store.get_all() == before
    assert summary.skipped == 3
    assert all(e.outcome == IngestOutcome.SKIPPED for e in progress)
    assert all(e.label.startswith("Skipped: ") for e in progress)
    assert all(e.record is None for e in progress)
    assert pipeline.extractor.extract.call_count == 3


def test_one_failing_file_does_not_abort_batch(sample_config, event_bus, memory_store, video_tree):
    extractor = MagicMock()
    extractor.extract.side_effect = _fake_extract(failing={"c.MKV"})
    progress = _collect(event_bus, IngestProgress)

    summary = _pipeline(sample_config, event_bus, memory_store, extractor).run([video_tree])

    assert [e.current for e in progress] == [1, 2, 3]
    assert all(e.total == 3 for e in progress)
    errors = [e for e in progress if e.outcome == IngestOutcome.ERROR]
    assert [e.label for e in errors] == ["Error: c.MKV"]
    assert errors[0].record is None
    assert summary.failed == 1
    assert summary.added == 2
    assert memory_store.count() == 2


def test_unexpected_worker_exception_reported_as_error(sample_config, event_bus, memory_store, tmp_path):
    videos = _make_videos(tmp_path / "in", 2)
    extractor = MagicMock()
    extractor.extract.side_effect = RuntimeError("kaboom")

    summary = _pipeline(sample_config, event_bus, memory_store, extractor).run([videos])

    assert summary.failed == 2
    assert memory_store.count() == 0


def test_empty_discovery(sample_config, event_bus, memory_store, tmp_path):
    progress = _collect(event_bus, IngestProgress)
    discovered = _collect(event_bus, DiscoveryFinished)
    (tmp_path / "notes.txt").write_text("x")

    summary = _pipeline(sample_config, event_bus, memory_store).run([tmp_path, tmp_path / "missing"])

    assert discovered[0].files_found == 0
    assert progress == []
    assert summary.total == 0


def test_single_path_instead_of_list_is_discovery_error(sample_config, event_bus, memory_store, tmp_path):
    with pytest.raises(DiscoveryError):
        _pipeline(sample_config, event_bus, memory_store).run(str(tmp_path))


def test_store_failure_discards_thumbnail(sample_config, event_bus, memory_store, tmp_path, monkeypatch):
    videos = _make_videos(tmp_path / "in", 1)
    monkeypatch.setattr(
        memory_store, "insert_if_absent", MagicMock(side_effect=StorePersistenceFailed("disk full"))
    )
    progress = _collect(event_bus, IngestProgress)

    _pipeline(sample_config, event_bus, memory_store).run([videos])

    assert progress[0].outcome == IngestOutcome.ERROR
    assert list(sample_config.paths.thumbnail_dir.glob("*.jpg")) == []


def test_concurrent_insert_by_other_writer_is_skipped(sample_config, event_bus, memory_store, tmp_path, monkeypatch):
    videos = _make_videos(tmp_path / "in", 1)
    monkeypatch.setattr(memory_store, "insert_if_absent", MagicMock(return_value=False))
    progress = _collect(event_bus, IngestProgress)

    _pipeline(sample_config, event_bus, memory_store).run([videos])

    assert progress[0].outcome == IngestOutcome.SKIPPED
    assert list(sample_config.paths.thumbnail_dir.glob("*.jpg")) == []


class RecordingEvent(threading.Event):
    def __init__(self):
        super().__init__()
        self.waits = []

    def wait(self, timeout=None):
        self.waits.append(timeout)
        return self.is_set()


def test_throttle_after_every_nth_processed_file(sample_config, event_bus, memory_store, tmp_path):
    sample_config.general.throttle_every = 2
    sample_config.general.throttle_delay_ms = 30
    videos = _make_videos(tmp_path / "in", 5)
    cancel_event = RecordingEvent()

    _pipeline(sample_config, event_bus, memory_store).run([videos], cancel_event=cancel_event)

    assert cancel_event.waits == [0.03, 0.03]


def test_throttle_not_applied_to_skips(sample_config, event_bus, memory_store, tmp_path):
    sample_config.general.throttle_every = 1
    sample_config.general.throttle_delay_ms = 30
    videos = _make_videos(tmp_path / "in", 3)
    pipeline = _pipeline(sample_config, event_bus, memory_store)
    pipeline.run([videos])

    cancel_event = RecordingEvent()
    pipeline.run([videos], cancel_event=cancel_event)

    assert cancel_event.waits == []


def test_throttle_not_applied_to_errors(sample_config, event_bus, memory_store, tmp_path):
    sample_config.general.throttle_every = 1
    sample_config.general.throttle_delay_ms = 30
    videos = _make_videos(tmp_path / "in", 3)
    extractor = MagicMock()
    extractor.extract.side_effect = _fake_extract(failing={"clip0.mp4", "clip1.mp4", "clip2.mp4"})
    cancel_event = RecordingEvent()

    summary = _pipeline(sample_config, event_bus, memory_store, extractor).run([videos], cancel_event=cancel_event)

    assert summary.failed == 3
    assert cancel_event.waits == []


def test_cancel_stops_between_items(sample_config, event_bus, memory_store, tmp_path):
    videos = _make_videos(tmp_path / "in", 4)
    fake = _fake_extract()

    def extract_then_cancel(path, thumbnail_dir):
        record = fake(path, thumbnail_dir)
        event_bus.publish(CancelRequested())
        return record

    extractor = MagicMock()
    extractor.extract.side_effect = extract_then_cancel
    progress = _collect(event_bus, IngestProgress)

    summary = _pipeline(sample_config, event_bus, memory_store, extractor).run([videos])

    assert len(progress) == 1
    assert progress[0].total == 4
    assert summary.cancelled is True
    assert summary.added == 1
    assert memory_store.count() == 1


def test_parallel_progress_is_monotonic(sample_config, event_bus, memory_store, tmp_path):
    sample_config.general.threads = 4
    videos = _make_videos(tmp_path / "in", 8)
    extractor = MagicMock()
    extractor.extract.side_effect = _fake_extract(delay=0.01)
    progress = _collect(event_bus, IngestProgress)

    summary = _pipeline(sample_config, event_bus, memory_store, extractor).run([videos])

    assert [e.current for e in progress] == list(range(1, 9))
    assert summary.added == 8
    assert memory_store.count() == 8


def test_parallel_duplicate_inputs_insert_once(sample_config, event_bus, memory_store, tmp_path):
    sample_config.general.threads = 2
    video = _make_videos(tmp_path / "in", 1) / "clip0.mp4"
    extractor = MagicMock()
    extractor.extract.side_effect = _fake_extract(delay=0.05)
    progress = _collect(event_bus, IngestProgress)

    _pipeline(sample_config, event_bus, memory_store, extractor).run([video, video])

    assert sorted(e.outcome.value for e in progress) == ["added", "skipped"]
    assert extractor.extract.call_count == 1
    assert memory_store.count() == 1


def test_stream_yields_progress(sample_config, event_bus, memory_store, video_tree):
    pipeline = _pipeline(sample_config, event_bus, memory_store)

    events = list(pipeline.stream([video_tree]))

    assert [e.current for e in events] == [1, 2, 3]
    assert event_bus._subscribers[IngestProgress] == []


def test_stream_closed_early_cancels_run(sample_config, event_bus, memory_store, tmp_path):
    videos = _make_videos(tmp_path / "in", 6)
    pipeline = _pipeline(sample_config, event_bus, memory_store)
    finished = _collect(event_bus, IngestFinished)

    stream = pipeline.stream([videos], maxsize=1)
    first = next(stream)
    stream.close()

    assert first.current == 1
    assert len(finished) == 1
    assert memory_store.count() < 6
    assert event_bus._subscribers[IngestProgress] == []


def test_stream_propagates_discovery_error(sample_config, event_bus, memory_store):
    pipeline = _pipeline(sample_config, event_bus, memory_store)

    with pytest.raises(DiscoveryError):
        list(pipeline.stream(os.sep))


def test_cancel_request_reaches_backed_up_stream(sample_config, event_bus, memory_store, tmp_path):
    videos = _make_videos(tmp_path / "in", 6)
    pipeline = _pipeline(sample_config, event_bus, memory_store)
    finished = _collect(event_bus, IngestFinished)

    stream = pipeline.stream([videos], maxsize=1)
    first = next(stream)
    time.sleep(0.3)

    publisher = threading.Thread(target=event_bus.publish, args=(CancelRequested(),), daemon=True)
    publisher.start()
    publisher.join(timeout=3)
    assert not publisher.is_alive()

    rest = list(stream)

    assert first.current == 1
    assert len(rest) < 5
    assert finished[0].cancelled is True
    assert memory_store.count() < 6


def test_repeated_directory_input_reports_skips(sample_config, event_bus, memory_store, tmp_path):
    videos = _make_videos(tmp_path / "in", 2)
    progress = _collect(event_bus, IngestProgress)

    summary = _pipeline(sample_config, event_bus, memory_store).run([videos, videos])

    assert (summary.total, summary.added, summary.skipped) == (4, 2, 2)
    assert sorted(e.label for e in progress[2:]) == ["Skipped: clip0.mp4", "Skipped: clip1.mp4"]
