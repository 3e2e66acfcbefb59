"""Domain events for the catalog ingestion pipeline.

Events flow through the EventBus, decoupling the ingestion pipeline from
whatever consumes its progress (CLI dashboard, catalog state).

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from .models import VideoRecord


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class IngestOutcome(str, Enum):
    ADDED = "added"
    SKIPPED = "skipped"
    ERROR = "error"


class DiscoveryStarted(Event):
    """Emitted before input paths are walked."""

    paths: List[str] = Field(default_factory=list)


class DiscoveryFinished(Event):
    """Emitted once the candidate list is fixed."""

    files_found: int


class IngestProgress(Event):
    """One file's outcome plus the batch position.

    `current` counts completed items (1-based, strictly increasing within a
    batch); `total` is fixed when discovery finishes. A non-null `record` is a
    freshly inserted catalog entry.
    """

    current: int
    total: int
    label: str
    outcome: IngestOutcome
    record: Optional[VideoRecord] = None

    @property
    def is_complete(self) -> bool:
        return self.current == self.total


class IngestFinished(Event):
    """Emitted after the last candidate (or after cancellation)."""

    total: int = 0
    added: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False


class CancelRequested(Event):
    """Asks a running ingestion to stop between items."""

    pass


class TagsChanged(Event):
    """Emitted after a record's tags were rewritten in the store."""

    path: str
    tags: str


class ActionMessage(Event):
    """Transient user feedback (tag added, export finished...)."""

    message: str
    level: str = "info"
