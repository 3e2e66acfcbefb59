import logging
from typing import Optional
from vidshelf.domain.errors import RecordNotFound, TagAlreadyPresent, TagError
from vidshelf.domain.events import ActionMessage, TagsChanged
from vidshelf.domain.models import VideoRecord, split_tags
from vidshelf.infrastructure.event_bus import EventBus
from vidshelf.infrastructure.store import RecordStore


def _clean_tag(tag: str) -> str:
    cleaned = (tag or "").strip()
    if not cleaned:
        raise TagError("Tag must not be empty")
    if "," in cleaned:
        raise TagError(f"Tag must not contain a comma: {tag!r}")
    return cleaned


def add_tag(tags: Optional[str], tag: str) -> str:
    """Appends `tag` to a comma-joined tag string; duplicates are rejected."""
    cleaned = _clean_tag(tag)
    current = split_tags(tags)
    if cleaned in current:
        raise TagAlreadyPresent(f"Tag {cleaned!r} already present")
    current.append(cleaned)
    return ",".join(current)


def remove_tag(tags: Optional[str], tag: str) -> str:
    cleaned = (tag or "").strip()
    return ",".join(t for t in split_tags(tags) if t != cleaned)


class TagService:
    """Applies tag edits to stored records (the only mutation records allow)."""

    def __init__(self, store: RecordStore, event_bus: Optional[EventBus] = None):
        self.store = store
        self.event_bus = event_bus
        self.logger = logging.getLogger(__name__)

    def _load(self, path: str) -> VideoRecord:
        record = self.store.get(path)
        if record is None:
            raise RecordNotFound(path)
        return record

    def _save(self, record: VideoRecord, tags: str, message: str) -> VideoRecord:
        self.store.update_tags(record.path, tags)
        updated = record.model_copy(update={"tags": tags})
        self.logger.info(f"{message}: {record.name}")
        if self.event_bus:
            self.event_bus.publish(TagsChanged(path=record.path, tags=tags))
            self.event_bus.publish(ActionMessage(message=message, level="success"))
        return updated

    def add(self, path: str, tag: str) -> VideoRecord:
        record = self._load(path)
        tags = add_tag(record.tags, tag)
        return self._save(record, tags, f'Tag "{tag.strip()}" added')

    def remove(self, path: str, tag: str) -> VideoRecord:
        record = self._load(path)
        tags = remove_tag(record.tags, tag)
        if tags == record.tags:
            return record
        return self._save(record, tags, f'Tag "{tag.strip()}" removed')
