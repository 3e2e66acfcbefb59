"""Facet filtering over catalog records.

A record's term set is its trimmed, lowercased tags plus its lowercased codec
plus its resolution class. AND requires every term, OR at least one, NOT none;
non-empty clauses combine conjunctively. Everything here is a pure function of
its inputs; callers re-run it whenever the record set or the spec changes.
"""

from typing import Iterable, List, Optional, Set
from pydantic import BaseModel, Field
from vidshelf.domain.models import FilterSpec, VideoRecord, resolution_class


class FacetVocabulary(BaseModel):
    """Sidebar facets: each list distinct and sorted."""

    codecs: List[str] = Field(default_factory=list)
    resolutions: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


def term_set(record: VideoRecord) -> Set[str]:
    terms = {tag.strip().lower() for tag in (record.tags or "").split(",") if tag.strip()}
    terms.add((record.codec or "unknown").lower())
    terms.add(resolution_class(record.height))
    return terms


def matches(record: VideoRecord, spec: FilterSpec, untagged_only: bool = False) -> bool:
    if untagged_only and (record.tags or "").strip():
        return False

    terms = term_set(record)
    if spec.and_terms and not spec.and_terms <= terms:
        return False
    if spec.or_terms and not (spec.or_terms & terms):
        return False
    if spec.not_terms and (spec.not_terms & terms):
        return False
    return True


def filter_records(
    records: Iterable[VideoRecord],
    spec: Optional[FilterSpec] = None,
    untagged_only: bool = False,
) -> List[VideoRecord]:
    """Returns the records passing `spec`, in input order."""
    spec = spec or FilterSpec()
    return [record for record in records if matches(record, spec, untagged_only)]


def facet_vocabulary(records: Iterable[VideoRecord]) -> FacetVocabulary:
    codecs: Set[str] = set()
    resolutions: Set[str] = set()
    tags: Set[str] = set()
    for record in records:
        if record.codec:
            codecs.add(record.codec.lower())
        resolutions.add(resolution_class(record.height))
        tags.update(tag.strip().lower() for tag in (record.tags or "").split(",") if tag.strip())

    return FacetVocabulary(
        codecs=sorted(codecs),
        resolutions=sorted(resolutions),
        tags=sorted(tags),
    )
