"""Resolve `@topic` and `#journey` mentions in free text against a catalog.

Two token shapes per marker:

    @[Some Topic Title]   @12
    #[Some Journey Name]  #science-tech

Bracketed text is compared case-insensitively with the catalog title/name,
verbatim (no trimming). Bare topic ids are compared numerically; bare
journey slugs case-insensitively. Tokens that resolve to nothing, or to an
entry already resolved earlier in the same text, are dropped.

Every function here is pure: catalogs come in as arguments and each call
builds fresh output lists.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from prenatal_hub.schemas.references import JourneyReference, TopicReference
from prenatal_hub.services.catalog import Journey, Topic

# ASCII digits only; `\d` would also accept other Unicode digit classes.
TOPIC_MENTION_RE = re.compile(r"@\[([^\]]+)\]|@([0-9]+)")
JOURNEY_MENTION_RE = re.compile(r"#\[([^\]]+)\]|#([a-zA-Z0-9-]+)")
_MAX_TOPIC_ID_DIGITS = 18


@dataclass(frozen=True)
class ExtractedReferences:
    topic_references: list[TopicReference] = field(default_factory=list)
    journey_references: list[JourneyReference] = field(default_factory=list)


def _resolve_topic(
    title: str | None, raw_id: str | None, topics: Sequence[Topic]
) -> Topic | None:
    if title is not None:
        needle = title.lower()
        return next((t for t in topics if t.title.lower() == needle), None)
    if raw_id is not None:
        # Longer digit runs cannot name a catalog topic.
        if len(raw_id.lstrip("0")) > _MAX_TOPIC_ID_DIGITS:
            return None
        topic_id = int(raw_id)
        return next((t for t in topics if t.id == topic_id), None)
    return None


def _resolve_journey(
    name: str | None, slug: str | None, journeys: Sequence[Journey]
) -> Journey | None:
    if name is not None:
        needle = name.lower()
        return next((j for j in journeys if j.name.lower() == needle), None)
    if slug is not None:
        needle = slug.lower()
        return next((j for j in journeys if j.id.lower() == needle), None)
    return None


def scan_topic_mentions(text: str, topics: Sequence[Topic]) -> list[TopicReference]:
    refs: list[TopicReference] = []
    if not text or not topics:
        return refs

    seen: set[int] = set()
    for match in TOPIC_MENTION_RE.finditer(text):
        topic = _resolve_topic(match.group(1), match.group(2), topics)
        if topic is None or topic.id in seen:
            continue
        seen.add(topic.id)
        refs.append(TopicReference(topic_id=topic.id, title=topic.title))
    return refs


def scan_journey_mentions(
    text: str, journeys: Sequence[Journey]
) -> list[JourneyReference]:
    refs: list[JourneyReference] = []
    if not text or not journeys:
        return refs

    seen: set[str] = set()
    for match in JOURNEY_MENTION_RE.finditer(text):
        journey = _resolve_journey(match.group(1), match.group(2), journeys)
        if journey is None or journey.id in seen:
            continue
        seen.add(journey.id)
        refs.append(JourneyReference(journey_id=journey.id, title=journey.name))
    return refs


def extract_references(
    text: str, topics: Sequence[Topic], journeys: Sequence[Journey]
) -> ExtractedReferences:
    return ExtractedReferences(
        topic_references=scan_topic_mentions(text, topics),
        journey_references=scan_journey_mentions(text, journeys),
    )


def validate_topic_references(
    refs: Iterable[TopicReference], topics: Sequence[Topic]
) -> list[TopicReference]:
    """Keep refs whose topic still exists. Order and duplicates are preserved."""
    known = {t.id for t in topics}
    return [r for r in refs if r.topic_id in known]


def validate_journey_references(
    refs: Iterable[JourneyReference], journeys: Sequence[Journey]
) -> list[JourneyReference]:
    known = {j.id.lower() for j in journeys}
    return [r for r in refs if r.journey_id.lower() in known]


def merge_topic_references(
    scanned: Iterable[TopicReference], explicit: Iterable[TopicReference]
) -> list[TopicReference]:
    """Scanned refs first; explicit refs only fill in ids not already present."""
    merged: list[TopicReference] = []
    seen: set[int] = set()
    for ref in [*scanned, *explicit]:
        if ref.topic_id in seen:
            continue
        seen.add(ref.topic_id)
        merged.append(ref)
    return merged


def merge_journey_references(
    scanned: Iterable[JourneyReference], explicit: Iterable[JourneyReference]
) -> list[JourneyReference]:
    merged: list[JourneyReference] = []
    seen: set[str] = set()
    for ref in [*scanned, *explicit]:
        key = ref.journey_id.lower()
        if key in seen:
            continue
        seen.add(key)
        merged.append(ref)
    return merged
