from __future__ import annotations

import hashlib
import logging
import re
from collections.abc import Container
from typing import TYPE_CHECKING

from ..store import knowledge as store_knowledge
from ..store.types import DuplicateCandidate

if TYPE_CHECKING:
    from ..store import MemoryStore

logger = logging.getLogger(__name__)

TITLE_SIMILARITY_THRESHOLD = 0.85
MATCH_EXACT = "exact"
MATCH_TITLE = "title"

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_content(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text.lower()).strip()


def content_hash(text: str) -> str:
    return hashlib.sha256(normalize_content(text).encode("utf-8")).hexdigest()


def levenshtein_distance(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def title_similarity(a: str, b: str) -> float:
    left = normalize_content(a)
    right = normalize_content(b)
    longest = max(len(left), len(right))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(left, right) / longest


def find_duplicates(
    store: MemoryStore,
    project_path: str,
    title: str,
    content: str,
    *,
    exclude_ids: Container[str] = (),
) -> list[DuplicateCandidate]:
    """Exact fingerprint match first; otherwise near-identical titles, best first."""

    fingerprint = content_hash(content)
    candidates = [
        item
        for item in store_knowledge.all_visible_knowledge(store, project_path)
        if item.knowledge_id not in exclude_ids
    ]
    for item in candidates:
        if item.content_hash == fingerprint:
            return [DuplicateCandidate(knowledge=item, similarity=1.0, match_type=MATCH_EXACT)]

    matches: list[DuplicateCandidate] = []
    for item in candidates:
        similarity = title_similarity(title, item.title)
        if similarity >= TITLE_SIMILARITY_THRESHOLD:
            matches.append(
                DuplicateCandidate(knowledge=item, similarity=similarity, match_type=MATCH_TITLE)
            )
    return sorted(matches, key=lambda match: match.similarity, reverse=True)


def mark_superseded(store: MemoryStore, old_knowledge_id: str, new_knowledge_id: str) -> bool:
    updated = store_knowledge.set_superseded_by(store, old_knowledge_id, new_knowledge_id)
    if updated:
        logger.info("knowledge %s superseded by %s", old_knowledge_id, new_knowledge_id)
    return updated
