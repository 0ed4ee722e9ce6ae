"""Duplicate scans and the review queue.

A scan prunes the O(n^2) pair space with cheap blocking keys, scores the
remaining pairs, and inserts the ones above the confidence cutoff into a queue
store. Insertion is idempotent on the ordered pair key, so repeated or
concurrent scans never queue the same pair twice.
"""

import logging
import threading
import time
from collections import defaultdict
from itertools import combinations
from typing import Any, Callable, Iterable, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from duplicate_detection import extract_year, score_candidate
from errors import DuplicateKeyIgnored, ScoringSkipped
from models import (
    DuplicateCandidate,
    DuplicateStatus,
    Person,
    QueuedDuplicate,
    RelationshipDeclaration,
    ScanHistory,
    ScanOptions,
    ScanResult,
    make_pair_key,
)

logger = logging.getLogger("kintree.duplicate_queue")

MAX_BIRTH_YEAR_GAP = 5
_FEMININE_SURNAME_ENDINGS = (
    ("skaya", "sky"),
    ("ская", "ский"),
    ("ova", "ov"),
    ("eva", "ev"),
    ("ina", "in"),
    ("ова", "ов"),
    ("ева", "ев"),
    ("ёва", "ёв"),
    ("ина", "ин"),
)


# ============================================================================
# Queue store
# ============================================================================

class InMemoryDuplicateQueueStore:
    """Queue store with a uniqueness guarantee on the ordered pair key."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: dict[str, QueuedDuplicate] = {}
        self._history: list[ScanHistory] = []

    def existing_pair_keys(self) -> set[str]:
        with self._lock:
            return set(self._entries)

    def insert(self, candidate: DuplicateCandidate, status: DuplicateStatus = "pending") -> QueuedDuplicate:
        """Queue a candidate. Raises DuplicateKeyIgnored if the pair is already queued."""
        entry = QueuedDuplicate(**candidate.model_dump(), status=status)
        with self._lock:
            if entry.pair_key in self._entries:
                raise DuplicateKeyIgnored(entry.pair_key)
            self._entries[entry.pair_key] = entry
        return entry

    def list_all(self) -> list[QueuedDuplicate]:
        with self._lock:
            return list(self._entries.values())

    def record_scan(self, history: ScanHistory) -> None:
        with self._lock:
            self._history.append(history)

    def scan_history(self) -> list[ScanHistory]:
        with self._lock:
            return list(self._history)

    def last_scan(self, scan_types: Iterable[str] = ("full", "incremental")) -> ScanHistory | None:
        wanted = set(scan_types)
        with self._lock:
            matching = [h for h in self._history if h.scan_type in wanted]
        return max(matching, key=lambda h: h.created_at) if matching else None


# ============================================================================
# Pre-filter and shared relatives
# ============================================================================

def normalize_surname(name: str | None) -> str:
    """Lower-case surname with feminine endings folded (Ivanova -> ivanov)."""
    value = (name or "").strip().lower()
    for ending, replacement in _FEMININE_SURNAME_ENDINGS:
        if value.endswith(ending) and len(value) > len(ending) + 1:
            return value[: -len(ending)] + replacement
    return value


def _blocking_keys(person: Person) -> set[str]:
    keys = set()
    for surname in (person.last_name, person.maiden_name):
        normalized = normalize_surname(surname)
        if normalized:
            keys.add(f"surname:{normalized}")
    if person.birth_date and len(person.birth_date.strip()) >= 10:
        keys.add(f"birth:{person.birth_date.strip()[:10]}")
    return keys


def candidate_pairs(
    profiles: list[Person],
    prefilter: bool = True,
    focus_ids: set[str] | None = None,
) -> list[tuple[Person, Person]]:
    """
    Pairs worth scoring.

    With `prefilter`, only pairs sharing a normalized surname, maiden name or
    exact birth date are kept, and pairs whose known birth years differ by
    more than five years are dropped. With `focus_ids`, at least one side of
    every pair must be a focus id.
    """
    if not prefilter:
        pairs = list(combinations(profiles, 2))
    else:
        buckets: dict[str, list[int]] = defaultdict(list)
        for index, person in enumerate(profiles):
            for key in _blocking_keys(person):
                buckets[key].append(index)
        seen: set[tuple[int, int]] = set()
        for members in buckets.values():
            seen.update(combinations(members, 2))
        pairs = []
        for i, j in sorted(seen):
            a, b = profiles[i], profiles[j]
            year_a, year_b = extract_year(a.birth_date), extract_year(b.birth_date)
            if year_a and year_b and abs(year_a - year_b) > MAX_BIRTH_YEAR_GAP:
                continue
            pairs.append((a, b))

    if focus_ids is not None:
        pairs = [(a, b) for a, b in pairs if a.id in focus_ids or b.id in focus_ids]
    return [(a, b) for a, b in pairs if a.id != b.id]


def build_relative_index(declarations: Iterable[RelationshipDeclaration]) -> dict[str, set[str]]:
    """Person id -> ids of everyone they share a declaration with."""
    index: dict[str, set[str]] = defaultdict(set)
    for declaration in declarations:
        endpoints = {declaration.declarer_id, declaration.resolved_subject_id}
        for person_id in endpoints:
            index[person_id].update(endpoints - {person_id})
    return index


def count_shared_relatives(index: dict[str, set[str]], id_a: str, id_b: str) -> int:
    return len((index.get(id_a, set()) & index.get(id_b, set())) - {id_a, id_b})


# ============================================================================
# Scanning
# ============================================================================

def scan_for_duplicates(
    profiles: list[Person],
    min_confidence: int = 50,
    existing_pairs: set[str] | None = None,
    shared_relatives: dict[str, set[str]] | None = None,
    prefilter: bool = True,
    should_stop: Callable[[], bool] | None = None,
    focus_ids: set[str] | None = None,
) -> ScanResult:
    """
    Score candidate pairs and keep those at or above `min_confidence`.

    Already-known pair keys are skipped. A pair that cannot be scored is
    counted in `errors` and the scan moves on. When `should_stop` returns
    True the scan ends early with what it has and `cancelled=True`.

    Returns:
        ScanResult with `duplicates` sorted by confidence, highest first
    """
    existing_pairs = existing_pairs or set()
    result = ScanResult(profiles_scanned=len(profiles))
    found: list[DuplicateCandidate] = []

    for a, b in candidate_pairs(profiles, prefilter, focus_ids):
        if should_stop is not None and should_stop():
            logger.warning(f"Duplicate scan stopped early after {len(found)} candidates")
            result.cancelled = True
            break
        if make_pair_key(a.id, b.id) in existing_pairs:
            result.duplicates_skipped += 1
            continue
        shared = count_shared_relatives(shared_relatives, a.id, b.id) if shared_relatives else 0
        try:
            candidate = score_candidate(a, b, shared)
        except ScoringSkipped as e:
            logger.debug(f"Skipping pair {a.id}/{b.id}: {e}")
            result.errors += 1
            continue
        if candidate.confidence_score >= min_confidence:
            found.append(candidate)

    found.sort(key=lambda c: c.confidence_score, reverse=True)
    result.duplicates = found
    result.duplicates_found = len(found)
    return result


def run_duplicate_scan(
    record_store,
    queue_store: InMemoryDuplicateQueueStore,
    options: ScanOptions | None = None,
    cancel_event: threading.Event | None = None,
    timeout_s: float | None = None,
) -> ScanResult:
    """
    Run a full, deceased-only or incremental scan and queue the results.

    Incremental scans compare profiles updated since `options.since` (or
    since the last recorded full/incremental scan) against the whole
    population. A completed scan is recorded in the store's scan history;
    a cancelled or timed-out one returns partial results and is not.
    """
    options = options or ScanOptions()
    started = time.monotonic()
    deadline = started + timeout_s if timeout_s else None

    def should_stop() -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return True
        return deadline is not None and time.monotonic() >= deadline

    population = record_store.list_persons(deceased_only=options.scan_type == "deceased_only")

    focus_ids = None
    if options.scan_type == "incremental":
        since = options.since
        if since is None:
            last = queue_store.last_scan()
            since = last.created_at if last else None
        if since is None:
            logger.info("No previous scan recorded; incremental scan covers every profile")
        else:
            focus_ids = {p.id for p in population if p.updated_at and p.updated_at >= since}
            logger.info(f"Incremental scan: {len(focus_ids)} profiles updated since {since.isoformat()}")

    relative_index = None
    if options.include_relationship_matching:
        relative_index = build_relative_index(record_store.list_relationship_declarations())

    logger.info(
        f"Starting {options.scan_type} duplicate scan over {len(population)} profiles "
        f"(min_confidence={options.min_confidence})"
    )
    result = scan_for_duplicates(
        population,
        min_confidence=options.min_confidence,
        existing_pairs=queue_store.existing_pair_keys(),
        shared_relatives=relative_index,
        prefilter=options.prefilter,
        should_stop=should_stop,
        focus_ids=focus_ids,
    )

    for candidate in result.duplicates:
        try:
            queue_store.insert(candidate)
            result.duplicates_inserted += 1
        except DuplicateKeyIgnored:
            # Another scan queued the pair first
            result.duplicates_skipped += 1

    result.duration_ms = int((time.monotonic() - started) * 1000)
    if not result.cancelled:
        queue_store.record_scan(ScanHistory(
            scan_type=options.scan_type,
            min_confidence=options.min_confidence,
            profiles_scanned=result.profiles_scanned,
            duplicates_found=result.duplicates_found,
            duplicates_inserted=result.duplicates_inserted,
            duration_ms=result.duration_ms,
        ))
    logger.info(
        f"Duplicate scan done: found={result.duplicates_found} inserted={result.duplicates_inserted} "
        f"skipped={result.duplicates_skipped} errors={result.errors} cancelled={result.cancelled} "
        f"in {result.duration_ms}ms"
    )
    return result


# ============================================================================
# Queue listing
# ============================================================================

class QueueFilters(BaseModel):
    """Filters, ordering and paging for the review queue."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: DuplicateStatus | None = None
    min_confidence: int = Field(default=0, ge=0, le=100)
    max_confidence: int = Field(default=100, ge=0, le=100)
    deceased_only: bool = False
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)
    sort_by: Literal["confidence", "created_at", "shared_relatives"] = "confidence"
    sort_order: Literal["asc", "desc"] = "desc"


_SORT_KEYS: dict[str, Callable[[QueuedDuplicate], Any]] = {
    "confidence": lambda d: (d.confidence_score, d.created_at),
    "created_at": lambda d: d.created_at,
    "shared_relatives": lambda d: (d.shared_relatives_count, d.confidence_score),
}


def list_duplicate_queue(
    queue_store: InMemoryDuplicateQueueStore,
    filters: QueueFilters | None = None,
    record_store=None,
) -> dict[str, Any]:
    """
    One page of the review queue.

    Returns:
        {duplicates, total, pendingCount, hasMore}; with a record store the
        entries also carry the `profile_a` / `profile_b` person records.
    """
    filters = filters or QueueFilters()
    entries = queue_store.list_all()
    pending_count = sum(1 for d in entries if d.status == "pending")

    matching = [
        d for d in entries
        if (filters.status is None or d.status == filters.status)
        and filters.min_confidence <= d.confidence_score <= filters.max_confidence
        and (not filters.deceased_only or d.is_deceased_pair)
    ]
    matching.sort(key=_SORT_KEYS[filters.sort_by], reverse=filters.sort_order == "desc")
    page = matching[filters.offset:filters.offset + filters.limit]

    duplicates = [d.model_dump(mode="json") for d in page]
    if record_store is not None and page:
        ids = {d.profile_a_id for d in page} | {d.profile_b_id for d in page}
        profiles = {p.id: p for p in record_store.list_persons_by_ids(sorted(ids))}
        for item in duplicates:
            for side in ("a", "b"):
                person = profiles.get(item[f"profile_{side}_id"])
                item[f"profile_{side}"] = person.model_dump(mode="json") if person else None

    return {
        "duplicates": duplicates,
        "total": len(matching),
        "pendingCount": pending_count,
        "hasMore": filters.offset + len(page) < len(matching),
    }
