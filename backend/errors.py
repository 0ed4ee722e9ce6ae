"""Error taxonomy for the relationship engine.

Per-item problems (one bad declaration, one unscorable pair) are isolated by
the caller and never abort a whole traversal or scan. Only structural
failures (an unreadable record snapshot) propagate to the HTTP layer.
"""


class KintreeError(Exception):
    """Base class for all engine errors."""


class NotFoundError(KintreeError):
    """A root/proband id has no person record."""

    def __init__(self, person_id: str):
        super().__init__(f"Person not found: '{person_id}'")
        self.person_id = person_id


class InvalidRange(KintreeError):
    """A depth outside [1, 10]. Callers clamp instead of raising it."""


class DataIntegrityWarning(UserWarning):
    """Malformed source data; the offending edge is skipped."""


class ScoringSkipped(KintreeError):
    """A candidate pair could not be scored and is left out of the results."""


class DuplicateKeyIgnored(KintreeError):
    """A queue insert lost the race on the ordered pair key."""

    def __init__(self, pair_key: str):
        super().__init__(f"Duplicate pair already queued: {pair_key}")
        self.pair_key = pair_key


class RecordStoreError(KintreeError):
    """The record store could not serve a snapshot."""


class OptimizedQueryUnavailable(KintreeError):
    """The store has no server-side tree query; use the slow path."""
