"""Record and result types shared by the graph, kinship and duplicate modules."""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

import config


Gender = Literal["male", "female", "nonbinary", "unknown"]
DirectRelation = Literal["parent", "child", "sibling", "spouse", "grandparent", "grandchild"]
Halfness = Literal["full", "half", "adoptive", "foster"]
Lineage = Literal["maternal", "paternal", "both", "unknown"]
TreeMode = Literal["ancestors", "descendants", "hourglass"]
ScanType = Literal["full", "deceased_only", "incremental"]
DuplicateStatus = Literal[
    "pending",
    "confirmed_same",
    "confirmed_different",
    "merged",
    "not_duplicate",
    "dismissed",
]

GENDERS: tuple[str, ...] = ("male", "female", "nonbinary", "unknown")
DIRECT_RELATIONS: tuple[str, ...] = ("parent", "child", "sibling", "spouse", "grandparent", "grandchild")


def normalize_gender(value: str | None) -> str:
    """Map loosely-typed gender values ('M', 'F', 'Female', None) onto the Gender domain."""
    if not value:
        return "unknown"
    lowered = value.strip().lower()
    if lowered in GENDERS:
        return lowered
    if lowered in ("m", "man"):
        return "male"
    if lowered in ("f", "w", "woman"):
        return "female"
    return "unknown"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Timestamps without a zone are taken as UTC so they compare with aware ones."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================================
# Records (read snapshots supplied by the record store)
# ============================================================================

class Person(BaseModel):
    """A person record. Identity is immutable; demographic fields may change."""
    model_config = ConfigDict(frozen=True)

    id: str
    first_name: str | None = None
    last_name: str | None = None
    middle_name: str | None = None
    maiden_name: str | None = None
    nickname: str | None = None
    gender: Gender = "unknown"
    birth_date: str | None = None
    death_date: str | None = None
    birth_place: str | None = None
    birth_city: str | None = None
    birth_country: str | None = None
    death_place: str | None = None
    is_deceased: bool = False
    avatar_url: str | None = None
    email: str | None = None
    phone: str | None = None
    updated_at: datetime | None = None

    @field_validator("gender", mode="before")
    @classmethod
    def _coerce_gender(cls, value):
        return normalize_gender(value)

    @field_validator("updated_at")
    @classmethod
    def _updated_at_utc(cls, value):
        return as_utc(value)

    @property
    def is_alive(self) -> bool:
        return not self.death_date and not self.is_deceased

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or "Unknown"

    def to_node(self) -> dict[str, Any]:
        """Serialize to the tree-node shape used by the tree and depth endpoints."""
        return {
            "id": self.id,
            "name": self.display_name,
            "gender": self.gender,
            "birth_date": self.birth_date,
            "death_date": self.death_date,
            "photo_url": self.avatar_url,
            "is_alive": self.is_alive,
        }


class RelationshipQualifiers(BaseModel):
    """Modifiers on a direct relation used to refine label generation."""
    halfness: Halfness | None = None
    lineage: Lineage | None = None
    cousin_degree: int | None = Field(default=None, ge=1)
    cousin_removed: int | None = Field(default=None, ge=0)
    level: int | None = Field(default=None, ge=0)


class RelationshipDeclaration(BaseModel):
    """
    A one-sided claim by `declarer_id` that the subject is their `relation_code`.

    `subject_id` may be null when the relative has no person record yet; the
    declaration id then stands in as the subject's person id, and the
    placeholder person is built from the declaration's own name fields.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    declarer_id: str
    subject_id: str | None = None
    relation_code: DirectRelation
    qualifiers: RelationshipQualifiers = Field(default_factory=RelationshipQualifiers)
    related_subject_id: str | None = None
    related_relationship: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    gender: Gender = "unknown"
    is_deceased: bool = False
    date_of_birth: str | None = None
    marriage_date: str | None = None
    divorce_date: str | None = None

    @field_validator("gender", mode="before")
    @classmethod
    def _coerce_gender(cls, value):
        return normalize_gender(value)

    @property
    def resolved_subject_id(self) -> str:
        return self.subject_id or self.id

    def placeholder_person(self) -> Person:
        """Person record for a subject that has not registered yet."""
        return Person(
            id=self.id,
            first_name=self.first_name,
            last_name=self.last_name,
            gender=self.gender,
            birth_date=self.date_of_birth,
            is_deceased=self.is_deceased,
        )


# ============================================================================
# Results
# ============================================================================

class KinshipResult(BaseModel):
    """A resolved indirect relation with bilingual labels."""
    code: str
    label_en: str
    label_ru: str


class KinshipDescriptor(BaseModel):
    """Relation derived from a multi-hop path by generational arithmetic."""
    code: str
    qualifiers: RelationshipQualifiers = Field(default_factory=RelationshipQualifiers)
    category: Literal["self", "direct", "extended", "cousin", "in-law", "other"] = "other"
    degree: int = 0


class DuplicateCandidate(BaseModel):
    """Two person records proposed as possible duplicates (profile_a_id < profile_b_id)."""
    profile_a_id: str
    profile_b_id: str
    confidence_score: int = Field(ge=0, le=100)
    match_reasons: dict[str, bool | int | float] = Field(default_factory=dict)
    is_deceased_pair: bool = False
    shared_relatives_count: int = 0

    @property
    def pair_key(self) -> str:
        return make_pair_key(self.profile_a_id, self.profile_b_id)


class QueuedDuplicate(DuplicateCandidate):
    """A candidate as held by the queue store."""
    status: DuplicateStatus = "pending"
    created_at: datetime = Field(default_factory=utc_now)


class ScanOptions(BaseModel):
    """Duplicate scan request."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    scan_type: ScanType = "full"
    min_confidence: int = Field(default_factory=lambda: config.DEFAULT_MIN_CONFIDENCE, ge=0, le=100)
    include_relationship_matching: bool = True
    since: datetime | None = None
    prefilter: bool = True

    @field_validator("since")
    @classmethod
    def _since_utc(cls, value):
        return as_utc(value)


class ScanResult(BaseModel):
    """Duplicate scan response with explicit found/inserted/skipped counts."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    profiles_scanned: int = 0
    duplicates_found: int = 0
    duplicates_inserted: int = 0
    duplicates_skipped: int = 0
    errors: int = 0
    duration_ms: int = 0
    cancelled: bool = False
    duplicates: list[DuplicateCandidate] = Field(default_factory=list)


class ScanHistory(BaseModel):
    """One completed scan, as recorded by the queue store."""
    scan_type: ScanType
    min_confidence: int
    profiles_scanned: int
    duplicates_found: int
    duplicates_inserted: int
    duration_ms: int
    created_at: datetime = Field(default_factory=utc_now)


def make_pair_key(id_a: str, id_b: str) -> str:
    """Ordered pair key; identical for (a, b) and (b, a)."""
    first, second = sorted((id_a, id_b))
    return f"{first}:{second}"
