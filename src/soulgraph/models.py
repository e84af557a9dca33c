from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntityKind(str, Enum):
    unit = "unit"
    composite = "composite"
    cluster = "cluster"
    concept = "concept"


class Classification(str, Enum):
    similar = "similar"
    neutral = "neutral"
    dissimilar = "dissimilar"
    recovered = "recovered"


class FormationState(str, Enum):
    FORMING = "FORMING"
    READY = "READY"
    COMPLETE = "COMPLETE"
    ABANDONED = "ABANDONED"


class Fingerprint(BaseModel):
    """Content-derived identity of a text blob."""
    model_config = ConfigDict(frozen=True)

    id: str
    digest: str
    vector: Tuple[float, ...]


class EntityMetadata(BaseModel):
    """Descriptive fields accepted at registration time. Unknown keys are rejected."""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    description: Optional[str] = None
    kind: EntityKind = EntityKind.unit
    author: Optional[str] = None
    license: Optional[str] = None
    language: Optional[str] = None
    source: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class Relation(BaseModel):
    relation_type: str
    target_id: str
    strength: float = 1.0


class Entity(BaseModel):
    """A registered piece of content."""
    id: str
    kind: EntityKind = EntityKind.unit
    name: str = "unnamed"
    digest: str
    feature_vector: Tuple[float, ...]
    summary: Optional[str] = None
    harmonics: Tuple[int, ...] = ()
    pattern: Optional[str] = None
    relations: List[Relation] = Field(default_factory=list)
    lineage: Tuple[str, ...] = ()
    metadata: EntityMetadata = Field(default_factory=EntityMetadata)
    occurrences: int = 1
    created_at: datetime = Field(default_factory=utcnow)
    last_seen: datetime = Field(default_factory=utcnow)


class Encounter(BaseModel):
    """One side of a recorded comparison between two entities."""
    other_id: str
    similarity_score: float = Field(ge=0.0, le=1.0)
    timestamp: datetime
    classification: Classification
    affinity_lock: bool = False
    note: Optional[str] = None


class LivenessRecord(BaseModel):
    entity_id: str
    last_pulse_time: datetime
    expected_interval: float
    resilience: float = Field(ge=0.0, le=1.0)
    note: Optional[str] = None
    pulse_count: int = 1


class PairFormation(BaseModel):
    formation_id: str
    parent_a: str
    parent_b: str
    state: FormationState = FormationState.FORMING
    started_at: datetime
    scores: List[float] = Field(default_factory=list)

    @property
    def average_score(self) -> float:
        if not self.scores:
            return 0.0
        return sum(self.scores) / len(self.scores)


class FormationEvent(BaseModel):
    """Completion record for a formation, kept after the formation itself is removed."""
    child_id: str
    parent_a: str
    parent_b: str
    score_at_start: float
    started_at: datetime
    completed_at: datetime
    scores: List[float] = Field(default_factory=list)
    witnesses: List[str] = Field(default_factory=list)


class RelationshipHistory(BaseModel):
    encounters: int = 0
    average_score: float = 0.0
    trend: str = "stable"
    best_note: Optional[str] = None
    affinity_locked: bool = False


class SupportNetwork(BaseModel):
    family: List[str] = Field(default_factory=list)
    healers: List[str] = Field(default_factory=list)
    affinities: List[Tuple[str, float]] = Field(default_factory=list)


class DissonantPair(BaseModel):
    a: str
    b: str
    dissonance_score: float


class AffinityPatterns(BaseModel):
    mutual: List[Tuple[str, str]] = Field(default_factory=list)
    unrequited: List[Tuple[str, str]] = Field(default_factory=list)
    triangles: List[Tuple[str, str, str]] = Field(default_factory=list)


class NetworkVitality(BaseModel):
    total: int = 0
    alive: int = 0
    vitality: float = 0.0
    average_resilience: float = 0.0


class RegistryStats(BaseModel):
    total_entities: int = 0
    total_occurrences: int = 0
    by_kind: Dict[str, int] = Field(default_factory=dict)
    top_patterns: List[Tuple[str, int]] = Field(default_factory=list)
