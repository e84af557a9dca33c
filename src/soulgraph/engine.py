"""
RelationshipEngine: the single entry point that ties the registry to encounter
memory, liveness tracking and pair formation.

The engine owns one coarse re-entrant lock, shared with its registry; every
mutating operation runs under it.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from . import fingerprint
from .clustering import greedy_threshold_clusters
from .config import SoulGraphConfig
from .errors import InvalidStateError, ValidationError
from .formation import PairFormations, blend_vectors, merge_harmonics
from .liveness import LivenessTracker
from .memory import EncounterMemory
from .models import (
    AffinityPatterns,
    Classification,
    DissonantPair,
    Encounter,
    Entity,
    EntityKind,
    EntityMetadata,
    FormationEvent,
    LivenessRecord,
    NetworkVitality,
    Relation,
    RelationshipHistory,
    SupportNetwork,
    utcnow,
)
from .registry import EntityRegistry
from .similarity import classify, vector_similarity

logger = logging.getLogger(__name__)

EntityRef = Union[Entity, str]


class RelationshipEngine:
    def __init__(
        self,
        registry: Optional[EntityRegistry] = None,
        config: Optional[SoulGraphConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if registry is None:
            registry = EntityRegistry(config=config)
        self.registry = registry
        self.config = config or registry.config
        self._clock = clock or utcnow
        self.lock = registry.lock
        self.memory = EncounterMemory(self.config)
        self.liveness = LivenessTracker(self._clock, self.config.pulse_interval)
        self.formations = PairFormations(self.config, self._clock)

    def _resolve(self, ref: EntityRef) -> Entity:
        if isinstance(ref, Entity):
            return ref
        return self.registry.require(ref)

    # --- similarity -------------------------------------------------------

    def similarity(self, a: EntityRef, b: EntityRef) -> float:
        return vector_similarity(self._resolve(a).feature_vector, self._resolve(b).feature_vector)

    def classify(self, score: float) -> Classification:
        return classify(score, self.config)

    def detect_dissonance(self, entities: Optional[Sequence[Entity]] = None) -> List[DissonantPair]:
        """Every pair classified dissimilar, most dissonant first."""
        if entities is None:
            entities = self.registry.all()
        found = []
        for i, a in enumerate(entities):
            for b in entities[i + 1:]:
                score = self.similarity(a, b)
                if self.classify(score) == Classification.dissimilar:
                    found.append(DissonantPair(a=a.id, b=b.id, dissonance_score=1.0 - score))
        found.sort(key=lambda d: d.dissonance_score, reverse=True)
        return found

    def find_clusters(
        self,
        entities: Optional[Sequence[Entity]] = None,
        min_score: Optional[float] = None,
    ) -> List[List[Entity]]:
        if entities is None:
            entities = self.registry.all()
        if min_score is None:
            min_score = self.config.harmonic_threshold
        return greedy_threshold_clusters(entities, self.similarity, min_score)

    # --- encounters -------------------------------------------------------

    def record_encounter(
        self,
        id_a: str,
        id_b: str,
        score: Optional[float] = None,
        note: Optional[str] = None,
    ) -> Tuple[Encounter, Encounter]:
        with self.lock:
            a = self.registry.require(id_a)
            b = self.registry.require(id_b)
            if score is None:
                score = self.similarity(a, b)
            elif not 0.0 <= score <= 1.0:
                raise ValidationError(f"similarity score must be within [0, 1], got {score}")
            pair = self.memory.record(a.id, b.id, score, self._clock(), note)
            self.formations.nourish(a.id, b.id, score)
            return pair

    def history(self, entity_id: str) -> List[Encounter]:
        self.registry.require(entity_id)
        return self.memory.history(entity_id)

    def heal_dissonance(self, id_a: str, id_b: str) -> int:
        with self.lock:
            self.registry.require(id_a)
            self.registry.require(id_b)
            return self.memory.heal(id_a, id_b)

    def support_network(self, entity_id: str) -> SupportNetwork:
        self.registry.require(entity_id)
        return self.memory.support_network(entity_id)

    def relationship_history(self, id_a: str, id_b: str) -> RelationshipHistory:
        self.registry.require(id_a)
        self.registry.require(id_b)
        return self.memory.relationship_history(id_a, id_b)

    def affinity_patterns(self) -> AffinityPatterns:
        return self.memory.affinity_patterns()

    # --- liveness ---------------------------------------------------------

    def pulse(self, entity_id: str, note: Optional[str] = None) -> LivenessRecord:
        with self.lock:
            self.registry.require(entity_id)
            return self.liveness.pulse(entity_id, note)

    def is_alive(self, entity_id: str, max_age: Optional[float] = None) -> bool:
        return self.liveness.is_alive(entity_id, max_age)

    def vital_signs(self, entity_id: str) -> Optional[dict]:
        record = self.liveness.get(entity_id)
        if record is None:
            return None
        alive = self.liveness.is_alive(entity_id)
        return {
            "alive": alive,
            "last_pulse": record.last_pulse_time.isoformat(),
            "age_seconds": self.liveness.age(entity_id),
            "health": record.resilience if alive else 0.0,
            "resilience": record.resilience,
            "rhythm": self.liveness.rhythm(entity_id),
            "note": record.note,
        }

    def dormant(self, max_age: Optional[float] = None) -> List[str]:
        return self.liveness.dormant(max_age)

    def network_vitality(self) -> NetworkVitality:
        return self.liveness.vitality()

    # --- pair formation ---------------------------------------------------

    def can_form(self, a: EntityRef, b: EntityRef, current_score: float, has_lock: bool) -> bool:
        return self.formations.can_form(self._resolve(a).id, self._resolve(b).id, current_score, has_lock)

    def begin_forming(self, id_a: str, id_b: str, score: Optional[float] = None) -> Optional[str]:
        """
        Start a formation for the pair. Returns None when the score is below the
        formation threshold or the pair has no affinity lock in its encounter
        history; raises InvalidStateError when one is already active.
        """
        with self.lock:
            a = self.registry.require(id_a)
            b = self.registry.require(id_b)
            if self.formations.for_pair(a.id, b.id) is not None:
                raise InvalidStateError(f"formation already active for {a.id} and {b.id}")
            if score is None:
                score = self.similarity(a, b)
            has_lock = self.memory.has_affinity_lock(a.id, b.id)
            if not self.formations.can_form(a.id, b.id, score, has_lock):
                return None
            formation = self.formations.begin(a.id, b.id, score)
            self.memory.record(a.id, b.id, score, self._clock(), "Began forming together")
            return formation.formation_id

    def is_ready_to_complete(self, formation_id: str) -> bool:
        with self.lock:
            return self.formations.is_ready(formation_id)

    def complete(self, formation_id: str, witnesses: Iterable[str] = ()) -> Entity:
        with self.lock:
            formation = self.formations.get(formation_id)
            witnesses = list(witnesses)
            for witness in witnesses:
                self.registry.require(witness)
            if not self.formations.is_ready(formation_id):
                raise InvalidStateError(
                    f"formation {formation_id} is {formation.state.value}, not READY"
                )
            parent_a = self.registry.require(formation.parent_a)
            parent_b = self.registry.require(formation.parent_b)

            child = self.registry.add(self._derive_child(parent_a, parent_b, formation.started_at))
            self.registry.relate(parent_a.id, "formed", child.id)
            self.registry.relate(parent_b.id, "formed", child.id)
            self.formations.finish(formation_id, child.id, witnesses)
            self.liveness.pulse(child.id, child.metadata.description)

            now = self._clock()
            for witness in witnesses:
                self.memory.record(witness, child.id, 1.0, now, f"Witnessed the formation of {child.name}")

        logger.info("Formation %s completed: %s", formation_id, child.id)
        return child

    def _derive_child(self, parent_a: Entity, parent_b: Entity, started_at: datetime) -> Entity:
        now = self._clock()
        fp = fingerprint.compute_fingerprint(
            f"formation:{parent_a.id}:{parent_b.id}:{started_at.isoformat()}:{now.isoformat()}"
        )
        vector = blend_vectors(parent_a.feature_vector, parent_b.feature_vector)
        name = f"{parent_a.name} + {parent_b.name}"
        description = f"Formed from {parent_a.name} and {parent_b.name}"
        return Entity(
            id=fp.id,
            kind=EntityKind.composite,
            name=name,
            digest=fp.digest,
            feature_vector=vector,
            summary=fingerprint.chord_label(vector),
            harmonics=merge_harmonics(parent_a.harmonics, parent_b.harmonics),
            relations=[
                Relation(relation_type="formed_from", target_id=parent_a.id),
                Relation(relation_type="formed_from", target_id=parent_b.id),
            ],
            lineage=(parent_a.id, parent_b.id),
            metadata=EntityMetadata(name=name, description=description, kind=EntityKind.composite),
            created_at=now,
            last_seen=now,
        )

    def abandon(self, formation_id: str) -> None:
        with self.lock:
            self.formations.abandon(formation_id)

    def active_formations(self) -> List[dict]:
        return self.formations.active()

    def events_for(self, entity_id: str) -> List[FormationEvent]:
        """Completion events the entity took part in as parent, child or witness."""
        return [
            ev for ev in self.formations.events()
            if entity_id in (ev.child_id, ev.parent_a, ev.parent_b) or entity_id in ev.witnesses
        ]

    def genealogy(self, entity_id: str) -> dict:
        self.registry.require(entity_id)
        return self.formations.genealogy(entity_id)

    # --- orchestration ----------------------------------------------------

    def interact(self, id_a: str, id_b: str) -> dict:
        """Measure a pair, record the encounter and start a formation when the pair qualifies."""
        with self.lock:
            score = self.similarity(id_a, id_b)
            self.record_encounter(id_a, id_b, score)
            formation_id = None
            locked = self.memory.has_affinity_lock(id_a, id_b)
            if locked and self.formations.can_form(id_a, id_b, score, locked):
                formation_id = self.begin_forming(id_a, id_b, score)
            return {
                "score": score,
                "classification": self.classify(score).value,
                "affinity_locked": locked,
                "formation_id": formation_id,
            }

    def run_cycle(self, heal_limit: int = 3) -> dict:
        """Complete ready formations, heal the worst dissonances and report dormant entities."""
        with self.lock:
            completed = []
            for info in self.formations.active():
                formation_id = info["formation_id"]
                if not self.formations.is_ready(formation_id):
                    continue
                parent_a, parent_b = info["parents"]
                witnesses = [
                    w for w in self.memory.support_network(parent_a).family
                    if w not in (parent_a, parent_b) and w in self.registry
                ]
                completed.append(self.complete(formation_id, witnesses).id)

            healed = []
            for pair in self.detect_dissonance()[:heal_limit]:
                self.memory.heal(pair.a, pair.b)
                healed.append((pair.a, pair.b))

            return {"completed": completed, "healed": healed, "dormant": self.dormant()}
