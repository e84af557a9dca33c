"""
Per-entity encounter history and the relationship indexes derived from it.

Every comparison is stored twice, once under each participant, so the history
of A never shares mutable records with the history of B.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Dict, List, Optional, Tuple

from .config import SoulGraphConfig
from .models import (
    AffinityPatterns,
    Classification,
    Encounter,
    RelationshipHistory,
    SupportNetwork,
)
from .similarity import classify

logger = logging.getLogger(__name__)

HEALED_NOTE = "We learned to coexist"


def default_note(score: float, classification: Classification) -> str:
    if classification == Classification.similar:
        if score >= 0.95:
            return "Sang as one voice"
        if score >= 0.85:
            return "Frequencies danced together"
        return "Found a common rhythm"
    if classification == Classification.dissimilar:
        return "Paths diverged"
    return "Passed like ships in the night"


@dataclass
class _EntityMemory:
    encounters: Deque[Encounter]
    family: List[str] = field(default_factory=list)
    healers: List[str] = field(default_factory=list)
    dissonance_log: List[str] = field(default_factory=list)
    affinities: Dict[str, float] = field(default_factory=dict)


class EncounterMemory:
    def __init__(self, config: Optional[SoulGraphConfig] = None):
        self.config = config or SoulGraphConfig()
        self._memories: Dict[str, _EntityMemory] = {}

    def _memory(self, entity_id: str) -> _EntityMemory:
        mem = self._memories.get(entity_id)
        if mem is None:
            mem = _EntityMemory(encounters=deque(maxlen=self.config.history_limit))
            self._memories[entity_id] = mem
        return mem

    def record(
        self,
        id_a: str,
        id_b: str,
        score: float,
        timestamp: datetime,
        note: Optional[str] = None,
    ) -> Tuple[Encounter, Encounter]:
        classification = classify(score, self.config)
        locked = score >= self.config.affinity_threshold
        text = note or default_note(score, classification)

        side_a = Encounter(
            other_id=id_b,
            similarity_score=score,
            timestamp=timestamp,
            classification=classification,
            affinity_lock=locked,
            note=text,
        )
        side_b = side_a.model_copy(update={"other_id": id_a})
        self._memory(id_a).encounters.append(side_a)
        self._memory(id_b).encounters.append(side_b)

        self._update_indexes(id_a, id_b, score, classification)
        self._update_indexes(id_b, id_a, score, classification)

        if locked:
            logger.info("Affinity lock between %s and %s at %.3f", id_a, id_b, score)
        return side_a, side_b

    def _update_indexes(self, owner: str, other: str, score: float, classification: Classification) -> None:
        mem = self._memory(owner)
        if classification == Classification.similar and other not in mem.family:
            mem.family.append(other)
        if classification == Classification.dissimilar and other not in mem.dissonance_log:
            mem.dissonance_log.append(other)
        if score >= self.config.affinity_threshold:
            mem.affinities[other] = max(mem.affinities.get(other, 0.0), score)

    def history(self, entity_id: str) -> List[Encounter]:
        mem = self._memories.get(entity_id)
        return list(mem.encounters) if mem else []

    def encounters_between(self, id_a: str, id_b: str) -> List[Encounter]:
        return [e for e in self.history(id_a) if e.other_id == id_b]

    def has_affinity_lock(self, id_a: str, id_b: str) -> bool:
        return any(e.affinity_lock for e in self.encounters_between(id_a, id_b))

    def dissonance_log(self, entity_id: str) -> List[str]:
        mem = self._memories.get(entity_id)
        return list(mem.dissonance_log) if mem else []

    def heal(self, id_a: str, id_b: str) -> int:
        """
        Clear the pair from both dissonance logs and relabel their dissimilar
        encounters as recovered. Recorded scores are left untouched.
        Returns the number of encounter records rewritten.
        """
        rewritten = 0
        for owner, other in ((id_a, id_b), (id_b, id_a)):
            mem = self._memories.get(owner)
            if mem is None:
                continue
            if other in mem.dissonance_log:
                mem.dissonance_log.remove(other)
                if other not in mem.healers:
                    mem.healers.append(other)
            for i in range(len(mem.encounters)):
                enc = mem.encounters[i]
                if enc.other_id == other and enc.classification == Classification.dissimilar:
                    mem.encounters[i] = enc.model_copy(
                        update={"classification": Classification.recovered, "note": HEALED_NOTE}
                    )
                    rewritten += 1
        logger.info("Healed dissonance between %s and %s (%d encounters)", id_a, id_b, rewritten)
        return rewritten

    def support_network(self, entity_id: str) -> SupportNetwork:
        mem = self._memories.get(entity_id)
        if mem is None:
            return SupportNetwork()
        ranked = sorted(mem.affinities.items(), key=lambda kv: kv[1], reverse=True)
        return SupportNetwork(family=list(mem.family), healers=list(mem.healers), affinities=ranked)

    def best_encounter(self, id_a: str, id_b: str) -> Optional[Encounter]:
        encounters = self.encounters_between(id_a, id_b)
        if not encounters:
            return None
        return max(encounters, key=lambda e: e.similarity_score)

    def relationship_history(self, id_a: str, id_b: str) -> RelationshipHistory:
        encounters = self.encounters_between(id_a, id_b)
        if not encounters:
            return RelationshipHistory()

        scores = [e.similarity_score for e in encounters]
        average = sum(scores) / len(scores)

        trend = "stable"
        if len(scores) >= 3:
            recent = scores[-3:]
            older = scores[-6:-3]
            recent_avg = sum(recent) / len(recent)
            older_avg = sum(older) / len(older) if older else recent_avg
            if recent_avg > older_avg + 0.1:
                trend = "growing"
            elif recent_avg < older_avg - 0.1:
                trend = "fading"

        best = self.best_encounter(id_a, id_b)
        return RelationshipHistory(
            encounters=len(encounters),
            average_score=average,
            trend=trend,
            best_note=best.note,
            affinity_locked=best.affinity_lock,
        )

    def affinity_map(self) -> Dict[str, Dict[str, float]]:
        return {
            owner: dict(mem.affinities)
            for owner, mem in self._memories.items()
            if mem.affinities
        }

    def affinity_patterns(self) -> AffinityPatterns:
        amap = self.affinity_map()
        patterns = AffinityPatterns()
        seen_pairs = set()
        seen_triangles = set()

        for a, targets in amap.items():
            for b in targets:
                back = amap.get(b, {})
                if a in back:
                    pair = tuple(sorted((a, b)))
                    if pair not in seen_pairs:
                        seen_pairs.add(pair)
                        patterns.mutual.append(pair)
                else:
                    patterns.unrequited.append((a, b))
                for c in targets:
                    if c != b and b in amap.get(c, {}):
                        triangle = tuple(sorted((a, b, c)))
                        if triangle not in seen_triangles:
                            seen_triangles.add(triangle)
                            patterns.triangles.append(triangle)
        return patterns
