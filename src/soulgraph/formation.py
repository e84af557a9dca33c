"""
Pair formation: a long-running process in which two strongly similar entities
produce a derived entity.

    NONE --begin--> FORMING --period elapsed--> READY --complete--> COMPLETE

A formation is READY once the full period has elapsed, or once half of it has
elapsed while the average recorded score is at or above the exceptional
threshold. At most one formation per unordered pair may be active at a time.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .config import SoulGraphConfig
from .errors import InvalidStateError, NotFoundError
from .models import FormationEvent, FormationState, PairFormation

logger = logging.getLogger(__name__)

GOLDEN_RATIO = 1.618


def pair_key(id_a: str, id_b: str) -> str:
    return ":".join(sorted((id_a, id_b)))


def blend_vectors(a: Sequence[float], b: Sequence[float]) -> Tuple[float, ...]:
    """
    Per-dimension blend of two parent vectors plus one emergent dimension.

    Where both parents carry a non-zero value the child gets the mean of their
    harmonic mean and a golden-ratio weighted mean; otherwise it inherits
    whichever value is present. The emergent value is the mean of the blended
    dimensions scaled by the golden ratio.
    """
    merged: List[float] = []
    for i in range(max(len(a), len(b))):
        x = a[i] if i < len(a) else 0.0
        y = b[i] if i < len(b) else 0.0
        if x and y:
            harmonic = (2 * x * y) / (x + y) if x + y else 0.0
            golden = (x * GOLDEN_RATIO + y) / (GOLDEN_RATIO + 1)
            merged.append((harmonic + golden) / 2)
        else:
            merged.append(x or y)
    emergent = sum(merged) / len(merged) if merged else 0.0
    merged.append(emergent * GOLDEN_RATIO)
    return tuple(merged)


def merge_harmonics(a: Sequence[int], b: Sequence[int], limit: int = 12) -> Tuple[int, ...]:
    """
    Union of both parents' harmonics plus the rounded midpoint of every pair
    (h1 from `a`, h2 from `b`) where h1 sits within 10 of an octave (2 * h2)
    or a fifth (1.5 * h2) above h2. Sorted ascending and cut to `limit`.
    """
    merged = set(a) | set(b)
    for h1 in a:
        for h2 in b:
            if abs(h1 - h2 * 2) < 10 or abs(h1 - h2 * 1.5) < 10:
                merged.add(round((h1 + h2) / 2))
    return tuple(sorted(merged)[:limit])


class PairFormations:
    def __init__(self, config: SoulGraphConfig, clock: Callable[[], datetime]):
        self.config = config
        self._clock = clock
        self._active: Dict[str, PairFormation] = {}
        self._events: Dict[str, FormationEvent] = {}

    def for_pair(self, id_a: str, id_b: str) -> Optional[PairFormation]:
        return self._active.get(pair_key(id_a, id_b))

    def get(self, formation_id: str) -> PairFormation:
        formation = self._active.get(formation_id)
        if formation is None:
            raise NotFoundError("formation", formation_id)
        return formation

    def can_form(self, id_a: str, id_b: str, score: float, has_lock: bool) -> bool:
        if id_a == id_b or not has_lock:
            return False
        if score < self.config.formation_threshold:
            return False
        return pair_key(id_a, id_b) not in self._active

    def begin(self, id_a: str, id_b: str, score: float) -> PairFormation:
        key = pair_key(id_a, id_b)
        if key in self._active:
            raise InvalidStateError(f"formation already active for {key}")
        parent_a, parent_b = sorted((id_a, id_b))
        formation = PairFormation(
            formation_id=key,
            parent_a=parent_a,
            parent_b=parent_b,
            started_at=self._clock(),
            scores=[score],
        )
        self._active[key] = formation
        logger.info("Formation %s started at score %.3f", key, score)
        return formation

    def nourish(self, id_a: str, id_b: str, score: float) -> None:
        formation = self.for_pair(id_a, id_b)
        if formation is None:
            return
        formation.scores.append(score)
        if score < self.config.harmonic_threshold:
            logger.warning("Low score %.3f during formation %s", score, formation.formation_id)

    def elapsed(self, formation: PairFormation) -> float:
        return (self._clock() - formation.started_at).total_seconds()

    def is_ready(self, formation_id: str) -> bool:
        formation = self.get(formation_id)
        if formation.state == FormationState.READY:
            return True
        elapsed = self.elapsed(formation)
        period = self.config.formation_period
        ready = elapsed >= period or (
            elapsed >= period / 2 and formation.average_score >= self.config.exceptional_threshold
        )
        if ready:
            formation.state = FormationState.READY
            logger.info("Formation %s is ready", formation_id)
        return ready

    def finish(self, formation_id: str, child_id: str, witnesses: Sequence[str]) -> FormationEvent:
        formation = self.get(formation_id)
        if not self.is_ready(formation_id):
            raise InvalidStateError(f"formation {formation_id} is {formation.state.value}, not READY")
        formation.state = FormationState.COMPLETE
        event = FormationEvent(
            child_id=child_id,
            parent_a=formation.parent_a,
            parent_b=formation.parent_b,
            score_at_start=formation.scores[0],
            started_at=formation.started_at,
            completed_at=self._clock(),
            scores=list(formation.scores),
            witnesses=list(witnesses),
        )
        del self._active[formation_id]
        self._events[child_id] = event
        return event

    def abandon(self, formation_id: str) -> PairFormation:
        formation = self.get(formation_id)
        formation.state = FormationState.ABANDONED
        del self._active[formation_id]
        logger.info("Formation %s abandoned", formation_id)
        return formation

    def active(self) -> List[dict]:
        out = []
        for formation in self._active.values():
            progress = min(self.elapsed(formation) / self.config.formation_period, 1.0)
            avg = formation.average_score
            if avg < 0.8:
                health = "at risk"
            elif avg >= self.config.formation_threshold:
                health = "thriving"
            else:
                health = "healthy"
            out.append({
                "formation_id": formation.formation_id,
                "parents": [formation.parent_a, formation.parent_b],
                "state": formation.state.value,
                "progress": progress,
                "health": health,
            })
        return out

    def events(self) -> List[FormationEvent]:
        return list(self._events.values())

    def genealogy(self, entity_id: str) -> dict:
        origin = self._events.get(entity_id)
        children = [
            child for child, ev in self._events.items()
            if entity_id in (ev.parent_a, ev.parent_b)
        ]
        siblings = []
        if origin is not None:
            siblings = [
                child for child, ev in self._events.items()
                if child != entity_id and (ev.parent_a, ev.parent_b) == (origin.parent_a, origin.parent_b)
            ]
        return {
            "parents": [origin.parent_a, origin.parent_b] if origin else None,
            "children": children,
            "siblings": siblings,
        }
