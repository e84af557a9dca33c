from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .models import LivenessRecord, NetworkVitality

logger = logging.getLogger(__name__)


class LivenessTracker:
    """Heartbeat state per entity. Resilience measures how close pulses land to the expected interval."""

    def __init__(self, clock: Callable[[], datetime], default_interval: float = 3600.0):
        self._clock = clock
        self.default_interval = default_interval
        self._records: Dict[str, LivenessRecord] = {}

    def pulse(self, entity_id: str, note: Optional[str] = None) -> LivenessRecord:
        now = self._clock()
        previous = self._records.get(entity_id)
        if previous is None:
            record = LivenessRecord(
                entity_id=entity_id,
                last_pulse_time=now,
                expected_interval=self.default_interval,
                resilience=1.0,
                note=note,
            )
        else:
            expected = previous.expected_interval
            actual = (now - previous.last_pulse_time).total_seconds()
            resilience = max(0.0, 1.0 - abs(actual - expected) / expected)
            record = LivenessRecord(
                entity_id=entity_id,
                last_pulse_time=now,
                expected_interval=expected,
                resilience=resilience,
                note=note,
                pulse_count=previous.pulse_count + 1,
            )
        self._records[entity_id] = record
        logger.debug("Pulse from %s (resilience %.2f)", entity_id, record.resilience)
        return record

    def get(self, entity_id: str) -> Optional[LivenessRecord]:
        return self._records.get(entity_id)

    def age(self, entity_id: str) -> Optional[float]:
        record = self._records.get(entity_id)
        if record is None:
            return None
        return (self._clock() - record.last_pulse_time).total_seconds()

    def is_alive(self, entity_id: str, max_age: Optional[float] = None) -> bool:
        record = self._records.get(entity_id)
        if record is None:
            return False
        if max_age is None:
            max_age = 2 * record.expected_interval
        return self.age(entity_id) < max_age

    def dormant(self, max_age: Optional[float] = None) -> List[str]:
        return [eid for eid in self._records if not self.is_alive(eid, max_age)]

    def vitality(self, max_age: Optional[float] = None) -> NetworkVitality:
        total = len(self._records)
        alive = [r for eid, r in self._records.items() if self.is_alive(eid, max_age)]
        avg = sum(r.resilience for r in alive) / len(alive) if alive else 0.0
        return NetworkVitality(
            total=total,
            alive=len(alive),
            vitality=len(alive) / total if total else 0.0,
            average_resilience=avg,
        )

    def rhythm(self, entity_id: str) -> str:
        record = self._records.get(entity_id)
        if record is None or record.resilience <= 0:
            return "unknown"
        if record.resilience > 0.9:
            return "steady"
        if record.resilience > 0.5:
            return "irregular"
        return "fading"
