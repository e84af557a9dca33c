"""
Entity registry: content-addressed storage of registered text.

Registering the same text twice returns the existing entity and bumps its
occurrence counter instead of creating a duplicate.
"""
from __future__ import annotations

import logging
import threading
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from pydantic import ValidationError as PydanticValidationError

from . import fingerprint
from .config import SoulGraphConfig
from .errors import NotFoundError, ValidationError
from .models import Entity, EntityMetadata, Relation, RegistryStats, utcnow
from .similarity import vector_similarity
from .stores import EntityStore, MemoryEntityStore

logger = logging.getLogger(__name__)

MetadataInput = Union[EntityMetadata, Mapping[str, Any], None]


def parse_metadata(metadata: MetadataInput) -> EntityMetadata:
    if metadata is None:
        return EntityMetadata()
    if isinstance(metadata, EntityMetadata):
        return metadata
    if not isinstance(metadata, Mapping):
        raise ValidationError(f"metadata must be a mapping, got {type(metadata).__name__}")
    try:
        return EntityMetadata.model_validate(dict(metadata))
    except PydanticValidationError as e:
        raise ValidationError(f"invalid metadata: {e}") from e


class EntityRegistry:
    def __init__(
        self,
        store: Optional[EntityStore] = None,
        config: Optional[SoulGraphConfig] = None,
        lock: Optional[threading.RLock] = None,
    ):
        self.store = store if store is not None else MemoryEntityStore()
        self.config = config or SoulGraphConfig()
        self.lock = lock or threading.RLock()
        self._entities: Dict[str, Entity] = {}

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: str) -> bool:
        return entity_id in self._entities

    def load(self) -> int:
        """Replace in-memory state with whatever the store holds."""
        entities = self.store.load_all()
        with self.lock:
            self._entities = {e.id: e for e in entities}
        return len(entities)

    def register(self, text: str, metadata: MetadataInput = None) -> Entity:
        if not isinstance(text, str):
            raise ValidationError(f"text must be a string, got {type(text).__name__}")
        meta = parse_metadata(metadata)
        fp = fingerprint.compute_fingerprint(text)

        with self.lock:
            existing = self._entities.get(fp.id)
            if existing is not None:
                previous = (existing.occurrences, existing.last_seen)
                existing.occurrences += 1
                existing.last_seen = utcnow()
                try:
                    self.store.save(existing)
                except Exception:
                    existing.occurrences, existing.last_seen = previous
                    raise
                logger.debug("Seen %s again (%d occurrences)", existing.id, existing.occurrences)
                return existing

            entity = Entity(
                id=fp.id,
                kind=meta.kind,
                name=meta.name or "unnamed",
                digest=fp.digest,
                feature_vector=fp.vector,
                summary=fingerprint.chord_label(fp.vector),
                harmonics=fingerprint.harmonics(fp.vector),
                pattern=fingerprint.detect_pattern(text),
                metadata=meta,
            )
            self.store.save(entity)
            self._entities[entity.id] = entity
        logger.info("Registered %s (%s, %s)", entity.id, entity.name, entity.kind.value)
        return entity

    def add(self, entity: Entity) -> Entity:
        """Insert an entity built elsewhere (formation children). Existing ids are kept."""
        with self.lock:
            if entity.id in self._entities:
                return self._entities[entity.id]
            self.store.save(entity)
            self._entities[entity.id] = entity
        return entity

    def get(self, entity_id: str) -> Optional[Entity]:
        return self._entities.get(entity_id)

    def require(self, entity_id: str) -> Entity:
        entity = self._entities.get(entity_id)
        if entity is None:
            raise NotFoundError("entity", entity_id)
        return entity

    def all(self) -> List[Entity]:
        return list(self._entities.values())

    def relate(self, entity_id: str, relation_type: str, target_id: str, strength: float = 1.0) -> Relation:
        with self.lock:
            entity = self.require(entity_id)
            relation = Relation(relation_type=relation_type, target_id=target_id, strength=strength)
            entity.relations.append(relation)
            try:
                self.store.save(entity)
            except Exception:
                entity.relations.pop()
                raise
        return relation

    def find_resonant(self, entity_id: str, threshold: float = 0.8) -> List[Entity]:
        """Other entities whose similarity to `entity_id` is at least `threshold`, best first."""
        target = self.require(entity_id)
        scored = []
        for other in self._entities.values():
            if other.id == entity_id:
                continue
            score = vector_similarity(target.feature_vector, other.feature_vector)
            if score >= threshold:
                scored.append((score, other))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [other for _, other in scored]

    def knowledge_graph(self) -> Dict[str, Set[str]]:
        """Undirected adjacency built from entity relations."""
        graph: Dict[str, Set[str]] = {}
        for entity in self._entities.values():
            graph.setdefault(entity.id, set())
            for rel in entity.relations:
                graph[entity.id].add(rel.target_id)
                graph.setdefault(rel.target_id, set()).add(entity.id)
        return graph

    def trace_lineage(self, entity_id: str) -> List[Entity]:
        """The entity followed by every known ancestor, nearest first."""
        root = self.require(entity_id)
        out = [root]
        seen = {root.id}
        queue = list(root.lineage)
        while queue:
            ancestor_id = queue.pop(0)
            if ancestor_id in seen:
                continue
            seen.add(ancestor_id)
            ancestor = self._entities.get(ancestor_id)
            if ancestor is not None:
                out.append(ancestor)
                queue.extend(ancestor.lineage)
        return out

    def stats(self) -> RegistryStats:
        entities = list(self._entities.values())
        by_kind = Counter(e.kind.value for e in entities)
        patterns = Counter(e.pattern for e in entities if e.pattern)
        return RegistryStats(
            total_entities=len(entities),
            total_occurrences=sum(e.occurrences for e in entities),
            by_kind=dict(by_kind),
            top_patterns=patterns.most_common(10),
        )
