"""
Persistence backends for the entity registry.

The registry only needs `save(entity)` and `load_all()`. The HTTP server does
not use these; it persists through the async SQLAlchemy layer in
`src.database` instead.
"""
from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Dict, List

from .models import Entity

logger = logging.getLogger(__name__)


class EntityStore(ABC):
    @abstractmethod
    def save(self, entity: Entity) -> None:
        ...

    @abstractmethod
    def load_all(self) -> List[Entity]:
        ...


class MemoryEntityStore(EntityStore):
    """Keeps serialized copies so callers cannot mutate what was saved."""

    def __init__(self) -> None:
        self._records: Dict[str, str] = {}

    def save(self, entity: Entity) -> None:
        self._records[entity.id] = entity.model_dump_json()

    def load_all(self) -> List[Entity]:
        return [Entity.model_validate_json(raw) for raw in self._records.values()]


class JsonDirectoryStore(EntityStore):
    """One JSON document per entity, named after its id."""

    def __init__(self, directory: str) -> None:
        self.directory = directory

    def path_for(self, entity_id: str) -> str:
        safe = re.sub(r"[^A-Za-z0-9_.-]+", "_", entity_id)
        return os.path.join(self.directory, f"{safe}.json")

    def save(self, entity: Entity) -> None:
        os.makedirs(self.directory, exist_ok=True)
        path = self.path_for(entity.id)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(entity.model_dump_json(indent=2))
        os.replace(tmp_path, path)

    def load_all(self) -> List[Entity]:
        if not os.path.isdir(self.directory):
            logger.info("No entity directory at %s, starting empty", self.directory)
            return []
        entities: List[Entity] = []
        for name in sorted(os.listdir(self.directory)):
            if not name.endswith(".json"):
                continue
            path = os.path.join(self.directory, name)
            try:
                with open(path, "r", encoding="utf-8") as f:
                    entities.append(Entity.model_validate_json(f.read()))
            except (OSError, ValueError):
                # pydantic's ValidationError is a ValueError
                logger.exception("Skipping unreadable entity file %s", path)
        logger.info("Loaded %d entities from %s", len(entities), self.directory)
        return entities
