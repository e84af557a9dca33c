"""Content-addressed entity registry and relationship engine."""

from .config import SoulGraphConfig
from .engine import RelationshipEngine
from .errors import InvalidStateError, NotFoundError, SoulGraphError, ValidationError
from .fingerprint import compute_fingerprint
from .registry import EntityRegistry
from .stores import EntityStore, JsonDirectoryStore, MemoryEntityStore

__all__ = [
    "SoulGraphConfig",
    "RelationshipEngine",
    "EntityRegistry",
    "EntityStore",
    "JsonDirectoryStore",
    "MemoryEntityStore",
    "compute_fingerprint",
    "SoulGraphError",
    "ValidationError",
    "NotFoundError",
    "InvalidStateError",
]
