import datetime
from typing import Any, Dict, List
from pydantic import BaseModel, Field

# Schema for reading a stored entity row; field names match the core Entity model
class EntityRow(BaseModel):
    id: str
    kind: str
    name: str
    digest: str
    feature_vector: List[float]
    summary: str | None = None
    harmonics: List[int] = []
    pattern: str | None = None
    relations: List[Dict[str, Any]] = []
    lineage: List[str] = []
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="entity_metadata")
    occurrences: int = 1
    created_at: datetime.datetime | None = None
    last_seen: datetime.datetime | None = None

    model_config = {"from_attributes": True}
