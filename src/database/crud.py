from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from . import models, schemas
from typing import Optional

from src.soulgraph.models import Entity

async def get_entity(db: AsyncSession, entity_id: str) -> Optional[models.EntityRecord]:
    return await db.get(models.EntityRecord, entity_id)

async def get_entities(db: AsyncSession, skip: int = 0, limit: Optional[int] = 100):
    query = select(models.EntityRecord).order_by(models.EntityRecord.created_at).offset(skip)
    if limit is not None:
        query = query.limit(limit)
    result = await db.execute(query)
    return result.scalars().all()

def _values(entity: Entity) -> dict:
    data = entity.model_dump(mode="json")
    return {
        "kind": data["kind"],
        "name": data["name"],
        "digest": data["digest"],
        "feature_vector": data["feature_vector"],
        "summary": data["summary"],
        "harmonics": data["harmonics"],
        "pattern": data["pattern"],
        "relations": data["relations"],
        "lineage": data["lineage"],
        "entity_metadata": data["metadata"],
        "occurrences": data["occurrences"],
        "created_at": entity.created_at,
        "last_seen": entity.last_seen,
    }

async def upsert_entity(db: AsyncSession, entity: Entity, source_text: str | None = None) -> models.EntityRecord:
    """Inserts or refreshes the row for an entity. Does not commit."""
    record = await get_entity(db, entity.id)
    values = _values(entity)
    if record is None:
        record = models.EntityRecord(id=entity.id, source_text=source_text, **values)
        db.add(record)
    else:
        for key, value in values.items():
            setattr(record, key, value)
    await db.flush()
    return record

def to_entity(record: models.EntityRecord) -> Entity:
    row = schemas.EntityRow.model_validate(record)
    data = row.model_dump(exclude_none=True)
    return Entity.model_validate(data)
