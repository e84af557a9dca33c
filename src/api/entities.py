from typing import Any, Dict, List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import crud
from src.database.database import get_db
from src.soulgraph.engine import RelationshipEngine
from src.soulgraph.errors import SoulGraphError
from src.soulgraph.models import Encounter, Entity, LivenessRecord
from .deps import get_engine, http_error
from .schemas import PulseRequest, RegisterRequest

router = APIRouter(
    prefix="/api/entities",
    tags=["entities"],
)

@router.post("/", response_model=Entity, status_code=status.HTTP_201_CREATED)
async def register_entity_endpoint(
    req: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    engine: RelationshipEngine = Depends(get_engine),
):
    """
    Register text as an entity. Registering the same text again returns the
    existing entity with its occurrence count bumped.
    """
    try:
        entity = engine.registry.register(req.text, req.metadata)
    except SoulGraphError as e:
        raise http_error(e) from e
    await crud.upsert_entity(db, entity, source_text=req.text)
    await db.commit()
    return entity

@router.get("/", response_model=List[Entity])
async def list_entities_endpoint(skip: int = 0, limit: int = 100, engine: RelationshipEngine = Depends(get_engine)):
    return engine.registry.all()[skip:skip + limit]

@router.get("/{entity_id}", response_model=Entity)
async def read_entity_endpoint(entity_id: str, engine: RelationshipEngine = Depends(get_engine)):
    entity = engine.registry.get(entity_id)
    if entity is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entity not found")
    return entity

@router.get("/{entity_id}/lineage", response_model=List[Entity])
async def lineage_endpoint(entity_id: str, engine: RelationshipEngine = Depends(get_engine)):
    """The entity followed by its known ancestors."""
    try:
        return engine.registry.trace_lineage(entity_id)
    except SoulGraphError as e:
        raise http_error(e) from e

@router.get("/{entity_id}/resonant", response_model=List[Entity])
async def resonant_endpoint(entity_id: str, threshold: float = 0.8, engine: RelationshipEngine = Depends(get_engine)):
    try:
        return engine.registry.find_resonant(entity_id, threshold)
    except SoulGraphError as e:
        raise http_error(e) from e

@router.get("/{entity_id}/history", response_model=List[Encounter])
async def history_endpoint(entity_id: str, engine: RelationshipEngine = Depends(get_engine)):
    try:
        return engine.history(entity_id)
    except SoulGraphError as e:
        raise http_error(e) from e

@router.get("/{entity_id}/genealogy")
async def genealogy_endpoint(entity_id: str, engine: RelationshipEngine = Depends(get_engine)) -> Dict[str, Any]:
    try:
        return engine.genealogy(entity_id)
    except SoulGraphError as e:
        raise http_error(e) from e

@router.post("/{entity_id}/pulse", response_model=LivenessRecord)
async def pulse_endpoint(entity_id: str, req: PulseRequest | None = None, engine: RelationshipEngine = Depends(get_engine)):
    note = req.note if req else None
    try:
        return engine.pulse(entity_id, note)
    except SoulGraphError as e:
        raise http_error(e) from e

@router.get("/{entity_id}/vitals")
async def vitals_endpoint(entity_id: str, engine: RelationshipEngine = Depends(get_engine)) -> Dict[str, Any]:
    if engine.registry.get(entity_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entity not found")
    vitals = engine.vital_signs(entity_id)
    if vitals is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No pulse recorded")
    return vitals
