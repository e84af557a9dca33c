from typing import Any, Dict, List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import crud
from src.database.database import get_db
from src.soulgraph.engine import RelationshipEngine
from src.soulgraph.errors import SoulGraphError
from src.soulgraph.models import Entity
from .deps import get_engine, http_error
from .schemas import BeginFormingRequest, BeginFormingResponse, CompleteRequest, CycleResponse, ReadinessResponse

router = APIRouter(
    prefix="/api/formations",
    tags=["formations"],
)

async def _persist_child(db: AsyncSession, engine: RelationshipEngine, child: Entity) -> None:
    # Parents gained a "formed" relation, so their rows change too
    await crud.upsert_entity(db, child)
    for parent_id in child.lineage:
        parent = engine.registry.get(parent_id)
        if parent is not None:
            await crud.upsert_entity(db, parent)

@router.post("/", response_model=BeginFormingResponse)
async def begin_forming_endpoint(req: BeginFormingRequest, engine: RelationshipEngine = Depends(get_engine)):
    """
    Start a formation for a pair. `started` is false when the pair does not
    qualify; a pair that is already forming is a conflict.
    """
    try:
        formation_id = engine.begin_forming(req.a, req.b, req.score)
    except SoulGraphError as e:
        raise http_error(e) from e
    return BeginFormingResponse(started=formation_id is not None, formation_id=formation_id)

@router.get("/")
async def list_formations_endpoint(engine: RelationshipEngine = Depends(get_engine)) -> List[Dict[str, Any]]:
    return engine.active_formations()

@router.post("/cycle", response_model=CycleResponse)
async def cycle_endpoint(db: AsyncSession = Depends(get_db), engine: RelationshipEngine = Depends(get_engine)):
    """Complete ready formations, heal the worst dissonances and list dormant entities."""
    try:
        result = engine.run_cycle()
    except SoulGraphError as e:
        raise http_error(e) from e
    for child_id in result["completed"]:
        await _persist_child(db, engine, engine.registry.require(child_id))
    await db.commit()
    return CycleResponse(
        completed=result["completed"],
        healed=[list(pair) for pair in result["healed"]],
        dormant=result["dormant"],
    )

@router.get("/{formation_id}/ready", response_model=ReadinessResponse)
async def readiness_endpoint(formation_id: str, engine: RelationshipEngine = Depends(get_engine)):
    try:
        ready = engine.is_ready_to_complete(formation_id)
    except SoulGraphError as e:
        raise http_error(e) from e
    return ReadinessResponse(formation_id=formation_id, ready=ready)

@router.post("/{formation_id}/complete", response_model=Entity)
async def complete_endpoint(
    formation_id: str,
    req: CompleteRequest | None = None,
    db: AsyncSession = Depends(get_db),
    engine: RelationshipEngine = Depends(get_engine),
):
    witnesses = req.witnesses if req else []
    try:
        child = engine.complete(formation_id, witnesses)
    except SoulGraphError as e:
        raise http_error(e) from e
    await _persist_child(db, engine, child)
    await db.commit()
    return child

@router.post("/{formation_id}/abandon")
async def abandon_endpoint(formation_id: str, engine: RelationshipEngine = Depends(get_engine)) -> Dict[str, str]:
    try:
        engine.abandon(formation_id)
    except SoulGraphError as e:
        raise http_error(e) from e
    return {"formation_id": formation_id, "state": "ABANDONED"}
