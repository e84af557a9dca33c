from fastapi import APIRouter, Depends

from src.soulgraph.engine import RelationshipEngine
from .deps import get_engine
from .schemas import StatsResponse

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("", response_model=StatsResponse)
async def stats(engine: RelationshipEngine = Depends(get_engine)):
    return StatsResponse(
        registry=engine.registry.stats(),
        vitality=engine.network_vitality(),
        active_formations=len(engine.active_formations()),
    )
