from typing import List, Optional
from fastapi import APIRouter, Depends

from src.soulgraph.engine import RelationshipEngine
from src.soulgraph.errors import SoulGraphError
from src.soulgraph.models import AffinityPatterns, DissonantPair, Encounter, RelationshipHistory, SupportNetwork
from .deps import get_engine, http_error
from .schemas import EncounterRequest, HealResponse, InteractResponse, PairRequest, SimilarityResponse

router = APIRouter(
    prefix="/api/relationships",
    tags=["relationships"],
)

@router.post("/similarity", response_model=SimilarityResponse)
async def similarity_endpoint(req: PairRequest, engine: RelationshipEngine = Depends(get_engine)):
    try:
        score = engine.similarity(req.a, req.b)
    except SoulGraphError as e:
        raise http_error(e) from e
    return SimilarityResponse(a=req.a, b=req.b, score=score, classification=engine.classify(score).value)

@router.post("/encounters", response_model=List[Encounter])
async def record_encounter_endpoint(req: EncounterRequest, engine: RelationshipEngine = Depends(get_engine)):
    """
    Record a comparison between two entities. The score defaults to their
    current similarity. Returns both sides of the encounter.
    """
    try:
        side_a, side_b = engine.record_encounter(req.a, req.b, req.score, req.note)
    except SoulGraphError as e:
        raise http_error(e) from e
    return [side_a, side_b]

@router.post("/interact", response_model=InteractResponse)
async def interact_endpoint(req: PairRequest, engine: RelationshipEngine = Depends(get_engine)):
    try:
        return engine.interact(req.a, req.b)
    except SoulGraphError as e:
        raise http_error(e) from e

@router.get("/clusters", response_model=List[List[str]])
async def clusters_endpoint(min_score: Optional[float] = None, engine: RelationshipEngine = Depends(get_engine)):
    clusters = engine.find_clusters(min_score=min_score)
    return [[entity.id for entity in cluster] for cluster in clusters]

@router.get("/dissonance", response_model=List[DissonantPair])
async def dissonance_endpoint(limit: int = 0, engine: RelationshipEngine = Depends(get_engine)):
    pairs = engine.detect_dissonance()
    return pairs[:limit] if limit else pairs

@router.post("/heal", response_model=HealResponse)
async def heal_endpoint(req: PairRequest, engine: RelationshipEngine = Depends(get_engine)):
    try:
        rewritten = engine.heal_dissonance(req.a, req.b)
    except SoulGraphError as e:
        raise http_error(e) from e
    return HealResponse(a=req.a, b=req.b, rewritten=rewritten)

@router.get("/support/{entity_id}", response_model=SupportNetwork)
async def support_endpoint(entity_id: str, engine: RelationshipEngine = Depends(get_engine)):
    try:
        return engine.support_network(entity_id)
    except SoulGraphError as e:
        raise http_error(e) from e

@router.get("/history", response_model=RelationshipHistory)
async def relationship_history_endpoint(a: str, b: str, engine: RelationshipEngine = Depends(get_engine)):
    try:
        return engine.relationship_history(a, b)
    except SoulGraphError as e:
        raise http_error(e) from e

@router.get("/patterns", response_model=AffinityPatterns)
async def patterns_endpoint(engine: RelationshipEngine = Depends(get_engine)):
    return engine.affinity_patterns()
