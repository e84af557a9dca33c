from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from src.soulgraph.models import NetworkVitality, RegistryStats

# --- Entities ---

class RegisterRequest(BaseModel):
    text: str
    # Validated by the registry so unknown keys surface as domain errors
    metadata: Optional[Dict[str, Any]] = None

class PulseRequest(BaseModel):
    note: Optional[str] = None

# --- Relationships ---

class PairRequest(BaseModel):
    a: str
    b: str

class EncounterRequest(PairRequest):
    score: Optional[float] = None
    note: Optional[str] = None

class SimilarityResponse(BaseModel):
    a: str
    b: str
    score: float
    classification: str

class InteractResponse(BaseModel):
    score: float
    classification: str
    affinity_locked: bool
    formation_id: Optional[str] = None

class HealResponse(BaseModel):
    a: str
    b: str
    rewritten: int

# --- Formations ---

class BeginFormingRequest(PairRequest):
    score: Optional[float] = Field(None, ge=0.0, le=1.0)

class BeginFormingResponse(BaseModel):
    started: bool
    formation_id: Optional[str] = None

class CompleteRequest(BaseModel):
    witnesses: List[str] = []

class ReadinessResponse(BaseModel):
    formation_id: str
    ready: bool

class CycleResponse(BaseModel):
    completed: List[str]
    healed: List[List[str]]
    dormant: List[str]

# --- Stats ---

class StatsResponse(BaseModel):
    registry: RegistryStats
    vitality: NetworkVitality
    active_formations: int
