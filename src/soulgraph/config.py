"""
Tunable thresholds and windows for the registry and relationship engine.

Any of them can be overridden through `SOULGRAPH_*` environment variables (a `.env` file is
honoured, like the database URL in `src.database.database`).
"""
from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator


class SoulGraphConfig(BaseModel):
    harmonic_threshold: float = Field(0.7, ge=0.0, le=1.0)
    dissonant_threshold: float = Field(0.3, ge=0.0, le=1.0)
    # A pair reaching this score forms an affinity lock
    affinity_threshold: float = Field(0.85, ge=0.0, le=1.0)
    formation_threshold: float = Field(0.95, ge=0.0, le=1.0)
    exceptional_threshold: float = Field(0.98, ge=0.0, le=1.0)
    history_limit: int = Field(100, gt=0)
    pulse_interval: float = Field(3600.0, gt=0)
    formation_period: float = Field(432000.0, gt=0)
    store_dir: str = "./entities"

    @model_validator(mode="after")
    def _check_bands(self) -> "SoulGraphConfig":
        if self.dissonant_threshold >= self.harmonic_threshold:
            raise ValueError("dissonant_threshold must be below harmonic_threshold")
        return self

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "SoulGraphConfig":
        load_dotenv(dotenv_path=env_file)
        overrides = {}
        for name in cls.model_fields:
            value = os.getenv(f"SOULGRAPH_{name.upper()}")
            if value is not None:
                overrides[name] = value
        return cls.model_validate(overrides)
