"""Pydantic request/response models for the REST API.

These models define the HTTP request bodies and response shapes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ===================================================================
# Empire queries
# ===================================================================


class MissionSummary(BaseModel):
    mission_id: str
    kind: str
    end_time: float
    units: int
    target_id: Optional[str] = None
    level_id: Optional[int] = None


class IncomingSummary(BaseModel):
    attack_id: str
    attacker_name: str
    end_time: float
    units: int


class StateResponse(BaseModel):
    name: str
    resources: Dict[str, float]
    max_resources: Dict[str, float]
    garrison: Dict[str, int]
    buildings: Dict[str, int]
    campaign_progress: int
    missions: List[MissionSummary] = Field(default_factory=list)
    incoming: List[IncomingSummary] = Field(default_factory=list)
    grudges: int = 0
    last_processed_attack_time: float = 0.0


class LogEntryModel(BaseModel):
    entry_id: str
    key: str
    timestamp: float
    category: str
    params: Dict[str, Any] = Field(default_factory=dict)


# ===================================================================
# Battle simulator
# ===================================================================


class SimulateRequest(BaseModel):
    roster_a: Dict[str, int]
    roster_b: Dict[str, int]
    multiplier_a: float = Field(1.0, ge=0.0)
    seed: Optional[int] = None


# ===================================================================
# Missions
# ===================================================================


class LaunchMissionRequest(BaseModel):
    kind: str
    roster: Dict[str, int]
    duration_seconds: float = Field(..., gt=0)
    target_id: Optional[str] = None
    level_id: Optional[int] = None
    is_war_attack: bool = False
