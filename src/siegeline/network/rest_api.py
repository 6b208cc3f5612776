"""REST API - FastAPI application for state, logs, missions and the battle simulator.

Usage::

    from siegeline.network.rest_api import create_app

    app = create_app(services)
    # Start with uvicorn as an asyncio task alongside the game loop
"""

from __future__ import annotations

import logging
import random
from typing import Any, TYPE_CHECKING

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from siegeline.models.attack import MissionKind
from siegeline.models.units import UnknownUnitError
from siegeline.network.rest_models import (
    IncomingSummary,
    LaunchMissionRequest,
    LogEntryModel,
    MissionSummary,
    SimulateRequest,
    StateResponse,
)
from siegeline.persistence.state_save import serialize_log_entry

if TYPE_CHECKING:
    from siegeline.main import Services

log = logging.getLogger(__name__)


def create_app(services: "Services") -> FastAPI:
    """Factory: create and return a configured FastAPI application.

    The ``services`` reference is captured by closure so every endpoint
    can access game logic without global state.  The live empire is read
    from ``services.game_loop.empire`` on every request.
    """
    app = FastAPI(title="Siegeline Server", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =================================================================
    # Empire queries
    # =================================================================

    @app.get("/api/state", response_model=StateResponse)
    async def get_state() -> dict[str, Any]:
        empire = services.game_loop.empire
        return {
            "name": empire.name,
            "resources": empire.resources,
            "max_resources": empire.max_resources,
            "garrison": empire.garrison,
            "buildings": empire.buildings,
            "campaign_progress": empire.campaign_progress,
            "missions": [
                MissionSummary(
                    mission_id=m.mission_id, kind=m.kind.value, end_time=m.end_time,
                    units=sum(m.roster.values()), target_id=m.target_id, level_id=m.level_id,
                )
                for m in empire.missions
            ],
            "incoming": [
                IncomingSummary(
                    attack_id=a.attack_id, attacker_name=a.attacker_name or a.attacker_id,
                    end_time=a.end_time, units=sum(a.roster.values()),
                )
                for a in empire.incoming
            ],
            "grudges": len(empire.grudges),
            "last_processed_attack_time": empire.last_processed_attack_time,
        }

    @app.get("/api/logs", response_model=list[LogEntryModel])
    async def get_logs(limit: int = Query(50, ge=1, le=500)) -> list[dict[str, Any]]:
        entries = services.game_loop.empire.logs[-limit:]
        return [serialize_log_entry(e) for e in reversed(entries)]

    @app.get("/api/offline-report")
    async def get_offline_report() -> dict[str, Any]:
        report = services.offline_report
        if report is None:
            return {"available": False}
        return {
            "available": True,
            "elapsed_seconds": report.elapsed_seconds,
            "production_seconds": report.production_seconds,
            "resources_gained": report.resources_gained,
            "results": [
                {
                    "item_id": r.item_id,
                    "kind": r.kind.value,
                    "completed_at": r.completed_at,
                    "log_key": r.log_key,
                    "mission_kind": r.mission_kind.value if r.mission_kind else None,
                    "failed": r.failed,
                }
                for r in report.results
            ],
            "logs": [serialize_log_entry(e) for e in report.logs],
        }

    # =================================================================
    # Battle simulator
    # =================================================================

    @app.post("/api/battle/simulate")
    async def simulate(body: SimulateRequest) -> dict[str, Any]:
        rng = random.Random(body.seed)
        try:
            result = services.battle_service.resolve(
                body.roster_a, body.roster_b, body.multiplier_a, rng)
        except UnknownUnitError as exc:
            return {"success": False, "error": f"Unknown unit type {exc.args[0]}"}
        return {"success": True, "result": result.to_dict()}

    # =================================================================
    # Missions
    # =================================================================

    @app.post("/api/missions")
    async def launch_mission(body: LaunchMissionRequest) -> dict[str, Any]:
        try:
            kind = MissionKind(body.kind)
        except ValueError:
            return {"success": False, "error": f"Unknown mission kind {body.kind}"}
        result = services.attack_service.launch_mission(
            services.game_loop.empire,
            kind,
            body.roster,
            services.clock(),
            body.duration_seconds,
            target_id=body.target_id,
            level_id=body.level_id,
            is_war_attack=body.is_war_attack,
        )
        if isinstance(result, str):
            return {"success": False, "error": result}
        return {"success": True, "mission_id": result.mission_id, "end_time": result.end_time}

    return app
