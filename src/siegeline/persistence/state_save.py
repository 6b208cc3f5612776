"""State save - serializes the full empire state to YAML.

On shutdown (and after offline catch-up) the complete empire is written
to a YAML file so it can be restored on startup.  The write goes to a
temporary file first and replaces the target atomically.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

import yaml

from siegeline.models.attack import IncomingAttack, OutgoingMission
from siegeline.models.battle import BattleResult
from siegeline.models.empire import Empire
from siegeline.models.messages import LogEntry
from siegeline.models.rival import Grudge, Rival, SpyReport, WarState

log = logging.getLogger(__name__)

# Default path for the state file (relative to working directory)
DEFAULT_STATE_PATH = "state.yaml"
STATE_VERSION = 1


# ===================================================================
# Public API
# ===================================================================


async def save_state(empire: Empire, path: str = DEFAULT_STATE_PATH) -> None:
    """Serialize the empire to a YAML file.

    Args:
        empire: The state to persist.
        path: Output file path.
    """
    state: dict[str, Any] = {
        "meta": _serialize_meta(),
        "empire": serialize_empire(empire),
    }

    out = Path(path)
    tmp = out.with_suffix(".yaml.tmp")
    try:
        tmp.write_text(
            yaml.safe_dump(state, default_flow_style=False, allow_unicode=True, sort_keys=False),
            encoding="utf-8",
        )
        tmp.replace(out)
        log.info("[STATE] saved to %s (%d missions, %d incoming, %d logs)",
                 path, len(empire.missions), len(empire.incoming), len(empire.logs))
    except Exception:
        log.exception("Failed to save game state to %s", path)
        if tmp.exists():
            tmp.unlink(missing_ok=True)
        raise


# ===================================================================
# Meta
# ===================================================================

def _serialize_meta() -> dict[str, Any]:
    return {
        "version": STATE_VERSION,
        "saved_at": time.strftime("%Y-%m-%dT%H:%M:%S"),
        "saved_at_unix": time.time(),
    }


# ===================================================================
# Empire & sub-models
# ===================================================================

def serialize_empire(empire: Empire) -> dict[str, Any]:
    return {
        "name": empire.name,
        "resources": {k: float(v) for k, v in empire.resources.items()},
        "max_resources": {k: float(v) for k, v in empire.max_resources.items()},
        "garrison": {k: int(v) for k, v in empire.garrison.items()},
        "buildings": {k: int(v) for k, v in empire.buildings.items()},
        "tech_levels": {k: int(v) for k, v in empire.tech_levels.items()},
        "missions": [_serialize_mission(m) for m in empire.missions],
        "incoming": [_serialize_incoming(a) for a in empire.incoming],
        "campaign_progress": empire.campaign_progress,
        "target_attack_counts": dict(empire.target_attack_counts),
        "attack_counts_reset_at": empire.attack_counts_reset_at,
        "rivals": [_serialize_rival(r) for r in empire.rivals.values()],
        "grudges": [_serialize_grudge(g) for g in empire.grudges],
        "spy_reports": [_serialize_spy_report(s) for s in empire.spy_reports.values()],
        "active_war": _serialize_war(empire.active_war) if empire.active_war else None,
        "logs": [serialize_log_entry(e) for e in empire.logs],
        "last_save_time": empire.last_save_time,
        "last_processed_attack_time": empire.last_processed_attack_time,
    }


def _serialize_mission(m: OutgoingMission) -> dict[str, Any]:
    return {
        "mission_id": m.mission_id,
        "kind": m.kind.value,
        "start_time": m.start_time,
        "end_time": m.end_time,
        "roster": dict(m.roster),
        "target_id": m.target_id,
        "target_name": m.target_name,
        "target_score": m.target_score,
        "level_id": m.level_id,
        "is_war_attack": m.is_war_attack,
        "attack_number": m.attack_number,
    }


def _serialize_incoming(a: IncomingAttack) -> dict[str, Any]:
    return {
        "attack_id": a.attack_id,
        "attacker_id": a.attacker_id,
        "attacker_name": a.attacker_name,
        "attacker_score": a.attacker_score,
        "roster": dict(a.roster),
        "start_time": a.start_time,
        "end_time": a.end_time,
        "is_war_wave": a.is_war_wave,
    }


def _serialize_rival(r: Rival) -> dict[str, Any]:
    return {
        "rival_id": r.rival_id,
        "name": r.name,
        "score": r.score,
        "profile": r.profile.value,
        "reputation": r.reputation,
    }


def _serialize_grudge(g: Grudge) -> dict[str, Any]:
    return {
        "grudge_id": g.grudge_id,
        "rival_id": g.rival_id,
        "rival_name": g.rival_name,
        "profile": g.profile.value,
        "rival_score": g.rival_score,
        "created_at": g.created_at,
        "retaliation_time": g.retaliation_time,
        "notified": g.notified,
    }


def _serialize_spy_report(s: SpyReport) -> dict[str, Any]:
    return {"target_id": s.target_id, "roster": dict(s.roster), "created_at": s.created_at}


def _serialize_war(w: WarState) -> dict[str, Any]:
    return {
        "war_id": w.war_id,
        "enemy_id": w.enemy_id,
        "enemy_name": w.enemy_name,
        "enemy_score": w.enemy_score,
        "start_time": w.start_time,
        "end_time": w.end_time,
        "enemy_garrison": dict(w.enemy_garrison),
        "player_victories": w.player_victories,
        "enemy_victories": w.enemy_victories,
        "player_unit_losses": w.player_unit_losses,
        "enemy_unit_losses": w.enemy_unit_losses,
    }


# ===================================================================
# Log entries
# ===================================================================

def serialize_log_entry(e: LogEntry) -> dict[str, Any]:
    return {
        "entry_id": e.entry_id,
        "key": e.key,
        "timestamp": e.timestamp,
        "category": e.category,
        "params": _plain(e.params),
    }


def _plain(value: Any) -> Any:
    """Reduce log parameters to YAML/JSON-safe data."""
    if isinstance(value, BattleResult):
        return value.to_dict()
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value
