"""State load - restores the empire from a YAML dump.

Reconstructs the empire, its pending missions and attacks, rival
relations and log stream from a previously saved YAML state file.
Records that cannot be decoded are logged and skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from siegeline.models.attack import IncomingAttack, MissionKind, OutgoingMission
from siegeline.models.battle import BattleResult
from siegeline.models.empire import Empire
from siegeline.models.messages import LogEntry
from siegeline.models.rival import Grudge, Profile, Rival, SpyReport, WarState
from siegeline.persistence.state_save import DEFAULT_STATE_PATH

log = logging.getLogger(__name__)


# ===================================================================
# Result container
# ===================================================================

@dataclass
class RestoredState:
    """Container for data restored from a YAML state file.

    Attributes:
        empire: The restored empire.
        meta: Metadata from the save file (version, save timestamp).
    """

    empire: Empire
    meta: dict[str, Any] = field(default_factory=dict)


# ===================================================================
# Public API
# ===================================================================


async def load_state(path: str = DEFAULT_STATE_PATH) -> Optional[RestoredState]:
    """Load the empire from a YAML file.

    Returns None if the file does not exist or cannot be parsed.
    """
    state_file = Path(path)
    if not state_file.exists():
        log.info("No state file found at %s", path)
        return None

    try:
        raw = yaml.safe_load(state_file.read_text(encoding="utf-8"))
    except yaml.YAMLError:
        log.exception("Failed to parse state file %s", path)
        return None

    if not isinstance(raw, dict) or not isinstance(raw.get("empire"), dict):
        log.warning("State file %s has unexpected format", path)
        return None

    meta = raw.get("meta", {}) or {}
    log.info("[STATE] restoring from %s (saved at %s, version %s)",
             path, meta.get("saved_at", "?"), meta.get("version", "?"))
    empire = deserialize_empire(raw["empire"])
    log.info("[STATE] restored %d missions, %d incoming, %d rivals",
             len(empire.missions), len(empire.incoming), len(empire.rivals))
    return RestoredState(empire=empire, meta=meta)


# ===================================================================
# Empire & sub-models
# ===================================================================

def deserialize_empire(d: dict[str, Any]) -> Empire:
    empire = Empire(
        name=d.get("name", ""),
        resources={k: float(v) for k, v in (d.get("resources") or {}).items()},
        max_resources={k: float(v) for k, v in (d.get("max_resources") or {}).items()},
        garrison={k: max(0, int(v)) for k, v in (d.get("garrison") or {}).items()},
        buildings={k: int(v) for k, v in (d.get("buildings") or {}).items()},
        tech_levels={k: int(v) for k, v in (d.get("tech_levels") or {}).items()},
        campaign_progress=int(d.get("campaign_progress", 1)),
        target_attack_counts=dict(d.get("target_attack_counts") or {}),
        attack_counts_reset_at=float(d.get("attack_counts_reset_at", 0.0)),
        last_save_time=float(d.get("last_save_time", 0.0)),
        last_processed_attack_time=float(d.get("last_processed_attack_time", 0.0)),
    )

    empire.missions = _restore_each(d.get("missions"), _deserialize_mission, "mission")
    empire.incoming = _restore_each(d.get("incoming"), _deserialize_incoming, "incoming attack")
    empire.rivals = {r.rival_id: r for r in _restore_each(d.get("rivals"), _deserialize_rival, "rival")}
    empire.grudges = _restore_each(d.get("grudges"), _deserialize_grudge, "grudge")
    empire.spy_reports = {
        s.target_id: s for s in _restore_each(d.get("spy_reports"), _deserialize_spy_report, "spy report")
    }
    empire.logs = _restore_each(d.get("logs"), _deserialize_log_entry, "log entry")

    war = d.get("active_war")
    if isinstance(war, dict):
        try:
            empire.active_war = _deserialize_war(war)
        except (KeyError, TypeError, ValueError):
            log.exception("Failed to restore active war")
    return empire


def _restore_each(items: Any, decode, what: str) -> list:
    restored = []
    for item in items or []:
        try:
            restored.append(decode(item))
        except (KeyError, TypeError, ValueError):
            log.exception("Failed to restore %s: %s", what, item)
    return restored


def _deserialize_mission(d: dict[str, Any]) -> OutgoingMission:
    return OutgoingMission(
        mission_id=str(d["mission_id"]),
        kind=MissionKind(d["kind"]),
        start_time=float(d["start_time"]),
        end_time=float(d["end_time"]),
        roster=dict(d.get("roster") or {}),
        target_id=d.get("target_id"),
        target_name=d.get("target_name", ""),
        target_score=float(d.get("target_score", 0.0)),
        level_id=d.get("level_id"),
        is_war_attack=bool(d.get("is_war_attack", False)),
        attack_number=int(d.get("attack_number", 1)),
    )


def _deserialize_incoming(d: dict[str, Any]) -> IncomingAttack:
    return IncomingAttack(
        attack_id=str(d["attack_id"]),
        attacker_id=str(d["attacker_id"]),
        attacker_name=d.get("attacker_name", ""),
        attacker_score=float(d.get("attacker_score", 0.0)),
        roster=dict(d.get("roster") or {}),
        start_time=float(d["start_time"]),
        end_time=float(d["end_time"]),
        is_war_wave=bool(d.get("is_war_wave", False)),
    )


def _deserialize_rival(d: dict[str, Any]) -> Rival:
    return Rival(
        rival_id=str(d["rival_id"]),
        name=d.get("name", ""),
        score=float(d.get("score", 0.0)),
        profile=Profile(d.get("profile", "warlord")),
        reputation=float(d.get("reputation", 50.0)),
    )


def _deserialize_grudge(d: dict[str, Any]) -> Grudge:
    return Grudge(
        grudge_id=str(d["grudge_id"]),
        rival_id=str(d["rival_id"]),
        rival_name=d.get("rival_name", ""),
        profile=Profile(d.get("profile", "warlord")),
        rival_score=float(d.get("rival_score", 0.0)),
        created_at=float(d["created_at"]),
        retaliation_time=float(d["retaliation_time"]),
        notified=bool(d.get("notified", False)),
    )


def _deserialize_spy_report(d: dict[str, Any]) -> SpyReport:
    return SpyReport(
        target_id=str(d["target_id"]),
        roster=dict(d.get("roster") or {}),
        created_at=float(d["created_at"]),
    )


def _deserialize_war(d: dict[str, Any]) -> WarState:
    return WarState(
        war_id=str(d["war_id"]),
        enemy_id=str(d["enemy_id"]),
        enemy_name=d.get("enemy_name", ""),
        enemy_score=float(d.get("enemy_score", 0.0)),
        start_time=float(d["start_time"]),
        end_time=float(d["end_time"]),
        enemy_garrison=dict(d.get("enemy_garrison") or {}),
        player_victories=int(d.get("player_victories", 0)),
        enemy_victories=int(d.get("enemy_victories", 0)),
        player_unit_losses=int(d.get("player_unit_losses", 0)),
        enemy_unit_losses=int(d.get("enemy_unit_losses", 0)),
    )


def _deserialize_log_entry(d: dict[str, Any]) -> LogEntry:
    params = dict(d.get("params") or {})
    if isinstance(params.get("battle"), dict):
        params["battle"] = BattleResult.from_dict(params["battle"])
    return LogEntry(
        entry_id=str(d["entry_id"]),
        key=d["key"],
        timestamp=float(d["timestamp"]),
        category=d.get("category", "mission"),
        params=params,
    )
