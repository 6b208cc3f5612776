"""Log message models.

Every processed queue item yields exactly one LogEntry; presentation
(translation of ``key`` and ``params``) is up to the client.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# -- Log keys ------------------------------------------------------------

LOG_BATTLE_WIN = "log_battle_win"
LOG_BATTLE_LOSS = "log_battle_loss"
LOG_WIPEOUT = "log_wipeout"
LOG_CAMPAIGN_WIN = "log_campaign_win"
LOG_CAMPAIGN_LOSS = "log_campaign_loss"
LOG_WAR_WIN = "log_war_win"
LOG_WAR_LOSS = "log_war_loss"
LOG_DEFENSE_WIN = "log_defense_win"
LOG_DEFENSE_LOSS = "log_defense_loss"
LOG_PATROL_NOTHING = "log_patrol_nothing"
LOG_PATROL_BATTLE_WIN = "log_patrol_battle_win"
LOG_PATROL_BATTLE_LOSS = "log_patrol_battle_loss"
LOG_PATROL_CONTRABAND = "log_patrol_contraband"
LOG_RESOLUTION_FAILED = "log_resolution_failed"
LOG_GRUDGE_IMMINENT = "log_grudge_imminent"
LOG_RETALIATION_LAUNCHED = "log_retaliation_launched"

CATEGORY_COMBAT = "combat"
CATEGORY_MISSION = "mission"
CATEGORY_INTEL = "intel"


@dataclass
class LogEntry:
    """One structured log line.

    Attributes:
        entry_id: Unique ID.
        key: Message key for the client to translate.
        params: Parameter bag; holds a ``battle`` BattleResult when combat occurred.
        timestamp: In-simulation time of the event.
        category: "combat", "mission" or "intel".
    """

    entry_id: str
    key: str
    timestamp: float
    category: str = CATEGORY_MISSION
    params: dict[str, Any] = field(default_factory=dict)
