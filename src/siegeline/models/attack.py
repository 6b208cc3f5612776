"""Attack models - scheduled outgoing missions and incoming attacks.

Both kinds become eligible for resolution once ``end_time <= now`` and
are removed from their pending collection the moment they are processed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from siegeline.models.units import Roster


class MissionKind(Enum):
    """What an outgoing mission does on arrival."""

    PATROL = "patrol"
    CAMPAIGN = "campaign"
    PVP = "pvp"


@dataclass
class OutgoingMission:
    """Units sent away from the garrison.

    Attributes:
        mission_id: Unique mission ID.
        kind: Patrol, campaign or player-vs-rival attack.
        start_time: Launch timestamp (seconds since epoch).
        end_time: Scheduled completion timestamp.
        roster: Units that departed with the mission.
        target_id: Rival ID (pvp only).
        target_name: Rival display name at launch.
        target_score: Rival strength at launch; fallback when the rival is gone.
        level_id: Campaign level (campaign only).
        is_war_attack: Sent against the enemy of the active war.
        attack_number: 1-based count of attacks on this target in the period.
    """

    mission_id: str
    kind: MissionKind
    start_time: float
    end_time: float
    roster: Roster = field(default_factory=dict)
    target_id: Optional[str] = None
    target_name: str = ""
    target_score: float = 0.0
    level_id: Optional[int] = None
    is_war_attack: bool = False
    attack_number: int = 1

    @property
    def duration_seconds(self) -> float:
        return self.end_time - self.start_time


@dataclass
class IncomingAttack:
    """A hostile force on its way to the player's garrison.

    Attributes:
        attack_id: Unique attack ID.
        attacker_id: Rival ID of the attacker.
        attacker_name: Display name of the attacker.
        attacker_score: Strength of the attacker.
        roster: Attacking units.
        start_time: Launch timestamp.
        end_time: Arrival timestamp.
        is_war_wave: Part of the active war's wave schedule.
    """

    attack_id: str
    attacker_id: str
    start_time: float
    end_time: float
    roster: Roster = field(default_factory=dict)
    attacker_name: str = ""
    attacker_score: float = 0.0
    is_war_wave: bool = False
