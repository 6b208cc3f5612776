"""Rival models - computer-controlled opponents and the player's relations with them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from siegeline.models.units import Roster

REPUTATION_MIN = 0.0
REPUTATION_MAX = 100.0


class Profile(Enum):
    """Behavioral profile; drives army composition and retaliation timing."""

    WARLORD = "warlord"
    TURTLE = "turtle"
    TYCOON = "tycoon"
    ROGUE = "rogue"


@dataclass
class Rival:
    """A computer-controlled empire.

    Attributes:
        rival_id: Unique rival ID.
        name: Display name.
        score: Current strength score.
        profile: Behavioral profile.
        reputation: Attitude toward the player, 0-100.
    """

    rival_id: str
    name: str = ""
    score: float = 0.0
    profile: Profile = Profile.WARLORD
    reputation: float = 50.0

    def adjust_reputation(self, delta: float) -> None:
        self.reputation = min(REPUTATION_MAX, max(REPUTATION_MIN, self.reputation + delta))


@dataclass
class Grudge:
    """A rival's standing intent to retaliate for an attack.

    Attributes:
        grudge_id: Unique ID.
        rival_id: Who holds the grudge.
        rival_name: Display name at creation.
        profile: Profile at creation.
        rival_score: Strength at creation.
        created_at: When the grudge arose.
        retaliation_time: When the counter-attack launches.
        notified: Whether the imminent-attack warning was emitted.
    """

    grudge_id: str
    rival_id: str
    rival_name: str
    profile: Profile
    rival_score: float
    created_at: float
    retaliation_time: float
    notified: bool = False


@dataclass
class SpyReport:
    """Reconnaissance snapshot of a rival's army."""

    target_id: str
    roster: Roster
    created_at: float


@dataclass
class WarState:
    """An ongoing war against a single rival.

    Attributes:
        war_id: Unique ID.
        enemy_id: Rival at war with the player.
        enemy_name: Display name.
        enemy_score: Strength used to rebuild an exhausted garrison.
        start_time / end_time: War window.
        enemy_garrison: The enemy's current defending roster.
        player_victories / enemy_victories: Battles won by each party.
        player_unit_losses / enemy_unit_losses: Units lost by each party.
    """

    war_id: str
    enemy_id: str
    start_time: float
    end_time: float
    enemy_name: str = ""
    enemy_score: float = 0.0
    enemy_garrison: Roster = field(default_factory=dict)
    player_victories: int = 0
    enemy_victories: int = 0
    player_unit_losses: int = 0
    enemy_unit_losses: int = 0

    def is_active(self, now: float) -> bool:
        return self.start_time <= now < self.end_time

    def targets(self, rival_id: Optional[str], now: float) -> bool:
        return self.is_active(now) and rival_id == self.enemy_id
