"""Retaliation service - grudges turn into incoming attacks.

A successful unprovoked attack on a rival leaves a Grudge.  When its
retaliation time arrives the rival launches a counter-attack sized from
its score; grudges that outlive ``grudge_expiry_seconds`` are dropped.
Shortly before launch a one-time warning is logged.
"""

from __future__ import annotations

import logging
import random
import uuid
from typing import Optional

from siegeline.engine.force_generator import ForceGenerator
from siegeline.loaders.game_config_loader import GameConfig
from siegeline.models.attack import IncomingAttack
from siegeline.models.empire import Empire
from siegeline.models.messages import (
    CATEGORY_INTEL,
    LOG_GRUDGE_IMMINENT,
    LOG_RETALIATION_LAUNCHED,
    LogEntry,
)
from siegeline.models.rival import Grudge, Profile

log = logging.getLogger(__name__)

IMMINENT_WINDOW_SECONDS: float = 600.0

# Counter-attack budget multiplier per profile
RETALIATION_BUDGET: dict[Profile, float] = {
    Profile.WARLORD: 1.3,
    Profile.TURTLE: 1.5,
    Profile.TYCOON: 1.2,
    Profile.ROGUE: 1.1,
}


def retaliation_delay(profile: Profile, game_config: GameConfig, rng: random.Random) -> float:
    """Seconds until a rival of the given profile strikes back.

    Rogues pick the warlord or the turtle window at random.
    """
    windows = game_config.retaliation_windows
    if profile is Profile.ROGUE:
        key = "warlord" if rng.random() < 0.5 else "turtle"
    else:
        key = profile.value
    low, high = windows.get(key, [3600.0, 14_400.0])
    return rng.uniform(low, high)


class RetaliationService:
    """Converts matured grudges into incoming attacks.

    Args:
        force_generator: Builds the counter-attacking roster.
        game_config: Windows, expiry and travel time.
    """

    def __init__(self, force_generator: ForceGenerator, game_config: Optional[GameConfig] = None) -> None:
        self._forces = force_generator
        self._gc = game_config or GameConfig()

    def process(self, empire: Empire, now: float, rng: Optional[random.Random] = None) -> list[LogEntry]:
        """Advance every grudge of ``empire`` to ``now``; mutates the empire.

        Returns:
            Log entries for warnings and launched counter-attacks.
        """
        rng = rng or random.Random()
        logs: list[LogEntry] = []
        kept: list[Grudge] = []

        for grudge in empire.grudges:
            if now - grudge.created_at > self._gc.grudge_expiry_seconds:
                log.info("[RETALIATION] grudge %s of %s expired", grudge.grudge_id, grudge.rival_name)
                continue

            if now >= grudge.retaliation_time:
                attack = self._launch(grudge, now, rng)
                empire.incoming.append(attack)
                logs.append(LogEntry(
                    entry_id=uuid.uuid4().hex,
                    key=LOG_RETALIATION_LAUNCHED,
                    timestamp=now,
                    category=CATEGORY_INTEL,
                    params={"attacker": grudge.rival_name, "arrival": attack.end_time},
                ))
                log.info("[RETALIATION] %s launched %s (%d units, eta %.0fs)",
                         grudge.rival_name, attack.attack_id, sum(attack.roster.values()),
                         attack.end_time - now)
                continue

            if not grudge.notified and grudge.retaliation_time - now <= IMMINENT_WINDOW_SECONDS:
                grudge.notified = True
                logs.append(LogEntry(
                    entry_id=uuid.uuid4().hex,
                    key=LOG_GRUDGE_IMMINENT,
                    timestamp=now,
                    category=CATEGORY_INTEL,
                    params={"attacker": grudge.rival_name, "eta": grudge.retaliation_time},
                ))
            kept.append(grudge)

        empire.grudges = kept
        return logs

    def _launch(self, grudge: Grudge, now: float, rng: random.Random) -> IncomingAttack:
        roster = self._forces.generate_roster(
            grudge.rival_score, RETALIATION_BUDGET[grudge.profile], grudge.profile, rng)
        return IncomingAttack(
            attack_id=f"retaliation-{grudge.grudge_id}",
            attacker_id=grudge.rival_id,
            attacker_name=grudge.rival_name,
            attacker_score=grudge.rival_score,
            roster=roster,
            start_time=now,
            end_time=now + self._gc.retaliation_travel_seconds,
        )
