"""Force generator - budget-driven army composition for rivals.

Given a faction's strength score and behavioral profile, returns a
unit-type → count roster.  The rest of the engine treats the output as
opaque.

=== Heuristic overview =====================================================

1.  **Budget** – ``score × score_budget_factor × budget_multiplier``
    in resource value (see ``GameConfig.resource_values``).

2.  **Tier gating** – tiers 0 and 1 are always available; every passed
    entry of ``tier_thresholds`` unlocks one more tier.

3.  **Buckets** – each profile splits the budget over unit pools:
      • WARLORD  mass 70 %, support 30 %
      • ROGUE    assassin 50 %, fast 50 %
      • TURTLE   defensive 60 %, support 40 %
      • TYCOON   elite 100 %, restricted to the costlier half
    A pool with no unlocked unit falls back to every unlocked unit.

4.  **Spending** – units are bought in random chunks of 5-15 % of the
    remaining bucket until less than ``MIN_SPEND`` is left.

5.  **Fallback** – an empty result buys the cheapest unlocked unit,
    at least one.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Optional

from siegeline.loaders.game_config_loader import GameConfig
from siegeline.models.rival import Profile
from siegeline.models.units import Roster, UnitCatalog, UnitDef

log = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────────────

MIN_SPEND: float = 50_000.0
MAX_PURCHASES: int = 200

PROFILE_BUCKETS: dict[Profile, list[tuple[str, float]]] = {
    Profile.WARLORD: [("mass", 0.7), ("support", 0.3)],
    Profile.ROGUE: [("assassin", 0.5), ("fast", 0.5)],
    Profile.TURTLE: [("defensive", 0.6), ("support", 0.4)],
    Profile.TYCOON: [("elite", 1.0)],
}


# ── ForceGenerator ───────────────────────────────────────────────────────────

class ForceGenerator:
    """Builds rival rosters from a strength score.

    Args:
        catalog: Unit definitions (tiers, roles, costs).
        game_config: Budget and pricing constants.
    """

    def __init__(self, catalog: UnitCatalog, game_config: Optional[GameConfig] = None) -> None:
        self._catalog = catalog
        self._gc = game_config or GameConfig()

    @property
    def catalog(self) -> UnitCatalog:
        return self._catalog

    def unit_value(self, unit: UnitDef) -> float:
        return unit.value(self._gc.resource_values)

    def roster_value(self, roster: Roster) -> float:
        return self._catalog.roster_value(roster, self._gc.resource_values)

    def available_units(self, score: float) -> list[UnitDef]:
        """Units unlocked for a faction of the given strength."""
        max_tier = 1 + sum(1 for t in self._gc.tier_thresholds if score >= t)
        return [u for u in self._catalog if u.tier <= max_tier and self.unit_value(u) > 0]

    def generate_roster(
        self,
        strength_score: float,
        budget_multiplier: float = 1.0,
        profile: Profile = Profile.TYCOON,
        rng: Optional[random.Random] = None,
    ) -> Roster:
        """Generate an army for a faction.

        Args:
            strength_score: Faction strength; negative values count as zero.
            budget_multiplier: Scales the spending budget.
            profile: Behavioral profile selecting the unit pools.
            rng: Random source.

        Returns:
            Non-empty roster (if the catalog has any purchasable unit).
        """
        rng = rng or random.Random()
        score = max(0.0, strength_score)
        total_budget = score * self._gc.score_budget_factor * max(0.0, budget_multiplier)
        allowed = self.available_units(score)
        army: Roster = {}

        for pool_name, ratio in PROFILE_BUCKETS[profile]:
            pool = [u for u in allowed if pool_name in u.roles] or list(allowed)
            if profile is Profile.TYCOON:
                pool.sort(key=self.unit_value, reverse=True)
                pool = pool[:math.ceil(len(pool) * 0.5)]
            self._spend(total_budget * ratio, pool, army, rng)

        if not army and allowed:
            cheapest = min(allowed, key=self.unit_value)
            army[cheapest.unit_id] = max(1, math.floor(total_budget / self.unit_value(cheapest)))

        log.debug("Generated roster score=%.0f profile=%s budget=%.0f units=%d",
                  score, profile.value, total_budget, sum(army.values()))
        return army

    def generate_patrol_force(
        self,
        fleet: Roster,
        budget_factor: float,
        rng: Optional[random.Random] = None,
    ) -> Roster:
        """Hostile force met on patrol, priced against the patrolling fleet."""
        budget = self.roster_value(fleet) * budget_factor
        score = max(10.0, budget / self._gc.score_to_resource_value)
        return self.generate_roster(score, 1.0, Profile.WARLORD, rng)

    def generate_buildings(self, score: float) -> dict[str, int]:
        """Plunderable building stock of a rival of the given strength."""
        weights = self._gc.plunderable_buildings
        total = max(10, math.floor(max(0.0, score) / 10))
        total_weight = sum(weights.values()) or 1.0

        buildings: dict[str, int] = {}
        remaining = total
        for building, weight in weights.items():
            count = math.floor(total * weight / total_weight)
            buildings[building] = count
            remaining -= count
        first = next(iter(weights), "house")
        buildings[first] = buildings.get(first, 0) + remaining
        return buildings

    # -- Internals -------------------------------------------------------

    def _spend(self, budget: float, pool: list[UnitDef], army: Roster, rng: random.Random) -> None:
        if not pool or budget < MIN_SPEND:
            return
        remaining = budget
        for _ in range(MAX_PURCHASES):
            if remaining <= MIN_SPEND:
                break
            unit = pool[rng.randrange(len(pool))]
            cost = self.unit_value(unit)
            if cost > remaining:
                continue
            chunk = max(cost, remaining * (0.05 + rng.random() * 0.10))
            count = max(1, math.floor(chunk / cost))
            army[unit.unit_id] = army.get(unit.unit_id, 0) + count
            remaining -= count * cost
