"""Empire service - resource production and storage.

Responsibilities:
- Resource generation (base rate + per-building output) over elapsed time
- Clamping resources against storage caps
- Creating fresh empires from the configured defaults

All methods operate on Empire model objects. No network I/O.
"""

from __future__ import annotations

import logging

from siegeline.loaders.game_config_loader import GameConfig
from siegeline.models.empire import Empire

log = logging.getLogger(__name__)


class EmpireService:
    """Service for empire economy.

    Args:
        game_config: Production rates and starting values.
    """

    def __init__(self, game_config: GameConfig | None = None) -> None:
        self._gc = game_config or GameConfig()
        self._base = dict(self._gc.base_production)
        self._building_output = {k: dict(v) for k, v in self._gc.building_output.items()}

    def new_empire(self, name: str, now: float) -> Empire:
        """Create an empire with the configured starting values."""
        empire = Empire(
            name=name,
            resources=dict(self._gc.starting_resources),
            max_resources=dict(self._gc.starting_max_resources),
            garrison=dict(self._gc.starting_garrison),
            last_save_time=now,
            last_processed_attack_time=now,
            attack_counts_reset_at=now,
        )
        log.info("Empire created: name=%r", name)
        return empire

    # -- Production ------------------------------------------------------

    def production_rates(self, empire: Empire) -> dict[str, float]:
        """Per-second production of every resource."""
        rates = dict(self._base)
        for building, level in empire.buildings.items():
            for res, per_level in self._building_output.get(building, {}).items():
                rates[res] = rates.get(res, 0.0) + per_level * level
        return rates

    def step(self, empire: Empire, dt: float) -> dict[str, float]:
        """Produce ``dt`` seconds of resources, clamped to storage.

        Returns:
            The amount actually added per resource.
        """
        if dt <= 0:
            return {}
        gained: dict[str, float] = {}
        for res, rate in self.production_rates(empire).items():
            before = empire.resources.get(res, 0.0)
            after = before + rate * dt
            cap = empire.max_resources.get(res)
            if cap is not None:
                after = min(after, max(cap, before))
            empire.resources[res] = after
            gained[res] = after - before
        return gained

    def clamp_to_storage(self, empire: Empire) -> None:
        """Cut every resource down to its storage cap (resources without a cap are kept)."""
        for res, cap in empire.max_resources.items():
            if empire.resources.get(res, 0.0) > cap:
                empire.resources[res] = cap
