"""Game configuration - loads tunable constants from config/game.yaml.

Provides a single ``GameConfig`` dataclass that is loaded once at startup
and then passed (or injected) wherever constants are needed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

import yaml

log = logging.getLogger(__name__)

DEFAULT_GAME_CONFIG_PATH = "config/game.yaml"


@dataclass
class CombatConfig:
    """Constants of the round-based battle resolution."""
    max_rounds: int = 6
    shield_threshold: float = 0.01
    critical_hp_fraction: float = 0.7


@dataclass
class GameConfig:
    """All tunable gameplay constants.

    Loaded from ``config/game.yaml``.  Every field has a sensible default
    so the server can start even without the file.
    """

    # -- Timing ------------------------------------------------------
    step_length_ms: float = 1000.0

    # -- Combat ------------------------------------------------------
    combat: CombatConfig = field(default_factory=CombatConfig)

    # -- Plunder -----------------------------------------------------
    plunder_rates: List[float] = field(default_factory=lambda: [0.33, 0.25, 0.15])
    plunderable_buildings: Dict[str, float] = field(default_factory=lambda: {
        "house": 50, "factory": 20, "oil_rig": 10,
        "munitions_factory": 10, "gold_mine": 8, "skyscraper": 2,
    })
    max_attacks_per_target: int = 3
    attack_count_period_seconds: float = 86_400.0

    # -- Patrol ------------------------------------------------------
    patrol_weights: Dict[str, float] = field(default_factory=lambda: {
        "nothing": 45, "ambush": 10, "combat": 20, "contraband": 25,
    })

    # -- Reconnaissance ----------------------------------------------
    recon_expiry_seconds: float = 1800.0

    # -- Reputation --------------------------------------------------
    reputation_attack_penalty: float = -15.0
    reputation_win_bonus: float = 5.0
    reputation_defend_bonus: float = 8.0

    # -- Retaliation -------------------------------------------------
    retaliation_windows: Dict[str, List[float]] = field(default_factory=lambda: {
        "warlord": [300.0, 1800.0],
        "turtle": [14_400.0, 57_600.0],
        "tycoon": [3600.0, 14_400.0],
    })
    grudge_expiry_seconds: float = 172_800.0
    retaliation_travel_seconds: float = 900.0

    # -- Offline catch-up --------------------------------------------
    offline_production_limit_seconds: float = 14_400.0
    offline_min_elapsed_seconds: float = 60.0

    # -- Economy -----------------------------------------------------
    base_production: Dict[str, float] = field(default_factory=lambda: {
        "money": 100.0, "oil": 1.0, "ammo": 2.0,
    })
    building_output: Dict[str, Dict[str, float]] = field(default_factory=dict)
    resource_values: Dict[str, float] = field(default_factory=lambda: {
        "money": 1.0, "gold": 40.0, "oil": 10.0, "ammo": 5.0, "diamond": 10_000.0,
    })

    # -- Force generation --------------------------------------------
    score_budget_factor: float = 1500.0
    score_to_resource_value: float = 9000.0
    tier_thresholds: List[float] = field(default_factory=lambda: [15_000.0, 100_000.0, 500_000.0])

    # -- New empire defaults -----------------------------------------
    starting_resources: Dict[str, float] = field(default_factory=lambda: {
        "money": 500_000.0, "oil": 1000.0, "ammo": 5000.0, "gold": 0.0, "diamond": 0.0,
    })
    starting_max_resources: Dict[str, float] = field(default_factory=lambda: {
        "money": 5_000_000.0, "oil": 50_000.0, "ammo": 100_000.0, "gold": 1000.0, "diamond": 10.0,
    })
    starting_garrison: Dict[str, int] = field(default_factory=lambda: {"soldier": 20})

    # -- Network -----------------------------------------------------
    rest_port: int = 8080
    max_log_entries: int = 200


def load_game_config(path: str = DEFAULT_GAME_CONFIG_PATH) -> GameConfig:
    """Load game configuration from a YAML file.

    Missing keys fall back to dataclass defaults.  If the file does not
    exist, a warning is logged and pure defaults are returned.
    """
    p = Path(path)
    if not p.exists():
        log.warning("Game config not found at %s, using defaults", p)
        return GameConfig()

    with p.open() as f:
        raw = yaml.safe_load(f) or {}

    log.info("Loaded game config from %s (%d keys)", p, len(raw))

    # Handle nested combat section
    combat_raw = raw.pop("combat", None)
    combat = CombatConfig(**{
        k: v for k, v in combat_raw.items()
        if k in CombatConfig.__dataclass_fields__
    }) if isinstance(combat_raw, dict) else CombatConfig()

    cfg = GameConfig(combat=combat, **{
        k: v for k, v in raw.items()
        if k in GameConfig.__dataclass_fields__
    })
    return cfg
