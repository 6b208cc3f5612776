"""Shared fixtures: unit catalogs, config and controllable random sources."""

from __future__ import annotations

import random
from pathlib import Path

import pytest

from siegeline.loaders.game_config_loader import GameConfig, load_game_config
from siegeline.loaders.unit_loader import load_units
from siegeline.models.units import UnitCatalog, UnitDef

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


class FixedRandom(random.Random):
    """``random()`` always returns ``value``; shuffles and index picks stay seeded."""

    def __init__(self, value: float, seed: int = 0) -> None:
        self._value = value
        super().__init__(seed)

    def random(self) -> float:
        return self._value

    def getrandbits(self, k: int) -> int:
        return super().getrandbits(k)


TEST_UNITS = [
    UnitDef(unit_id="grunt", hp=10, attack=1, cost={"money": 1000}, roles=("mass",)),
    UnitDef(unit_id="wall", hp=200, attack=10, cost={"money": 5000}, roles=("defensive",)),
    UnitDef(unit_id="bunker", hp=100, attack=0, shield=100),
    UnitDef(unit_id="brute", hp=100, attack=40),
    UnitDef(unit_id="sack", hp=100, attack=0),
    UnitDef(unit_id="gun", hp=10, attack=5, rapid_fire={"rat": 0.9}),
    UnitDef(unit_id="rat", hp=1, attack=0),
    UnitDef(unit_id="plinker", hp=5, attack=3),
    UnitDef(unit_id="dummy", hp=5, attack=0),
]


@pytest.fixture
def catalog() -> UnitCatalog:
    """Small hand-made catalog with easy-to-follow numbers."""
    return UnitCatalog(TEST_UNITS)


@pytest.fixture
def real_catalog() -> UnitCatalog:
    return load_units(CONFIG_DIR / "units.yaml")


@pytest.fixture
def game_config() -> GameConfig:
    return load_game_config(str(CONFIG_DIR / "game.yaml"))


@pytest.fixture
def fixed_random():
    """Factory: ``fixed_random(0.3)`` → a Random whose ``random()`` is always 0.3."""
    return FixedRandom
