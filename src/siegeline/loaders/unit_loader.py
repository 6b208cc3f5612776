"""Unit loader - parses config/units.yaml into a UnitCatalog.

Each top-level key is a unit type; its mapping holds the static stats.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from siegeline.models.units import UnitCatalog, UnitDef

log = logging.getLogger(__name__)

DEFAULT_UNITS_PATH = "config/units.yaml"


def _parse_unit(unit_id: str, attrs: dict) -> UnitDef:
    """Parse a single unit mapping into a UnitDef."""
    hp = float(attrs.get("hp", 0))
    if hp <= 0:
        raise ValueError(f"unit {unit_id!r} needs a positive hp, got {hp}")
    rapid_fire = {str(k): float(v) for k, v in (attrs.get("rapid_fire") or {}).items()}
    for target, chance in rapid_fire.items():
        if not 0.0 <= chance < 1.0:
            raise ValueError(
                f"unit {unit_id!r} rapid_fire against {target!r} must be in [0, 1), got {chance}")
    return UnitDef(
        unit_id=unit_id,
        hp=hp,
        attack=float(attrs.get("attack", 0)),
        shield=float(attrs.get("shield", 0)),
        rapid_fire=rapid_fire,
        cost={k: float(v) for k, v in (attrs.get("cost") or {}).items()},
        tier=int(attrs.get("tier", 0)),
        score=float(attrs.get("score", 0)),
        roles=tuple(attrs.get("roles") or ()),
    )


def load_units(path: str | Path = DEFAULT_UNITS_PATH) -> UnitCatalog:
    """Load all unit definitions from a YAML file.

    Args:
        path: YAML file mapping unit type → stats.

    Returns:
        UnitCatalog with one UnitDef per entry.

    Raises:
        ValueError: If an entry is malformed.
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f) or {}

    units: list[UnitDef] = []
    for unit_id, attrs in data.items():
        if not isinstance(attrs, dict):
            raise ValueError(f"unit {unit_id!r} must be a mapping")
        units.append(_parse_unit(str(unit_id), attrs))

    log.info("Loaded %d unit types from %s", len(units), path)
    return UnitCatalog(units)
