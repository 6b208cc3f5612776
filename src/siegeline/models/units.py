"""Unit definition models.

Defines the static unit catalog and the roster type shared by every
battle participant.  Loaded from config/units.yaml via the unit_loader.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, Mapping

# A roster maps unit type → non-negative count.
Roster = Dict[str, int]


class UnknownUnitError(KeyError):
    """Raised when a roster references a unit type missing from the catalog."""


@dataclass(frozen=True)
class UnitDef:
    """Static definition of one unit type.

    Attributes:
        unit_id: Unique unit type identifier.
        hp: Maximum hull points.
        attack: Damage per shot before the side multiplier.
        shield: Maximum shield capacity, restored every round.
        rapid_fire: Extra-shot chance keyed by the target's unit type.
        cost: Resource costs to recruit one unit. {resource_key: amount}
        tier: Technology tier (0-3).
        score: Empire points contributed per unit.
        roles: Force-generator pools this unit belongs to.
    """

    unit_id: str = ""
    hp: float = 1.0
    attack: float = 0.0
    shield: float = 0.0
    rapid_fire: Dict[str, float] = field(default_factory=dict)
    cost: Dict[str, float] = field(default_factory=dict)
    tier: int = 0
    score: float = 0.0
    roles: tuple[str, ...] = ()

    def value(self, prices: Mapping[str, float]) -> float:
        """Total resource value of one unit at the given base prices."""
        return sum(amount * prices.get(res, 0.0) for res, amount in self.cost.items())


class UnitCatalog:
    """Read-only lookup of unit definitions by type."""

    def __init__(self, units: list[UnitDef]) -> None:
        self._units: dict[str, UnitDef] = {u.unit_id: u for u in units}

    def get(self, unit_id: str) -> UnitDef:
        try:
            return self._units[unit_id]
        except KeyError:
            raise UnknownUnitError(unit_id) from None

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._units

    def __iter__(self) -> Iterator[UnitDef]:
        return iter(self._units.values())

    def __len__(self) -> int:
        return len(self._units)

    def roster_value(self, roster: Mapping[str, int], prices: Mapping[str, float]) -> float:
        """Resource value of a whole roster; unknown types count as zero."""
        total = 0.0
        for unit_id, count in roster.items():
            if unit_id in self._units and count > 0:
                total += self._units[unit_id].value(prices) * count
        return total


def clean_roster(roster: Mapping[str, float] | None) -> Roster:
    """Copy a roster, flooring every count at zero and dropping non-numeric entries."""
    result: Roster = {}
    for unit_id, count in (roster or {}).items():
        try:
            n = int(count)
        except (TypeError, ValueError):
            continue
        result[str(unit_id)] = max(0, n)
    return result


def roster_size(roster: Mapping[str, int]) -> int:
    return sum(max(0, c) for c in roster.values())
