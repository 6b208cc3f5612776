"""Battle models - entities, round log, and the immutable battle result.

Business logic is in engine/battle_service.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from siegeline.models.units import Roster


class Side(Enum):
    A = "A"
    B = "B"

    @property
    def opponent(self) -> "Side":
        return Side.B if self is Side.A else Side.A


class Winner(Enum):
    A = "A"
    B = "B"
    DRAW = "DRAW"


@dataclass(slots=True)
class BattleEntity:
    """One unit on the field; lives only for a single resolution call.

    Attributes:
        eid: Identity unique within the battle.
        unit_type: Unit type in the catalog.
        side: Which side the entity fights for.
        hp: Current hull points.
        max_hp: Hull points at battle start.
        shield: Current shield, restored every round.
        max_shield: Shield capacity.
        dead: Removed from the battle at a round end.
        marked: Killed this round; removed at round end.
    """

    eid: int
    unit_type: str
    side: Side
    hp: float
    max_hp: float
    shield: float
    max_shield: float
    dead: bool = False
    marked: bool = False


@dataclass
class UnitPerformance:
    """Per-type combat ledger for one side.

    Direct and critical kills are counted separately: ``kills`` and
    ``deaths_by`` only hold direct kills.
    """

    kills: Dict[str, int] = field(default_factory=dict)
    deaths_by: Dict[str, int] = field(default_factory=dict)
    damage_dealt: float = 0.0
    critical_kills: int = 0
    critical_deaths: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "kills": dict(self.kills),
            "deaths_by": dict(self.deaths_by),
            "damage_dealt": self.damage_dealt,
            "critical_kills": self.critical_kills,
            "critical_deaths": self.critical_deaths,
        }


@dataclass(frozen=True)
class RoundLog:
    round: int
    start_a: int
    start_b: int
    lost_a: int
    lost_b: int

    def to_dict(self) -> dict[str, int]:
        return {
            "round": self.round,
            "start_a": self.start_a, "start_b": self.start_b,
            "lost_a": self.lost_a, "lost_b": self.lost_b,
        }


@dataclass(frozen=True)
class BattleResult:
    """Outcome of one resolved battle.  Never mutated after creation.

    Attributes:
        winner: A, B or DRAW.
        rounds: Per-round start counts and losses.
        initial_a / initial_b: Starting rosters.
        final_a / final_b: Surviving rosters (every starting type present).
        casualties_a / casualties_b: Losses per type.
        hp_start_a / hp_start_b: Total starting hull points.
        hp_lost_a / hp_lost_b: Hull points lost (including destroyed units).
        damage_dealt_a / damage_dealt_b: Damage landed on shields and hulls.
        performance_a / performance_b: Ledger per unit type.
    """

    winner: Winner
    rounds: tuple[RoundLog, ...]
    initial_a: Roster
    initial_b: Roster
    final_a: Roster
    final_b: Roster
    casualties_a: Roster
    casualties_b: Roster
    hp_start_a: float = 0.0
    hp_start_b: float = 0.0
    hp_lost_a: float = 0.0
    hp_lost_b: float = 0.0
    damage_dealt_a: float = 0.0
    damage_dealt_b: float = 0.0
    performance_a: Dict[str, UnitPerformance] = field(default_factory=dict)
    performance_b: Dict[str, UnitPerformance] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Plain-data form for logs, persistence and the REST API."""
        return {
            "winner": self.winner.value,
            "rounds": [r.to_dict() for r in self.rounds],
            "initial_a": dict(self.initial_a),
            "initial_b": dict(self.initial_b),
            "final_a": dict(self.final_a),
            "final_b": dict(self.final_b),
            "casualties_a": dict(self.casualties_a),
            "casualties_b": dict(self.casualties_b),
            "hp_start_a": self.hp_start_a,
            "hp_start_b": self.hp_start_b,
            "hp_lost_a": self.hp_lost_a,
            "hp_lost_b": self.hp_lost_b,
            "damage_dealt_a": self.damage_dealt_a,
            "damage_dealt_b": self.damage_dealt_b,
            "performance_a": {k: v.to_dict() for k, v in self.performance_a.items()},
            "performance_b": {k: v.to_dict() for k, v in self.performance_b.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BattleResult":
        def _perf(raw: dict) -> Dict[str, UnitPerformance]:
            return {k: UnitPerformance(**v) for k, v in (raw or {}).items()}

        return cls(
            winner=Winner(data["winner"]),
            rounds=tuple(RoundLog(**r) for r in data.get("rounds", [])),
            initial_a=dict(data.get("initial_a", {})),
            initial_b=dict(data.get("initial_b", {})),
            final_a=dict(data.get("final_a", {})),
            final_b=dict(data.get("final_b", {})),
            casualties_a=dict(data.get("casualties_a", {})),
            casualties_b=dict(data.get("casualties_b", {})),
            hp_start_a=data.get("hp_start_a", 0.0),
            hp_start_b=data.get("hp_start_b", 0.0),
            hp_lost_a=data.get("hp_lost_a", 0.0),
            hp_lost_b=data.get("hp_lost_b", 0.0),
            damage_dealt_a=data.get("damage_dealt_a", 0.0),
            damage_dealt_b=data.get("damage_dealt_b", 0.0),
            performance_a=_perf(data.get("performance_a")),
            performance_b=_perf(data.get("performance_b")),
        )
