"""Battle service - round-based resolution of one battle between two rosters.

Round order (must be preserved):
1. reset        - restore every living shield, clear death marks
2. fire         - every entity alive at round start activates once,
                  in shuffled order, against random unmarked opponents
3. rapid fire   - a successful roll lets the same attacker fire again
4. cleanup      - marked entities are removed and tallied

The service is a pure function of its inputs plus the injected
``random.Random``; a seeded generator replays a battle exactly.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Mapping, Optional

from siegeline.loaders.game_config_loader import CombatConfig
from siegeline.models.battle import (
    BattleEntity,
    BattleResult,
    RoundLog,
    Side,
    UnitPerformance,
    Winner,
)
from siegeline.models.units import Roster, UnitCatalog, clean_roster

log = logging.getLogger(__name__)


class _TargetPool:
    """Living, unmarked entities of one side with O(1) random pick and removal."""

    def __init__(self, entities: list[BattleEntity]) -> None:
        self._items = list(entities)
        self._index = {e.eid: i for i, e in enumerate(self._items)}

    def __len__(self) -> int:
        return len(self._items)

    def pick(self, rng: random.Random) -> BattleEntity:
        return self._items[rng.randrange(len(self._items))]

    def remove(self, entity: BattleEntity) -> None:
        i = self._index.pop(entity.eid)
        last = self._items.pop()
        if last is not entity:
            self._items[i] = last
            self._index[last.eid] = i


class BattleService:
    """Resolves battles against a fixed unit catalog."""

    def __init__(self, catalog: UnitCatalog, config: Optional[CombatConfig] = None) -> None:
        self._catalog = catalog
        self._cfg = config or CombatConfig()

    def resolve(
        self,
        roster_a: Mapping[str, int],
        roster_b: Mapping[str, int],
        multiplier_a: float = 1.0,
        rng: Optional[random.Random] = None,
    ) -> BattleResult:
        """Fight roster_a against roster_b.

        Args:
            roster_a: Side A unit counts (the player, for outgoing missions).
            roster_b: Side B unit counts.
            multiplier_a: Damage multiplier applied to side A shots.
            rng: Random source; a fresh unseeded one if omitted.

        Returns:
            Immutable BattleResult.  For every unit type in either
            roster, initial == final + casualties.
        """
        rng = rng or random.Random()
        initial = {Side.A: clean_roster(roster_a), Side.B: clean_roster(roster_b)}
        multipliers = {Side.A: multiplier_a, Side.B: 1.0}

        entities: dict[Side, list[BattleEntity]] = {Side.A: [], Side.B: []}
        next_eid = 0
        for side, roster in initial.items():
            for unit_type, count in roster.items():
                defn = self._catalog.get(unit_type)
                for _ in range(count):
                    entities[side].append(BattleEntity(
                        eid=next_eid, unit_type=unit_type, side=side,
                        hp=defn.hp, max_hp=defn.hp,
                        shield=defn.shield, max_shield=defn.shield,
                    ))
                    next_eid += 1

        ledgers = {
            side: {t: UnitPerformance() for t in roster}
            for side, roster in initial.items()
        }
        damage_dealt = {Side.A: 0.0, Side.B: 0.0}
        rounds: list[RoundLog] = []

        for number in range(1, self._cfg.max_rounds + 1):
            alive = {side: [e for e in ents if not e.dead] for side, ents in entities.items()}
            if not alive[Side.A] or not alive[Side.B]:
                break

            # 1. Reset
            for side_alive in alive.values():
                for e in side_alive:
                    e.shield = e.max_shield
                    e.marked = False

            # 2. Firing order
            pools = {side: _TargetPool(ents) for side, ents in alive.items()}
            order = alive[Side.A] + alive[Side.B]
            rng.shuffle(order)

            for attacker in order:
                pool = pools[attacker.side.opponent]
                if not pool:
                    continue
                damage = math.floor(self._catalog.get(attacker.unit_type).attack
                                    * multipliers[attacker.side])
                damage_dealt[attacker.side] += self._activate(
                    attacker, damage, pool, ledgers, rng)

            # 5. Cleanup
            lost = {Side.A: 0, Side.B: 0}
            for side, side_alive in alive.items():
                for e in side_alive:
                    if e.marked:
                        e.dead = True
                        lost[side] += 1
            rounds.append(RoundLog(
                round=number,
                start_a=len(alive[Side.A]), start_b=len(alive[Side.B]),
                lost_a=lost[Side.A], lost_b=lost[Side.B],
            ))

        final: dict[Side, Roster] = {}
        casualties: dict[Side, Roster] = {}
        hp_start: dict[Side, float] = {}
        hp_lost: dict[Side, float] = {}
        for side, roster in initial.items():
            survivors = {t: 0 for t in roster}
            hp_left = 0.0
            for e in entities[side]:
                if not e.dead:
                    survivors[e.unit_type] += 1
                    hp_left += e.hp
            final[side] = survivors
            casualties[side] = {t: roster[t] - survivors[t] for t in roster}
            hp_start[side] = sum(e.max_hp for e in entities[side])
            hp_lost[side] = hp_start[side] - hp_left

        winner = self._decide_winner(initial, final)
        log.debug("Battle resolved: %s after %d rounds (A %d→%d, B %d→%d)",
                  winner.value, len(rounds),
                  sum(initial[Side.A].values()), sum(final[Side.A].values()),
                  sum(initial[Side.B].values()), sum(final[Side.B].values()))

        return BattleResult(
            winner=winner,
            rounds=tuple(rounds),
            initial_a=initial[Side.A], initial_b=initial[Side.B],
            final_a=final[Side.A], final_b=final[Side.B],
            casualties_a=casualties[Side.A], casualties_b=casualties[Side.B],
            hp_start_a=hp_start[Side.A], hp_start_b=hp_start[Side.B],
            hp_lost_a=hp_lost[Side.A], hp_lost_b=hp_lost[Side.B],
            damage_dealt_a=damage_dealt[Side.A], damage_dealt_b=damage_dealt[Side.B],
            performance_a=ledgers[Side.A], performance_b=ledgers[Side.B],
        )

    # -- Internals -------------------------------------------------------

    def _activate(
        self,
        attacker: BattleEntity,
        damage: int,
        pool: _TargetPool,
        ledgers: dict[Side, dict[str, UnitPerformance]],
        rng: random.Random,
    ) -> float:
        """One activation: a shot plus any chained rapid-fire shots."""
        rapid_fire = self._catalog.get(attacker.unit_type).rapid_fire
        dealt = 0.0
        while pool:
            target = pool.pick(rng)
            dealt += self._fire(attacker, target, damage, pool, ledgers, rng)
            chance = rapid_fire.get(target.unit_type, 0.0)
            if chance <= 0.0 or rng.random() >= chance:
                break
        return dealt

    def _fire(
        self,
        attacker: BattleEntity,
        target: BattleEntity,
        damage: int,
        pool: _TargetPool,
        ledgers: dict[Side, dict[str, UnitPerformance]],
        rng: random.Random,
    ) -> float:
        """Apply one shot; returns the damage landed on shield and hull."""
        if damage <= target.max_shield * self._cfg.shield_threshold:
            return 0.0

        absorbed = min(target.shield, damage)
        target.shield -= absorbed
        hull = damage - absorbed

        att_perf = ledgers[attacker.side][attacker.unit_type]
        tgt_perf = ledgers[target.side][target.unit_type]
        att_perf.damage_dealt += damage

        if hull <= 0:
            return float(damage)

        hp_before = target.hp
        target.hp -= hull
        if target.hp <= 0:
            target.hp = 0.0
            target.marked = True
            pool.remove(target)
            att_perf.kills[target.unit_type] = att_perf.kills.get(target.unit_type, 0) + 1
            tgt_perf.deaths_by[attacker.unit_type] = tgt_perf.deaths_by.get(attacker.unit_type, 0) + 1
        elif target.hp < target.max_hp * self._cfg.critical_hp_fraction:
            # Probability may exceed 1.0; kept as is.
            if rng.random() < hull / hp_before:
                target.hp = 0.0
                target.marked = True
                pool.remove(target)
                att_perf.critical_kills += 1
                tgt_perf.critical_deaths += 1
        return float(damage)

    @staticmethod
    def _decide_winner(initial: dict[Side, Roster], final: dict[Side, Roster]) -> Winner:
        alive_a = sum(final[Side.A].values())
        alive_b = sum(final[Side.B].values())
        if alive_a > 0 and alive_b == 0:
            return Winner.A
        if alive_b > 0 and alive_a == 0:
            return Winner.B

        start_a = sum(initial[Side.A].values())
        start_b = sum(initial[Side.B].values())
        if start_a == 0 or start_b == 0:
            return Winner.DRAW
        # lost_a / start_a vs lost_b / start_b, compared exactly
        lhs = (start_a - alive_a) * start_b
        rhs = (start_b - alive_b) * start_a
        if lhs < rhs:
            return Winner.A
        if rhs < lhs:
            return Winner.B
        return Winner.DRAW
