"""Attack service - scheduling and chronological reconciliation of attacks.

Handles the lifecycle of scheduled items:
  launch / schedule → pending → (end_time <= now) → resolved and removed

Reconciliation collects every eligible outgoing mission and incoming
attack, orders them by end time (ties: earlier start first) and resolves
them one at a time against a single working copy of the empire, so each
item sees the consequences of the one before it.  An incoming attack that
lands before a mission returns fights the garrison without the departed
units; a second attack fights what the first one left.
"""

from __future__ import annotations

import copy
import logging
import random
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

from siegeline.models import messages as msg
from siegeline.models.attack import IncomingAttack, MissionKind, OutgoingMission
from siegeline.models.battle import BattleResult
from siegeline.models.empire import Empire
from siegeline.models.messages import LogEntry
from siegeline.models.units import Roster, clean_roster

if TYPE_CHECKING:
    from siegeline.engine.mission_resolver import (
        IncomingOutcome,
        MissionResolver,
        OutgoingOutcome,
        WarUpdate,
    )
    from siegeline.loaders.game_config_loader import GameConfig

log = logging.getLogger(__name__)


class ReconciliationError(RuntimeError):
    """The working copy of the state could not be created; nothing was applied."""


class QueueItemKind(Enum):
    OUTGOING = "outgoing"
    INCOMING = "incoming"


@dataclass
class QueuedAttackResult:
    """One processed item, stamped with its scheduled completion time.

    Attributes:
        item_id: Mission or attack ID.
        kind: Outgoing mission or incoming attack.
        completed_at: The item's end time (not the wall clock).
        log_key: Key of the log entry produced for the item.
        mission_kind: Mission kind for outgoing items.
        battle: Battle result when combat occurred.
        failed: Resolution raised and the item was dropped.
    """

    item_id: str
    kind: QueueItemKind
    completed_at: float
    log_key: str
    mission_kind: Optional[MissionKind] = None
    battle: Optional[BattleResult] = None
    failed: bool = False


@dataclass
class ReconcileResult:
    state: Empire
    results: list[QueuedAttackResult] = field(default_factory=list)
    logs: list[LogEntry] = field(default_factory=list)


@dataclass
class _QueueItem:
    """Transient wrapper used only within one reconciliation pass."""

    kind: QueueItemKind
    end_time: float
    start_time: float
    item: Union[OutgoingMission, IncomingAttack]

    @property
    def item_id(self) -> str:
        if isinstance(self.item, OutgoingMission):
            return self.item.mission_id
        return self.item.attack_id


class AttackService:
    """Service managing scheduled missions and incoming attacks.

    Args:
        resolver: Turns completed items into outcomes.
        game_config: Attack-count limits and period.
    """

    def __init__(self, resolver: MissionResolver,
                 game_config: GameConfig | None = None) -> None:
        self._resolver = resolver
        self._max_attacks_per_target = (
            game_config.max_attacks_per_target if game_config else 3
        )
        self._count_period = (
            game_config.attack_count_period_seconds if game_config else 86_400.0
        )

    # -- Query -----------------------------------------------------------

    def get_eligible(self, empire: Empire, now: float) -> list[_QueueItem]:
        """Items whose end time has passed, in processing order."""
        items = [
            _QueueItem(QueueItemKind.OUTGOING, m.end_time, m.start_time, m)
            for m in empire.missions if m.end_time <= now
        ] + [
            _QueueItem(QueueItemKind.INCOMING, a.end_time, a.start_time, a)
            for a in empire.incoming if a.end_time <= now
        ]
        items.sort(key=lambda q: (q.end_time, q.start_time))
        return items

    # -- Scheduling ------------------------------------------------------

    def launch_mission(
        self,
        empire: Empire,
        kind: MissionKind,
        roster: Roster,
        now: float,
        duration_seconds: float,
        target_id: Optional[str] = None,
        level_id: Optional[int] = None,
        is_war_attack: bool = False,
    ) -> OutgoingMission | str:
        """Send units away from the garrison. Returns the mission or an error string.

        The departing units leave the garrison immediately; survivors
        return when the mission is resolved.
        """
        units = {u: n for u, n in clean_roster(roster).items() if n > 0}
        if not units:
            return "Mission needs at least one unit"
        if duration_seconds <= 0:
            return "Mission duration must be positive"
        for unit_id, count in units.items():
            if empire.garrison.get(unit_id, 0) < count:
                return f"Not enough {unit_id} in garrison ({empire.garrison.get(unit_id, 0)} < {count})"

        target_name, target_score = "", 0.0
        attack_number = 1
        if kind is MissionKind.PVP:
            if not target_id:
                return "Attack needs a target"
            rival = empire.rivals.get(target_id)
            war = empire.active_war
            war_target = war is not None and war.targets(target_id, now)
            if rival is None and not war_target:
                return f"Unknown target {target_id}"
            if is_war_attack and not war_target:
                return f"No active war against {target_id}"
            if rival is not None:
                target_name, target_score = rival.name, rival.score
            elif war is not None:
                target_name, target_score = war.enemy_name, war.enemy_score
            if not is_war_attack:
                self._roll_attack_period(empire, now)
                launched = empire.target_attack_counts.get(target_id, 0)
                if launched >= self._max_attacks_per_target:
                    return f"Attack limit reached for {target_id} ({launched}/{self._max_attacks_per_target})"
                empire.target_attack_counts[target_id] = launched + 1
                attack_number = launched + 1
        elif kind is MissionKind.CAMPAIGN:
            if level_id is None:
                return "Campaign mission needs a level"
            if level_id > empire.campaign_progress:
                return f"Campaign level {level_id} is locked"

        for unit_id, count in units.items():
            empire.garrison[unit_id] -= count

        mission = OutgoingMission(
            mission_id=uuid.uuid4().hex,
            kind=kind,
            start_time=now,
            end_time=now + duration_seconds,
            roster=units,
            target_id=target_id,
            target_name=target_name,
            target_score=target_score,
            level_id=level_id,
            is_war_attack=is_war_attack,
            attack_number=attack_number,
        )
        empire.missions.append(mission)
        log.info("[QUEUE] launched %s mission %s (%d units, returns in %.0fs)",
                 kind.value, mission.mission_id, sum(units.values()), duration_seconds)
        return mission

    def schedule_incoming(self, empire: Empire, attack: IncomingAttack) -> IncomingAttack | str:
        """Queue a hostile attack. Returns it or an error string."""
        if attack.end_time < attack.start_time:
            return f"Attack {attack.attack_id} arrives before it starts"
        attack.roster = {u: n for u, n in clean_roster(attack.roster).items() if n > 0}
        if not attack.roster:
            return f"Attack {attack.attack_id} has no units"
        empire.incoming.append(attack)
        log.info("[QUEUE] incoming %s from %s (%d units)",
                 attack.attack_id, attack.attacker_name or attack.attacker_id,
                 sum(attack.roster.values()))
        return attack

    def sanitize_pending(self, empire: Empire) -> int:
        """Drop malformed pending records in place. Returns how many were dropped."""
        dropped = 0
        missions: list[OutgoingMission] = []
        for m in empire.missions:
            if m.end_time < m.start_time or not self._roster_ok(m.roster):
                log.warning("[QUEUE] dropping malformed mission %s", m.mission_id)
                dropped += 1
                continue
            m.roster = clean_roster(m.roster)
            missions.append(m)
        incoming: list[IncomingAttack] = []
        for a in empire.incoming:
            if a.end_time < a.start_time or not self._roster_ok(a.roster):
                log.warning("[QUEUE] dropping malformed incoming attack %s", a.attack_id)
                dropped += 1
                continue
            a.roster = clean_roster(a.roster)
            incoming.append(a)
        empire.missions = missions
        empire.incoming = incoming
        return dropped

    # -- Reconciliation --------------------------------------------------

    def reconcile(self, empire: Empire, now: float,
                  rng: Optional[random.Random] = None,
                  copy_state: bool = True) -> ReconcileResult:
        """Resolve every item with ``end_time <= now`` in chronological order.

        The input empire is not modified; the returned state is a new
        working copy with all outcomes folded in. Callers that already
        own a private copy pass ``copy_state=False`` and get it back
        updated in place.

        Raises:
            ReconciliationError: If the working copy cannot be created.
        """
        rng = rng or random.Random()
        working = empire
        if copy_state:
            try:
                working = copy.deepcopy(empire)
            except (TypeError, RecursionError, copy.Error) as exc:
                raise ReconciliationError(f"cannot copy state: {exc}") from exc

        results: list[QueuedAttackResult] = []
        logs: list[LogEntry] = []
        items = self.get_eligible(working, now)
        if items:
            log.info("[QUEUE] reconciling %d items up to %.0f", len(items), now)

        for q in items:
            result, entry = self._process(working, q, rng)
            self._remove(working, q)
            results.append(result)
            logs.append(entry)

        working.last_processed_attack_time = now
        return ReconcileResult(state=working, results=results, logs=logs)

    # -- Internals -------------------------------------------------------

    def _process(self, working: Empire, q: _QueueItem,
                 rng: random.Random) -> tuple[QueuedAttackResult, LogEntry]:
        mission_kind = q.item.kind if isinstance(q.item, OutgoingMission) else None
        outcome = None
        try:
            if isinstance(q.item, OutgoingMission):
                outcome = self._resolver.resolve_outgoing(q.item, working, q.end_time, rng)
                self._apply_outgoing(working, outcome)
            else:
                outcome = self._resolver.resolve_incoming(q.item, working.garrison, rng, working)
                self._apply_incoming(working, outcome)
        except Exception:
            log.exception("[QUEUE] failed to resolve %s %s; dropping it", q.kind.value, q.item_id)
            params: dict = {"item_id": q.item_id}
            # Units that departed on a mission that never resolved go home.
            if isinstance(q.item, OutgoingMission) and outcome is None:
                returned = clean_roster(q.item.roster)
                working.add_units(returned)
                params["returned"] = returned
            entry = LogEntry(
                entry_id=uuid.uuid4().hex,
                key=msg.LOG_RESOLUTION_FAILED,
                timestamp=q.end_time,
                category=msg.CATEGORY_MISSION,
                params=params,
            )
            return QueuedAttackResult(q.item_id, q.kind, q.end_time, entry.key,
                                      mission_kind=mission_kind, failed=True), entry

        entry = LogEntry(
            entry_id=uuid.uuid4().hex,
            key=outcome.log_key,
            timestamp=q.end_time,
            category=outcome.category,
            params=dict(outcome.log_params),
        )
        log.info("[QUEUE] %s %s resolved at %.0f: %s",
                 q.kind.value, q.item_id, q.end_time, outcome.log_key)
        return QueuedAttackResult(q.item_id, q.kind, q.end_time, outcome.log_key,
                                  mission_kind=mission_kind, battle=outcome.battle), entry

    def _apply_outgoing(self, working: Empire, outcome: OutgoingOutcome) -> None:
        working.add_units(clean_roster(outcome.roster_delta))
        working.add_resources(outcome.resource_delta)
        working.add_buildings(outcome.building_delta)

        effects = outcome.side_effects
        if effects.campaign_progress is not None:
            working.campaign_progress = max(working.campaign_progress, effects.campaign_progress)
        if effects.grudge is not None:
            working.grudges.append(effects.grudge)
        self._apply_reputation(working, effects.reputation)
        if effects.war is not None:
            self._apply_war(working, effects.war)

    def _apply_incoming(self, working: Empire, outcome: IncomingOutcome) -> None:
        working.garrison = clean_roster(outcome.new_garrison)
        self._apply_reputation(working, outcome.side_effects.reputation)
        if outcome.side_effects.war is not None:
            self._apply_war(working, outcome.side_effects.war)

    @staticmethod
    def _apply_reputation(working: Empire, deltas: dict[str, float]) -> None:
        for rival_id, delta in deltas.items():
            rival = working.rivals.get(rival_id)
            if rival is not None:
                rival.adjust_reputation(delta)

    @staticmethod
    def _apply_war(working: Empire, update: WarUpdate) -> None:
        war = working.active_war
        if war is None:
            return
        if update.enemy_garrison is not None:
            war.enemy_garrison = dict(update.enemy_garrison)
        war.player_victories += int(update.player_victory)
        war.enemy_victories += int(update.enemy_victory)
        war.player_unit_losses += update.player_unit_losses
        war.enemy_unit_losses += update.enemy_unit_losses

    @staticmethod
    def _remove(working: Empire, q: _QueueItem) -> None:
        if q.kind is QueueItemKind.OUTGOING:
            working.missions = [m for m in working.missions if m is not q.item]
        else:
            working.incoming = [a for a in working.incoming if a is not q.item]

    def _roll_attack_period(self, empire: Empire, now: float) -> None:
        if now - empire.attack_counts_reset_at >= self._count_period:
            empire.target_attack_counts.clear()
            empire.attack_counts_reset_at = now

    @staticmethod
    def _roster_ok(roster: object) -> bool:
        if not isinstance(roster, dict) or not roster:
            return False
        for count in roster.values():
            if not isinstance(count, (int, float)) or count < 0:
                return False
        return sum(roster.values()) > 0
