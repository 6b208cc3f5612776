"""Mission resolver - turns a completed mission or attack into deltas.

Responsibilities:
  - Choose the opposing roster (recon report, war garrison, campaign
    level, patrol encounter, or a freshly generated force)
  - Run the battle through BattleService
  - Translate the result into unit / resource / building deltas,
    side effects (progress, grudge, reputation, war tallies) and a log key

The resolver never mutates the snapshot it reads; the attack service
folds the returned outcome into its working state.
"""

from __future__ import annotations

import logging
import math
import random
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from siegeline.engine.battle_service import BattleService
from siegeline.engine.force_generator import ForceGenerator
from siegeline.engine.recon import ReconCache
from siegeline.engine.retaliation import retaliation_delay
from siegeline.loaders.campaign_loader import CampaignLevel
from siegeline.loaders.game_config_loader import GameConfig
from siegeline.models import messages as msg
from siegeline.models.attack import IncomingAttack, MissionKind, OutgoingMission
from siegeline.models.battle import BattleResult, Winner
from siegeline.models.empire import Empire
from siegeline.models.rival import Grudge, Profile, WarState
from siegeline.models.units import Roster, clean_roster, roster_size

log = logging.getLogger(__name__)

# -- Patrol constants ----------------------------------------------------

AMBUSH_MULTIPLIER = 0.7
AMBUSH_BUDGET_BASE = 1.2
STANDARD_BUDGET_BASE = 0.4
BUDGET_PER_PATROL_LEVEL = 0.15
PATROL_TRAINING_BONUS = 0.05
AMBUSH_LOOT_FACTOR = 0.15
STANDARD_LOOT_FACTOR = 0.05
CONTRABAND_LOOT_FACTOR = 0.05


@dataclass
class WarUpdate:
    """Change to the active war caused by one battle."""

    enemy_garrison: Optional[Roster] = None
    player_victory: bool = False
    enemy_victory: bool = False
    player_unit_losses: int = 0
    enemy_unit_losses: int = 0


@dataclass
class SideEffects:
    """Non-resource consequences of a resolution.

    Attributes:
        campaign_progress: New progress pointer, if it advances.
        grudge: Grievance created by an unprovoked win.
        reputation: Reputation delta per rival ID.
        war: War garrison / tally update.
    """

    campaign_progress: Optional[int] = None
    grudge: Optional[Grudge] = None
    reputation: dict[str, float] = field(default_factory=dict)
    war: Optional[WarUpdate] = None


@dataclass
class OutgoingOutcome:
    roster_delta: Roster
    resource_delta: dict[str, float] = field(default_factory=dict)
    building_delta: dict[str, int] = field(default_factory=dict)
    log_key: str = ""
    log_params: dict[str, Any] = field(default_factory=dict)
    category: str = msg.CATEGORY_MISSION
    side_effects: SideEffects = field(default_factory=SideEffects)
    battle: Optional[BattleResult] = None


@dataclass
class IncomingOutcome:
    new_garrison: Roster
    log_key: str = ""
    log_params: dict[str, Any] = field(default_factory=dict)
    category: str = msg.CATEGORY_COMBAT
    side_effects: SideEffects = field(default_factory=SideEffects)
    battle: Optional[BattleResult] = None


# -- Helpers -------------------------------------------------------------

def plunder_buildings(
    buildings: Mapping[str, int],
    attack_number: int,
    rates: Sequence[float],
) -> dict[str, int]:
    """Buildings stolen on the ``attack_number``-th attack of the period.

    Every attempt is taken from what the earlier attempts left behind;
    attempts past the end of ``rates`` reuse the last rate.
    """
    if attack_number < 1 or not rates:
        return {}
    remaining = {b: max(0, int(n)) for b, n in buildings.items()}
    stolen: dict[str, int] = {}
    for attempt in range(attack_number):
        rate = rates[min(attempt, len(rates) - 1)]
        stolen = {b: math.floor(n * rate) for b, n in remaining.items()}
        remaining = {b: n - stolen[b] for b, n in remaining.items()}
    return {b: n for b, n in stolen.items() if n > 0}


def patrol_level(duration_seconds: float) -> int:
    minutes = duration_seconds / 60.0
    if minutes <= 5:
        return 1
    if minutes <= 15:
        return 2
    if minutes <= 30:
        return 3
    return 4


# -- MissionResolver -----------------------------------------------------

class MissionResolver:
    """Adapter between scheduled items and the battle service.

    Args:
        battle_service: Resolves battles.
        force_generator: Builds rival and patrol forces.
        campaign: Campaign levels by ID.
        game_config: Plunder, patrol, recon and reputation constants.
    """

    def __init__(
        self,
        battle_service: BattleService,
        force_generator: ForceGenerator,
        campaign: Optional[Mapping[int, CampaignLevel]] = None,
        game_config: Optional[GameConfig] = None,
    ) -> None:
        self._battles = battle_service
        self._forces = force_generator
        self._campaign = dict(campaign or {})
        self._gc = game_config or GameConfig()

    # -- Outgoing ------------------------------------------------------

    def resolve_outgoing(
        self,
        mission: OutgoingMission,
        snapshot: Empire,
        now: float,
        rng: Optional[random.Random] = None,
    ) -> OutgoingOutcome:
        """Resolve a returning mission against a read-only empire snapshot.

        Args:
            mission: The mission whose end time has passed.
            snapshot: Current working state; not modified.
            now: In-simulation time of resolution (the mission's end time
                during reconciliation).
            rng: Random source.
        """
        rng = rng or random.Random()
        if mission.kind is MissionKind.PATROL:
            return self._resolve_patrol(mission, snapshot, rng)
        if mission.kind is MissionKind.CAMPAIGN:
            return self._resolve_campaign(mission, snapshot, rng)
        return self._resolve_pvp(mission, snapshot, now, rng)

    def _resolve_pvp(
        self, mission: OutgoingMission, snapshot: Empire, now: float, rng: random.Random,
    ) -> OutgoingOutcome:
        if mission.is_war_attack:
            war = snapshot.active_war
            if war is not None and war.targets(mission.target_id, now):
                return self._resolve_war_attack(mission, war, snapshot, rng)
            log.info("Mission %s references an inactive war; resolving as a standard attack",
                     mission.mission_id)

        rival = snapshot.rivals.get(mission.target_id) if mission.target_id else None
        if rival is not None:
            score, profile, name = rival.score, rival.profile, rival.name
        else:
            log.warning("Target %s of mission %s no longer exists; using launch estimate %.0f",
                        mission.target_id, mission.mission_id, mission.target_score)
            score, profile, name = mission.target_score, Profile.WARLORD, mission.target_name

        recon = ReconCache(snapshot.spy_reports, self._gc.recon_expiry_seconds,
                           self._forces.catalog)
        enemy = recon.lookup(mission.target_id, now)
        if enemy is None:
            enemy = self._forces.generate_roster(score, 1.0, profile, rng)

        result = self._battles.resolve(mission.roster, enemy, 1.0, rng)
        survivors = result.final_a
        effects = SideEffects()
        params: dict[str, Any] = {"battle": result, "target": name}

        if result.winner is Winner.A:
            stolen = plunder_buildings(
                self._forces.generate_buildings(score),
                mission.attack_number,
                self._gc.plunder_rates,
            )
            effects.grudge = Grudge(
                grudge_id=uuid.uuid4().hex,
                rival_id=mission.target_id or "",
                rival_name=name,
                profile=profile,
                rival_score=score,
                created_at=now,
                retaliation_time=now + retaliation_delay(profile, self._gc, rng),
            )
            if rival is not None:
                effects.reputation[rival.rival_id] = self._gc.reputation_attack_penalty
            params["buildings"] = stolen
            return OutgoingOutcome(
                roster_delta=survivors,
                building_delta=stolen,
                log_key=msg.LOG_BATTLE_WIN,
                log_params=params,
                category=msg.CATEGORY_COMBAT,
                side_effects=effects,
                battle=result,
            )

        if rival is not None:
            effects.reputation[rival.rival_id] = self._gc.reputation_win_bonus
        return OutgoingOutcome(
            roster_delta=survivors,
            log_key=msg.LOG_WIPEOUT if roster_size(survivors) == 0 else msg.LOG_BATTLE_LOSS,
            log_params=params,
            category=msg.CATEGORY_COMBAT,
            side_effects=effects,
            battle=result,
        )

    def _resolve_war_attack(
        self, mission: OutgoingMission, war: WarState, snapshot: Empire, rng: random.Random,
    ) -> OutgoingOutcome:
        enemy = clean_roster(war.enemy_garrison)
        if roster_size(enemy) == 0:
            rival = snapshot.rivals.get(war.enemy_id)
            profile = rival.profile if rival is not None else Profile.WARLORD
            enemy = self._forces.generate_roster(war.enemy_score, 1.0, profile, rng)

        result = self._battles.resolve(mission.roster, enemy, 1.0, rng)
        won = result.winner is Winner.A
        update = WarUpdate(
            enemy_garrison={t: n for t, n in result.final_b.items() if n > 0},
            player_victory=won,
            enemy_victory=not won,
            player_unit_losses=sum(result.casualties_a.values()),
            enemy_unit_losses=sum(result.casualties_b.values()),
        )
        return OutgoingOutcome(
            roster_delta=result.final_a,
            log_key=msg.LOG_WAR_WIN if won else msg.LOG_WAR_LOSS,
            log_params={"battle": result, "target": war.enemy_name},
            category=msg.CATEGORY_COMBAT,
            side_effects=SideEffects(war=update),
            battle=result,
        )

    def _resolve_campaign(
        self, mission: OutgoingMission, snapshot: Empire, rng: random.Random,
    ) -> OutgoingOutcome:
        level = self._campaign.get(mission.level_id) if mission.level_id is not None else None
        if level is None:
            log.warning("Campaign level %s of mission %s is unknown; no opposing force",
                        mission.level_id, mission.mission_id)
            enemy: Roster = {}
        else:
            enemy = dict(level.enemy)

        result = self._battles.resolve(mission.roster, enemy, 1.0, rng)
        survivors = result.final_a
        effects = SideEffects()
        params: dict[str, Any] = {"battle": result, "level": mission.level_id}

        if result.winner is Winner.A:
            reward = dict(level.reward) if level is not None else {}
            if level is not None and level.level_id == snapshot.campaign_progress:
                effects.campaign_progress = level.level_id + 1
            params["loot"] = reward
            return OutgoingOutcome(
                roster_delta=survivors,
                resource_delta=reward,
                log_key=msg.LOG_CAMPAIGN_WIN,
                log_params=params,
                category=msg.CATEGORY_COMBAT,
                side_effects=effects,
                battle=result,
            )

        return OutgoingOutcome(
            roster_delta=survivors,
            log_key=msg.LOG_WIPEOUT if roster_size(survivors) == 0 else msg.LOG_CAMPAIGN_LOSS,
            log_params=params,
            category=msg.CATEGORY_COMBAT,
            side_effects=effects,
            battle=result,
        )

    def _resolve_patrol(
        self, mission: OutgoingMission, snapshot: Empire, rng: random.Random,
    ) -> OutgoingOutcome:
        level = patrol_level(mission.duration_seconds)
        outcome = self._roll_patrol(rng)
        fleet = dict(mission.roster)

        if outcome == "nothing":
            return OutgoingOutcome(roster_delta=fleet, log_key=msg.LOG_PATROL_NOTHING,
                                   log_params={"level": level})

        if outcome == "contraband":
            capacity = self._forces.roster_value(fleet) * CONTRABAND_LOOT_FACTOR * level
            loot = {"money": float(math.floor(capacity)), "ammo": float(math.floor(capacity * 0.1))}
            return OutgoingOutcome(roster_delta=fleet, resource_delta=loot,
                                   log_key=msg.LOG_PATROL_CONTRABAND,
                                   log_params={"level": level, "loot": loot})

        ambush = outcome == "ambush"
        if ambush:
            budget = AMBUSH_BUDGET_BASE + BUDGET_PER_PATROL_LEVEL * level
            multiplier = AMBUSH_MULTIPLIER
            loot_factor, oil_share = AMBUSH_LOOT_FACTOR, 0.1
        else:
            budget = STANDARD_BUDGET_BASE + BUDGET_PER_PATROL_LEVEL * level
            multiplier = 1.0 + PATROL_TRAINING_BONUS * snapshot.tech_levels.get("patrol_training", 0)
            loot_factor, oil_share = STANDARD_LOOT_FACTOR, 0.05

        enemy = self._forces.generate_patrol_force(fleet, budget, rng)
        result = self._battles.resolve(fleet, enemy, multiplier, rng)
        survivors = result.final_a
        params: dict[str, Any] = {"battle": result, "level": level, "ambush": ambush}

        if result.winner is Winner.A:
            amount = self._forces.roster_value(survivors) * loot_factor * level
            loot = {"money": float(math.floor(amount)), "oil": float(math.floor(amount * oil_share))}
            params["loot"] = loot
            return OutgoingOutcome(roster_delta=survivors, resource_delta=loot,
                                   log_key=msg.LOG_PATROL_BATTLE_WIN, log_params=params,
                                   category=msg.CATEGORY_COMBAT, battle=result)

        return OutgoingOutcome(
            roster_delta=survivors,
            log_key=msg.LOG_WIPEOUT if roster_size(survivors) == 0 else msg.LOG_PATROL_BATTLE_LOSS,
            log_params=params,
            category=msg.CATEGORY_COMBAT,
            battle=result,
        )

    def _roll_patrol(self, rng: random.Random) -> str:
        """Weighted pick from ``patrol_weights`` (nothing/ambush/combat/contraband)."""
        weights = self._gc.patrol_weights
        total = sum(max(0.0, w) for w in weights.values())
        if total <= 0:
            return "nothing"
        roll = rng.random() * total
        for outcome, weight in weights.items():
            roll -= max(0.0, weight)
            if roll < 0:
                return outcome
        return next(reversed(weights))

    # -- Incoming ------------------------------------------------------

    def resolve_incoming(
        self,
        attack: IncomingAttack,
        garrison: Roster,
        rng: Optional[random.Random] = None,
        snapshot: Optional[Empire] = None,
    ) -> IncomingOutcome:
        """Fight an arriving attack against the live garrison.

        The attacker is side A; the garrison is side B.  The new garrison
        holds the survivors, every count floored at zero.
        """
        rng = rng or random.Random()
        result = self._battles.resolve(attack.roster, garrison, 1.0, rng)
        defended = result.winner is Winner.B
        new_garrison = dict(garrison)
        for unit_id, count in result.final_b.items():
            new_garrison[unit_id] = max(0, count)

        effects = SideEffects()
        war = snapshot.active_war if snapshot is not None else None
        if attack.is_war_wave and war is not None and war.targets(attack.attacker_id, attack.end_time):
            effects.war = WarUpdate(
                player_victory=defended,
                enemy_victory=not defended,
                player_unit_losses=sum(result.casualties_b.values()),
                enemy_unit_losses=sum(result.casualties_a.values()),
            )
        else:
            if attack.is_war_wave:
                log.info("Attack %s references an inactive war; resolving as a standard attack",
                         attack.attack_id)
            if defended and snapshot is not None and attack.attacker_id in snapshot.rivals:
                effects.reputation[attack.attacker_id] = self._gc.reputation_defend_bonus

        return IncomingOutcome(
            new_garrison=new_garrison,
            log_key=msg.LOG_DEFENSE_WIN if defended else msg.LOG_DEFENSE_LOSS,
            log_params={"battle": result, "attacker": attack.attacker_name},
            side_effects=effects,
            battle=result,
        )
