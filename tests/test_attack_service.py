"""Tests for AttackService - launching, scheduling and chronological reconciliation."""

from __future__ import annotations

import random
import threading
from unittest.mock import MagicMock

import pytest

from siegeline.engine.attack_service import (
    AttackService,
    QueueItemKind,
    ReconciliationError,
)
from siegeline.engine.battle_service import BattleService
from siegeline.engine.force_generator import ForceGenerator
from siegeline.engine.mission_resolver import MissionResolver, OutgoingOutcome, SideEffects
from siegeline.loaders.campaign_loader import CampaignLevel
from siegeline.loaders.game_config_loader import GameConfig
from siegeline.models import messages as msg
from siegeline.models.attack import IncomingAttack, MissionKind, OutgoingMission
from siegeline.models.empire import Empire
from siegeline.models.messages import LogEntry
from siegeline.models.rival import Profile, Rival, SpyReport, WarState


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

CAMPAIGN = {
    1: CampaignLevel(level_id=1, enemy={"grunt": 1}, reward={"money": 500.0}),
}


@pytest.fixture
def gc():
    return GameConfig()


@pytest.fixture
def service(catalog, gc):
    resolver = MissionResolver(BattleService(catalog), ForceGenerator(catalog, gc), CAMPAIGN, gc)
    return AttackService(resolver, gc)


@pytest.fixture
def empire():
    return Empire(
        name="Home",
        resources={"money": 0.0},
        garrison={"wall": 10, "grunt": 5},
        rivals={"r1": Rival("r1", name="Red", score=1000.0, profile=Profile.WARLORD)},
    )


def _incoming(attack_id, roster, start, end, attacker_id="r1") -> IncomingAttack:
    return IncomingAttack(attack_id=attack_id, attacker_id=attacker_id, start_time=start,
                          end_time=end, roster=roster, attacker_name="Red")


def _campaign_mission(mission_id, roster, start, end) -> OutgoingMission:
    return OutgoingMission(mission_id=mission_id, kind=MissionKind.CAMPAIGN, start_time=start,
                           end_time=end, roster=roster, level_id=1)


# ---------------------------------------------------------------------------
# Launching
# ---------------------------------------------------------------------------


class TestLaunchMission:

    def test_units_leave_the_garrison(self, service, empire):
        mission = service.launch_mission(empire, MissionKind.PATROL, {"wall": 4}, 100.0, 600.0)

        assert isinstance(mission, OutgoingMission)
        assert mission.end_time == 700.0
        assert empire.garrison["wall"] == 6
        assert empire.missions == [mission]

    def test_rejects_empty_roster(self, service, empire):
        assert isinstance(service.launch_mission(empire, MissionKind.PATROL, {"wall": 0}, 0.0, 60.0), str)

    def test_rejects_missing_units(self, service, empire):
        result = service.launch_mission(empire, MissionKind.PATROL, {"wall": 11}, 0.0, 60.0)
        assert isinstance(result, str)
        assert empire.garrison["wall"] == 10
        assert empire.missions == []

    def test_rejects_bad_duration(self, service, empire):
        assert isinstance(service.launch_mission(empire, MissionKind.PATROL, {"wall": 1}, 0.0, 0.0), str)

    def test_pvp_needs_known_target(self, service, empire):
        assert isinstance(service.launch_mission(empire, MissionKind.PVP, {"wall": 1}, 0.0, 60.0), str)
        assert isinstance(
            service.launch_mission(empire, MissionKind.PVP, {"wall": 1}, 0.0, 60.0, target_id="r9"), str)

    def test_pvp_stamps_target_and_attack_number(self, service, empire):
        first = service.launch_mission(empire, MissionKind.PVP, {"wall": 1}, 0.0, 60.0, target_id="r1")
        second = service.launch_mission(empire, MissionKind.PVP, {"wall": 1}, 10.0, 60.0, target_id="r1")

        assert first.target_name == "Red"
        assert first.target_score == 1000.0
        assert first.attack_number == 1
        assert second.attack_number == 2

    def test_attack_limit_per_period(self, service, empire):
        for i in range(3):
            service.launch_mission(empire, MissionKind.PVP, {"wall": 1}, float(i), 60.0, target_id="r1")

        blocked = service.launch_mission(empire, MissionKind.PVP, {"wall": 1}, 10.0, 60.0, target_id="r1")
        assert isinstance(blocked, str)
        assert empire.garrison["wall"] == 7

        next_day = service.launch_mission(empire, MissionKind.PVP, {"wall": 1}, 86_400.0, 60.0,
                                          target_id="r1")
        assert next_day.attack_number == 1

    def test_war_attack_needs_active_war(self, service, empire):
        result = service.launch_mission(empire, MissionKind.PVP, {"wall": 1}, 0.0, 60.0,
                                        target_id="r1", is_war_attack=True)
        assert isinstance(result, str)

    def test_war_attack_skips_attack_count(self, service, empire):
        empire.active_war = WarState(war_id="w1", enemy_id="r1", start_time=0.0, end_time=1000.0)
        mission = service.launch_mission(empire, MissionKind.PVP, {"wall": 1}, 10.0, 60.0,
                                         target_id="r1", is_war_attack=True)
        assert mission.is_war_attack is True
        assert empire.target_attack_counts == {}

    def test_locked_campaign_level(self, service, empire):
        assert isinstance(
            service.launch_mission(empire, MissionKind.CAMPAIGN, {"wall": 1}, 0.0, 60.0, level_id=2), str)
        assert isinstance(
            service.launch_mission(empire, MissionKind.CAMPAIGN, {"wall": 1}, 0.0, 60.0, level_id=1),
            OutgoingMission)


class TestScheduleIncoming:

    def test_queues_attack(self, service, empire):
        attack = _incoming("a1", {"grunt": 3, "wall": 0}, 0.0, 100.0)
        assert service.schedule_incoming(empire, attack) is attack
        assert attack.roster == {"grunt": 3}
        assert empire.incoming == [attack]

    def test_rejects_malformed_attack(self, service, empire):
        assert isinstance(service.schedule_incoming(empire, _incoming("a1", {}, 0.0, 100.0)), str)
        assert isinstance(service.schedule_incoming(empire, _incoming("a2", {"grunt": 1}, 100.0, 50.0)), str)
        assert empire.incoming == []


class TestSanitizePending:

    def test_drops_malformed_records(self, service, empire):
        empire.missions = [
            _campaign_mission("ok", {"wall": 1}, 0.0, 10.0),
            _campaign_mission("backwards", {"wall": 1}, 10.0, 0.0),
            _campaign_mission("negative", {"wall": -1}, 0.0, 10.0),
        ]
        empire.incoming = [_incoming("junk", {"grunt": "many"}, 0.0, 10.0)]

        assert service.sanitize_pending(empire) == 3
        assert [m.mission_id for m in empire.missions] == ["ok"]
        assert empire.incoming == []


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


class TestReconcileOrdering:

    def test_attack_lands_before_mission_returns(self, service, empire):
        # Five walls are away until t=2000; the t=1000 attack only meets the grunts.
        empire.garrison = {"grunt": 2}
        empire.missions = [_campaign_mission("m1", {"wall": 5}, 0.0, 2000.0)]
        empire.incoming = [_incoming("a1", {"wall": 3}, 500.0, 1000.0)]

        result = service.reconcile(empire, 3000.0, random.Random(1))

        assert [r.item_id for r in result.results] == ["a1", "m1"]
        assert [e.timestamp for e in result.logs] == [1000.0, 2000.0]
        attack = result.results[0]
        assert attack.kind is QueueItemKind.INCOMING
        assert attack.battle.initial_b == {"grunt": 2}
        assert result.logs[0].key == msg.LOG_DEFENSE_LOSS
        assert result.state.garrison == {"grunt": 0, "wall": 5}
        assert result.state.resources["money"] == 500.0

    def test_ties_go_to_earlier_start(self, service, empire):
        empire.incoming = [
            _incoming("late", {"grunt": 1}, 900.0, 1000.0),
            _incoming("early", {"grunt": 1}, 100.0, 1000.0),
        ]
        result = service.reconcile(empire, 1000.0, random.Random(1))
        assert [r.item_id for r in result.results] == ["early", "late"]

    def test_second_attack_fights_first_survivors(self, service, empire):
        empire.garrison = {"grunt": 2}
        empire.incoming = [
            _incoming("a1", {"wall": 3}, 0.0, 100.0),
            _incoming("a2", {"grunt": 1}, 0.0, 200.0),
        ]

        result = service.reconcile(empire, 300.0, random.Random(1))

        first, second = (r.battle for r in result.results)
        assert second.initial_b == first.final_b
        assert result.logs[1].key == msg.LOG_DEFENSE_LOSS

    def test_future_items_stay_pending(self, service, empire):
        empire.missions = [_campaign_mission("m1", {"wall": 1}, 0.0, 5000.0)]
        result = service.reconcile(empire, 3000.0, random.Random(1))
        assert result.results == []
        assert [m.mission_id for m in result.state.missions] == ["m1"]
        assert result.state.last_processed_attack_time == 3000.0


class TestReconcileState:

    def test_input_is_not_modified(self, service, empire):
        empire.missions = [_campaign_mission("m1", {"wall": 3}, 0.0, 100.0)]
        service.reconcile(empire, 200.0, random.Random(1))
        assert len(empire.missions) == 1
        assert empire.resources["money"] == 0.0

    def test_second_pass_is_a_no_op(self, service, empire):
        empire.missions = [_campaign_mission("m1", {"wall": 3}, 0.0, 100.0)]
        empire.incoming = [_incoming("a1", {"grunt": 1}, 0.0, 150.0)]

        first = service.reconcile(empire, 200.0, random.Random(1))
        second = service.reconcile(first.state, 200.0, random.Random(2))

        assert second.results == []
        assert second.logs == []
        assert second.state.garrison == first.state.garrison
        assert second.state.resources == first.state.resources

    def test_each_item_yields_one_log_entry(self, service, empire):
        empire.missions = [_campaign_mission("m1", {"wall": 3}, 0.0, 100.0)]
        empire.incoming = [_incoming("a1", {"grunt": 1}, 0.0, 150.0)]

        result = service.reconcile(empire, 200.0, random.Random(1))

        assert len(result.logs) == len(result.results) == 2
        assert result.state.missions == []
        assert result.state.incoming == []

    def test_uncopyable_state_raises(self, service, empire):
        empire.logs.append(LogEntry(entry_id="x", key="k", timestamp=0.0,
                                    params={"lock": threading.Lock()}))
        with pytest.raises(ReconciliationError):
            service.reconcile(empire, 0.0)

    def test_private_copy_is_updated_in_place(self, service, empire):
        empire.missions = [_campaign_mission("m1", {"wall": 3}, 0.0, 100.0)]

        result = service.reconcile(empire, 200.0, random.Random(1), copy_state=False)

        assert result.state is empire
        assert empire.missions == []
        assert empire.resources["money"] == 500.0
        assert empire.last_processed_attack_time == 200.0

    def test_spy_report_with_unknown_units_falls_back_to_generation(self, service, empire):
        service.launch_mission(empire, MissionKind.PVP, {"grunt": 5}, 0.0, 60.0, target_id="r1")
        empire.spy_reports["r1"] = SpyReport("r1", {"ghost": 3}, created_at=0.0)

        result = service.reconcile(empire, 100.0, random.Random(1))

        outcome = result.results[0]
        assert outcome.failed is False
        assert outcome.log_key in (msg.LOG_BATTLE_WIN, msg.LOG_BATTLE_LOSS, msg.LOG_WIPEOUT)
        assert "ghost" not in outcome.battle.initial_b
        assert result.state.missions == []


class TestReconcileEffects:

    @pytest.fixture
    def resolver(self):
        return MagicMock()

    @pytest.fixture
    def mocked(self, resolver, gc):
        return AttackService(resolver, gc)

    def test_failed_item_is_dropped_and_logged(self, mocked, resolver, empire):
        resolver.resolve_incoming.side_effect = RuntimeError("boom")
        resolver.resolve_outgoing.return_value = OutgoingOutcome(
            roster_delta={"wall": 2}, log_key=msg.LOG_PATROL_NOTHING)
        empire.incoming = [_incoming("a1", {"grunt": 1}, 0.0, 100.0)]
        empire.missions = [_campaign_mission("m1", {"wall": 2}, 0.0, 200.0)]

        result = mocked.reconcile(empire, 300.0)

        failed, ok = result.results
        assert failed.failed is True
        assert failed.log_key == msg.LOG_RESOLUTION_FAILED
        assert ok.failed is False
        assert result.state.incoming == []
        assert result.state.garrison["wall"] == 12

    def test_failed_mission_returns_its_units(self, mocked, resolver, empire):
        resolver.resolve_outgoing.side_effect = RuntimeError("boom")
        mission = mocked.launch_mission(empire, MissionKind.PVP, {"grunt": 5}, 0.0, 60.0,
                                        target_id="r1")
        assert empire.garrison["grunt"] == 0

        result = mocked.reconcile(empire, 100.0)

        assert result.results[0].failed is True
        assert result.state.garrison["grunt"] == 5
        assert result.state.missions == []
        entry = result.logs[0]
        assert entry.key == msg.LOG_RESOLUTION_FAILED
        assert entry.params == {"item_id": mission.mission_id, "returned": {"grunt": 5}}

    def test_campaign_progress_never_regresses(self, mocked, resolver, empire):
        empire.campaign_progress = 5
        resolver.resolve_outgoing.return_value = OutgoingOutcome(
            roster_delta={}, log_key=msg.LOG_CAMPAIGN_WIN,
            side_effects=SideEffects(campaign_progress=3))
        empire.missions = [_campaign_mission("m1", {"wall": 1}, 0.0, 100.0)]

        result = mocked.reconcile(empire, 100.0)

        assert result.state.campaign_progress == 5

    def test_reputation_is_clamped(self, mocked, resolver, empire):
        empire.rivals["r1"].reputation = 10.0
        resolver.resolve_outgoing.return_value = OutgoingOutcome(
            roster_delta={}, log_key=msg.LOG_BATTLE_WIN,
            side_effects=SideEffects(reputation={"r1": -15.0}))
        empire.missions = [_campaign_mission("m1", {"wall": 1}, 0.0, 100.0)]

        result = mocked.reconcile(empire, 100.0)

        assert result.state.rivals["r1"].reputation == 0.0
