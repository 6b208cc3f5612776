"""Tests for the REST API.

Uses httpx AsyncClient with ASGI transport to exercise the endpoints
end-to-end without starting a real server.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from siegeline.engine.attack_service import AttackService
from siegeline.engine.battle_service import BattleService
from siegeline.engine.force_generator import ForceGenerator
from siegeline.engine.mission_resolver import MissionResolver
from siegeline.engine.offline_service import OfflineReport
from siegeline.loaders.game_config_loader import GameConfig
from siegeline.models import messages as msg
from siegeline.models.empire import Empire
from siegeline.models.messages import LogEntry
from siegeline.models.rival import Profile, Rival
from siegeline.network.rest_api import create_app


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

NOW = 10_000.0


def _make_empire() -> Empire:
    return Empire(
        name="TestEmpire",
        resources={"money": 500.0},
        max_resources={"money": 1e6},
        garrison={"wall": 5, "grunt": 10},
        rivals={"r1": Rival("r1", name="Red", score=1000.0, profile=Profile.WARLORD)},
        logs=[
            LogEntry(entry_id=f"e{i}", key=msg.LOG_PATROL_NOTHING, timestamp=float(i))
            for i in range(5)
        ],
    )


def _make_services(catalog) -> Any:
    gc = GameConfig()
    battle_service = BattleService(catalog, gc.combat)
    resolver = MissionResolver(battle_service, ForceGenerator(catalog, gc), {}, gc)

    svc = MagicMock()
    svc.game_config = gc
    svc.battle_service = battle_service
    svc.attack_service = AttackService(resolver, gc)
    svc.game_loop.empire = _make_empire()
    svc.offline_report = None
    svc.clock = lambda: NOW
    return svc


@pytest.fixture
def services(catalog):
    return _make_services(catalog)


@pytest.fixture
def client(services):
    app = create_app(services)
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


# ---------------------------------------------------------------------------
# Empire queries
# ---------------------------------------------------------------------------


class TestState:

    @pytest.mark.asyncio
    async def test_state_summary(self, client):
        async with client:
            resp = await client.get("/api/state")
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "TestEmpire"
        assert data["garrison"] == {"wall": 5, "grunt": 10}
        assert data["missions"] == []
        assert data["campaign_progress"] == 1

    @pytest.mark.asyncio
    async def test_logs_newest_first(self, client):
        async with client:
            resp = await client.get("/api/logs", params={"limit": 2})
        assert resp.status_code == 200
        assert [e["entry_id"] for e in resp.json()] == ["e4", "e3"]

    @pytest.mark.asyncio
    async def test_logs_limit_is_validated(self, client):
        async with client:
            resp = await client.get("/api/logs", params={"limit": 0})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_no_offline_report(self, client):
        async with client:
            resp = await client.get("/api/offline-report")
        assert resp.json() == {"available": False}

    @pytest.mark.asyncio
    async def test_offline_report(self, client, services):
        services.offline_report = OfflineReport(
            elapsed_seconds=7200.0, production_seconds=7200.0, resources_gained={"money": 720_000.0})
        async with client:
            resp = await client.get("/api/offline-report")
        data = resp.json()
        assert data["available"] is True
        assert data["production_seconds"] == 7200.0
        assert data["resources_gained"] == {"money": 720_000.0}
        assert data["results"] == []


# ---------------------------------------------------------------------------
# Battle simulator
# ---------------------------------------------------------------------------


class TestSimulate:

    @pytest.mark.asyncio
    async def test_simulate_battle(self, client):
        async with client:
            resp = await client.post("/api/battle/simulate", json={
                "roster_a": {"grunt": 1}, "roster_b": {"wall": 100}, "seed": 1,
            })
        data = resp.json()
        assert data["success"] is True
        assert data["result"]["winner"] == "B"
        assert data["result"]["casualties_b"] == {"wall": 0}

    @pytest.mark.asyncio
    async def test_seed_replays_the_same_battle(self, client):
        body = {"roster_a": {"grunt": 20}, "roster_b": {"wall": 2}, "seed": 42}
        async with client:
            first = await client.post("/api/battle/simulate", json=body)
            second = await client.post("/api/battle/simulate", json=body)
        assert first.json() == second.json()

    @pytest.mark.asyncio
    async def test_unknown_unit(self, client):
        async with client:
            resp = await client.post("/api/battle/simulate", json={
                "roster_a": {"dragon": 1}, "roster_b": {"wall": 1},
            })
        data = resp.json()
        assert data["success"] is False
        assert "dragon" in data["error"]


# ---------------------------------------------------------------------------
# Missions
# ---------------------------------------------------------------------------


class TestLaunchMission:

    @pytest.mark.asyncio
    async def test_launch_patrol(self, client, services):
        async with client:
            resp = await client.post("/api/missions", json={
                "kind": "patrol", "roster": {"wall": 2}, "duration_seconds": 600,
            })
        data = resp.json()
        assert data["success"] is True
        assert data["end_time"] == NOW + 600
        empire = services.game_loop.empire
        assert empire.garrison["wall"] == 3
        assert [m.mission_id for m in empire.missions] == [data["mission_id"]]

    @pytest.mark.asyncio
    async def test_launch_pvp_attack(self, client, services):
        async with client:
            resp = await client.post("/api/missions", json={
                "kind": "pvp", "roster": {"grunt": 3}, "duration_seconds": 900, "target_id": "r1",
            })
        assert resp.json()["success"] is True
        assert services.game_loop.empire.target_attack_counts == {"r1": 1}

    @pytest.mark.asyncio
    async def test_launch_rejected(self, client, services):
        async with client:
            resp = await client.post("/api/missions", json={
                "kind": "patrol", "roster": {"wall": 50}, "duration_seconds": 600,
            })
        data = resp.json()
        assert data["success"] is False
        assert "wall" in data["error"]
        assert services.game_loop.empire.garrison["wall"] == 5

    @pytest.mark.asyncio
    async def test_unknown_kind(self, client):
        async with client:
            resp = await client.post("/api/missions", json={
                "kind": "teleport", "roster": {"wall": 1}, "duration_seconds": 600,
            })
        assert resp.json()["success"] is False

    @pytest.mark.asyncio
    async def test_duration_must_be_positive(self, client):
        async with client:
            resp = await client.post("/api/missions", json={
                "kind": "patrol", "roster": {"wall": 1}, "duration_seconds": 0,
            })
        assert resp.status_code == 422
