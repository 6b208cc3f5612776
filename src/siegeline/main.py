"""Game server entry point.

Initializes all components and starts the asyncio event loop:
1. Load configuration (game config, units, campaign levels)
2. Restore the saved empire (or found a new one)
3. Create engine services (battle, forces, resolver, attack queue, offline)
4. Catch up on everything that happened while the server was down
5. Start the REST API
6. Start game loop (1s tick)

Usage:
    python -m siegeline.main
    # or via entry point:
    siegeline
"""

from __future__ import annotations

import asyncio
import logging
import os
import random
import signal
import sys
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import uvicorn

from siegeline.engine.attack_service import AttackService, ReconciliationError
from siegeline.engine.battle_service import BattleService
from siegeline.engine.empire_service import EmpireService
from siegeline.engine.force_generator import ForceGenerator
from siegeline.engine.game_loop import GameLoop
from siegeline.engine.mission_resolver import MissionResolver
from siegeline.engine.offline_service import OfflineReport, OfflineService
from siegeline.engine.retaliation import RetaliationService
from siegeline.loaders.campaign_loader import CampaignLevel, load_campaign
from siegeline.loaders.game_config_loader import GameConfig, load_game_config
from siegeline.loaders.unit_loader import load_units
from siegeline.models.empire import Empire
from siegeline.models.units import UnitCatalog
from siegeline.persistence.state_load import load_state
from siegeline.persistence.state_save import DEFAULT_STATE_PATH, save_state

log = logging.getLogger(__name__)

DEFAULT_EMPIRE_NAME = "Siegeline"

# ---------------------------------------------------------------------------
# Container for all loaded configuration
# ---------------------------------------------------------------------------


@dataclass
class Configuration:
    """Holds all data loaded from config files."""

    catalog: UnitCatalog = field(default_factory=lambda: UnitCatalog([]))
    campaign: dict[int, CampaignLevel] = field(default_factory=dict)
    game: GameConfig = field(default_factory=GameConfig)


# ---------------------------------------------------------------------------
# Container for all services (makes passing around easier)
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Holds references to all engine services."""

    game_config: Optional[GameConfig] = None
    battle_service: Optional[BattleService] = None
    force_generator: Optional[ForceGenerator] = None
    resolver: Optional[MissionResolver] = None
    attack_service: Optional[AttackService] = None
    empire_service: Optional[EmpireService] = None
    retaliation: Optional[RetaliationService] = None
    offline_service: Optional[OfflineService] = None
    game_loop: Optional[GameLoop] = None
    offline_report: Optional[OfflineReport] = None
    rest_server: Optional[uvicorn.Server] = None
    clock: Callable[[], float] = time.time


# ===================================================================
# 1. Load configuration
# ===================================================================


def load_configuration(config_dir: str = "config") -> Configuration:
    """Load game constants, the unit catalog and campaign levels.

    All loaders are synchronous (pure file I/O + parsing).
    """
    log.info("Loading configuration …")

    game_cfg = load_game_config(os.path.join(config_dir, "game.yaml"))
    log.info("  game_config:  loaded")

    units_path = os.path.join(config_dir, "units.yaml")
    catalog = load_units(units_path)
    log.info("  units:        %d loaded from %s", len(catalog), units_path)

    campaign_path = os.path.join(config_dir, "campaign.yaml")
    campaign = load_campaign(campaign_path)
    log.info("  campaign:     %d levels from %s", len(campaign), campaign_path)

    return Configuration(catalog=catalog, campaign=campaign, game=game_cfg)


# ===================================================================
# 2. Create engine services
# ===================================================================


def create_services(config: Configuration, clock: Callable[[], float] = time.time) -> Services:
    """Instantiate all engine services with proper dependency injection.

    The game loop is created later, once the starting empire is known.
    """
    log.info("Creating services …")

    gc = config.game
    battle_service = BattleService(config.catalog, gc.combat)
    force_generator = ForceGenerator(config.catalog, gc)
    resolver = MissionResolver(battle_service, force_generator, config.campaign, gc)
    attack_service = AttackService(resolver, gc)
    empire_service = EmpireService(gc)
    retaliation = RetaliationService(force_generator, gc)
    offline_service = OfflineService(empire_service, attack_service, retaliation, gc)

    log.info("  all services created")

    return Services(
        game_config=gc,
        battle_service=battle_service,
        force_generator=force_generator,
        resolver=resolver,
        attack_service=attack_service,
        empire_service=empire_service,
        retaliation=retaliation,
        offline_service=offline_service,
        clock=clock,
    )


# ===================================================================
# 3. Restore and catch up
# ===================================================================


async def restore_empire(services: Services, state_file: str, rng: random.Random) -> Empire:
    """Load the saved empire and reconcile everything that matured offline.

    A missing or unreadable state file founds a new empire instead. If
    the catch-up cannot run, the saved state is used unreconciled.
    """
    now = services.clock()
    restored = await load_state(path=state_file)
    if restored is None:
        log.info("  state:        no previous state found - fresh start")
        return services.empire_service.new_empire(DEFAULT_EMPIRE_NAME, now)

    try:
        empire, report = services.offline_service.catch_up(restored.empire, now, rng)
    except ReconciliationError:
        log.exception("[STATE] catch-up failed; continuing with the saved state as loaded")
        return restored.empire
    services.offline_report = report
    log.info("  state:        caught up %.0fs (%d items, %d log entries)",
             report.elapsed_seconds, len(report.results), len(report.logs))
    return empire


# ===================================================================
# 4. Start network server
# ===================================================================


async def start_network(services: Services) -> None:
    """Start the REST API via uvicorn as a background task."""
    from siegeline.network.rest_api import create_app

    log.info("Starting REST API …")
    rest_app = create_app(services)
    rest_port = services.game_config.rest_port if services.game_config else 8080
    config = uvicorn.Config(
        rest_app,
        host="0.0.0.0",
        port=rest_port,
        log_level="info",
        access_log=False,
    )
    services.rest_server = uvicorn.Server(config)
    asyncio.create_task(services.rest_server.serve())
    log.info("  REST API listening on http://0.0.0.0:%d", rest_port)


# ===================================================================
# 5. Start game loop
# ===================================================================


async def start_game_loop(services: Services, state_file: str) -> None:
    """Run the game loop until a shutdown signal arrives, then save."""
    log.info("Starting game loop …")
    loop = asyncio.get_running_loop()

    def _request_shutdown() -> None:
        log.info("Shutdown signal received - stopping …")
        services.game_loop.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _request_shutdown)

    log.info("  game loop running (%d ms tick)", services.game_config.step_length_ms)
    await services.game_loop.run()

    # --- Cleanup after loop exits ---
    log.info("Shutting down …")
    empire = services.game_loop.empire
    empire.last_save_time = services.clock()
    try:
        await save_state(empire, path=state_file)
    except Exception:
        log.exception("State save failed - continuing shutdown")

    if services.rest_server is not None:
        services.rest_server.should_exit = True
        log.info("  REST API server stopped")
    log.info("  goodbye")


# ===================================================================
# Entry points
# ===================================================================


async def _start(config_dir: str = "config", state_file: str = DEFAULT_STATE_PATH) -> None:
    """Initialize and run all server components."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    log.info("=== Siegeline starting ===")

    config = load_configuration(config_dir=config_dir)
    services = create_services(config)

    rng = random.Random()
    empire = await restore_empire(services, state_file, rng)
    if services.offline_report is not None:
        # Persist the caught-up state before going live
        await save_state(empire, path=state_file)

    services.game_loop = GameLoop(services.offline_service, empire, services.game_config,
                                  rng=rng, clock=services.clock)

    await start_network(services)
    await start_game_loop(services, state_file)


def _arg_value(argv: list[str], flag: str, default: str) -> str:
    if flag not in argv:
        return default
    idx = argv.index(flag)
    if idx + 1 >= len(argv):
        print(f"Error: {flag} requires an argument", file=sys.stderr)
        sys.exit(1)
    return argv[idx + 1]


def run() -> None:
    """Entry point for the game server.

    Supports command-line arguments:
        --state_file <path>  Use custom state file (default: state.yaml)
        --config_dir <path>  Use custom config directory (default: config)
    """
    state_file = _arg_value(sys.argv, "--state_file", DEFAULT_STATE_PATH)
    config_dir = _arg_value(sys.argv, "--config_dir", "config")
    asyncio.run(_start(config_dir=config_dir, state_file=state_file))


if __name__ == "__main__":
    run()
