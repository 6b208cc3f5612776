"""Main game loop - asyncio-based 1-second tick.

Responsibilities:
- Produce resources for the elapsed tick
- Launch matured retaliations
- Reconcile every mission and attack whose end time has passed
- Publish the new empire state and its log entries

Each tick replaces ``empire`` with the state returned by the offline
service; readers (the REST API) always see a completed pass.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import TYPE_CHECKING, Callable, Optional

from siegeline.engine.attack_service import ReconciliationError

if TYPE_CHECKING:
    from siegeline.engine.offline_service import OfflineService
    from siegeline.loaders.game_config_loader import GameConfig
    from siegeline.models.empire import Empire

log = logging.getLogger(__name__)


class GameLoop:
    """The central 1-second game tick loop.

    Args:
        offline_service: Advances the empire by one step.
        empire: Initial state (already caught up).
        game_config: Tick length.
        rng: Random source shared by every tick.
        clock: Wall clock returning seconds since the epoch.
    """

    def __init__(
        self,
        offline_service: OfflineService,
        empire: Empire,
        game_config: GameConfig | None = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._offline = offline_service
        self.empire = empire
        self._rng = rng or random.Random()
        self._clock = clock
        self._running = False
        self._step_interval = (game_config.step_length_ms / 1000.0) if game_config else 1.0

        # --- Monitoring counters ---
        self.tick_count: int = 0
        self.started_at: float = 0.0
        self.last_tick_duration_ms: float = 0.0

    async def run(self) -> None:
        """Start the game loop. Runs until stop() is called."""
        self._running = True
        self.started_at = time.monotonic()
        last = self.started_at
        while self._running:
            now = time.monotonic()
            dt = now - last
            last = now

            t0 = time.monotonic()
            self._step(dt)
            self.last_tick_duration_ms = (time.monotonic() - t0) * 1000
            self.tick_count += 1

            await asyncio.sleep(self._step_interval)

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """Signal the game loop to stop."""
        self._running = False

    def _step(self, dt: float) -> None:
        """One tick of the game loop."""
        try:
            self.empire, report = self._offline.tick(self.empire, self._clock(), dt, self._rng)
        except ReconciliationError:
            log.exception("Tick aborted; keeping previous state")
            return
        for entry in report.logs:
            log.info("[TICK] %s %s at %.0f", entry.category, entry.key, entry.timestamp)
