"""Offline service - catch-up after an absence and the per-tick advance.

Order of a catch-up pass:
1. sanitize pending records (on a private copy)
2. production for the elapsed time (capped, skipped for short gaps)
3. retaliation: matured grudges become incoming attacks
4. reconciliation of every matured mission and attack
5. storage clamp, log stream append, timestamps

The returned state replaces the caller's; nothing is persisted here.
"""

from __future__ import annotations

import copy
import logging
import random
from dataclasses import dataclass, field
from typing import Optional

from siegeline.engine.attack_service import AttackService, QueuedAttackResult, ReconciliationError
from siegeline.engine.empire_service import EmpireService
from siegeline.engine.retaliation import RetaliationService
from siegeline.loaders.game_config_loader import GameConfig
from siegeline.models.empire import Empire
from siegeline.models.messages import LogEntry

log = logging.getLogger(__name__)


@dataclass
class OfflineReport:
    """Summary shown to a returning player.

    Attributes:
        elapsed_seconds: Wall-clock time since the last save.
        production_seconds: Time actually credited to production.
        resources_gained: Production per resource.
        results: Reconciled items in processing order.
        logs: Log entries of the pass, including retaliation notices.
    """

    elapsed_seconds: float = 0.0
    production_seconds: float = 0.0
    resources_gained: dict[str, float] = field(default_factory=dict)
    results: list[QueuedAttackResult] = field(default_factory=list)
    logs: list[LogEntry] = field(default_factory=list)


class OfflineService:
    """Drives production, retaliation and reconciliation for one empire.

    Args:
        empire_service: Production and storage.
        attack_service: Reconciliation.
        retaliation: Grudge processing.
        game_config: Offline limits and log stream size.
    """

    def __init__(
        self,
        empire_service: EmpireService,
        attack_service: AttackService,
        retaliation: RetaliationService,
        game_config: Optional[GameConfig] = None,
    ) -> None:
        self._empires = empire_service
        self._attacks = attack_service
        self._retaliation = retaliation
        self._gc = game_config or GameConfig()

    def catch_up(self, empire: Empire, now: float,
                 rng: Optional[random.Random] = None) -> tuple[Empire, OfflineReport]:
        """Bring an empire loaded from disk up to ``now``.

        Returns:
            (new state, report).  The input empire is not modified.
        """
        rng = rng or random.Random()
        elapsed = max(0.0, now - empire.last_save_time)
        report = OfflineReport(elapsed_seconds=elapsed)

        working = self._advance(empire, now, elapsed, report, rng)
        log.info("[OFFLINE] caught up %.0fs: %d items reconciled, %d log entries",
                 elapsed, len(report.results), len(report.logs))
        return working, report

    def tick(self, empire: Empire, now: float, dt: float,
             rng: Optional[random.Random] = None) -> tuple[Empire, OfflineReport]:
        """One online step of ``dt`` seconds (no offline limits apply)."""
        rng = rng or random.Random()
        report = OfflineReport(elapsed_seconds=dt)
        working = self._advance(empire, now, dt, report, rng, online=True)
        return working, report

    # -- Internals -------------------------------------------------------

    def _advance(self, empire: Empire, now: float, elapsed: float,
                 report: OfflineReport, rng: random.Random, online: bool = False) -> Empire:
        try:
            staged = copy.deepcopy(empire)
        except (TypeError, RecursionError, copy.Error) as exc:
            raise ReconciliationError(f"cannot copy state: {exc}") from exc

        dropped = self._attacks.sanitize_pending(staged)
        if dropped:
            log.warning("[OFFLINE] dropped %d malformed pending records", dropped)

        if online:
            production = elapsed
        elif elapsed < self._gc.offline_min_elapsed_seconds:
            production = 0.0
        else:
            production = min(elapsed, self._gc.offline_production_limit_seconds)
        report.production_seconds = production
        report.resources_gained = self._empires.step(staged, production)

        report.logs.extend(self._retaliation.process(staged, now, rng))

        result = self._attacks.reconcile(staged, now, rng, copy_state=False)
        working = result.state
        self._empires.clamp_to_storage(working)
        report.results = result.results
        report.logs.extend(result.logs)
        self._append_logs(working, report.logs)
        working.last_save_time = now
        return working

    def _append_logs(self, empire: Empire, entries: list[LogEntry]) -> None:
        empire.logs.extend(entries)
        overflow = len(empire.logs) - self._gc.max_log_entries
        if overflow > 0:
            del empire.logs[:overflow]
