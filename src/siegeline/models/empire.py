"""Empire model - a player's complete game state.

An Empire holds resources, garrison, buildings, pending missions and
incoming attacks, rival relations, and the log stream.  Reconciliation
consumes and produces this aggregate; persistence is the caller's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from siegeline.models.attack import IncomingAttack, OutgoingMission
from siegeline.models.messages import LogEntry
from siegeline.models.rival import Grudge, Rival, SpyReport, WarState
from siegeline.models.units import Roster


@dataclass
class Empire:
    """Complete state of a player's empire.

    Attributes:
        name: Empire display name.
        resources: Current resource amounts {key: amount}.
        max_resources: Storage caps {key: amount}.
        garrison: Units at home defending the base.
        buildings: Building type → level / quantity.
        tech_levels: Researched technology levels.
        missions: Outgoing missions still in flight.
        incoming: Hostile attacks still travelling.
        campaign_progress: Next campaign level to beat.
        target_attack_counts: Attacks launched per rival in the current period.
        attack_counts_reset_at: Start of the current attack-count period.
        rivals: Known rivals by ID.
        grudges: Rivals' pending retaliations.
        spy_reports: Reconnaissance snapshots by rival ID.
        active_war: Ongoing war, if any.
        logs: Live log stream, newest last.
        last_save_time: When the state was last persisted.
        last_processed_attack_time: When reconciliation last ran.
    """

    name: str = ""

    resources: dict[str, float] = field(default_factory=dict)
    max_resources: dict[str, float] = field(default_factory=dict)
    garrison: Roster = field(default_factory=dict)
    buildings: dict[str, int] = field(default_factory=dict)
    tech_levels: dict[str, int] = field(default_factory=dict)

    missions: list[OutgoingMission] = field(default_factory=list)
    incoming: list[IncomingAttack] = field(default_factory=list)

    campaign_progress: int = 1
    target_attack_counts: dict[str, int] = field(default_factory=dict)
    attack_counts_reset_at: float = 0.0

    rivals: dict[str, Rival] = field(default_factory=dict)
    grudges: list[Grudge] = field(default_factory=list)
    spy_reports: dict[str, SpyReport] = field(default_factory=dict)
    active_war: Optional[WarState] = None

    logs: list[LogEntry] = field(default_factory=list)
    last_save_time: float = 0.0
    last_processed_attack_time: float = 0.0

    # -- Helpers ---------------------------------------------------------

    def add_units(self, roster: Roster) -> None:
        """Merge a roster into the garrison."""
        for unit_id, count in roster.items():
            self.garrison[unit_id] = max(0, self.garrison.get(unit_id, 0) + count)

    def add_resources(self, delta: dict[str, float]) -> None:
        """Add a resource delta without clamping to storage."""
        for key, amount in delta.items():
            self.resources[key] = max(0.0, self.resources.get(key, 0.0) + amount)

    def add_buildings(self, delta: dict[str, int]) -> None:
        for key, amount in delta.items():
            self.buildings[key] = max(0, self.buildings.get(key, 0) + amount)
