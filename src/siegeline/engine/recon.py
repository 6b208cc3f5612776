"""Reconnaissance cache - spy reports that expire after a fixed window."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from siegeline.models.rival import SpyReport
from siegeline.models.units import Roster, UnitCatalog

log = logging.getLogger(__name__)


class ReconCache:
    """Read-only view over an empire's spy reports.

    Args:
        reports: Spy reports keyed by target ID.
        expiry_seconds: How long a report stays valid.
        catalog: When given, reports naming a unit type outside the
            catalog are treated as unusable.
    """

    def __init__(self, reports: Mapping[str, SpyReport], expiry_seconds: float,
                 catalog: Optional[UnitCatalog] = None) -> None:
        self._reports = reports
        self._expiry = expiry_seconds
        self._catalog = catalog

    def lookup(self, target_id: Optional[str], now: float) -> Optional[Roster]:
        """Return a copy of the cached roster, or None if absent, expired or unusable."""
        if target_id is None:
            return None
        report = self._reports.get(target_id)
        if report is None or now - report.created_at > self._expiry:
            return None
        if self._catalog is not None:
            unknown = [u for u in report.roster if u not in self._catalog]
            if unknown:
                log.warning("Spy report on %s names unknown unit types %s; ignoring it",
                            target_id, unknown)
                return None
        return dict(report.roster)
