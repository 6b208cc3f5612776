"""Campaign loader - parses campaign.yaml.

Loads the scripted campaign levels: a fixed opposing roster and a fixed
reward per level id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from siegeline.models.units import Roster, clean_roster

DEFAULT_CAMPAIGN_PATH = "config/campaign.yaml"


@dataclass(frozen=True)
class CampaignLevel:
    """One scripted encounter."""

    level_id: int
    name: str = ""
    difficulty: str = ""
    enemy: Roster = field(default_factory=dict)
    reward: dict[str, float] = field(default_factory=dict)


def load_campaign(path: str | Path = DEFAULT_CAMPAIGN_PATH) -> dict[int, CampaignLevel]:
    """Load campaign level definitions keyed by level id.

    Args:
        path: Path to the campaign YAML file.

    Returns:
        Dict level id → CampaignLevel (empty if the file is missing).
    """
    path = Path(path)
    if not path.exists():
        return {}
    with path.open() as f:
        data = yaml.safe_load(f) or {}

    levels: dict[int, CampaignLevel] = {}
    for entry in data.get("levels") or []:
        level = CampaignLevel(
            level_id=int(entry["id"]),
            name=entry.get("name", ""),
            difficulty=entry.get("difficulty", ""),
            enemy=clean_roster(entry.get("enemy")),
            reward={k: float(v) for k, v in (entry.get("reward") or {}).items()},
        )
        levels[level.level_id] = level
    return levels
