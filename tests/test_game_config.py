"""Tests for the YAML loaders - game config, unit catalog and campaign levels."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from siegeline.loaders.campaign_loader import load_campaign
from siegeline.loaders.game_config_loader import CombatConfig, GameConfig, load_game_config
from siegeline.loaders.unit_loader import load_units
from siegeline.models.units import UnknownUnitError

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


class TestConfigFiles:
    """The shipped config directory must load cleanly."""

    @pytest.mark.parametrize("name", ["game.yaml", "units.yaml", "campaign.yaml"])
    def test_file_exists(self, name):
        assert (CONFIG_DIR / name).exists(), f"Missing config file: {name}"

    def test_shipped_game_config(self, game_config):
        assert game_config.combat.max_rounds == 6
        assert game_config.plunder_rates == [0.33, 0.25, 0.15]
        assert game_config.building_output["house"] == {"money": 5.0}

    def test_shipped_units(self, real_catalog):
        assert len(real_catalog) == 15
        soldier = real_catalog.get("soldier")
        assert soldier.hp == 40
        assert soldier.attack == 15
        assert soldier.shield == 5
        assert soldier.roles == ("mass",)

    def test_rapid_fire_targets_are_known_units(self, real_catalog):
        for unit in real_catalog:
            for target in unit.rapid_fire:
                assert target in real_catalog, f"{unit.unit_id} rapid fire on unknown {target}"

    def test_shipped_campaign(self, real_catalog):
        levels = load_campaign(CONFIG_DIR / "campaign.yaml")
        assert sorted(levels) == [1, 2, 3, 4, 5, 6]
        assert levels[1].enemy == {"soldier": 10}
        for level in levels.values():
            for unit_id in level.enemy:
                assert unit_id in real_catalog


class TestGameConfigLoader:

    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = load_game_config(str(tmp_path / "nope.yaml"))
        assert cfg == GameConfig()

    def test_overrides_and_unknown_keys(self, tmp_path):
        path = tmp_path / "game.yaml"
        path.write_text(textwrap.dedent("""\
            max_attacks_per_target: 5
            recon_expiry_seconds: 60
            not_a_setting: true
            combat:
              max_rounds: 3
              bogus: 1
        """))

        cfg = load_game_config(str(path))

        assert cfg.max_attacks_per_target == 5
        assert cfg.recon_expiry_seconds == 60
        assert cfg.combat == CombatConfig(max_rounds=3)
        assert not hasattr(cfg, "not_a_setting")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "game.yaml"
        path.write_text("")
        assert load_game_config(str(path)) == GameConfig()


class TestUnitLoader:

    def test_parses_minimal_entry(self, tmp_path):
        path = tmp_path / "units.yaml"
        path.write_text("scout: {hp: 10}\n")

        catalog = load_units(path)

        scout = catalog.get("scout")
        assert scout.attack == 0
        assert scout.rapid_fire == {}
        assert scout.tier == 0

    def test_rejects_non_positive_hp(self, tmp_path):
        path = tmp_path / "units.yaml"
        path.write_text("ghost: {hp: 0, attack: 5}\n")
        with pytest.raises(ValueError):
            load_units(path)

    def test_rejects_non_mapping(self, tmp_path):
        path = tmp_path / "units.yaml"
        path.write_text("ghost: 12\n")
        with pytest.raises(ValueError):
            load_units(path)

    @pytest.mark.parametrize("chance", ["1.0", "1.5", "-0.1"])
    def test_rejects_rapid_fire_outside_unit_interval(self, tmp_path, chance):
        path = tmp_path / "units.yaml"
        path.write_text(f"pea: {{hp: 1, attack: 1, rapid_fire: {{fort: {chance}}}}}\n"
                        "fort: {hp: 10, shield: 1000}\n")
        with pytest.raises(ValueError, match="rapid_fire"):
            load_units(path)

    def test_accepts_rapid_fire_below_one(self, tmp_path):
        path = tmp_path / "units.yaml"
        path.write_text("pea: {hp: 1, attack: 1, rapid_fire: {fort: 0.99}}\n")
        assert load_units(path).get("pea").rapid_fire == {"fort": 0.99}

    def test_unknown_lookup(self, real_catalog):
        with pytest.raises(UnknownUnitError):
            real_catalog.get("dragon")


class TestCampaignLoader:

    def test_missing_file(self, tmp_path):
        assert load_campaign(tmp_path / "campaign.yaml") == {}

    def test_negative_enemy_counts_are_floored(self, tmp_path):
        path = tmp_path / "campaign.yaml"
        path.write_text("levels:\n  - {id: 1, enemy: {soldier: -3}, reward: {money: 10}}\n")
        levels = load_campaign(path)
        assert levels[1].enemy == {"soldier": 0}
        assert levels[1].reward == {"money": 10.0}
