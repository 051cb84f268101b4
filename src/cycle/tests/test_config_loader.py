"""Tests for cycle_config.yaml loading, validation and hot reload."""

from __future__ import annotations

import textwrap
from collections.abc import Iterator
from pathlib import Path

import pytest

from src.cycle import config_loader
from src.cycle.config_loader import (
    ConfigValidationError,
    CycleConfig,
    _validate_and_build,
    get_cycle_config,
    load_cycle_config,
    reload_cycle_config,
)


@pytest.fixture
def restore_singleton() -> Iterator[None]:
    previous = config_loader._config
    yield
    config_loader._config = previous


class TestConfigLoading:
    def test_load_default_config(self, cycle_config: CycleConfig) -> None:
        assert cycle_config.version == "1.0"
        assert cycle_config.cycle.default_days == 28
        assert cycle_config.cycle.min_days == 21
        assert cycle_config.cycle.max_days == 45
        assert cycle_config.period.default_length_days == 5
        assert cycle_config.ovulation.luteal_phase_days == 14

    def test_fertile_window_offsets(self, cycle_config: CycleConfig) -> None:
        assert cycle_config.fertile_window.days_before == 5
        assert cycle_config.fertile_window.days_after == 1

    def test_symptom_list(self, cycle_config: CycleConfig) -> None:
        assert "Cramps" in cycle_config.period.symptoms
        assert cycle_config.is_known_symptom(" bloating ")
        assert not cycle_config.is_known_symptom("Sneezing")

    def test_empty_yaml_uses_defaults(self) -> None:
        config = _validate_and_build({})
        assert config.cycle.default_days == 28
        assert config.period.symptoms == []
        assert config.calendar_window_days == 14
        assert config.cycle.history_limit == 12


class TestConfigValidation:
    def test_min_above_max_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="min_days"):
            _validate_and_build({"cycle_length": {"min_days": 40, "max_days": 30}})

    def test_non_integer_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="must be an integer"):
            _validate_and_build({"period": {"default_length_days": "five"}})

    def test_luteal_phase_must_fit_shortest_cycle(self) -> None:
        with pytest.raises(ConfigValidationError, match="luteal_phase_days"):
            _validate_and_build({"ovulation": {"luteal_phase_days": 22}})

    def test_all_errors_reported_together(self) -> None:
        raw = {
            "cycle_length": {"default_days": 60},
            "fertile_window": {"days_before_ovulation": -1},
        }
        with pytest.raises(ConfigValidationError, match="2 validation error"):
            _validate_and_build(raw)

    def test_section_must_be_mapping(self) -> None:
        with pytest.raises(ConfigValidationError, match="'period' must be a mapping"):
            _validate_and_build({"period": ["Cramps"]})


class TestLoadFromDisk:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_cycle_config(tmp_path / "nope.yaml")

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("cycle_length: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="YAML parse error"):
            load_cycle_config(path)

    def test_reload_replaces_singleton(self, tmp_path: Path, restore_singleton: None) -> None:
        path = tmp_path / "cycle.yaml"
        path.write_text(
            textwrap.dedent(
                """
                version: "2.0"
                cycle_length:
                  default_days: 30
                """
            ),
            encoding="utf-8",
        )
        reloaded = reload_cycle_config(path)
        assert reloaded.version == "2.0"
        assert get_cycle_config() is reloaded
        assert get_cycle_config().cycle.default_days == 30

    def test_invalid_reload_keeps_current(self, tmp_path: Path, restore_singleton: None) -> None:
        current = get_cycle_config()
        path = tmp_path / "cycle.yaml"
        path.write_text("cycle_length:\n  min_days: 50\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError):
            reload_cycle_config(path)
        assert get_cycle_config() is current
