"""Load, validate, and hot-reload the HealthPath cycle configuration.

The config lives in ``cycle_config.yaml`` alongside this module.  It is loaded
once on first use and cached.  Call ``reload_cycle_config()`` to re-read it
from disk without restarting the service.

Usage::

    from src.cycle.config_loader import get_cycle_config

    config = get_cycle_config()
    config.cycle.default_days          # 28
    config.fertile_window.days_before  # 5
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("healthpath.cycle.config")

_CONFIG_PATH = Path(__file__).parent / "cycle_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class CycleLengthConfig:
    """Bounds and defaults for cycle length (start-to-start gap, in days)."""

    default_days: int = 28
    min_days: int = 21
    max_days: int = 45
    irregular_std_days: float = 7.0
    history_limit: int = 12


@dataclass
class PeriodConfig:
    """Bleeding-phase settings."""

    default_length_days: int = 5
    symptom_lookback_days: int = 7
    symptoms: list[str] = field(default_factory=list)


@dataclass
class OvulationConfig:
    luteal_phase_days: int = 14
    ovulatory_margin_days: int = 1


@dataclass
class FertileWindowConfig:
    """Fertile window offsets relative to the predicted ovulation day."""

    days_before: int = 5
    days_after: int = 1


@dataclass
class CycleConfig:
    """Complete, validated cycle configuration.

    Attributes:
        version:            Config schema version string.
        cycle:              Cycle length defaults and irregularity bounds.
        period:             Period length default and symptom lookback.
        ovulation:          Luteal phase length and ovulatory margin.
        fertile_window:     Window offsets around ovulation.
        calendar_window_days: Number of days shown by the two-week calendar strip.
    """

    version: str
    cycle: CycleLengthConfig
    period: PeriodConfig
    ovulation: OvulationConfig
    fertile_window: FertileWindowConfig
    calendar_window_days: int = 14
    _raw: dict = field(default_factory=dict, repr=False)

    def is_known_symptom(self, symptom: str) -> bool:
        """Return True if ``symptom`` is one of the configured period symptoms.

        Matching is case-insensitive so stored logs from older clients
        ("cramps" vs "Cramps") still count.
        """
        wanted = symptom.strip().casefold()
        return any(s.casefold() == wanted for s in self.period.symptoms)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when cycle_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Cycle config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> CycleConfig:
    """Validate the raw YAML dict and construct a CycleConfig.

    Missing keys fall back to the dataclass defaults.  Every problem found is
    collected so a single error lists all of them.

    Args:
        raw: Parsed YAML dict.

    Returns:
        Validated CycleConfig instance.

    Raises:
        ConfigValidationError: If any value is missing a sane type or range.
    """
    errors: list[str] = []

    def _int(section: dict, key: str, path: str, default: int, minimum: int = 1) -> int:
        value: Any = section.get(key, default)
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            errors.append(f"{path}.{key} must be an integer, got {value!r}")
            return default
        if parsed < minimum:
            errors.append(f"{path}.{key} = {parsed} must be >= {minimum}")
        return parsed

    def _section(key: str) -> dict:
        value = raw.get(key) or {}
        if not isinstance(value, dict):
            errors.append(f"'{key}' must be a mapping")
            return {}
        return value

    version = str(raw.get("version", "1.0"))

    # ── Cycle length ──
    cl_raw = _section("cycle_length")
    cycle = CycleLengthConfig(
        default_days=_int(cl_raw, "default_days", "cycle_length", 28),
        min_days=_int(cl_raw, "min_days", "cycle_length", 21),
        max_days=_int(cl_raw, "max_days", "cycle_length", 45),
        irregular_std_days=float(cl_raw.get("irregular_std_days", 7.0)),
        history_limit=_int(cl_raw, "history_limit", "cycle_length", 12, minimum=2),
    )
    if cycle.min_days >= cycle.max_days:
        errors.append(
            f"cycle_length.min_days ({cycle.min_days}) must be below "
            f"max_days ({cycle.max_days})"
        )
    if not (cycle.min_days <= cycle.default_days <= cycle.max_days):
        errors.append(
            f"cycle_length.default_days ({cycle.default_days}) must lie within "
            f"[{cycle.min_days}, {cycle.max_days}]"
        )

    # ── Period ──
    p_raw = _section("period")
    symptoms_raw = p_raw.get("symptoms", [])
    if not isinstance(symptoms_raw, list) or not all(isinstance(s, str) for s in symptoms_raw):
        errors.append("period.symptoms must be a list of strings")
        symptoms_raw = []
    period = PeriodConfig(
        default_length_days=_int(p_raw, "default_length_days", "period", 5),
        symptom_lookback_days=_int(p_raw, "symptom_lookback_days", "period", 7, minimum=0),
        symptoms=[s.strip() for s in symptoms_raw if s.strip()],
    )

    # ── Ovulation ──
    o_raw = _section("ovulation")
    ovulation = OvulationConfig(
        luteal_phase_days=_int(o_raw, "luteal_phase_days", "ovulation", 14),
        ovulatory_margin_days=_int(o_raw, "ovulatory_margin_days", "ovulation", 1, minimum=0),
    )
    if ovulation.luteal_phase_days >= cycle.min_days:
        errors.append(
            f"ovulation.luteal_phase_days ({ovulation.luteal_phase_days}) must be "
            f"shorter than cycle_length.min_days ({cycle.min_days})"
        )
    if period.default_length_days >= cycle.min_days:
        errors.append(
            f"period.default_length_days ({period.default_length_days}) must be "
            f"shorter than cycle_length.min_days ({cycle.min_days})"
        )

    # ── Fertile window ──
    fw_raw = _section("fertile_window")
    fertile_window = FertileWindowConfig(
        days_before=_int(fw_raw, "days_before_ovulation", "fertile_window", 5, minimum=0),
        days_after=_int(fw_raw, "days_after_ovulation", "fertile_window", 1, minimum=0),
    )

    cal_raw = _section("calendar")
    calendar_window_days = _int(cal_raw, "window_days", "calendar", 14)

    if errors:
        raise ConfigValidationError(
            f"cycle_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return CycleConfig(
        version=version,
        cycle=cycle,
        period=period,
        ovulation=ovulation,
        fertile_window=fertile_window,
        calendar_window_days=calendar_window_days,
        _raw=raw,
    )


def load_cycle_config(path: Path | None = None) -> CycleConfig:
    """Load and validate the cycle config from disk.

    Args:
        path: Override path to YAML. Uses the bundled cycle_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    config = _validate_and_build(_load_yaml(target))
    logger.info("Loaded cycle config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: CycleConfig | None = None
_config_lock = threading.Lock()


def get_cycle_config() -> CycleConfig:
    """Return the global CycleConfig, loading it on first call. Thread-safe."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = load_cycle_config()
    return _config


def reload_cycle_config(path: Path | None = None) -> CycleConfig:
    """Reload the cycle config from disk and replace the global singleton.

    The new file is validated before the swap, so a bad edit leaves the
    current config in place and re-raises.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_cycle_config(path)
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded cycle config: %s → %s", old_version, new_config.version)
    return new_config
