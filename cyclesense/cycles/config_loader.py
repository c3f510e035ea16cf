"""Load, validate, and hot-reload the CycleSense engine configuration.

The config lives in ``engine_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_engine_config()`` to re-read from
disk after an edit — no restart required.

Usage::

    from cyclesense.cycles.config_loader import get_engine_config

    config = get_engine_config()
    config.prediction.personal_weight       # 0.7
    config.population.column("age")         # "Age"
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("cyclesense.cycles.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "engine_config.yaml"

_DEFAULT_COLUMNS: dict[str, str] = {
    "subject_id": "ClientID",
    "cycle_length": "LengthofCycle",
    "ovulation_day": "EstimatedDayofOvulation",
    "menses_score": "TotalMensesScore",
    "fertility_days": "TotalDaysofFertility",
    "age": "Age",
}


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class PopulationConfig:
    """How the population training table is read and filtered."""

    columns: dict[str, str] = field(default_factory=lambda: dict(_DEFAULT_COLUMNS))
    cycle_length_bounds: tuple[int, int] = (0, 50)
    ovulation_day_bounds: tuple[int, int] = (0, 50)
    distribution_bin_width: int = 3
    cohort_width_years: int = 10

    def column(self, key: str) -> str:
        """Return the table header name for a logical column key."""
        return self.columns.get(key, _DEFAULT_COLUMNS[key])


@dataclass
class PredictionConfig:
    """Blending weights and thresholds for the next-cycle forecast."""

    default_cycle_length: int = 28
    default_confidence: float = 0.5
    base_confidence: float = 0.7
    max_confidence: float = 0.95
    cohort_min_count: int = 10
    personal_min_samples: int = 3
    personal_weight: float = 0.7
    personal_confidence_boost: float = 0.2
    luteal_phase_days: int = 14
    fertile_window_start_offset: int = 17
    fertile_window_end_offset: int = 11
    clamp_negative_offsets: bool = True
    seed_first_cycle_placeholder: bool = False


@dataclass
class InsightConfig:
    """Thresholds for personal-vs-population insights."""

    min_periods: int = 3
    cycle_length_deviation_days: float = 3.0
    irregularity_std_ratio: float = 1.5
    cohort_min_count: int = 10


@dataclass
class RegularityConfig:
    """Upper bounds (inclusive) on shortest-to-longest cycle range per tier."""

    very_regular_max_range: int = 2
    regular_max_range: int = 7
    somewhat_irregular_max_range: int = 14


@dataclass
class EngineConfig:
    """Complete, validated engine configuration.

    This is the single in-memory representation of engine_config.yaml.
    The population loader, predictor, insight generator and cycle analyzer
    all read from this object.
    """

    version: str = "1.0"
    population: PopulationConfig = field(default_factory=PopulationConfig)
    prediction: PredictionConfig = field(default_factory=PredictionConfig)
    insights: InsightConfig = field(default_factory=InsightConfig)
    regularity: RegularityConfig = field(default_factory=RegularityConfig)
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when engine_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Engine config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> EngineConfig:
    """Validate the raw YAML dict and construct an EngineConfig.

    Missing optional keys take the dataclass defaults.

    Raises:
        ConfigValidationError: If any value has the wrong type or range.
    """
    errors: list[str] = []

    def _number(section: dict, key: str, default: Any, cast: type, where: str) -> Any:
        value = section.get(key, default)
        try:
            return cast(value)
        except (TypeError, ValueError):
            errors.append(f"{where}.{key} must be a number, got {value!r}")
            return default

    def _fraction(section: dict, key: str, default: float, where: str) -> float:
        value = _number(section, key, default, float, where)
        if not (0.0 <= value <= 1.0):
            errors.append(f"{where}.{key} = {value} is out of range [0.0, 1.0]")
        return value

    def _bounds(section: dict, key: str, default: tuple[int, int], where: str) -> tuple[int, int]:
        value = section.get(key, list(default))
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            errors.append(f"{where}.{key} must be a two-item list [low, high]")
            return default
        try:
            low, high = int(value[0]), int(value[1])
        except (TypeError, ValueError):
            errors.append(f"{where}.{key} must contain integers, got {value!r}")
            return default
        if low >= high:
            errors.append(f"{where}.{key} low bound {low} must be below high bound {high}")
        return (low, high)

    version = str(raw.get("version", "1.0"))

    # ── Population ──
    pop_raw = raw.get("population") or {}
    columns_raw = pop_raw.get("columns") or {}
    if not isinstance(columns_raw, dict):
        errors.append("population.columns must be a mapping of key→header")
        columns_raw = {}
    unknown = set(columns_raw) - set(_DEFAULT_COLUMNS)
    for key in sorted(unknown):
        errors.append(f"population.columns.{key} is not a recognised column key")
    columns = dict(_DEFAULT_COLUMNS)
    columns.update({k: str(v) for k, v in columns_raw.items() if k in _DEFAULT_COLUMNS})

    population = PopulationConfig(
        columns=columns,
        cycle_length_bounds=_bounds(pop_raw, "cycle_length_bounds", (0, 50), "population"),
        ovulation_day_bounds=_bounds(pop_raw, "ovulation_day_bounds", (0, 50), "population"),
        distribution_bin_width=_number(pop_raw, "distribution_bin_width", 3, int, "population"),
        cohort_width_years=_number(pop_raw, "cohort_width_years", 10, int, "population"),
    )
    if population.distribution_bin_width < 1:
        errors.append("population.distribution_bin_width must be at least 1")
    if population.cohort_width_years < 1:
        errors.append("population.cohort_width_years must be at least 1")

    # ── Prediction ──
    pr_raw = raw.get("prediction") or {}
    prediction = PredictionConfig(
        default_cycle_length=_number(pr_raw, "default_cycle_length", 28, int, "prediction"),
        default_confidence=_fraction(pr_raw, "default_confidence", 0.5, "prediction"),
        base_confidence=_fraction(pr_raw, "base_confidence", 0.7, "prediction"),
        max_confidence=_fraction(pr_raw, "max_confidence", 0.95, "prediction"),
        cohort_min_count=_number(pr_raw, "cohort_min_count", 10, int, "prediction"),
        personal_min_samples=_number(pr_raw, "personal_min_samples", 3, int, "prediction"),
        personal_weight=_fraction(pr_raw, "personal_weight", 0.7, "prediction"),
        personal_confidence_boost=_fraction(
            pr_raw, "personal_confidence_boost", 0.2, "prediction"
        ),
        luteal_phase_days=_number(pr_raw, "luteal_phase_days", 14, int, "prediction"),
        fertile_window_start_offset=_number(
            pr_raw, "fertile_window_start_offset", 17, int, "prediction"
        ),
        fertile_window_end_offset=_number(
            pr_raw, "fertile_window_end_offset", 11, int, "prediction"
        ),
        clamp_negative_offsets=bool(pr_raw.get("clamp_negative_offsets", True)),
        seed_first_cycle_placeholder=bool(pr_raw.get("seed_first_cycle_placeholder", False)),
    )
    if prediction.fertile_window_start_offset < prediction.fertile_window_end_offset:
        errors.append(
            "prediction.fertile_window_start_offset must be >= fertile_window_end_offset "
            "(offsets are subtracted from the cycle length)"
        )
    if prediction.personal_min_samples < 1:
        errors.append("prediction.personal_min_samples must be at least 1")

    # ── Insights ──
    in_raw = raw.get("insights") or {}
    insights = InsightConfig(
        min_periods=_number(in_raw, "min_periods", 3, int, "insights"),
        cycle_length_deviation_days=_number(
            in_raw, "cycle_length_deviation_days", 3.0, float, "insights"
        ),
        irregularity_std_ratio=_number(in_raw, "irregularity_std_ratio", 1.5, float, "insights"),
        cohort_min_count=_number(in_raw, "cohort_min_count", 10, int, "insights"),
    )

    # ── Regularity tiers ──
    rg_raw = raw.get("regularity") or {}
    regularity = RegularityConfig(
        very_regular_max_range=_number(rg_raw, "very_regular_max_range", 2, int, "regularity"),
        regular_max_range=_number(rg_raw, "regular_max_range", 7, int, "regularity"),
        somewhat_irregular_max_range=_number(
            rg_raw, "somewhat_irregular_max_range", 14, int, "regularity"
        ),
    )
    if not (
        regularity.very_regular_max_range
        <= regularity.regular_max_range
        <= regularity.somewhat_irregular_max_range
    ):
        errors.append("regularity tier bounds must be non-decreasing")

    if errors:
        raise ConfigValidationError(
            f"engine_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return EngineConfig(
        version=version,
        population=population,
        prediction=prediction,
        insights=insights,
        regularity=regularity,
        _raw=raw,
    )


def load_engine_config(path: Path | str | None = None) -> EngineConfig:
    """Load and validate the engine config from disk.

    Args:
        path: Override path to YAML. Uses the bundled engine_config.yaml by default.

    Returns:
        Validated EngineConfig instance.
    """
    target = Path(path) if path else _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded engine config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: EngineConfig | None = None
_config_lock = threading.Lock()


def get_engine_config() -> EngineConfig:
    """Return the global EngineConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_engine_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_engine_config()
    return _config


def reload_engine_config(path: Path | str | None = None) -> EngineConfig:
    """Reload the engine config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_engine_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded engine config: %s → %s", old_version, new_config.version)
    return new_config
