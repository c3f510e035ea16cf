"""Next-cycle prediction engine.

Blends the population prior (adjusted to the user's age cohort when the
cohort is well populated) with the user's own cycle history:

    estimate   = population mean, or cohort mean if cohort count > 10
    confidence = 0.7, or min(0.95, 0.7 + cohort count / 100)

    with >= 3 personal cycles:
        estimate   = 0.7 * personal mean + 0.3 * estimate
        confidence = min(0.95, confidence + 0.2)

Ovulation is placed 14 days before the next period and the fertile window
runs from 17 to 11 days before it.  Every constant above lives in
``engine_config.yaml``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum

from cyclesense.cycles import stats
from cyclesense.cycles.config_loader import EngineConfig, get_engine_config
from cyclesense.cycles.cycle_analyzer import HasStartDate, analyze_gaps
from cyclesense.cycles.population import PopulationModel

logger = logging.getLogger("cyclesense.cycles.predictor")


class PredictionBasis(str, Enum):
    default = "default"
    population = "population"
    age_cohort = "age_cohort"
    personal_blend = "personal_blend"


@dataclass(frozen=True)
class FertilityWindow:
    """Fertile days as offsets from the start of the cycle."""

    start_day_offset: int
    end_day_offset: int


@dataclass
class Prediction:
    """Forecast for the user's next cycle.

    Attributes:
        cycle_length_days:  Predicted length of the coming cycle.
        ovulation_day:      Predicted ovulation day within the cycle.
        confidence_percent: 0–100 confidence in the forecast.
        fertility_window:   Fertile days relative to cycle start.
        predicted_date:     Predicted start of the next period (None without history).
        basis:              Which signal the estimate rests on.
        cycles_used:        Personal cycle samples that went into the estimate.
        warnings:           Any flags raised while predicting (clamping, data quality).
    """

    cycle_length_days: int
    ovulation_day: int
    confidence_percent: int
    fertility_window: FertilityWindow
    predicted_date: date | None = None
    basis: PredictionBasis = PredictionBasis.default
    cycles_used: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "cycle_length_days": self.cycle_length_days,
            "ovulation_day": self.ovulation_day,
            "confidence_percent": self.confidence_percent,
            "fertility_window": {
                "start": self.fertility_window.start_day_offset,
                "end": self.fertility_window.end_day_offset,
            },
            "predicted_date": self.predicted_date.isoformat() if self.predicted_date else None,
            "basis": self.basis.value,
            "cycles_used": self.cycles_used,
            "warnings": list(self.warnings),
        }


class CyclePredictor:
    """Predict the next cycle from a population prior and personal history.

    Usage::

        predictor = CyclePredictor(population_model)
        prediction = predictor.predict_with_confidence(records, user_age=31)
        print(prediction.predicted_date, prediction.confidence_percent)
    """

    def __init__(
        self, population: PopulationModel, config: EngineConfig | None = None
    ) -> None:
        self._population = population
        self._config = config or get_engine_config()

    @property
    def _pc(self):
        return self._config.prediction

    def default_prediction(self) -> Prediction:
        """The fixed forecast used when a user has logged nothing yet."""
        pc = self._pc
        return self._finalize(pc.default_cycle_length, pc.default_confidence, PredictionBasis.default)

    def predict(self, personal_gaps: Sequence[int], user_age: int | None) -> Prediction:
        """Forecast cycle length, ovulation and fertile window.

        Args:
            personal_gaps: The user's cycle lengths in days, oldest first.
            user_age:      Age in years, used to pick the population cohort.

        Returns:
            Prediction without a ``predicted_date`` (no anchor is known here).
        """
        pc = self._pc
        estimate = float(self._population.cycle_length.mean)
        confidence = pc.base_confidence
        basis = PredictionBasis.population

        cohort = self._population.cohort_for_age(user_age)
        if cohort is not None and cohort.count > pc.cohort_min_count:
            estimate = cohort.mean
            confidence = min(pc.max_confidence, pc.base_confidence + cohort.count / 100)
            basis = PredictionBasis.age_cohort

        if len(personal_gaps) >= pc.personal_min_samples:
            personal_mean = stats.mean(personal_gaps)
            estimate = personal_mean * pc.personal_weight + estimate * (1 - pc.personal_weight)
            confidence = min(pc.max_confidence, confidence + pc.personal_confidence_boost)
            basis = PredictionBasis.personal_blend
        elif not personal_gaps and basis is PredictionBasis.population:
            # Prior only: no personal signal and no cohort to lean on
            confidence = pc.default_confidence

        prediction = self._finalize(estimate, confidence, basis)
        prediction.cycles_used = len(personal_gaps)
        return prediction

    def personal_history(self, records: Sequence[HasStartDate]) -> tuple[list[int], list[str]]:
        """Cycle lengths to feed ``predict()`` plus any data-quality warnings.

        With ``seed_first_cycle_placeholder`` enabled, the history holds one
        entry per period before the latest: a synthetic default-length cycle
        for the earliest one, then the real gaps between the periods before
        the latest.  Otherwise it holds every real gap.
        """
        analysis = analyze_gaps(records)
        warnings: list[str] = []
        if analysis.reordered:
            warnings.append("Periods were logged out of order and have been sorted by start date")
        for earlier, later in analysis.rejected_pairs:
            warnings.append(
                f"Ignored duplicate period start {later.isoformat()} (same day as {earlier.isoformat()})"
            )

        if self._pc.seed_first_cycle_placeholder:
            if len(analysis.records) < 2:
                return [], warnings
            history = [self._pc.default_cycle_length] + analysis.gaps[:-1]
            return history, warnings
        return list(analysis.gaps), warnings

    def predict_with_confidence(
        self, records: Sequence[HasStartDate], user_age: int | None
    ) -> Prediction:
        """Full forecast anchored on the most recent logged period."""
        if not records:
            return self.default_prediction()

        history, warnings = self.personal_history(records)
        prediction = self.predict(history, user_age)
        prediction.warnings.extend(warnings)

        latest = max(r.start_date for r in records)
        prediction.predicted_date = latest + timedelta(days=prediction.cycle_length_days)
        logger.debug(
            "Predicted next period %s (%d days, %d%% confidence, basis=%s)",
            prediction.predicted_date,
            prediction.cycle_length_days,
            prediction.confidence_percent,
            prediction.basis.value,
        )
        return prediction

    def predict_next_period(
        self, records: Sequence[HasStartDate], user_age: int | None
    ) -> date | None:
        """Predicted start date of the next period, or None without history."""
        if not records:
            return None
        return self.predict_with_confidence(records, user_age).predicted_date

    def _finalize(self, estimate: float, confidence: float, basis: PredictionBasis) -> Prediction:
        pc = self._pc
        cycle_length = stats.round_half_up(estimate)
        ovulation_day = cycle_length - pc.luteal_phase_days
        window_start = cycle_length - pc.fertile_window_start_offset
        window_end = cycle_length - pc.fertile_window_end_offset
        warnings: list[str] = []

        if pc.clamp_negative_offsets and min(ovulation_day, window_start, window_end) < 0:
            warnings.append(
                f"Cycle length of {cycle_length} days is too short to place ovulation; "
                "negative day offsets were clamped to 0"
            )
            logger.warning("Clamped negative day offsets for a %d-day cycle", cycle_length)
            ovulation_day = max(0, ovulation_day)
            window_start = max(0, window_start)
            window_end = max(0, window_end)

        return Prediction(
            cycle_length_days=cycle_length,
            ovulation_day=ovulation_day,
            confidence_percent=stats.round_half_up(confidence * 100),
            fertility_window=FertilityWindow(window_start, window_end),
            basis=basis,
            warnings=warnings,
        )
