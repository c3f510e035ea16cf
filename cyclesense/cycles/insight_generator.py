"""Compare a user's cycles with the population and produce display insights.

Surfaces statements like:
- "Your average cycle length (33 days) is longer than the population average (28 days)."
- "Your cycles show more variation than typical."
- "People in your age group (30s) typically have 29-day cycles."

Every call returns at least one insight: when nothing specific can be said,
a single low-confidence "track more cycles" insight is returned.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from cyclesense.cycles import stats
from cyclesense.cycles.config_loader import EngineConfig, get_engine_config
from cyclesense.cycles.cycle_analyzer import HasStartDate, cycle_gaps
from cyclesense.cycles.population import PopulationModel

logger = logging.getLogger("cyclesense.cycles.insight_generator")

TRACK_MORE_MESSAGE = (
    "Track more cycles to get personalized insights about your reproductive health."
)
NO_HISTORY_TIP = "Track your cycles to get personalized insights!"
WELLNESS_TIP = "Stay hydrated and maintain a balanced diet for optimal health."
MENSTRUAL_TIP = (
    "During your period: Stay hydrated, eat iron-rich foods, and consider light "
    "exercise to help with cramps."
)
OVULATORY_TIP = (
    "Ovulation phase: You may experience increased energy. Great time for exercise "
    "and social activities."
)
LUTEAL_TIP = (
    "Pre-menstrual phase: Consider reducing caffeine and increasing magnesium-rich foods."
)


class InsightType(str, Enum):
    cycle_length = "cycle_length"
    irregularity = "irregularity"
    age_pattern = "age_pattern"
    general = "general"


class ConfidenceTier(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


@dataclass(frozen=True)
class Insight:
    type: InsightType
    message: str
    confidence: ConfidenceTier

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "message": self.message,
            "confidence": self.confidence.value,
        }


def general_insight() -> Insight:
    return Insight(InsightType.general, TRACK_MORE_MESSAGE, ConfidenceTier.low)


def _format_days(value: float) -> str:
    """28.0 → "28", 28.64 → "28.6"."""
    return f"{value:.1f}".rstrip("0").rstrip(".")


class InsightGenerator:
    """Generate personal-vs-population insights for one user.

    Usage::

        generator = InsightGenerator(population_model)
        for insight in generator.generate(records, user_age=29):
            print(insight.confidence.value, insight.message)
    """

    def __init__(
        self, population: PopulationModel, config: EngineConfig | None = None
    ) -> None:
        self._population = population
        self._config = config or get_engine_config()

    def generate(self, records: Sequence[HasStartDate], user_age: int | None) -> list[Insight]:
        """Return insights for the user's history, highest-value first.

        Args:
            records:  The user's logged periods (any order).
            user_age: Age in years, used to pick the population cohort.

        Returns:
            Non-empty list of Insight.
        """
        ic = self._config.insights
        if len(records) < ic.min_periods:
            logger.debug(
                "Insufficient history for insights: %d periods (need %d)",
                len(records), ic.min_periods,
            )
            return [general_insight()]

        insights: list[Insight] = []
        population = self._population.cycle_length

        gaps = cycle_gaps(records)
        if gaps:
            personal_mean = stats.mean(gaps)
            personal_std = stats.standard_deviation(gaps)

            if abs(personal_mean - population.mean) > ic.cycle_length_deviation_days:
                direction = "longer" if personal_mean > population.mean else "shorter"
                insights.append(
                    Insight(
                        InsightType.cycle_length,
                        f"Your average cycle length ({stats.round_half_up(personal_mean)} days) "
                        f"is {direction} than the population average "
                        f"({_format_days(population.mean)} days).",
                        ConfidenceTier.high,
                    )
                )

            if personal_std > population.standard_deviation * ic.irregularity_std_ratio:
                insights.append(
                    Insight(
                        InsightType.irregularity,
                        "Your cycles show more variation than typical. Consider tracking "
                        "additional factors like stress, sleep, and exercise.",
                        ConfidenceTier.medium,
                    )
                )

        cohort = self._population.cohort_for_age(user_age)
        if cohort is not None and cohort.count > ic.cohort_min_count:
            cohort_key = self._population.cohort_key(user_age)
            insights.append(
                Insight(
                    InsightType.age_pattern,
                    f"People in your age group ({cohort_key}s) typically have "
                    f"{stats.round_half_up(cohort.mean)}-day cycles.",
                    ConfidenceTier.high,
                )
            )

        return insights or [general_insight()]


def phase_tip(days_since_last_period: int) -> str:
    """Wellness tip for the cycle phase implied by days since the last period."""
    if days_since_last_period <= 5:
        return MENSTRUAL_TIP
    if 10 <= days_since_last_period <= 16:
        return OVULATORY_TIP
    if days_since_last_period >= 20:
        return LUTEAL_TIP
    return WELLNESS_TIP


def select_health_tip(insights: Sequence[Insight], days_since_last_period: int | None) -> str:
    """Pick the message to show as today's health tip.

    The first high-confidence insight wins; otherwise a phase-based tip is
    chosen from the days since the last period.
    """
    for insight in insights:
        if insight.confidence is ConfidenceTier.high:
            return insight.message
    if days_since_last_period is None:
        return NO_HISTORY_TIP
    return phase_tip(days_since_last_period)
