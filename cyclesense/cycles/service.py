"""Display-facing façade over the cycle engine.

Wires one population model, a predictor, an insight generator and
(optionally) a period store together, and answers the questions a display
layer asks about a user:

    predict_next_period(records)            -> date | None
    predict_with_confidence(records, age)   -> Prediction
    cycle_statistics(records)               -> CycleStatistics
    generate_insights(records, age)         -> list[Insight]
    await dashboard(owner_id, age, as_of)   -> Dashboard
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date

from cyclesense.cycles import cycle_analyzer
from cyclesense.cycles.config_loader import EngineConfig, get_engine_config
from cyclesense.cycles.cycle_analyzer import CycleStatistics, HasStartDate
from cyclesense.cycles.insight_generator import Insight, InsightGenerator, select_health_tip
from cyclesense.cycles.population import PopulationModel, PopulationSummary
from cyclesense.cycles.predictor import CyclePredictor, Prediction
from cyclesense.services.period_store import PeriodStore, PeriodStoreError

logger = logging.getLogger("cyclesense.cycles.service")


@dataclass
class Dashboard:
    """Everything the display layer renders for one user on one day.

    Attributes:
        prediction:             Next-cycle forecast.
        statistics:             The user's own cycle statistics.
        insights:               Personal-vs-population insights.
        health_tip:             The single tip selected for display.
        days_since_last_period: Days since the latest period started (None without history).
        days_until_next_period: Days until the predicted next period (None without history).
        period_count:           Number of periods the dashboard is based on.
    """

    prediction: Prediction
    statistics: CycleStatistics
    insights: list[Insight] = field(default_factory=list)
    health_tip: str = ""
    days_since_last_period: int | None = None
    days_until_next_period: int | None = None
    period_count: int = 0


class CycleInsightService:
    """Answer prediction and insight questions for the display layer.

    Usage::

        service = CycleInsightService(population_model, store=store)
        board = await service.dashboard(owner_id, age=29)
        print(board.prediction.predicted_date, board.health_tip)
    """

    def __init__(
        self,
        population: PopulationModel,
        store: PeriodStore | None = None,
        config: EngineConfig | None = None,
        default_age: int = 25,
    ) -> None:
        self._population = population
        self._store = store
        self._config = config or get_engine_config()
        self._default_age = default_age
        self._predictor = CyclePredictor(population, self._config)
        self._insights = InsightGenerator(population, self._config)

    @property
    def population(self) -> PopulationModel:
        return self._population

    def _age(self, age: int | None) -> int:
        return self._default_age if age is None else age

    def predict_next_period(
        self, records: Sequence[HasStartDate], age: int | None = None
    ) -> date | None:
        return self._predictor.predict_next_period(records, self._age(age))

    def predict_with_confidence(
        self, records: Sequence[HasStartDate], age: int | None = None
    ) -> Prediction:
        return self._predictor.predict_with_confidence(records, self._age(age))

    def cycle_statistics(self, records: Sequence[HasStartDate]) -> CycleStatistics:
        return cycle_analyzer.cycle_statistics(records, self._config)

    def generate_insights(
        self, records: Sequence[HasStartDate], age: int | None = None
    ) -> list[Insight]:
        return self._insights.generate(records, self._age(age))

    def health_tip(
        self, records: Sequence[HasStartDate], age: int | None = None, as_of: date | None = None
    ) -> str:
        today = as_of or date.today()
        insights = self.generate_insights(records, age)
        return select_health_tip(insights, cycle_analyzer.days_since_last_period(records, today))

    def population_summary(self) -> PopulationSummary:
        return self._population.summary()

    def build_dashboard(
        self, records: Sequence[HasStartDate], age: int | None = None, as_of: date | None = None
    ) -> Dashboard:
        """Assemble a Dashboard from records already in hand."""
        today = as_of or date.today()
        prediction = self.predict_with_confidence(records, age)
        insights = self.generate_insights(records, age)
        days_since = cycle_analyzer.days_since_last_period(records, today)

        days_until = None
        if prediction.predicted_date is not None:
            days_until = (prediction.predicted_date - today).days

        return Dashboard(
            prediction=prediction,
            statistics=self.cycle_statistics(records),
            insights=insights,
            health_tip=select_health_tip(insights, days_since),
            days_since_last_period=days_since,
            days_until_next_period=days_until,
            period_count=len(records),
        )

    async def dashboard(
        self, owner_id: uuid.UUID, age: int | None = None, as_of: date | None = None
    ) -> Dashboard:
        """Load an owner's periods from the store and build their dashboard.

        Raises:
            RuntimeError:     If the service was created without a store.
            PeriodStoreError: If the store fails; logged and re-raised, never retried.
        """
        if self._store is None:
            raise RuntimeError("CycleInsightService has no period store configured")
        try:
            records = await self._store.list_by_owner(owner_id)
        except PeriodStoreError:
            logger.exception("Failed to load periods for owner %s", owner_id)
            raise
        return self.build_dashboard(records, age, as_of)
