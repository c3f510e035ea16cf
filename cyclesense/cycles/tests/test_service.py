"""Tests for the display-facing service, period store, and bootstrap."""

from __future__ import annotations

import uuid
from datetime import date
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from cyclesense.config import Settings
from cyclesense.cycles.config_loader import EngineConfig
from cyclesense.cycles.cycle_analyzer import RegularityTier
from cyclesense.cycles.insight_generator import MENSTRUAL_TIP, NO_HISTORY_TIP, InsightType
from cyclesense.cycles.population import PopulationModel, PopulationModelLoader
from cyclesense.cycles.service import CycleInsightService
from cyclesense.cycles.tests.conftest import TEST_OWNER_ID, TRAINING_CSV, build_periods
from cyclesense.main import create_service, log_level
from cyclesense.models.periods import FlowLevel, PeriodRecordCreate
from cyclesense.services.period_store import (
    InMemoryPeriodStore,
    PeriodNotFoundError,
    PeriodStoreError,
)


def _entry(start: date, end: date | None = None) -> PeriodRecordCreate:
    return PeriodRecordCreate(start_date=start, end_date=end or start)


# ---------------------------------------------------------------------------
# Period records and store
# ---------------------------------------------------------------------------


class TestPeriodRecordCreate:
    def test_end_before_start_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PeriodRecordCreate(start_date=date(2024, 1, 5), end_date=date(2024, 1, 1))

    def test_defaults(self) -> None:
        entry = PeriodRecordCreate(start_date=date(2024, 1, 1), end_date=date(2024, 1, 5))
        assert entry.flow is FlowLevel.medium
        assert entry.notes == ""

    def test_notes_stripped(self) -> None:
        entry = PeriodRecordCreate(
            start_date=date(2024, 1, 1), end_date=date(2024, 1, 1), notes="  cramps  ", flow="heavy"
        )
        assert entry.notes == "cramps"
        assert entry.flow is FlowLevel.heavy


class TestInMemoryPeriodStore:
    @pytest.mark.asyncio
    async def test_add_and_get(self) -> None:
        store = InMemoryPeriodStore()
        record = await store.add(_entry(date(2024, 1, 1), date(2024, 1, 5)), TEST_OWNER_ID)
        assert await store.get(record.id) == record
        assert record.owner_id == TEST_OWNER_ID
        assert record.end_date == date(2024, 1, 5)

    @pytest.mark.asyncio
    async def test_list_preserves_insertion_order_per_owner(self) -> None:
        store = InMemoryPeriodStore()
        other = uuid.uuid4()
        await store.add(_entry(date(2024, 3, 1)), TEST_OWNER_ID)
        await store.add(_entry(date(2024, 2, 1)), other)
        await store.add(_entry(date(2024, 1, 1)), TEST_OWNER_ID)
        records = await store.list_by_owner(TEST_OWNER_ID)
        assert [r.start_date for r in records] == [date(2024, 3, 1), date(2024, 1, 1)]

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        store = InMemoryPeriodStore()
        record = await store.add(_entry(date(2024, 1, 1)), TEST_OWNER_ID)
        await store.delete(record.id)
        assert len(store) == 0
        with pytest.raises(PeriodNotFoundError):
            await store.get(record.id)

    @pytest.mark.asyncio
    async def test_delete_unknown_raises(self) -> None:
        with pytest.raises(PeriodNotFoundError):
            await InMemoryPeriodStore().delete(uuid.uuid4())

    def test_records_are_immutable(self) -> None:
        record = build_periods([])[0]
        with pytest.raises(ValidationError):
            record.notes = "edited"


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class TestCycleInsightService:
    def test_display_contract(
        self, fallback_model: PopulationModel, engine_config: EngineConfig
    ) -> None:
        service = CycleInsightService(fallback_model, config=engine_config)
        periods = build_periods([34, 34, 34], first_start=date(2024, 1, 1))

        assert service.predict_next_period([]) is None
        assert service.predict_next_period(periods) == date(2024, 5, 14)
        assert service.predict_with_confidence(periods).confidence_percent == 90

        statistics = service.cycle_statistics(periods)
        assert statistics.mean == 34
        assert statistics.regularity is RegularityTier.very_regular

        insights = service.generate_insights(periods)
        assert insights[0].type is InsightType.cycle_length

    def test_default_age_selects_cohort(
        self, cohort_model: PopulationModel, engine_config: EngineConfig
    ) -> None:
        service = CycleInsightService(cohort_model, config=engine_config, default_age=35)
        periods = build_periods([28])
        assert service.predict_with_confidence(periods).cycle_length_days == 30
        assert service.predict_with_confidence(periods, age=22).cycle_length_days == 28

    def test_health_tip_prefers_high_confidence_insight(
        self, fallback_model: PopulationModel, engine_config: EngineConfig,
        long_cycle_periods: list,
    ) -> None:
        service = CycleInsightService(fallback_model, config=engine_config)
        tip = service.health_tip(long_cycle_periods, as_of=date(2025, 10, 1))
        assert tip.startswith("Your average cycle length (34 days)")

    def test_build_dashboard_without_history(
        self, fallback_model: PopulationModel, engine_config: EngineConfig
    ) -> None:
        board = CycleInsightService(fallback_model, config=engine_config).build_dashboard(
            [], as_of=date(2024, 1, 1)
        )
        assert board.prediction.predicted_date is None
        assert board.statistics.mean == 28
        assert board.health_tip == NO_HISTORY_TIP
        assert board.days_since_last_period is None
        assert board.days_until_next_period is None

    @pytest.mark.asyncio
    async def test_dashboard_reads_store(
        self, fallback_model: PopulationModel, engine_config: EngineConfig
    ) -> None:
        store = InMemoryPeriodStore()
        for start in (date(2024, 1, 1), date(2024, 1, 29), date(2024, 2, 26)):
            await store.add(_entry(start), TEST_OWNER_ID)
        service = CycleInsightService(fallback_model, store=store, config=engine_config)

        board = await service.dashboard(TEST_OWNER_ID, age=30, as_of=date(2024, 3, 1))

        assert board.period_count == 3
        assert board.prediction.predicted_date == date(2024, 3, 25)
        assert board.days_since_last_period == 4
        assert board.days_until_next_period == 24
        assert board.health_tip == MENSTRUAL_TIP

    @pytest.mark.asyncio
    async def test_store_failure_is_surfaced(
        self, fallback_model: PopulationModel, engine_config: EngineConfig
    ) -> None:
        store = InMemoryPeriodStore()
        store.list_by_owner = AsyncMock(side_effect=PeriodStoreError("disk unavailable"))
        service = CycleInsightService(fallback_model, store=store, config=engine_config)
        with pytest.raises(PeriodStoreError):
            await service.dashboard(TEST_OWNER_ID)
        store.list_by_owner.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_dashboard_requires_store(
        self, fallback_model: PopulationModel, engine_config: EngineConfig
    ) -> None:
        with pytest.raises(RuntimeError):
            await CycleInsightService(fallback_model, config=engine_config).dashboard(TEST_OWNER_ID)


class TestCreateService:
    @pytest.mark.asyncio
    async def test_builds_service_from_settings(self) -> None:
        settings = Settings(training_data_source=str(TRAINING_CSV), default_user_age=33)
        service = await create_service(settings)
        assert service.population.training_cycles == 6
        assert service.population_summary().unique_subjects == 3

    @pytest.mark.asyncio
    async def test_uses_injected_loader(self, engine_config: EngineConfig) -> None:
        loader = PopulationModelLoader(None, config=engine_config)
        service = await create_service(Settings(), loader=loader)
        assert service.population.is_fallback
        assert loader.loaded

    def test_debug_forces_debug_log_level(self) -> None:
        assert log_level(Settings(_env_file=None, log_level="warning")) == "WARNING"
        assert log_level(Settings(_env_file=None, log_level="warning", debug=True)) == "DEBUG"
