"""Shared fixtures for the cycle engine tests."""

from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path
from uuid import UUID

import pytest

from cyclesense.cycles.config_loader import EngineConfig, load_engine_config
from cyclesense.cycles.population import (
    AgeCohortModel,
    PopulationModel,
    fallback_population_model,
)
from cyclesense.models.periods import PeriodRecord

# Fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"
TRAINING_CSV = FIXTURES_DIR / "training_cycles.csv"

# Canonical test owner
TEST_OWNER_ID = UUID("12345678-1234-5678-1234-567812345678")
TEST_DATE = date(2026, 2, 23)


def make_period(start: date, length_days: int = 5) -> PeriodRecord:
    return PeriodRecord(
        owner_id=TEST_OWNER_ID,
        start_date=start,
        end_date=start + timedelta(days=length_days - 1),
    )


def build_periods(gaps: list[int], first_start: date = date(2025, 6, 1)) -> list[PeriodRecord]:
    """Periods whose consecutive start dates are ``gaps`` days apart."""
    starts = [first_start]
    for gap in gaps:
        starts.append(starts[-1] + timedelta(days=gap))
    return [make_period(s) for s in starts]


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine_config() -> EngineConfig:
    """Load the real engine config for tests."""
    return load_engine_config()


# ---------------------------------------------------------------------------
# Population fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def training_csv_text() -> str:
    return TRAINING_CSV.read_text()


@pytest.fixture
def fallback_model(engine_config: EngineConfig) -> PopulationModel:
    return fallback_population_model(engine_config)


@pytest.fixture
def cohort_model() -> PopulationModel:
    """Fallback field models plus a well-populated 30s cohort averaging 30 days."""
    base = fallback_population_model()
    return PopulationModel(
        cycle_length=base.cycle_length,
        ovulation=base.ovulation,
        menses_intensity=base.menses_intensity,
        fertility_window=base.fertility_window,
        age_cohorts={
            20: AgeCohortModel(mean=27.0, standard_deviation=2.5, count=8),
            30: AgeCohortModel(mean=30.0, standard_deviation=3.1, count=12),
        },
        training_cycles=20,
        unique_subjects=4,
    )


# ---------------------------------------------------------------------------
# Period fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def regular_periods() -> list[PeriodRecord]:
    """Five periods exactly 28 days apart, latest on 2025-09-21."""
    return build_periods([28, 28, 28, 28])


@pytest.fixture
def long_cycle_periods() -> list[PeriodRecord]:
    """Four periods 34 days apart."""
    return build_periods([34, 34, 34])
