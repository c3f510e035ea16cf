"""Cycle prediction and insight engine.

Modules:
    stats             — mean, median, population standard deviation, binned distribution
    config_loader     — Load/validate/hot-reload engine_config.yaml
    population        — Population model from a training table, with fallback
    cycle_analyzer    — Personal cycle gaps and statistics
    predictor         — Next-cycle forecast with confidence
    insight_generator — Personal-vs-population insights and health tips
    service           — Display-facing façade
"""

from cyclesense.cycles.config_loader import EngineConfig, get_engine_config
from cyclesense.cycles.cycle_analyzer import CycleStatistics, RegularityTier
from cyclesense.cycles.insight_generator import ConfidenceTier, Insight, InsightGenerator, InsightType
from cyclesense.cycles.population import (
    AgeCohortModel,
    PopulationFieldModel,
    PopulationModel,
    PopulationModelLoader,
    fallback_population_model,
)
from cyclesense.cycles.predictor import CyclePredictor, FertilityWindow, Prediction
from cyclesense.cycles.service import CycleInsightService, Dashboard

__all__ = [
    "AgeCohortModel",
    "ConfidenceTier",
    "CycleInsightService",
    "CyclePredictor",
    "CycleStatistics",
    "Dashboard",
    "EngineConfig",
    "FertilityWindow",
    "Insight",
    "InsightGenerator",
    "InsightType",
    "PopulationFieldModel",
    "PopulationModel",
    "PopulationModelLoader",
    "Prediction",
    "RegularityTier",
    "fallback_population_model",
    "get_engine_config",
]
