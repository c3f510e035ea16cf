"""CycleSense bootstrap: logging plus a ready-to-use insight service.

Usage::

    service = await create_service()
    board = await service.dashboard(owner_id, age=31)
"""

from __future__ import annotations

import logging
import sys

from cyclesense.config import Settings, get_settings
from cyclesense.cycles.config_loader import get_engine_config, load_engine_config
from cyclesense.cycles.population import PopulationModelLoader
from cyclesense.cycles.service import CycleInsightService
from cyclesense.services.period_store import InMemoryPeriodStore, PeriodStore

logger = logging.getLogger("cyclesense")


def log_level(settings: Settings) -> str:
    """Root log level; ``debug`` forces DEBUG regardless of ``log_level``."""
    return "DEBUG" if settings.debug else settings.log_level.upper()


def configure_logging(settings: Settings | None = None) -> None:
    s = settings or get_settings()
    logging.basicConfig(
        level=log_level(s),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


async def create_service(
    settings: Settings | None = None,
    store: PeriodStore | None = None,
    loader: PopulationModelLoader | None = None,
) -> CycleInsightService:
    """Load the population model once and build a CycleInsightService around it.

    Args:
        settings: Application settings; defaults to ``get_settings()``.
        store:    Period store; defaults to a fresh InMemoryPeriodStore.
        loader:   Population loader; defaults to one built from settings.

    Returns:
        A service holding the loaded model by reference.
    """
    s = settings or get_settings()
    configure_logging(s)
    logger.info("Starting %s v%s [%s]", s.app_name, s.app_version, s.environment)

    config = load_engine_config(s.engine_config_path) if s.engine_config_path else get_engine_config()
    loader = loader or PopulationModelLoader(
        s.training_data_source,
        timeout=s.training_data_timeout_seconds,
        delimiter=s.training_data_delimiter,
        config=config,
    )
    population = await loader.get()
    if population.is_fallback:
        logger.info("Using fallback population model")

    return CycleInsightService(
        population,
        store=store if store is not None else InMemoryPeriodStore(),
        config=config,
        default_age=s.default_user_age,
    )
