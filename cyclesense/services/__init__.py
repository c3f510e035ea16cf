"""Storage collaborators for CycleSense."""

from cyclesense.services.period_store import (
    InMemoryPeriodStore,
    PeriodNotFoundError,
    PeriodStore,
    PeriodStoreError,
)

__all__ = ["InMemoryPeriodStore", "PeriodNotFoundError", "PeriodStore", "PeriodStoreError"]
