"""Period storage contract and an in-memory implementation.

The engine never talks to a database directly.  It reads a user's periods
through ``PeriodStore``, whose only ordering promise is that
``list_by_owner()`` returns records in insertion order.  The engine sorts
by start date itself.

``InMemoryPeriodStore`` backs tests and single-process use.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod

from cyclesense.models.periods import PeriodRecord, PeriodRecordCreate

logger = logging.getLogger("cyclesense.services.period_store")


class PeriodStoreError(RuntimeError):
    """Raised when the storage backend cannot complete an operation."""


class PeriodNotFoundError(PeriodStoreError):
    """Raised when a period id does not exist."""


class PeriodStore(ABC):
    """Async CRUD surface for logged periods.

    Subclasses must implement:
        - add()
        - get()
        - list_by_owner()
        - delete()
    """

    @abstractmethod
    async def add(self, entry: PeriodRecordCreate, owner_id: uuid.UUID) -> PeriodRecord:
        """Store a validated entry and return the created record."""

    @abstractmethod
    async def get(self, record_id: uuid.UUID) -> PeriodRecord:
        """Return one record.

        Raises:
            PeriodNotFoundError: If no record has this id.
        """

    @abstractmethod
    async def list_by_owner(self, owner_id: uuid.UUID) -> list[PeriodRecord]:
        """Return all of an owner's records in insertion order."""

    @abstractmethod
    async def delete(self, record_id: uuid.UUID) -> None:
        """Remove a record.

        Raises:
            PeriodNotFoundError: If no record has this id.
        """


class InMemoryPeriodStore(PeriodStore):
    """Dict-backed store.  Python dicts keep insertion order.

    Usage::

        store = InMemoryPeriodStore()
        record = await store.add(PeriodRecordCreate(start_date=..., end_date=...), owner_id)
        records = await store.list_by_owner(owner_id)
    """

    def __init__(self) -> None:
        self._records: dict[uuid.UUID, PeriodRecord] = {}

    async def add(self, entry: PeriodRecordCreate, owner_id: uuid.UUID) -> PeriodRecord:
        record = PeriodRecord(owner_id=owner_id, **entry.model_dump())
        self._records[record.id] = record
        logger.debug("Stored period %s for owner %s", record.id, owner_id)
        return record

    async def get(self, record_id: uuid.UUID) -> PeriodRecord:
        try:
            return self._records[record_id]
        except KeyError:
            raise PeriodNotFoundError(f"Period {record_id} not found") from None

    async def list_by_owner(self, owner_id: uuid.UUID) -> list[PeriodRecord]:
        return [r for r in self._records.values() if r.owner_id == owner_id]

    async def delete(self, record_id: uuid.UUID) -> None:
        if self._records.pop(record_id, None) is None:
            raise PeriodNotFoundError(f"Period {record_id} not found")
        logger.debug("Deleted period %s", record_id)

    def __len__(self) -> int:
        return len(self._records)
