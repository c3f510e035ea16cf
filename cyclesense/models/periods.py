"""Pydantic models for logged periods."""

from __future__ import annotations

import uuid
from datetime import date
from enum import Enum

from pydantic import ConfigDict, Field, model_validator

from cyclesense.models.base import CycleSenseBase, TimestampMixin


class FlowLevel(str, Enum):
    light = "light"
    medium = "medium"
    heavy = "heavy"


class PeriodRecordBase(CycleSenseBase):
    start_date: date
    end_date: date
    flow: FlowLevel = FlowLevel.medium
    notes: str = ""


class PeriodRecordCreate(PeriodRecordBase):
    """A period as entered by the user, before it is stored."""

    @model_validator(mode="after")
    def _end_not_before_start(self) -> PeriodRecordCreate:
        if self.end_date < self.start_date:
            raise ValueError(
                f"end_date {self.end_date} is before start_date {self.start_date}"
            )
        return self


class PeriodRecord(PeriodRecordBase, TimestampMixin):
    """A stored period.  Records are never edited, only deleted."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    owner_id: uuid.UUID
