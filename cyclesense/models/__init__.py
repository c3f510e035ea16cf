"""Pydantic schemas for CycleSense records."""

from cyclesense.models.periods import FlowLevel, PeriodRecord, PeriodRecordCreate

__all__ = ["FlowLevel", "PeriodRecord", "PeriodRecordCreate"]
