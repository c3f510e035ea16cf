"""Derive an individual's cycle gaps and summary statistics from logged periods.

A cycle gap is the number of whole days between the start dates of two
consecutive periods.  Records are always sorted by start date before
differencing, so insertion order never matters.  A gap of zero days (two
periods logged with the same start date) is a data-quality problem: it is
rejected, logged, and left out of every statistic.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Protocol

from cyclesense.cycles import stats
from cyclesense.cycles.config_loader import EngineConfig, get_engine_config

logger = logging.getLogger("cyclesense.cycles.cycle_analyzer")

DEFAULT_CYCLE_LENGTH = 28


class HasStartDate(Protocol):
    start_date: date


class RegularityTier(str, Enum):
    very_regular = "very_regular"
    regular = "regular"
    somewhat_irregular = "somewhat_irregular"
    irregular = "irregular"


@dataclass
class GapAnalysis:
    """Result of differencing a user's period history.

    Attributes:
        records:        Records sorted by start date (oldest first).
        gaps:           Accepted gaps in days, one per usable consecutive pair.
        rejected_pairs: (earlier, later) start dates whose gap was not positive.
        reordered:      True if the input was not already in start-date order.
    """

    records: list = field(default_factory=list)
    gaps: list[int] = field(default_factory=list)
    rejected_pairs: list[tuple[date, date]] = field(default_factory=list)
    reordered: bool = False

    @property
    def has_data_quality_issues(self) -> bool:
        return bool(self.rejected_pairs) or self.reordered


@dataclass
class CycleStatistics:
    """Summary of a user's own cycle history.

    Attributes:
        mean:           Rounded average gap in days (28 when there is no gap).
        shortest:       Shortest gap, or None.
        longest:        Longest gap, or None.
        regularity:     Regularity tier, or None with fewer than two periods.
        cycles_counted: Number of gaps the statistics are based on.
    """

    mean: int = DEFAULT_CYCLE_LENGTH
    shortest: int | None = None
    longest: int | None = None
    regularity: RegularityTier | None = None
    cycles_counted: int = 0


def sort_records(records: Sequence[HasStartDate]) -> list:
    """Return records ordered by start date (stable for equal dates)."""
    return sorted(records, key=lambda r: r.start_date)


def day_gap(earlier: date, later: date) -> int:
    """Signed whole days from ``earlier`` to ``later``."""
    return (later - earlier).days


def analyze_gaps(records: Sequence[HasStartDate]) -> GapAnalysis:
    """Sort records and compute the gap between each consecutive pair.

    With zero or one record the gap list is empty.
    """
    ordered = sort_records(records)
    analysis = GapAnalysis(records=ordered)
    analysis.reordered = any(
        a.start_date > b.start_date for a, b in zip(records, list(records)[1:])
    )
    if analysis.reordered:
        logger.warning("Period records were not in start-date order; sorted before analysis")

    for earlier, later in zip(ordered, ordered[1:]):
        gap = day_gap(earlier.start_date, later.start_date)
        if gap <= 0:
            analysis.rejected_pairs.append((earlier.start_date, later.start_date))
            continue
        analysis.gaps.append(gap)

    if analysis.rejected_pairs:
        logger.warning(
            "Rejected %d non-positive cycle gap(s): %s",
            len(analysis.rejected_pairs),
            ", ".join(f"{a.isoformat()}→{b.isoformat()}" for a, b in analysis.rejected_pairs),
        )
    return analysis


def cycle_gaps(records: Sequence[HasStartDate]) -> list[int]:
    """Accepted cycle gaps in chronological order."""
    return analyze_gaps(records).gaps


def average_cycle_length(
    records: Sequence[HasStartDate], default: int = DEFAULT_CYCLE_LENGTH
) -> int:
    """Rounded mean gap, or ``default`` when there is not a single usable gap."""
    gaps = cycle_gaps(records)
    if not gaps:
        return default
    return stats.round_half_up(stats.mean(gaps))


def regularity_tier(gaps: Sequence[int], config: EngineConfig | None = None) -> RegularityTier | None:
    """Classify cycle regularity by the range between shortest and longest gap."""
    if not gaps:
        return None
    rc = (config or get_engine_config()).regularity
    spread = max(gaps) - min(gaps)
    if spread <= rc.very_regular_max_range:
        return RegularityTier.very_regular
    if spread <= rc.regular_max_range:
        return RegularityTier.regular
    if spread <= rc.somewhat_irregular_max_range:
        return RegularityTier.somewhat_irregular
    return RegularityTier.irregular


def cycle_statistics(
    records: Sequence[HasStartDate], config: EngineConfig | None = None
) -> CycleStatistics:
    """Mean, shortest, longest and regularity tier of a user's cycles."""
    gaps = cycle_gaps(records)
    if not gaps:
        return CycleStatistics()
    return CycleStatistics(
        mean=stats.round_half_up(stats.mean(gaps)),
        shortest=min(gaps),
        longest=max(gaps),
        regularity=regularity_tier(gaps, config),
        cycles_counted=len(gaps),
    )


def days_since_last_period(records: Sequence[HasStartDate], today: date) -> int | None:
    """Days from the most recent period start to ``today`` (None without records)."""
    if not records:
        return None
    latest = max(r.start_date for r in records)
    return day_gap(latest, today)
