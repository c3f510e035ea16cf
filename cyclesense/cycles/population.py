"""Population cycle model built from an external training table.

The training table is a delimited text file with one row per observed cycle
(a subject contributes many rows).  It is reduced to per-field summaries
(cycle length, ovulation day, menses intensity, fertility-window length) and
to decade-of-age cohorts for cycle length.

If the table is missing, unreadable, or yields no usable rows, a fixed
hand-authored fallback model is used instead.  Loading never raises: there
is always *a* model.

Usage::

    loader = PopulationModelLoader("https://example.org/cycles.csv")
    model = await loader.get()          # fetched once, cached on the loader
    model.cycle_length.mean             # e.g. 28.6
    model.cohort_for_age(34)            # AgeCohortModel for the 30s, or None
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from cyclesense.cycles import stats
from cyclesense.cycles.config_loader import EngineConfig, get_engine_config

logger = logging.getLogger("cyclesense.cycles.population")

_LEADING_INT = re.compile(r"^[+-]?\d+")


# ---------------------------------------------------------------------------
# Model types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PopulationFieldModel:
    """Summary statistics for one tracked field across the training corpus.

    Attributes:
        mean:               Arithmetic mean.
        median:             Median.
        standard_deviation: Population standard deviation.
        distribution:       Bin label → share of observations (2 decimals).
        min:                Smallest observation (cycle length only).
        max:                Largest observation (cycle length only).
    """

    mean: float
    median: float
    standard_deviation: float
    distribution: dict[str, float] = field(default_factory=dict)
    min: float | None = None
    max: float | None = None

    @classmethod
    def from_values(
        cls, values: list[int], bin_width: int = 3, include_range: bool = False
    ) -> PopulationFieldModel:
        """Summarise a non-empty list of observations."""
        return cls(
            mean=stats.mean(values),
            median=stats.median(values),
            standard_deviation=stats.standard_deviation(values),
            distribution=stats.distribution(values, bin_width),
            min=min(values) if include_range else None,
            max=max(values) if include_range else None,
        )


@dataclass(frozen=True)
class AgeCohortModel:
    """Cycle-length statistics for one decade-of-age cohort."""

    mean: float
    standard_deviation: float
    count: int


@dataclass
class PopulationSummary:
    """Display-ready description of a population model."""

    training_cycles: int
    unique_subjects: int
    is_fallback: bool
    lines: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PopulationModel:
    """Complete population prior consumed by the predictor and insight generator.

    Built once and treated as read-only.  Pass it by reference to every
    component that needs it.

    Attributes:
        cycle_length:     Cycle length field model.
        ovulation:        Estimated ovulation day field model.
        menses_intensity: Total menses score field model.
        fertility_window: Fertility-window length field model.
        age_cohorts:      Cohort start age (20, 30, ...) → cohort model.
        training_cycles:  Number of accepted training rows.
        unique_subjects:  Distinct subject ids among accepted rows.
        is_fallback:      True if this is the hand-authored fallback.
        cohort_width_years: Width of each age cohort.
    """

    cycle_length: PopulationFieldModel
    ovulation: PopulationFieldModel
    menses_intensity: PopulationFieldModel
    fertility_window: PopulationFieldModel
    age_cohorts: dict[int, AgeCohortModel] = field(default_factory=dict)
    training_cycles: int = 0
    unique_subjects: int = 0
    is_fallback: bool = False
    cohort_width_years: int = 10

    def cohort_key(self, age: int) -> int:
        return (int(age) // self.cohort_width_years) * self.cohort_width_years

    def cohort_for_age(self, age: int | None) -> AgeCohortModel | None:
        """Return the cohort model covering ``age``, or None if there is none."""
        if age is None or not self.age_cohorts:
            return None
        return self.age_cohorts.get(self.cohort_key(age))

    def summary(self) -> PopulationSummary:
        lines = [
            f"Average cycle length: {stats.round_half_up(self.cycle_length.mean)} days",
            f"Most common ovulation day: {stats.round_half_up(self.ovulation.mean)}",
            f"Typical fertility window: {stats.round_half_up(self.fertility_window.mean)} days",
            f"Average menses intensity: {stats.round_half_up(self.menses_intensity.mean)}/15",
        ]
        if self.age_cohorts:
            cohorts = sorted(self.age_cohorts)
            lines.append(f"Age range: {cohorts[0]}s to {cohorts[-1]}s")
        return PopulationSummary(
            training_cycles=self.training_cycles,
            unique_subjects=self.unique_subjects,
            is_fallback=self.is_fallback,
            lines=lines,
        )


# ---------------------------------------------------------------------------
# Fallback model
# ---------------------------------------------------------------------------

FALLBACK_CYCLE_LENGTH = PopulationFieldModel(
    mean=28,
    median=28,
    standard_deviation=3,
    min=21,
    max=35,
    distribution={"21-24": 0.1, "25-27": 0.2, "28-30": 0.4, "31-33": 0.2, "34-35": 0.1},
)
FALLBACK_OVULATION = PopulationFieldModel(
    mean=14,
    median=14,
    standard_deviation=2,
    distribution={"12-13": 0.1, "14-15": 0.6, "16-17": 0.2, "18-19": 0.1},
)
FALLBACK_MENSES_INTENSITY = PopulationFieldModel(
    mean=10,
    median=10,
    standard_deviation=3,
    distribution={"1-5": 0.1, "6-8": 0.2, "9-12": 0.4, "13-15": 0.2, "16+": 0.1},
)
FALLBACK_FERTILITY_WINDOW = PopulationFieldModel(
    mean=6,
    median=6,
    standard_deviation=2,
    distribution={"3-4": 0.1, "5-6": 0.4, "7-8": 0.3, "9-10": 0.2},
)


def fallback_population_model(config: EngineConfig | None = None) -> PopulationModel:
    """Return the fixed population model used when no training data is available."""
    cfg = config or get_engine_config()
    return PopulationModel(
        cycle_length=FALLBACK_CYCLE_LENGTH,
        ovulation=FALLBACK_OVULATION,
        menses_intensity=FALLBACK_MENSES_INTENSITY,
        fertility_window=FALLBACK_FERTILITY_WINDOW,
        is_fallback=True,
        cohort_width_years=cfg.population.cohort_width_years,
    )


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_int(text: str | None) -> int | None:
    """Parse the leading integer of a cell ("29" → 29, "29.5" → 29, "" → None)."""
    if text is None:
        return None
    match = _LEADING_INT.match(text.strip())
    return int(match.group()) if match else None


def parse_training_table(
    text: str, delimiter: str = ",", config: EngineConfig | None = None
) -> list[dict[str, str]]:
    """Parse a delimited training table into accepted rows.

    The first non-blank line holds the column headers.  Blank lines are
    skipped and whitespace around headers and cells is stripped.  A row is
    accepted only if its cycle-length cell parses as an integer; everything
    else is dropped silently.

    Args:
        text:      Full text of the table.
        delimiter: Field delimiter.
        config:    Engine config (for column names).

    Returns:
        Accepted rows as header → cell mappings.

    Raises:
        csv.Error: If the text cannot be tokenised at all.
    """
    cfg = config or get_engine_config()
    cycle_col = cfg.population.column("cycle_length")

    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    headers: list[str] | None = None
    accepted: list[dict[str, str]] = []
    dropped = 0

    for cells in reader:
        if not any(cell.strip() for cell in cells):
            continue
        if headers is None:
            headers = [h.strip() for h in cells]
            continue
        row = {
            header: (cells[i].strip() if i < len(cells) else "")
            for i, header in enumerate(headers)
        }
        if parse_int(row.get(cycle_col)) is None:
            dropped += 1
            continue
        accepted.append(row)

    if dropped:
        logger.debug("Dropped %d training rows without a usable %s", dropped, cycle_col)
    return accepted


def _field_values(
    rows: list[dict[str, str]], column: str, low: int, high: int | None = None
) -> list[int]:
    """Integer values of ``column`` strictly inside (low, high)."""
    values = []
    for row in rows:
        value = parse_int(row.get(column))
        if value is None or value <= low:
            continue
        if high is not None and value >= high:
            continue
        values.append(value)
    return values


def build_population_model(
    rows: list[dict[str, str]], config: EngineConfig | None = None
) -> PopulationModel:
    """Build a PopulationModel from accepted training rows.

    Falls back to ``fallback_population_model()`` when there are no rows.
    A field whose filter leaves no values keeps its fallback summary.
    """
    cfg = config or get_engine_config()
    pc = cfg.population

    if not rows:
        logger.warning("Training table has no usable rows; using fallback population model")
        return fallback_population_model(cfg)

    bin_width = pc.distribution_bin_width

    def _summarise(
        values: list[int], fallback: PopulationFieldModel, name: str, include_range: bool = False
    ) -> PopulationFieldModel:
        if not values:
            logger.warning("No usable %s values in training table; using fallback", name)
            return fallback
        return PopulationFieldModel.from_values(values, bin_width, include_range)

    cycle_low, cycle_high = pc.cycle_length_bounds
    ov_low, ov_high = pc.ovulation_day_bounds
    cycle_length = _summarise(
        _field_values(rows, pc.column("cycle_length"), cycle_low, cycle_high),
        FALLBACK_CYCLE_LENGTH,
        "cycle length",
        include_range=True,
    )
    ovulation = _summarise(
        _field_values(rows, pc.column("ovulation_day"), ov_low, ov_high),
        FALLBACK_OVULATION,
        "ovulation day",
    )
    menses = _summarise(
        _field_values(rows, pc.column("menses_score"), 0),
        FALLBACK_MENSES_INTENSITY,
        "menses score",
    )
    fertility = _summarise(
        _field_values(rows, pc.column("fertility_days"), 0),
        FALLBACK_FERTILITY_WINDOW,
        "fertility window",
    )

    # Cohorts take every accepted row's cycle length, without the (0, 50) filter
    width = pc.cohort_width_years
    grouped: dict[int, list[int]] = {}
    for row in rows:
        age = parse_int(row.get(pc.column("age")))
        if age is None or age <= 0:
            continue
        length = parse_int(row.get(pc.column("cycle_length")))
        grouped.setdefault((age // width) * width, []).append(length)

    cohorts = {
        key: AgeCohortModel(
            mean=stats.mean(lengths),
            standard_deviation=stats.standard_deviation(lengths),
            count=len(lengths),
        )
        for key, lengths in sorted(grouped.items())
    }

    subject_col = pc.column("subject_id")
    subjects = {row.get(subject_col, "") for row in rows}

    model = PopulationModel(
        cycle_length=cycle_length,
        ovulation=ovulation,
        menses_intensity=menses,
        fertility_window=fertility,
        age_cohorts=cohorts,
        training_cycles=len(rows),
        unique_subjects=len(subjects),
        is_fallback=False,
        cohort_width_years=width,
    )
    logger.info(
        "Population model built from %d cycles (%d subjects, %d age cohorts)",
        model.training_cycles,
        model.unique_subjects,
        len(cohorts),
    )
    return model


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def _is_url(source: str | Path) -> bool:
    return isinstance(source, str) and source.lower().startswith(("http://", "https://"))


class PopulationModelLoader:
    """Fetch the training table once and cache the resulting model.

    The loader owns its cache; create one at startup and hand the model it
    produces to the predictor and insight generator.

    Usage::

        loader = PopulationModelLoader(settings.training_data_source)
        model = await loader.get()
    """

    def __init__(
        self,
        source: str | Path | None = None,
        *,
        timeout: float = 10.0,
        delimiter: str = ",",
        config: EngineConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the loader.

        Args:
            source:      Local file path or http(s) URL of the training table.
                         None means "no training data": the fallback is used.
            timeout:     HTTP timeout in seconds.
            delimiter:   Field delimiter of the table.
            config:      Engine config; defaults to the global singleton.
            http_client: Optional pre-configured httpx client (for testing).
        """
        self._source = source
        self._timeout = timeout
        self._delimiter = delimiter
        self._config = config or get_engine_config()
        self._http_client = http_client
        self._model: PopulationModel | None = None
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._model is not None

    async def get(self) -> PopulationModel:
        """Return the cached model, loading it on first call."""
        if self._model is None:
            async with self._lock:
                if self._model is None:
                    self._model = await self.load()
        return self._model

    def reset(self) -> None:
        """Forget the cached model so the next ``get()`` reloads."""
        self._model = None

    async def load(self) -> PopulationModel:
        """Load and build a fresh model without touching the cache.

        Any failure to fetch, decode, or parse the table is logged and
        answered with the fallback model.
        """
        if not self._source:
            logger.info("No training data source configured; using fallback population model")
            return fallback_population_model(self._config)

        try:
            text = await self._read_source()
            rows = parse_training_table(text, self._delimiter, self._config)
        except (
            httpx.HTTPError,
            httpx.InvalidURL,
            OSError,
            ValueError,
            csv.Error,
        ) as exc:
            logger.warning(
                "Could not load training data from %s (%s); using fallback population model",
                self._source,
                exc,
            )
            return fallback_population_model(self._config)

        return build_population_model(rows, self._config)

    async def _read_source(self) -> str:
        if _is_url(self._source):
            return await self._fetch(str(self._source))
        path = Path(self._source)
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    async def _fetch(self, url: str) -> str:
        logger.info("Fetching training data from %s", url)
        if self._http_client is not None:
            response = await self._http_client.get(url, timeout=self._timeout)
            response.raise_for_status()
            return response.text

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.text
