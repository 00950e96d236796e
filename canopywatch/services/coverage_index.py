"""
Lookup of externally supplied per-cell coverage percentages.

The feed publishes, for every observation date, coverage tables keyed by the
string "{col},{row}". Grid cells and coverage entries share that key, so this
module only has to agree on its shape and decide what a missing entry means.
Observation dates are sparse, so missing entries resolve to configured
defaults instead of raising.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from canopywatch.config import settings
from canopywatch.models.coverage import CoverageComparison, CoverageKey, Observation

logger = logging.getLogger(__name__)

KeyLike = Union[str, CoverageKey, Tuple[int, int]]


def coverage_key(col: int, row: int) -> str:
    """Canonical key of the cell at (col, row): column first."""
    return str(CoverageKey(col=col, row=row))


def parse_coverage_key(value: KeyLike) -> CoverageKey:
    """
    Normalizes a key given as "col,row", a (col, row) tuple or a CoverageKey.

    Raises:
        ValueError: If the value is not a well-formed key.
    """
    if isinstance(value, CoverageKey):
        return value
    if isinstance(value, tuple):
        if len(value) != 2:
            raise ValueError(f"Coverage key tuple must be (col, row), got {value!r}")
        return CoverageKey(col=value[0], row=value[1])

    parts = str(value).split(",")
    if len(parts) != 2:
        raise ValueError(f"Coverage key must look like 'col,row', got {value!r}")
    try:
        col, row = (int(part.strip()) for part in parts)
    except ValueError:
        raise ValueError(f"Coverage key must contain two integers, got {value!r}") from None
    return CoverageKey(col=col, row=row)


class CoverageIndex:
    """
    Read-only view over the feed's observations, indexed by date and cell key.
    """

    def __init__(
        self,
        observations: Mapping[str, Observation],
        missing_default: Optional[float] = None,
        baseline_missing_default: Optional[float] = None,
    ):
        """
        Args:
            observations (Mapping[str, Observation]): Observations keyed by date.
            missing_default (Optional[float]): Coverage returned for a missing
                date or key. Defaults to COVERAGE_MISSING_DEFAULT (0.0).
            baseline_missing_default (Optional[float]): Baseline coverage
                returned for a missing key. Defaults to BASELINE_MISSING_DEFAULT
                (100.0).
        """
        self._observations: Dict[str, Observation] = dict(observations)
        self.missing_default = (
            settings.COVERAGE_MISSING_DEFAULT if missing_default is None else missing_default
        )
        self.baseline_missing_default = (
            settings.BASELINE_MISSING_DEFAULT
            if baseline_missing_default is None
            else baseline_missing_default
        )

    @classmethod
    def from_feed(cls, payload: Mapping[str, Any], **kwargs) -> "CoverageIndex":
        """Builds an index from the feed's JSON body: {date: observation}."""
        observations = {date: Observation.model_validate(entry) for date, entry in payload.items()}
        logger.info("Loaded coverage index with %d observation dates", len(observations))
        return cls(observations, **kwargs)

    def __len__(self) -> int:
        return len(self._observations)

    def __contains__(self, date: str) -> bool:
        return date in self._observations

    def dates(self) -> List[str]:
        """Observation dates, oldest first."""
        return sorted(self._observations)

    def default_pair(self) -> Optional[Tuple[str, str]]:
        """
        The two dates a comparison starts from: the two oldest observations,
        or the only one twice. None when the index is empty.
        """
        dates = self.dates()
        if not dates:
            return None
        return dates[0], dates[1] if len(dates) > 1 else dates[0]

    def observation(self, date: str) -> Optional[Observation]:
        return self._observations.get(date)

    def lookup(self, key: KeyLike, date: str) -> float:
        """
        Coverage percentage of a cell on a date.

        A date without an observation, or an observation without an entry for
        the key, resolves to missing_default.
        """
        key_str = str(parse_coverage_key(key))
        observation = self._observations.get(date)
        if observation is None:
            logger.debug("No observation for date %s; using default %.1f", date, self.missing_default)
            return self.missing_default
        return observation.forest_coverage.get(key_str, self.missing_default)

    def baseline_lookup(self, key: KeyLike, date: str) -> float:
        """
        Baseline coverage the feed ships alongside the observation for a date.
        Missing entries resolve to baseline_missing_default.
        """
        key_str = str(parse_coverage_key(key))
        observation = self._observations.get(date)
        if observation is None:
            return self.baseline_missing_default
        return observation.baseline_coverage.get(key_str, self.baseline_missing_default)

    def compare(
        self,
        key: KeyLike,
        date: str,
        baseline_date: Optional[str] = None,
        threshold: Optional[float] = None,
    ) -> CoverageComparison:
        """
        Measures the coverage of a cell on a date against a baseline.

        Args:
            key: The cell key.
            date (str): The observation date to evaluate.
            baseline_date (Optional[str]): Date whose coverage is the baseline.
                When None, COMPARISON_BASELINE_DATE is used if configured, and
                otherwise the baseline table of the observation itself.
            threshold (Optional[float]): Decrease, in percentage points, above
                which the cell is at risk. Defaults to DECREASE_WARNING_THRESHOLD.
        """
        key_str = str(parse_coverage_key(key))
        if baseline_date is None:
            baseline_date = settings.COMPARISON_BASELINE_DATE
        if threshold is None:
            threshold = settings.DECREASE_WARNING_THRESHOLD

        coverage = self.lookup(key_str, date)
        if baseline_date is None:
            baseline = self.baseline_lookup(key_str, date)
        else:
            baseline = self.lookup(key_str, baseline_date)

        decrease = baseline - coverage
        return CoverageComparison(
            key=key_str,
            date=date,
            coverage=coverage,
            baseline_coverage=baseline,
            baseline_date=baseline_date,
            decrease=decrease,
            threshold=threshold,
            at_risk=decrease > threshold,
        )
