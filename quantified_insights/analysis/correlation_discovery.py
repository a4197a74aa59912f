"""
Correlation discovery across all daily metrics.

This module implements:
1. Pairwise search over the metric catalog with obvious-pair exclusion
2. Date alignment of each pair and the minimum-sample gate
3. Pearson or point-biserial correlation depending on the metric types
4. Significance/effect-size filtering and ranking of findings
5. Lag-aware, plain-language interpretation of each finding
"""

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from functools import cmp_to_key
from itertools import combinations
from typing import Any, Callable, Dict, FrozenSet, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from ..config import config
from .data_aggregator import (
    DailyMetricAggregator,
    DailyMetricRecord,
    MetricValue,
    ValueKind,
    extract_metric_values,
    get_minimum_sample_size,
    value_kind,
)
from .metric_catalog import (
    AVAILABLE_METRICS,
    OBVIOUS_PAIRS,
    MetricDefinition,
    obvious_pair_set,
    validate_catalog,
)
from .statistics import (
    CorrelationResult,
    calculate_pearson_correlation,
    calculate_point_biserial_correlation,
)

logger = logging.getLogger(__name__)

# p-values closer than this are ranked by |r| instead
P_VALUE_TIE_TOLERANCE = 0.001

MAX_DAYS = 3650


@dataclass(frozen=True)
class DateRange:
    """Inclusive analysis window."""
    start: date
    end: date

    def to_dict(self) -> Dict[str, str]:
        return {'start': self.start.isoformat(), 'end': self.end.isoformat()}


@dataclass(frozen=True)
class DiscoveredCorrelation:
    """A significant relationship between two metrics."""
    metric_a: MetricDefinition
    metric_b: MetricDefinition
    correlation: CorrelationResult
    date_range: DateRange
    interpretation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'metric_a': self.metric_a.to_dict(),
            'metric_b': self.metric_b.to_dict(),
            'correlation': self.correlation.to_dict(),
            'date_range': self.date_range.to_dict(),
            'interpretation': self.interpretation,
        }


@dataclass(frozen=True)
class DiscoveryOptions:
    """Options for a discovery run."""
    days: int = 90
    p_value_threshold: float = 0.1
    min_abs_r: float = 0.3
    metrics_to_analyze: Optional[Tuple[str, ...]] = None  # None = whole catalog

    def validate(self) -> None:
        """
        Raises:
            ValueError: if any option is out of range
        """
        if not 1 <= self.days <= MAX_DAYS:
            raise ValueError(f"days must be between 1 and {MAX_DAYS}")
        if not 0 <= self.p_value_threshold <= 1:
            raise ValueError("p_value_threshold must be between 0 and 1")
        if not 0 <= self.min_abs_r <= 1:
            raise ValueError("min_abs_r must be between 0 and 1")


class AlignedPoint(NamedTuple):
    date: date
    value_a: MetricValue
    value_b: MetricValue


def _expected_kind(metric: MetricDefinition) -> ValueKind:
    return ValueKind.BOOLEAN if metric.is_boolean else ValueKind.NUMERIC


def align_metrics_by_date(
    records: Sequence[DailyMetricRecord],
    metric_a: MetricDefinition,
    metric_b: MetricDefinition
) -> List[AlignedPoint]:
    """
    Align two metrics by date, keeping only days where both have values.

    A value only counts when its kind matches the metric's declared type, so
    boolean metrics stay boolean and continuous metrics stay numeric.
    """
    kind_a = _expected_kind(metric_a)
    kind_b = _expected_kind(metric_b)
    aligned = []

    for record in records:
        value_a = record.get(metric_a.key)
        value_b = record.get(metric_b.key)

        if value_kind(value_a) is not kind_a or value_kind(value_b) is not kind_b:
            continue

        aligned.append(AlignedPoint(record.date, value_a, value_b))

    return aligned


def compute_pair_correlation(
    metric_a: MetricDefinition,
    metric_b: MetricDefinition,
    aligned: Sequence[AlignedPoint]
) -> CorrelationResult:
    """
    Correlate an aligned pair: point-biserial when one metric is binary,
    Pearson when both are continuous.

    Raises:
        ValueError: if both metrics are binary
    """
    if metric_a.is_boolean and metric_b.is_boolean:
        raise ValueError(f"No correlation defined for two binary metrics: {metric_a.key}, {metric_b.key}")

    if metric_a.is_boolean:
        return calculate_point_biserial_correlation(
            [p.value_a for p in aligned],
            [p.value_b for p in aligned]
        )
    if metric_b.is_boolean:
        return calculate_point_biserial_correlation(
            [p.value_b for p in aligned],
            [p.value_a for p in aligned]
        )

    return calculate_pearson_correlation(
        [p.value_a for p in aligned],
        [p.value_b for p in aligned]
    )


def generate_interpretation(
    metric_a: MetricDefinition,
    metric_b: MetricDefinition,
    correlation: CorrelationResult
) -> str:
    """
    Generate a human-readable interpretation of a correlation.

    Previous-day metrics are phrased as preceding the other metric: yesterday's
    event, today's outcome.
    """
    if metric_a.is_boolean or metric_b.is_boolean:
        direction = "higher" if correlation.r > 0 else "lower"

        if metric_a.is_boolean and metric_a.is_lagged:
            interpretation = (
                f"On days after {metric_a.event_label}, {metric_b.label} tends to be {direction}."
            )
        elif metric_b.is_boolean and metric_b.is_lagged:
            interpretation = (
                f"On days after {metric_b.event_label}, {metric_a.label} tends to be {direction}."
            )
        else:
            binary_metric, continuous_metric = (
                (metric_a, metric_b) if metric_a.is_boolean else (metric_b, metric_a)
            )
            interpretation = (
                f"On days when {binary_metric.description}, "
                f"{continuous_metric.label} tends to be {direction}."
            )
    else:
        direction = "increase" if correlation.r > 0 else "decrease"

        if metric_a.is_lagged and not metric_b.is_lagged:
            interpretation = (
                f"When {metric_a.event_label} goes up, "
                f"next day's {metric_b.label} tends to {direction}."
            )
        elif metric_b.is_lagged and not metric_a.is_lagged:
            interpretation = (
                f"When {metric_b.event_label} goes up, "
                f"next day's {metric_a.label} tends to {direction}."
            )
        else:
            interpretation = (
                f"When {metric_a.label} goes up, {metric_b.label} tends to {direction}."
            )

    if correlation.strength in ("strong", "very strong"):
        interpretation += f" This is a {correlation.strength} relationship."

    if correlation.confidence == "strong":
        interpretation += " High statistical confidence (p < 0.01)."
    elif correlation.confidence == "moderate":
        interpretation += " Moderate statistical confidence (p < 0.05)."
    elif correlation.confidence == "exploratory":
        interpretation += " Exploratory finding (p < 0.1)."

    return interpretation


def _compare_findings(a: DiscoveredCorrelation, b: DiscoveredCorrelation) -> int:
    p_diff = a.correlation.p_value - b.correlation.p_value
    if abs(p_diff) > P_VALUE_TIE_TOLERANCE:
        return -1 if p_diff < 0 else 1

    r_diff = abs(b.correlation.r) - abs(a.correlation.r)
    return (r_diff > 0) - (r_diff < 0)


def sort_findings(findings: Sequence[DiscoveredCorrelation]) -> List[DiscoveredCorrelation]:
    """Sort by p-value ascending; near-equal p-values by |r| descending."""
    return sorted(findings, key=cmp_to_key(_compare_findings))


class CorrelationDiscoveryEngine:
    """
    Discovers statistically significant correlations between daily metrics.

    Every run fetches its own records once and returns a fresh list; the
    engine keeps no state between runs.
    """

    def __init__(
        self,
        aggregator: Optional[DailyMetricAggregator] = None,
        metrics: Optional[Sequence[MetricDefinition]] = None,
        obvious_pairs: Optional[Sequence[Tuple[str, str]]] = None,
        clock: Optional[Callable[[], date]] = None,
        max_workers: Optional[int] = None
    ):
        """
        Args:
            aggregator: Source of daily records; defaults to the SQL-backed aggregator
            metrics: Metric catalog; defaults to AVAILABLE_METRICS
            obvious_pairs: Excluded pairs; defaults to the OBVIOUS_PAIRS
                entries whose metrics are both in the catalog
            clock: Returns today's date; defaults to the current UTC date
            max_workers: Threads used to evaluate pairs; 1 runs sequentially

        Raises:
            CatalogError: if the catalog or obvious pairs are malformed
        """
        self.metrics = tuple(AVAILABLE_METRICS if metrics is None else metrics)
        if obvious_pairs is None:
            catalog_keys = {m.key for m in self.metrics}
            pairs = tuple(p for p in OBVIOUS_PAIRS if set(p) <= catalog_keys)
        else:
            pairs = tuple(obvious_pairs)
        self.metrics_by_key = validate_catalog(self.metrics, pairs)
        self._obvious: FrozenSet[FrozenSet[str]] = obvious_pair_set(pairs)

        self.aggregator = aggregator or DailyMetricAggregator(metrics=self.metrics)
        self.clock = clock or (lambda: datetime.now(timezone.utc).date())
        self.max_workers = max_workers or config.CORRELATION_MAX_WORKERS
        self.min_sample_size = get_minimum_sample_size()
        self.logger = logging.getLogger(__name__)

    def is_obvious_pair(self, key_a: str, key_b: str) -> bool:
        return frozenset((key_a, key_b)) in self._obvious

    def date_range_for(self, days: int) -> DateRange:
        """Window of `days` ending today."""
        end_date = self.clock()
        return DateRange(start=end_date - timedelta(days=days), end=end_date)

    def discover_correlations(
        self,
        options: Optional[DiscoveryOptions] = None,
        **overrides
    ) -> List[DiscoveredCorrelation]:
        """
        Discover all significant correlations in the analysis window.

        Args:
            options: Discovery options; defaults to DiscoveryOptions()
            **overrides: Individual option fields, applied over `options`

        Returns:
            Findings sorted by p-value, then by |r|

        Raises:
            ValueError: if an option is out of range
        """
        options = options or DiscoveryOptions()
        if overrides:
            options = replace(options, **overrides)
        options.validate()

        selected = self._select_metrics(options.metrics_to_analyze)
        date_range = self.date_range_for(options.days)

        self.logger.info(
            f"Starting correlation discovery over {len(selected)} metrics "
            f"({date_range.start} to {date_range.end})"
        )

        records = self.aggregator.fetch_daily_metrics(date_range.start, date_range.end)

        def evaluate(indices: Tuple[int, int]) -> Tuple[str, Optional[DiscoveredCorrelation]]:
            i, j = indices
            return self._evaluate_pair(selected[i], selected[j], records, options, date_range)

        pair_indices = list(combinations(range(len(selected)), 2))

        if self.max_workers > 1 and len(pair_indices) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                outcomes = list(executor.map(evaluate, pair_indices))
        else:
            outcomes = [evaluate(indices) for indices in pair_indices]

        tally = Counter(status for status, _ in outcomes)
        discoveries = sort_findings([finding for _, finding in outcomes if finding is not None])

        self.logger.info(
            f"Tested {len(pair_indices)} pairs: {tally['kept']} kept, "
            f"{tally['obvious']} obvious, {tally['boolean_pair']} boolean pairs, "
            f"{tally['insufficient_data']} insufficient data, "
            f"{tally['not_significant']} not significant"
        )

        return discoveries

    def get_correlation_between(
        self,
        metric_a: str,
        metric_b: str,
        days: int = 90
    ) -> Optional[DiscoveredCorrelation]:
        """
        Get the correlation between two specific metrics, without thresholds.

        Returns:
            The finding, or None if a key is unknown, the keys are identical,
            both metrics are binary, or the sample is too small
        """
        definition_a = self.metrics_by_key.get(metric_a)
        definition_b = self.metrics_by_key.get(metric_b)

        if definition_a is None or definition_b is None:
            self.logger.debug(f"Unknown metric in pair: {metric_a}, {metric_b}")
            return None
        if metric_a == metric_b or (definition_a.is_boolean and definition_b.is_boolean):
            return None

        DiscoveryOptions(days=days).validate()
        date_range = self.date_range_for(days)
        records = self.aggregator.fetch_daily_metrics(date_range.start, date_range.end)

        aligned = align_metrics_by_date(records, definition_a, definition_b)
        if len(aligned) < self.min_sample_size:
            return None

        correlation = compute_pair_correlation(definition_a, definition_b, aligned)
        if correlation.n < self.min_sample_size:
            return None

        return DiscoveredCorrelation(
            metric_a=definition_a,
            metric_b=definition_b,
            correlation=correlation,
            date_range=date_range,
            interpretation=generate_interpretation(definition_a, definition_b, correlation),
        )

    def summarize_metric(self, metric_key: str, days: int = 90) -> Optional[Dict[str, Any]]:
        """
        Univariate summary of one continuous metric over the window.

        Returns:
            Dict with n, mean, std, min, max and the first/last dates with
            data, or None for unknown keys and metrics without values
        """
        definition = self.metrics_by_key.get(metric_key)
        if definition is None:
            return None

        DiscoveryOptions(days=days).validate()
        date_range = self.date_range_for(days)
        records = self.aggregator.fetch_daily_metrics(date_range.start, date_range.end)

        dates, values = extract_metric_values(records, metric_key)
        if not values:
            return None

        arr = np.asarray(values, dtype=float)
        return {
            'metric': definition.to_dict(),
            'date_range': date_range.to_dict(),
            'n': len(values),
            'mean': float(arr.mean()),
            'std': float(arr.std(ddof=1)) if len(values) > 1 else 0.0,
            'min': float(arr.min()),
            'max': float(arr.max()),
            'first_date': dates[0].isoformat(),
            'last_date': dates[-1].isoformat(),
        }

    def _select_metrics(self, keys: Optional[Sequence[str]]) -> Tuple[MetricDefinition, ...]:
        if keys is None:
            return self.metrics

        unknown = [key for key in keys if key not in self.metrics_by_key]
        if unknown:
            self.logger.debug(f"Ignoring unknown metrics: {', '.join(unknown)}")

        wanted = set(keys)
        return tuple(m for m in self.metrics if m.key in wanted)

    def _evaluate_pair(
        self,
        metric_a: MetricDefinition,
        metric_b: MetricDefinition,
        records: Sequence[DailyMetricRecord],
        options: DiscoveryOptions,
        date_range: DateRange
    ) -> Tuple[str, Optional[DiscoveredCorrelation]]:
        if metric_a.is_boolean and metric_b.is_boolean:
            return 'boolean_pair', None

        if self.is_obvious_pair(metric_a.key, metric_b.key):
            return 'obvious', None

        aligned = align_metrics_by_date(records, metric_a, metric_b)
        if len(aligned) < self.min_sample_size:
            self.logger.debug(
                f"Skipping {metric_a.key} x {metric_b.key}: {len(aligned)} aligned days"
            )
            return 'insufficient_data', None

        correlation = compute_pair_correlation(metric_a, metric_b, aligned)
        if correlation.n < self.min_sample_size:
            return 'insufficient_data', None

        if correlation.p_value > options.p_value_threshold or abs(correlation.r) < options.min_abs_r:
            return 'not_significant', None

        return 'kept', DiscoveredCorrelation(
            metric_a=metric_a,
            metric_b=metric_b,
            correlation=correlation,
            date_range=date_range,
            interpretation=generate_interpretation(metric_a, metric_b, correlation),
        )


def discover_correlations(**options) -> List[DiscoveredCorrelation]:
    """
    Convenience function to run correlation discovery against the database.

    Args:
        **options: DiscoveryOptions fields (days, p_value_threshold, min_abs_r,
            metrics_to_analyze); unset fields come from the configuration

    Returns:
        Ranked findings
    """
    options = {**config.get_discovery_defaults(), **options}
    if options.get('metrics_to_analyze') is not None:
        options['metrics_to_analyze'] = tuple(options['metrics_to_analyze'])
    engine = CorrelationDiscoveryEngine()
    return engine.discover_correlations(DiscoveryOptions(**options))


def get_correlation_between(
    metric_a: str,
    metric_b: str,
    days: int = 90
) -> Optional[DiscoveredCorrelation]:
    """Convenience function for a single-pair lookup against the database."""
    engine = CorrelationDiscoveryEngine()
    return engine.get_correlation_between(metric_a, metric_b, days=days)
