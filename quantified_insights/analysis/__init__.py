"""Analysis module for daily metric correlation discovery."""

from .statistics import (
    CorrelationResult,
    calculate_pearson_correlation,
    calculate_point_biserial_correlation,
)
from .metric_catalog import AVAILABLE_METRICS, CatalogError, MetricDefinition
from .data_aggregator import DailyMetricAggregator, DailyMetricRecord
from .correlation_discovery import (
    CorrelationDiscoveryEngine,
    DiscoveredCorrelation,
    DiscoveryOptions,
)

__all__ = [
    "CorrelationResult",
    "calculate_pearson_correlation",
    "calculate_point_biserial_correlation",
    "AVAILABLE_METRICS",
    "CatalogError",
    "MetricDefinition",
    "DailyMetricAggregator",
    "DailyMetricRecord",
    "CorrelationDiscoveryEngine",
    "DiscoveredCorrelation",
    "DiscoveryOptions",
]
