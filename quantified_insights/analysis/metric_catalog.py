"""Static catalog of daily metrics and the pairs excluded from discovery.

Both tables are plain data, validated once at import. A malformed catalog
raises ``CatalogError`` and stops the process before any analysis runs.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

BOOLEAN_UNIT = "boolean"
LAGGED_PREFIX = "prevDay"
LAGGED_LABEL_PREFIX = "Previous Day "


class CatalogError(ValueError):
    """Raised when the metric catalog or the obvious-pairs table is malformed."""


@dataclass(frozen=True)
class MetricDefinition:
    """A metric available for correlation analysis."""
    key: str
    label: str
    description: str
    unit: str

    @property
    def is_boolean(self) -> bool:
        return self.unit == BOOLEAN_UNIT

    @property
    def is_lagged(self) -> bool:
        """True for previous-day metrics."""
        return self.key.startswith(LAGGED_PREFIX)

    @property
    def event_label(self) -> str:
        """Label without the previous-day prefix, for time-ordered prose."""
        if self.label.startswith(LAGGED_LABEL_PREFIX):
            return self.label[len(LAGGED_LABEL_PREFIX):]
        return self.label

    def to_dict(self) -> Dict[str, str]:
        return {
            'key': self.key,
            'label': self.label,
            'description': self.description,
            'unit': self.unit,
        }


AVAILABLE_METRICS: Tuple[MetricDefinition, ...] = (
    # Sleep & focus
    MetricDefinition("sleepScore", "Sleep Score", "Sleep quality score (0-100)", "points"),
    MetricDefinition("focusMinutes", "Focus Time", "Deep focus work time", "minutes"),

    # Rituals
    MetricDefinition("readingMinutes", "Reading Time", "Time spent reading", "minutes"),
    MetricDefinition("outdoorMinutes", "Outdoor Time", "Time spent outdoors", "minutes"),
    MetricDefinition("writingMinutes", "Writing Time", "Time spent writing", "minutes"),

    # Coffee
    MetricDefinition("coffeeCount", "Coffee Cups", "Number of coffee servings", "cups"),
    MetricDefinition("totalCaffeineMg", "Caffeine Intake", "Total caffeine consumed", "mg"),

    # Running
    MetricDefinition("runDistanceKm", "Running Distance", "Distance ran", "km"),
    MetricDefinition("runDurationMin", "Running Duration", "Time spent running", "minutes"),

    # Other workouts
    MetricDefinition("workoutCount", "Workout Sessions", "Number of workout sessions", "sessions"),
    MetricDefinition("workoutDurationMin", "Workout Duration", "Total workout time", "minutes"),

    # Weather
    MetricDefinition("avgTempCelsius", "Temperature", "Average daily temperature", "°C"),
    MetricDefinition("avgHumidity", "Humidity", "Average daily humidity", "%"),
    MetricDefinition("avgCloudiness", "Cloudiness", "Average daily cloud cover", "%"),
    MetricDefinition("sunnyDay", "Sunny Day", "it was sunny (low cloud cover)", BOOLEAN_UNIT),

    # Subjective ratings
    MetricDefinition("mood", "Mood", "Daily mood rating (1-10)", "score"),
    MetricDefinition("energy", "Energy", "Daily energy level (1-10)", "score"),
    MetricDefinition("stress", "Stress", "Daily stress level (1-10)", "score"),
    MetricDefinition("focusQuality", "Focus Quality", "Subjective focus quality (1-10)", "score"),

    # Previous-day metrics
    MetricDefinition("prevDayWorkout", "Previous Day Workout",
                     "a workout was logged the previous day", BOOLEAN_UNIT),
    MetricDefinition("prevDayWorkoutDuration", "Previous Day Workout Duration",
                     "Total workout time on the previous day", "minutes"),
    MetricDefinition("prevDayRunning", "Previous Day Run",
                     "a run was logged the previous day", BOOLEAN_UNIT),
    MetricDefinition("prevDayRunDistance", "Previous Day Running Distance",
                     "Distance ran on the previous day", "km"),
    MetricDefinition("prevDayCaffeineMg", "Previous Day Caffeine Intake",
                     "Total caffeine consumed on the previous day", "mg"),
)


# Pairs where one metric is derived from, or physically tied to, the other
OBVIOUS_PAIRS: Tuple[Tuple[str, str], ...] = (
    ("totalCaffeineMg", "coffeeCount"),  # caffeine is computed from the brews
    ("runDistanceKm", "runDurationMin"),
    ("outdoorMinutes", "runDurationMin"),  # running is outdoor time
    ("outdoorMinutes", "runDistanceKm"),
    ("workoutCount", "workoutDurationMin"),
    ("prevDayWorkout", "prevDayWorkoutDuration"),
    ("prevDayRunning", "prevDayRunDistance"),
    ("avgCloudiness", "sunnyDay"),  # sunnyDay is cloudiness < threshold
    ("avgTempCelsius", "avgHumidity"),
    ("avgCloudiness", "avgTempCelsius"),
    ("avgCloudiness", "avgHumidity"),
    # a lagged series against its own same-day series is autocorrelation
    ("prevDayWorkoutDuration", "workoutDurationMin"),
    ("prevDayRunDistance", "runDistanceKm"),
    ("prevDayCaffeineMg", "totalCaffeineMg"),
)


def validate_catalog(
    metrics: Iterable[MetricDefinition],
    obvious_pairs: Iterable[Tuple[str, str]] = ()
) -> Dict[str, MetricDefinition]:
    """
    Validate catalog entries and return them indexed by key.

    Raises:
        CatalogError: on duplicate keys, empty required fields, or an
            obvious pair naming an unknown or identical key
    """
    by_key: Dict[str, MetricDefinition] = {}

    for metric in metrics:
        for field_name in ("key", "label", "description", "unit"):
            value = getattr(metric, field_name, None)
            if not isinstance(value, str) or not value.strip():
                raise CatalogError(
                    f"Metric {getattr(metric, 'key', metric)!r} is missing required field '{field_name}'"
                )
        if metric.key in by_key:
            raise CatalogError(f"Duplicate metric key: {metric.key}")
        by_key[metric.key] = metric

    for pair in obvious_pairs:
        if len(pair) != 2:
            raise CatalogError(f"Obvious pair must name exactly two metrics: {pair!r}")
        key_a, key_b = pair
        if key_a == key_b:
            raise CatalogError(f"Obvious pair repeats a metric: {key_a}")
        for key in pair:
            if key not in by_key:
                raise CatalogError(f"Obvious pair names unknown metric: {key}")

    return by_key


METRICS_BY_KEY: Dict[str, MetricDefinition] = validate_catalog(AVAILABLE_METRICS, OBVIOUS_PAIRS)


def get_metric(key: str) -> Optional[MetricDefinition]:
    """Look up a metric definition by key."""
    return METRICS_BY_KEY.get(key)


def obvious_pair_set(pairs: Iterable[Tuple[str, str]]) -> FrozenSet[FrozenSet[str]]:
    """Index obvious pairs so a lookup matches either order."""
    return frozenset(frozenset(pair) for pair in pairs)
