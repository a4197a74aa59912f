"""
Daily metric aggregation for correlation discovery.

Aggregates the independent daily sources (day log, coffee, workouts, weather,
subjective ratings) and aligns them on a calendar spine: one record per date in
the requested window, gap days included.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..config import config
from .metric_catalog import AVAILABLE_METRICS, MetricDefinition

logger = logging.getLogger(__name__)

MetricValue = Optional[Union[float, bool]]

MINIMUM_SAMPLE_SIZE = 10

# Approximate caffeine content per ml for each brew method
CAFFEINE_MG_PER_ML = {
    'espresso': 2.1,
    'v60': 0.8,
    'chemex': 0.8,
    'moka': 1.6,
    'aero': 1.1,
    'cold_brew': 1.0,
    'other': 1.0,
}

# Serving size assumed when a brew was logged without an amount
DEFAULT_SERVING_ML = {
    'espresso': 38,
    'v60': 250,
    'chemex': 300,
    'moka': 60,
    'aero': 200,
    'cold_brew': 250,
    'other': 200,
}

SOURCE_TABLES = ('days', 'coffee_log', 'workouts', 'location_history', 'subjective_metrics')


class ValueKind(Enum):
    """Kind of a single metric value on a given day."""
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    MISSING = "missing"


def value_kind(value: Any) -> ValueKind:
    """Resolve a stored metric value to its kind."""
    if value is None:
        return ValueKind.MISSING
    # bool before numbers: True is an int in Python
    if isinstance(value, (bool, np.bool_)):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float, np.integer, np.floating)):
        return ValueKind.MISSING if np.isnan(value) else ValueKind.NUMERIC
    return ValueKind.MISSING


@dataclass(frozen=True)
class DailyMetricRecord:
    """All metric values for one calendar day."""
    date: date
    values: Mapping[str, MetricValue] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'values', MappingProxyType(dict(self.values)))

    def get(self, key: str) -> MetricValue:
        return self.values.get(key)

    def to_dict(self) -> Dict[str, Any]:
        return {'date': self.date.isoformat(), **self.values}


def caffeine_for_brew(brew_type: Optional[str], amount_ml: Optional[float]) -> float:
    """Estimate caffeine (mg) for one brew from its type and volume."""
    brew = brew_type if brew_type in CAFFEINE_MG_PER_ML else 'other'
    if amount_ml is None or pd.isna(amount_ml):
        amount_ml = DEFAULT_SERVING_ML[brew]
    return float(amount_ml) * CAFFEINE_MG_PER_ML[brew]


def _as_date(value: Union[date, datetime, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _to_metric_value(value: Any, is_boolean: bool) -> MetricValue:
    if value is None or pd.isna(value):
        return None
    return bool(value) if is_boolean else float(value)


def _frame(rows: Sequence[Dict[str, Any]], numeric_cols: Iterable[str]) -> pd.DataFrame:
    df = pd.DataFrame(list(rows))
    for col in numeric_cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors='coerce')
    return df


def _zero_to_missing(df: pd.DataFrame, columns: Iterable[str]) -> pd.DataFrame:
    for col in columns:
        df[col] = df[col].where(df[col] != 0)
    return df


class DailyMetricAggregator:
    """
    Builds date-aligned daily metric records from independent sources.

    Every source is optional per day; a day without data for a source gets
    None for that source's metrics, never a missing record.
    """

    def __init__(
        self,
        source=None,
        metrics: Sequence[MetricDefinition] = AVAILABLE_METRICS,
        sunny_threshold: Optional[float] = None
    ):
        """
        Args:
            source: Object exposing fetch_raw_daily_rows(table, start, end);
                defaults to the SQL-backed MetricSource
            metrics: Metrics included in each record
            sunny_threshold: Cloudiness (%) below which a day is sunny
        """
        if source is None:
            from ..db.source import MetricSource
            source = MetricSource()
        self.source = source
        self.metrics = tuple(metrics)
        self.sunny_threshold = (
            config.SUNNY_CLOUDINESS_THRESHOLD if sunny_threshold is None else sunny_threshold
        )
        self.logger = logging.getLogger(__name__)

    def fetch_daily_metrics(
        self,
        start_date: Union[date, datetime, str],
        end_date: Union[date, datetime, str]
    ) -> List[DailyMetricRecord]:
        """
        Fetch aggregated daily metrics for a date range.

        Args:
            start_date: Start date (inclusive)
            end_date: End date (inclusive)

        Returns:
            One record per date, ascending, (end - start).days + 1 entries

        Raises:
            ValueError: if start_date is after end_date
        """
        start_date = _as_date(start_date)
        end_date = _as_date(end_date)
        if start_date > end_date:
            raise ValueError(f"start_date {start_date} is after end_date {end_date}")

        # One extra leading day feeds the previous-day metrics of start_date
        fetch_start = start_date - timedelta(days=1)
        raw = {
            table: self.source.fetch_raw_daily_rows(table, fetch_start, end_date)
            for table in SOURCE_TABLES
        }

        df = pd.DataFrame({'date': pd.date_range(start=fetch_start, end=end_date, freq='D')})

        for daily_df in (
            self._days_daily(raw['days']),
            self._coffee_daily(raw['coffee_log']),
            self._runs_daily(raw['workouts']),
            self._workouts_daily(raw['workouts']),
            self._weather_daily(raw['location_history']),
            self._subjective_daily(raw['subjective_metrics']),
        ):
            if not daily_df.empty:
                df = df.merge(daily_df, on='date', how='left')

        df = self._add_lagged_metrics(df)
        df = df[df['date'] >= pd.Timestamp(start_date)].reset_index(drop=True)

        records = self._to_records(df)

        self.logger.info(
            f"Aggregated {len(records)} daily records ({start_date} to {end_date}) "
            f"from {sum(len(rows) for rows in raw.values())} source rows"
        )
        return records

    def _days_daily(self, rows: Sequence[Dict[str, Any]]) -> pd.DataFrame:
        if not rows:
            return pd.DataFrame()

        days = _frame(rows, ['sleep_score', 'focus_minutes', 'reading_minutes',
                             'outdoor_minutes', 'writing_minutes'])
        days['date'] = pd.to_datetime(days['date'])

        return days.rename(columns={
            'sleep_score': 'sleepScore',
            'focus_minutes': 'focusMinutes',
            'reading_minutes': 'readingMinutes',
            'outdoor_minutes': 'outdoorMinutes',
            'writing_minutes': 'writingMinutes',
        }).drop_duplicates(subset='date', keep='last')

    def _coffee_daily(self, rows: Sequence[Dict[str, Any]]) -> pd.DataFrame:
        if not rows:
            return pd.DataFrame()

        coffee = _frame(rows, ['amount_ml'])
        coffee['date'] = pd.to_datetime(coffee['date'])
        coffee['caffeine_mg'] = [
            caffeine_for_brew(brew, amount)
            for brew, amount in zip(coffee['type'], coffee['amount_ml'])
        ]

        daily = coffee.groupby('date').agg(
            coffeeCount=('caffeine_mg', 'size'),
            totalCaffeineMg=('caffeine_mg', 'sum'),
        ).reset_index()
        daily['coffeeCount'] = daily['coffeeCount'].astype(float)

        return _zero_to_missing(daily, ['coffeeCount', 'totalCaffeineMg'])

    def _runs_daily(self, rows: Sequence[Dict[str, Any]]) -> pd.DataFrame:
        if not rows:
            return pd.DataFrame()

        workouts = _frame(rows, ['duration_min', 'distance_km'])
        workouts['date'] = pd.to_datetime(workouts['date'])
        runs = workouts[workouts['workout_type'] == 'running']
        if runs.empty:
            return pd.DataFrame()

        # Presence of any run, with or without a recorded distance
        ran = runs.groupby('date').size().rename('_runCount').reset_index()

        measured = runs[runs['distance_km'].notna()]
        if measured.empty:
            return ran

        daily = measured.groupby('date').agg(
            runDistanceKm=('distance_km', 'sum'),
            runDurationMin=('duration_min', 'sum'),
        ).reset_index()
        daily = _zero_to_missing(daily, ['runDistanceKm', 'runDurationMin'])

        return ran.merge(daily, on='date', how='left')

    def _workouts_daily(self, rows: Sequence[Dict[str, Any]]) -> pd.DataFrame:
        if not rows:
            return pd.DataFrame()

        workouts = _frame(rows, ['duration_min'])
        workouts['date'] = pd.to_datetime(workouts['date'])
        # Running is counted separately
        others = workouts[workouts['workout_type'] != 'running']
        if others.empty:
            return pd.DataFrame()

        daily = others.groupby('date').agg(
            workoutCount=('workout_type', 'size'),
            workoutDurationMin=('duration_min', 'sum'),
        ).reset_index()
        daily['workoutCount'] = daily['workoutCount'].astype(float)

        return _zero_to_missing(daily, ['workoutDurationMin'])

    def _weather_daily(self, rows: Sequence[Dict[str, Any]]) -> pd.DataFrame:
        if not rows:
            return pd.DataFrame()

        weather = _frame(rows, ['temp_celsius', 'humidity', 'cloudiness'])
        weather['date'] = pd.to_datetime([pd.Timestamp(ts).date() for ts in weather['logged_at']])
        weather = weather[weather['temp_celsius'].notna()]
        if weather.empty:
            return pd.DataFrame()

        daily = weather.groupby('date').agg(
            avgTempCelsius=('temp_celsius', 'mean'),
            avgHumidity=('humidity', 'mean'),
            avgCloudiness=('cloudiness', 'mean'),
        ).reset_index()

        daily['sunnyDay'] = [
            None if pd.isna(cloudiness) else bool(cloudiness < self.sunny_threshold)
            for cloudiness in daily['avgCloudiness']
        ]
        return daily

    def _subjective_daily(self, rows: Sequence[Dict[str, Any]]) -> pd.DataFrame:
        if not rows:
            return pd.DataFrame()

        ratings = _frame(rows, ['mood', 'energy', 'stress', 'focus_quality'])
        ratings['date'] = pd.to_datetime(ratings['date'])

        return ratings.rename(columns={
            'focus_quality': 'focusQuality',
        }).drop_duplicates(subset='date', keep='last')

    def _add_lagged_metrics(self, df: pd.DataFrame) -> pd.DataFrame:
        """Add previous-day columns; the spine is contiguous so shift(1) is yesterday."""
        same_day = ['_runCount'] + [m.key for m in AVAILABLE_METRICS if not m.is_lagged]
        for col in same_day:
            if col not in df.columns:
                df[col] = np.nan

        df['prevDayWorkout'] = df['workoutCount'].notna().shift(1, fill_value=False)
        df['prevDayWorkoutDuration'] = df['workoutDurationMin'].shift(1)
        df['prevDayRunning'] = df['_runCount'].notna().shift(1, fill_value=False)
        df['prevDayRunDistance'] = df['runDistanceKm'].shift(1)
        df['prevDayCaffeineMg'] = df['totalCaffeineMg'].shift(1)

        return df

    def _to_records(self, df: pd.DataFrame) -> List[DailyMetricRecord]:
        records = []
        for row in df.to_dict(orient='records'):
            values = {
                metric.key: _to_metric_value(row.get(metric.key), metric.is_boolean)
                for metric in self.metrics
            }
            records.append(DailyMetricRecord(date=row['date'].date(), values=values))
        return records


def extract_metric_values(
    records: Sequence[DailyMetricRecord],
    metric_key: str
) -> Tuple[List[date], List[float]]:
    """
    Extract the values of one metric across all days.

    Missing and boolean values are skipped; returns parallel lists of dates
    and float values.
    """
    dates: List[date] = []
    values: List[float] = []

    for record in records:
        value = record.get(metric_key)
        if value_kind(value) is not ValueKind.NUMERIC:
            continue
        dates.append(record.date)
        values.append(float(value))

    return dates, values


def get_minimum_sample_size() -> int:
    """Minimum number of aligned days required before computing a correlation."""
    return MINIMUM_SAMPLE_SIZE
