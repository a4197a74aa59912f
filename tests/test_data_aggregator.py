"""Tests for daily metric aggregation."""

from datetime import date, datetime, timedelta

import pytest
import numpy as np

from quantified_insights.analysis.data_aggregator import (
    DailyMetricAggregator,
    DailyMetricRecord,
    ValueKind,
    caffeine_for_brew,
    extract_metric_values,
    get_minimum_sample_size,
    value_kind,
)
from quantified_insights.analysis.metric_catalog import AVAILABLE_METRICS
from quantified_insights.db import (
    CoffeeLog,
    Database,
    Day,
    LocationHistory,
    MetricSource,
    SubjectiveMetric,
    Workout,
)

START = date(2025, 3, 1)
END = date(2025, 3, 31)


def by_date(records):
    return {record.date: record for record in records}


class TestAggregatorAlignment:
    """The date spine holds regardless of how sparse the sources are."""

    def test_one_record_per_day_with_no_data(self, in_memory_source):
        """Test the date spine holds with no source data."""
        aggregator = DailyMetricAggregator(source=in_memory_source({}))

        records = aggregator.fetch_daily_metrics(START, END)

        assert len(records) == (END - START).days + 1
        assert [r.date for r in records] == [START + timedelta(days=i) for i in range(31)]
        for record in records:
            assert set(record.values) == {m.key for m in AVAILABLE_METRICS}
            for metric in AVAILABLE_METRICS:
                if metric.is_lagged and metric.is_boolean:
                    assert record.get(metric.key) is False
                else:
                    assert record.get(metric.key) is None

    def test_sparse_sources_keep_gap_days(self, in_memory_source):
        """Test sparse sources leave gap days as None."""
        source = in_memory_source({
            'days': [{'date': date(2025, 3, 10), 'sleep_score': 82, 'focus_minutes': 120,
                      'reading_minutes': 30, 'outdoor_minutes': None, 'writing_minutes': 0}],
            'subjective_metrics': [{'date': date(2025, 3, 20), 'mood': 7, 'energy': 6,
                                    'stress': 3, 'focus_quality': 8}],
        })

        records = by_date(DailyMetricAggregator(source=source).fetch_daily_metrics(START, END))

        assert len(records) == 31
        assert records[date(2025, 3, 10)].get('sleepScore') == 82.0
        assert records[date(2025, 3, 10)].get('writingMinutes') == 0.0
        assert records[date(2025, 3, 10)].get('outdoorMinutes') is None
        assert records[date(2025, 3, 10)].get('mood') is None
        assert records[date(2025, 3, 20)].get('focusQuality') == 8.0
        assert records[date(2025, 3, 11)].get('sleepScore') is None

    def test_single_day_window(self, in_memory_source):
        """Test a window of one day."""
        records = DailyMetricAggregator(source=in_memory_source({})).fetch_daily_metrics(START, START)
        assert len(records) == 1
        assert records[0].date == START

    def test_accepts_iso_strings_and_datetimes(self, in_memory_source):
        """Test ISO strings and datetimes as window bounds."""
        aggregator = DailyMetricAggregator(source=in_memory_source({}))

        records = aggregator.fetch_daily_metrics("2025-03-01", datetime(2025, 3, 5, 18, 30))

        assert len(records) == 5

    def test_reversed_window_raises(self, in_memory_source):
        """Test start after end is rejected."""
        aggregator = DailyMetricAggregator(source=in_memory_source({}))
        with pytest.raises(ValueError):
            aggregator.fetch_daily_metrics(END, START)

    def test_fetches_previous_day_for_lagged_metrics(self, in_memory_source):
        """Test every source is read from the day before the window."""
        source = in_memory_source({})
        DailyMetricAggregator(source=source).fetch_daily_metrics(START, END)

        assert {call[0] for call in source.calls} == {
            'days', 'coffee_log', 'workouts', 'location_history', 'subjective_metrics'
        }
        assert all(call[1] == START - timedelta(days=1) for call in source.calls)
        assert all(call[2] == END for call in source.calls)


class TestSourceAggregates:
    """Per-source daily aggregation."""

    def test_coffee_totals(self, in_memory_source):
        """Test daily coffee count and caffeine total."""
        day = date(2025, 3, 5)
        source = in_memory_source({'coffee_log': [
            {'date': day, 'type': 'espresso', 'amount_ml': None},
            {'date': day, 'type': 'v60', 'amount_ml': 250},
            {'date': date(2025, 3, 6), 'type': 'turkish', 'amount_ml': 100},
        ]})

        records = by_date(DailyMetricAggregator(source=source).fetch_daily_metrics(START, END))

        assert records[day].get('coffeeCount') == 2.0
        assert records[day].get('totalCaffeineMg') == pytest.approx(38 * 2.1 + 250 * 0.8)
        assert records[date(2025, 3, 6)].get('totalCaffeineMg') == pytest.approx(100.0)
        assert records[date(2025, 3, 7)].get('coffeeCount') is None

    def test_caffeine_for_brew(self):
        """Test caffeine estimates per brew type and volume."""
        assert caffeine_for_brew('moka', 60) == pytest.approx(96.0)
        assert caffeine_for_brew('chemex', None) == pytest.approx(240.0)
        assert caffeine_for_brew('aero', float('nan')) == pytest.approx(220.0)
        assert caffeine_for_brew(None, 150) == pytest.approx(150.0)

    def test_runs_and_workouts(self, in_memory_source):
        """Test runs and other workouts aggregate separately."""
        day = date(2025, 3, 12)
        source = in_memory_source({'workouts': [
            {'date': day, 'workout_type': 'running', 'duration_min': 30, 'distance_km': 5.0},
            {'date': day, 'workout_type': 'running', 'duration_min': 20, 'distance_km': None},
            {'date': day, 'workout_type': 'strength', 'duration_min': 45, 'distance_km': None},
            {'date': day, 'workout_type': 'climbing', 'duration_min': 60, 'distance_km': None},
        ]})

        records = by_date(DailyMetricAggregator(source=source).fetch_daily_metrics(START, END))
        today = records[day]
        tomorrow = records[day + timedelta(days=1)]

        assert today.get('runDistanceKm') == 5.0
        assert today.get('runDurationMin') == 30.0
        assert today.get('workoutCount') == 2.0
        assert today.get('workoutDurationMin') == 105.0
        assert today.get('prevDayWorkout') is False

        assert tomorrow.get('prevDayWorkout') is True
        assert tomorrow.get('prevDayWorkoutDuration') == 105.0
        assert tomorrow.get('prevDayRunning') is True
        assert tomorrow.get('prevDayRunDistance') == 5.0
        assert tomorrow.get('workoutCount') is None

    def test_run_without_distance_counts_as_running(self, in_memory_source):
        """Test a run without distance still marks a running day."""
        day = date(2025, 3, 12)
        source = in_memory_source({'workouts': [
            {'date': day, 'workout_type': 'running', 'duration_min': 25, 'distance_km': None},
        ]})

        records = by_date(DailyMetricAggregator(source=source).fetch_daily_metrics(START, END))

        assert records[day].get('runDistanceKm') is None
        assert records[day + timedelta(days=1)].get('prevDayRunning') is True
        assert records[day + timedelta(days=1)].get('prevDayWorkout') is False

    def test_weather_averages_and_sunny_day(self, in_memory_source):
        """Test weather averages and the sunny-day flag."""
        source = in_memory_source({'location_history': [
            {'logged_at': datetime(2025, 3, 3, 8), 'temp_celsius': 10.0, 'humidity': 60, 'cloudiness': 10},
            {'logged_at': datetime(2025, 3, 3, 16), 'temp_celsius': 14.0, 'humidity': 40, 'cloudiness': 30},
            {'logged_at': datetime(2025, 3, 3, 20), 'temp_celsius': None, 'humidity': 99, 'cloudiness': 100},
            {'logged_at': datetime(2025, 3, 4, 9), 'temp_celsius': 8.0, 'humidity': 80, 'cloudiness': 80},
        ]})

        records = by_date(DailyMetricAggregator(source=source).fetch_daily_metrics(START, END))
        sunny = records[date(2025, 3, 3)]

        assert sunny.get('avgTempCelsius') == pytest.approx(12.0)
        assert sunny.get('avgHumidity') == pytest.approx(50.0)
        assert sunny.get('avgCloudiness') == pytest.approx(20.0)
        assert sunny.get('sunnyDay') is True
        assert records[date(2025, 3, 4)].get('sunnyDay') is False
        assert records[date(2025, 3, 5)].get('sunnyDay') is None

    def test_sunny_threshold_is_configurable(self, in_memory_source):
        """Test a custom cloudiness threshold."""
        source = in_memory_source({'location_history': [
            {'logged_at': datetime(2025, 3, 3, 8), 'temp_celsius': 10.0, 'humidity': 60, 'cloudiness': 40},
        ]})
        aggregator = DailyMetricAggregator(source=source, sunny_threshold=50)

        records = by_date(aggregator.fetch_daily_metrics(START, END))

        assert records[date(2025, 3, 3)].get('sunnyDay') is True

    def test_previous_day_outside_window(self, in_memory_source):
        """Test previous-day metrics for the first day of the window."""
        source = in_memory_source({
            'workouts': [{'date': START - timedelta(days=1), 'workout_type': 'rowing',
                          'duration_min': 40, 'distance_km': None}],
            'coffee_log': [{'date': START - timedelta(days=1), 'type': 'espresso', 'amount_ml': 40}],
        })

        records = DailyMetricAggregator(source=source).fetch_daily_metrics(START, END)

        assert len(records) == 31
        assert records[0].date == START
        assert records[0].get('prevDayWorkout') is True
        assert records[0].get('prevDayWorkoutDuration') == 40.0
        assert records[0].get('prevDayCaffeineMg') == pytest.approx(84.0)
        assert records[0].get('workoutCount') is None


class TestRecordHelpers:
    """Value kinds, records, and extraction helpers."""

    def test_value_kind(self):
        """Test value kinds for missing, boolean and numeric values."""
        assert value_kind(None) is ValueKind.MISSING
        assert value_kind(float('nan')) is ValueKind.MISSING
        assert value_kind(True) is ValueKind.BOOLEAN
        assert value_kind(np.bool_(False)) is ValueKind.BOOLEAN
        assert value_kind(1) is ValueKind.NUMERIC
        assert value_kind(72.5) is ValueKind.NUMERIC
        assert value_kind("72") is ValueKind.MISSING

    def test_record_is_read_only(self):
        """Test record values cannot be modified."""
        record = DailyMetricRecord(date=START, values={'mood': 7.0})

        with pytest.raises(TypeError):
            record.values['mood'] = 3.0
        assert record.to_dict() == {'date': '2025-03-01', 'mood': 7.0}

    def test_extract_metric_values(self):
        """Test extraction skips missing and boolean values."""
        records = [
            DailyMetricRecord(date=START, values={'mood': 7.0, 'sunnyDay': True}),
            DailyMetricRecord(date=START + timedelta(days=1), values={'mood': None, 'sunnyDay': False}),
            DailyMetricRecord(date=START + timedelta(days=2), values={'mood': 5.0, 'sunnyDay': None}),
        ]

        dates, values = extract_metric_values(records, 'mood')
        assert dates == [START, START + timedelta(days=2)]
        assert values == [7.0, 5.0]

        assert extract_metric_values(records, 'sunnyDay') == ([], [])
        assert extract_metric_values(records, 'unknownMetric') == ([], [])

    def test_minimum_sample_size(self):
        """Test the minimum sample size policy."""
        assert get_minimum_sample_size() == 10


class TestDatabaseSource:
    """Aggregation over the SQLAlchemy-backed source."""

    def setup_method(self):
        """Set up test fixtures."""
        self.db = Database("sqlite:///:memory:")
        self.db.create_tables()

    def teardown_method(self):
        """Release the test database."""
        self.db.close()

    def test_aggregates_rows_from_database(self):
        """Test aggregation over rows stored in SQLite."""
        with self.db.get_session() as session:
            session.add(Day(date=date(2025, 3, 2), sleep_score=75, focus_minutes=90))
            session.add(CoffeeLog(date=date(2025, 3, 2), type='moka', amount_ml=60))
            session.add(Workout(date=date(2025, 3, 1), workout_type='strength', duration_min=50))
            session.add(Workout(date=date(2025, 3, 2), workout_type='running',
                                duration_min=28, distance_km=5.2))
            session.add(LocationHistory(logged_at=datetime(2025, 3, 2, 12), latitude=52.5,
                                        longitude=13.4, temp_celsius=6.5, humidity=70, cloudiness=15))
            session.add(SubjectiveMetric(date=date(2025, 3, 2), mood=8, energy=7, stress=2, focus_quality=6))
            # outside the window
            session.add(Day(date=date(2025, 4, 2), sleep_score=50))

        aggregator = DailyMetricAggregator(source=MetricSource(self.db))
        records = by_date(aggregator.fetch_daily_metrics(date(2025, 3, 1), date(2025, 3, 7)))
        day = records[date(2025, 3, 2)]

        assert len(records) == 7
        assert day.get('sleepScore') == 75.0
        assert day.get('totalCaffeineMg') == pytest.approx(96.0)
        assert day.get('runDistanceKm') == pytest.approx(5.2)
        assert day.get('sunnyDay') is True
        assert day.get('mood') == 8.0
        assert day.get('prevDayWorkout') is True
        assert day.get('prevDayWorkoutDuration') == 50.0
        assert records[date(2025, 3, 1)].get('workoutCount') == 1.0

    def test_unknown_table(self):
        """Test reading an unknown source table."""
        with pytest.raises(KeyError):
            MetricSource(self.db).fetch_raw_daily_rows('sleep_stages', START, END)
