"""Shared fixtures for analysis tests."""

from datetime import date, timedelta

import pytest

from quantified_insights.analysis.data_aggregator import DailyMetricRecord
from quantified_insights.analysis.metric_catalog import AVAILABLE_METRICS

TODAY = date(2025, 6, 30)


class InMemorySource:
    """Daily source serving raw rows from dictionaries, filtered by date."""

    def __init__(self, tables):
        self.tables = tables
        self.calls = []

    def fetch_raw_daily_rows(self, table, start_date, end_date):
        self.calls.append((table, start_date, end_date))
        rows = []
        for row in self.tables.get(table, []):
            day = row['date'] if 'date' in row else row['logged_at'].date()
            if start_date <= day <= end_date:
                rows.append(row)
        return rows


class StubAggregator:
    """Aggregator producing one record per day from a value generator."""

    def __init__(self, generate):
        self.generate = generate
        self.calls = []

    def fetch_daily_metrics(self, start_date, end_date):
        self.calls.append((start_date, end_date))
        records = []
        day = start_date
        while day <= end_date:
            values = {metric.key: None for metric in AVAILABLE_METRICS}
            values.update(self.generate(day))
            records.append(DailyMetricRecord(date=day, values=values))
            day += timedelta(days=1)
        return records


@pytest.fixture
def in_memory_source():
    return InMemorySource


@pytest.fixture
def stub_aggregator():
    return StubAggregator


@pytest.fixture
def fixed_clock():
    return lambda: TODAY
