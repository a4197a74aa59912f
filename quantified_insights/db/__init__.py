"""Database module for Quantified Insights."""

from .database import Database, get_db, close_db
from .models import CoffeeLog, Day, LocationHistory, SubjectiveMetric, Workout
from .source import MetricSource

__all__ = [
    "Database",
    "get_db",
    "close_db",
    "Day",
    "CoffeeLog",
    "Workout",
    "LocationHistory",
    "SubjectiveMetric",
    "MetricSource",
]
