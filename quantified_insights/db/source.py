"""Raw per-day rows for the aggregator, read table by table.

The source layer does no alignment. Each table is queried independently for
the requested window and returned as plain dictionaries, so any object with a
matching ``fetch_raw_daily_rows`` method can stand in for the database.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from .database import Database, get_db
from .models import CoffeeLog, Day, LocationHistory, SubjectiveMetric, Workout

logger = logging.getLogger(__name__)


def _day_rows(session: Session, start_date: date, end_date: date) -> List[Dict[str, Any]]:
    days = session.query(Day).filter(
        Day.date >= start_date,
        Day.date <= end_date
    ).all()

    return [{
        'date': d.date,
        'sleep_score': d.sleep_score,
        'focus_minutes': d.focus_minutes,
        'reading_minutes': d.reading_minutes,
        'outdoor_minutes': d.outdoor_minutes,
        'writing_minutes': d.writing_minutes,
    } for d in days]


def _coffee_rows(session: Session, start_date: date, end_date: date) -> List[Dict[str, Any]]:
    coffees = session.query(CoffeeLog).filter(
        CoffeeLog.date >= start_date,
        CoffeeLog.date <= end_date
    ).all()

    return [{
        'date': c.date,
        'type': c.type,
        'amount_ml': c.amount_ml,
    } for c in coffees]


def _workout_rows(session: Session, start_date: date, end_date: date) -> List[Dict[str, Any]]:
    workouts = session.query(Workout).filter(
        Workout.date >= start_date,
        Workout.date <= end_date
    ).all()

    return [{
        'date': w.date,
        'workout_type': w.workout_type,
        'duration_min': w.duration_min,
        'distance_km': w.distance_km,
    } for w in workouts]


def _weather_rows(session: Session, start_date: date, end_date: date) -> List[Dict[str, Any]]:
    # logged_at is a timestamp; widen to whole days
    window_start = datetime.combine(start_date, time.min)
    window_end = datetime.combine(end_date + timedelta(days=1), time.min)

    samples = session.query(LocationHistory).filter(
        LocationHistory.logged_at >= window_start,
        LocationHistory.logged_at < window_end
    ).all()

    return [{
        'logged_at': s.logged_at,
        'temp_celsius': s.temp_celsius,
        'humidity': s.humidity,
        'cloudiness': s.cloudiness,
    } for s in samples]


def _subjective_rows(session: Session, start_date: date, end_date: date) -> List[Dict[str, Any]]:
    ratings = session.query(SubjectiveMetric).filter(
        SubjectiveMetric.date >= start_date,
        SubjectiveMetric.date <= end_date
    ).all()

    return [{
        'date': s.date,
        'mood': s.mood,
        'energy': s.energy,
        'stress': s.stress,
        'focus_quality': s.focus_quality,
    } for s in ratings]


TABLE_READERS: Dict[str, Callable[[Session, date, date], List[Dict[str, Any]]]] = {
    'days': _day_rows,
    'coffee_log': _coffee_rows,
    'workouts': _workout_rows,
    'location_history': _weather_rows,
    'subjective_metrics': _subjective_rows,
}


class MetricSource:
    """Reads raw daily rows from the SQL database."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_db()

    def fetch_raw_daily_rows(
        self,
        table: str,
        start_date: date,
        end_date: date
    ) -> List[Dict[str, Any]]:
        """Fetch raw rows of one table between two dates (inclusive).

        Raises:
            KeyError: if the table is not a known daily source
        """
        try:
            reader = TABLE_READERS[table]
        except KeyError:
            raise KeyError(f"Unknown daily source table: {table}") from None

        with self.db.get_session() as session:
            rows = reader(session, start_date, end_date)

        logger.debug(f"Fetched {len(rows)} rows from {table} ({start_date} to {end_date})")
        return rows
