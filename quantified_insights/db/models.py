"""Database models for the daily metric sources."""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Text, JSON
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Day(Base):
    """Canonical day row: sleep, focus and ritual minutes."""

    __tablename__ = "days"

    date = Column(Date, primary_key=True)
    sleep_score = Column(Integer)  # 0-100
    focus_minutes = Column(Integer)
    reading_minutes = Column(Integer)
    outdoor_minutes = Column(Integer)
    writing_minutes = Column(Integer)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Day(date={self.date}, sleep_score={self.sleep_score})>"


class CoffeeLog(Base):
    """A single brewed coffee."""

    __tablename__ = "coffee_log"

    id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False, index=True)
    type = Column(String(20), nullable=False)  # espresso, v60, chemex, moka, aero, cold_brew, other
    amount_ml = Column(Integer)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<CoffeeLog(date={self.date}, type={self.type}, amount_ml={self.amount_ml})>"


class Workout(Base):
    """Workout of any type; running rows carry a distance."""

    __tablename__ = "workouts"

    id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False, index=True)
    workout_type = Column(String(20), nullable=False)  # running, climbing, strength, ...
    duration_min = Column(Integer, nullable=False)
    distance_km = Column(Float)
    intensity = Column(String(10))  # low, moderate, high, max
    details = Column(JSON)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Workout(date={self.date}, type={self.workout_type}, duration={self.duration_min}min)>"


class LocationHistory(Base):
    """Location sample with the weather observed at that time."""

    __tablename__ = "location_history"

    id = Column(Integer, primary_key=True)
    logged_at = Column(DateTime, nullable=False, index=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    temp_celsius = Column(Float)
    humidity = Column(Float)  # %
    cloudiness = Column(Float)  # %
    weather_main = Column(String(50))
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<LocationHistory(logged_at={self.logged_at}, temp={self.temp_celsius})>"


class SubjectiveMetric(Base):
    """User-reported daily ratings on a 1-10 scale."""

    __tablename__ = "subjective_metrics"

    id = Column(Integer, primary_key=True)
    date = Column(Date, unique=True, nullable=False)
    mood = Column(Integer)
    energy = Column(Integer)
    stress = Column(Integer)
    focus_quality = Column(Integer)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<SubjectiveMetric(date={self.date}, mood={self.mood}, energy={self.energy})>"
