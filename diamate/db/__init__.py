"""Database module - engine, sessions and the ledger, subscription and backup tables."""

from .database import Base, SessionLocal, configure_engine, get_db, init_db
from .models import HealthReading, MealRecord, Subscription, UsageEvent

__all__ = [
    'Base', 'SessionLocal', 'configure_engine', 'get_db', 'init_db',
    'HealthReading', 'MealRecord', 'Subscription', 'UsageEvent',
]
