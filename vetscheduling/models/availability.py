"""Availability window model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, Time
from vetscheduling.database import Base


class AvailabilityWindow(Base):
    """Recurring weekly interval in which a veterinarian takes appointments."""
    __tablename__ = "availability_windows"
    __table_args__ = (
        CheckConstraint('window_end > window_start', name='ck_window_order'),
        CheckConstraint('slot_duration_minutes BETWEEN 15 AND 240', name='ck_window_slot_duration'),
        CheckConstraint('max_concurrent BETWEEN 1 AND 10', name='ck_window_max_concurrent'),
        CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_window_day_of_week'),
    )

    id = Column(Integer, primary_key=True)
    veterinarian_id = Column(Integer, ForeignKey("veterinarians.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0 = Monday
    window_start = Column(Time, nullable=False)
    window_end = Column(Time, nullable=False)
    slot_duration_minutes = Column(Integer, nullable=False, default=30)
    max_concurrent = Column(Integer, nullable=False, default=1)
    active = Column(Boolean, nullable=False, default=True)
