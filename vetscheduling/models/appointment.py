"""Appointment model definitions."""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Time
from vetscheduling.database import Base


class Appointment(Base):
    """Represents a booked appointment. Rows are never deleted."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    pet_id = Column(Integer, ForeignKey("pets.id"), nullable=False)
    veterinarian_id = Column(Integer, ForeignKey("veterinarians.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False)
    reason = Column(String(1000), nullable=False)
    notes = Column(String(1000))
    is_emergency = Column(Boolean, nullable=False, default=False)
    is_house_call = Column(Boolean, nullable=False, default=False)
    house_call_address = Column(String(300))
    final_price = Column(Numeric(10, 2), nullable=False)
    confirmed_at = Column(DateTime)
    attention_started_at = Column(DateTime)
    attention_ended_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    cancellation_reason = Column(String(500))
    cancelled_by = Column(String(100))
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
