from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_validator

from vetscheduling.scheduling.status import AppointmentStatus


def _normalize_text(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    return normalized


class BookingRequest(BaseModel):
    """Proposed appointment.

    Every field is optional here; completeness is judged by the validation
    pipeline so that missing data surfaces as a scheduling ValidationError.
    """

    pet_id: int | None = None
    veterinarian_id: int | None = None
    service_id: int | None = None
    appointment_date: date | None = None
    start_time: time | None = None
    duration_minutes: int | None = None
    reason: str | None = None
    notes: str | None = None
    is_emergency: bool = False
    is_house_call: bool = False
    house_call_address: str | None = None

    @field_validator('reason', 'notes', 'house_call_address')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        return _normalize_text(value)

    @field_validator('start_time')
    @classmethod
    def validate_start_time(cls, value: time | None) -> time | None:
        if value is None:
            return None
        return value.replace(second=0, microsecond=0)


class CancelRequest(BaseModel):
    reason: str | None = None
    cancelled_by: str | None = None

    @field_validator('reason', 'cancelled_by')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        return _normalize_text(value)


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    pet_id: int
    veterinarian_id: int
    service_id: int
    appointment_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    status: AppointmentStatus
    reason: str
    notes: str | None = None
    is_emergency: bool
    is_house_call: bool
    house_call_address: str | None = None
    final_price: Decimal
    confirmed_at: datetime | None = None
    attention_started_at: datetime | None = None
    attention_ended_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TransitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    operation: str
    previous_status: AppointmentStatus | None = None
    status: AppointmentStatus
    appointment: AppointmentResponse


class AvailabilitySlotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start_time: time
    end_time: time
    capacity: int
    booked: int
    remaining: int
    is_available: bool
