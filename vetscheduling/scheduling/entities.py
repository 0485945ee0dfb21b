"""Domain objects shared by the scheduling components.

References to pets, veterinarians and services are plain ids; the records behind
them are read through the store and never linked back to appointments.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from vetscheduling.scheduling.errors import ValidationError
from vetscheduling.scheduling.status import RESCHEDULABLE_STATUSES, AppointmentStatus

MIN_SLOT_DURATION_MINUTES = 15
MAX_SLOT_DURATION_MINUTES = 240
MIN_CONCURRENT = 1
MAX_CONCURRENT = 10


def minutes_of(value: time) -> int:
    return value.hour * 60 + value.minute


def intervals_overlap(first_start: time, first_end: time, second_start: time, second_end: time) -> bool:
    """Half-open overlap: touching intervals do not conflict."""
    return first_start < second_end and first_end > second_start


def add_minutes(start: time, minutes: int) -> time:
    """Return ``start + minutes`` on the same day.

    Raises ValidationError instead of wrapping around midnight.
    """
    total = minutes_of(start) + minutes
    if total >= 24 * 60:
        raise ValidationError(
            f'An appointment starting at {start:%H:%M} lasting {minutes} minutes crosses midnight.',
            field='duration_minutes',
            code='crosses_midnight',
            details={'start_time': start.strftime('%H:%M'), 'duration_minutes': minutes},
        )
    return time(total // 60, total % 60)


@dataclass(frozen=True)
class PetRef:
    id: int
    name: str = ''
    active: bool = True


@dataclass(frozen=True)
class VeterinarianRef:
    id: int
    name: str = ''
    active: bool = True


@dataclass(frozen=True)
class ServiceInfo:
    """Pricing source for a bookable service."""

    id: int
    name: str
    base_price: Decimal
    standard_duration_minutes: int | None = None
    active: bool = True
    allows_house_calls: bool = False
    house_call_surcharge: Decimal | None = None


@dataclass(frozen=True)
class AvailabilityWindow:
    """Recurring weekly slot for one veterinarian.

    ``day_of_week`` follows ``date.weekday()``: 0 is Monday.
    """

    veterinarian_id: int
    day_of_week: int
    window_start: time
    window_end: time
    slot_duration_minutes: int = 30
    max_concurrent: int = 1
    active: bool = True
    id: int | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.day_of_week <= 6:
            raise ValidationError('Day of week must be between 0 (Monday) and 6 (Sunday).',
                                  field='day_of_week', code='invalid_window')
        if self.window_end <= self.window_start:
            raise ValidationError('Window end must be after window start.',
                                  field='window_end', code='invalid_window')
        if not MIN_SLOT_DURATION_MINUTES <= self.slot_duration_minutes <= MAX_SLOT_DURATION_MINUTES:
            raise ValidationError(
                f'Slot duration must be between {MIN_SLOT_DURATION_MINUTES} and '
                f'{MAX_SLOT_DURATION_MINUTES} minutes.',
                field='slot_duration_minutes', code='invalid_window',
            )
        if not MIN_CONCURRENT <= self.max_concurrent <= MAX_CONCURRENT:
            raise ValidationError(
                f'Concurrent appointments must be between {MIN_CONCURRENT} and {MAX_CONCURRENT}.',
                field='max_concurrent', code='invalid_window',
            )
        if self.span_minutes < self.slot_duration_minutes:
            raise ValidationError('A window must admit at least one slot.',
                                  field='slot_duration_minutes', code='invalid_window')

    @property
    def span_minutes(self) -> int:
        return minutes_of(self.window_end) - minutes_of(self.window_start)

    def contains(self, start: time, end: time) -> bool:
        return start >= self.window_start and end <= self.window_end

    def offset_minutes(self, start: time) -> int:
        return minutes_of(start) - minutes_of(self.window_start)

    def is_aligned(self, start: time) -> bool:
        return self.offset_minutes(start) % self.slot_duration_minutes == 0

    def slot_starts(self, duration_minutes: int | None = None) -> list[time]:
        """Aligned start times whose whole appointment fits in the window."""
        duration = duration_minutes or self.slot_duration_minutes
        starts = []
        offset = 0
        while offset + duration <= self.span_minutes:
            starts.append(add_minutes(self.window_start, offset))
            offset += self.slot_duration_minutes
        return starts

    def describe(self) -> str:
        return f'{self.window_start:%H:%M}-{self.window_end:%H:%M}'


@dataclass
class Appointment:
    pet_id: int
    veterinarian_id: int
    service_id: int
    appointment_date: date
    start_time: time
    duration_minutes: int
    reason: str
    final_price: Decimal
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    id: int | None = None
    notes: str | None = None
    is_emergency: bool = False
    is_house_call: bool = False
    house_call_address: str | None = None
    confirmed_at: datetime | None = None
    attention_started_at: datetime | None = None
    attention_ended_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def end_time(self) -> time:
        return add_minutes(self.start_time, self.duration_minutes)

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.appointment_date, self.start_time)

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.duration_minutes)

    @property
    def actual_duration_minutes(self) -> int | None:
        if self.attention_started_at is None or self.attention_ended_at is None:
            return None
        return int((self.attention_ended_at - self.attention_started_at).total_seconds() // 60)

    def is_active(self) -> bool:
        return self.status.occupies_schedule()

    def can_be_rescheduled(self) -> bool:
        return self.status in RESCHEDULABLE_STATUSES

    def overlaps(self, start: time, end: time) -> bool:
        return intervals_overlap(self.start_time, self.end_time, start, end)

    def snapshot(self) -> 'Appointment':
        return replace(self)

    def summary(self) -> dict:
        return {
            'id': self.id,
            'start_time': self.start_time.strftime('%H:%M'),
            'end_time': self.end_time.strftime('%H:%M'),
            'status': self.status.value,
        }


@dataclass(frozen=True)
class TransitionResult:
    """What a notifier needs after a lifecycle change."""

    previous_status: AppointmentStatus | None
    status: AppointmentStatus
    appointment: Appointment
    operation: str


@dataclass(frozen=True)
class SlotAvailability:
    start_time: time
    end_time: time
    capacity: int
    booked: int
    window_id: int | None = None
    booked_ids: tuple[int, ...] = field(default_factory=tuple)

    @property
    def remaining(self) -> int:
        return max(self.capacity - self.booked, 0)

    @property
    def is_available(self) -> bool:
        return self.remaining > 0
