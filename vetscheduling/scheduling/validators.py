"""Booking validation pipeline.

The pipeline is an ordered list of validator objects. Each one inspects a
``BookingContext`` and either returns or raises the most specific scheduling
error, which stops the rest of the chain. Validators only read from the store;
nothing is written until the whole chain has passed.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Callable, Iterable, Protocol

from vetscheduling.core import config
from vetscheduling.scheduling.catalog import ScheduleCatalog
from vetscheduling.scheduling.conflicts import ConflictDetector
from vetscheduling.scheduling.entities import (
    AvailabilityWindow,
    PetRef,
    ServiceInfo,
    VeterinarianRef,
    add_minutes,
)
from vetscheduling.scheduling.errors import ConflictError, NotFoundError, ValidationError
from vetscheduling.scheduling.ports import SchedulingStore
from vetscheduling.scheduling.schemas import BookingRequest

logger = logging.getLogger(__name__)

MIN_REASON_LENGTH = 10
MAX_REASON_LENGTH = 1000
MAX_NOTES_LENGTH = 1000
MAX_ADDRESS_LENGTH = 300
MIN_DURATION_MINUTES = 5
MAX_DURATION_MINUTES = 480


@dataclass
class BookingContext:
    """An appointment-in-progress as it moves through the validators."""

    request: BookingRequest
    exclude_appointment_id: int | None = None
    pet: PetRef | None = None
    veterinarian: VeterinarianRef | None = None
    service: ServiceInfo | None = None
    duration_minutes: int | None = None
    end_time: time | None = None
    window: AvailabilityWindow | None = None

    @property
    def veterinarian_id(self) -> int | None:
        return self.request.veterinarian_id

    @property
    def appointment_date(self) -> date | None:
        return self.request.appointment_date

    @property
    def start_time(self) -> time | None:
        return self.request.start_time


class Validator(Protocol):
    name: str

    def validate(self, context: BookingContext) -> None:
        ...


class DataValidator:
    name = 'data'

    def __init__(self, store: SchedulingStore, default_duration_minutes: int | None = None) -> None:
        self._store = store
        self._default_duration = default_duration_minutes or config.DEFAULT_APPOINTMENT_DURATION_MINUTES

    def validate(self, context: BookingContext) -> None:
        request = context.request

        context.pet = self._require(request.pet_id, 'pet_id', 'pet', self._store.get_pet)
        context.veterinarian = self._require(
            request.veterinarian_id, 'veterinarian_id', 'veterinarian', self._store.get_veterinarian
        )
        context.service = self._require(request.service_id, 'service_id', 'service', self._store.get_service)

        if request.appointment_date is None:
            raise ValidationError('Appointment date is required.', field='appointment_date', code='missing_field')
        if request.start_time is None:
            raise ValidationError('Appointment time is required.', field='start_time', code='missing_field')

        self._check_reason(request.reason)

        if request.notes is not None and len(request.notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f'Notes must be {MAX_NOTES_LENGTH} characters or fewer.',
                                  field='notes', code='too_long')

        if request.is_house_call:
            if request.house_call_address is None:
                raise ValidationError('House calls need an address.',
                                      field='house_call_address', code='missing_field')
            if len(request.house_call_address) > MAX_ADDRESS_LENGTH:
                raise ValidationError(f'Address must be {MAX_ADDRESS_LENGTH} characters or fewer.',
                                      field='house_call_address', code='too_long')

        duration = request.duration_minutes
        if duration is None:
            duration = context.service.standard_duration_minutes or self._default_duration
        if not MIN_DURATION_MINUTES <= duration <= MAX_DURATION_MINUTES:
            raise ValidationError(
                f'Duration must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes.',
                field='duration_minutes',
                code='invalid_duration',
                details={'duration_minutes': duration},
            )

        context.duration_minutes = duration
        context.end_time = add_minutes(request.start_time, duration)

    @staticmethod
    def _require(reference_id, field: str, entity: str, lookup: Callable):
        if reference_id is None:
            raise ValidationError(f'A {entity} is required.', field=field, code='missing_field')
        record = lookup(reference_id)
        if record is None:
            raise NotFoundError(entity, reference_id)
        return record

    @staticmethod
    def _check_reason(reason: str | None) -> None:
        if reason is None:
            raise ValidationError('A consultation reason is required.', field='reason', code='missing_field')
        if not MIN_REASON_LENGTH <= len(reason) <= MAX_REASON_LENGTH:
            raise ValidationError(
                f'Consultation reason must be between {MIN_REASON_LENGTH} and {MAX_REASON_LENGTH} characters.',
                field='reason',
                code='invalid_reason',
                details={'length': len(reason)},
            )


class AvailabilityValidator:
    name = 'availability'

    def __init__(
        self,
        catalog: ScheduleCatalog,
        detector: ConflictDetector,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._catalog = catalog
        self._detector = detector
        self._clock = clock

    def validate(self, context: BookingContext) -> None:
        request = context.request
        day = request.appointment_date
        start = request.start_time
        end = context.end_time
        vet_id = request.veterinarian_id

        # Emergencies may be recorded after the fact.
        requested_at = datetime.combine(day, start)
        if not request.is_emergency and requested_at < self._clock():
            raise ValidationError(
                'Appointments cannot be booked in the past.',
                field='appointment_date',
                code='in_the_past',
                details={'requested': requested_at.isoformat(timespec='minutes')},
            )

        windows = self._catalog.windows_on(vet_id, day)
        if not windows:
            raise ValidationError(
                f'Veterinarian {vet_id} has no availability that weekday ({day:%A}).',
                field='appointment_date',
                code='no_availability',
                details={'day_of_week': day.weekday()},
            )

        window = self._catalog.containing_window(windows, start, end)
        if window is None:
            ranges = self._catalog.describe_ranges(windows)
            raise ValidationError(
                f'{start:%H:%M}-{end:%H:%M} is outside working hours. Available: {", ".join(ranges)}.',
                field='start_time',
                code='outside_working_hours',
                details={'windows': ranges},
            )

        if not window.is_aligned(start):
            raise ValidationError(
                f'{start:%H:%M} is not aligned to slot grid of {window.slot_duration_minutes} minutes '
                f'starting at {window.window_start:%H:%M}.',
                field='start_time',
                code='not_aligned',
                details={
                    'slot_duration_minutes': window.slot_duration_minutes,
                    'window_start': window.window_start.strftime('%H:%M'),
                },
            )

        overlapping = self._detector.overlapping(vet_id, day, start, end, context.exclude_appointment_id)
        if len(overlapping) >= window.max_concurrent:
            free = [
                slot.start_time.strftime('%H:%M')
                for slot in self._detector.booked_slots(
                    vet_id,
                    day,
                    [window],
                    context.duration_minutes,
                    now=None if request.is_emergency else self._clock(),
                    exclude_appointment_id=context.exclude_appointment_id,
                )
                if slot.is_available
            ]
            raise ConflictError(
                f'Requested {start:%H:%M} overlaps with {len(overlapping)} existing appointment(s); '
                f'capacity is {window.max_concurrent}.',
                conflicts=[appointment.summary() for appointment in overlapping],
                capacity=window.max_concurrent,
                available_starts=free,
            )

        context.window = window


class PermissionValidator:
    name = 'permission'

    def validate(self, context: BookingContext) -> None:
        if not context.veterinarian.active:
            raise ValidationError(
                f'Veterinarian {context.veterinarian.id} is not active.',
                field='veterinarian_id',
                code='veterinarian_inactive',
            )


class ResourceValidator:
    name = 'resource'

    def validate(self, context: BookingContext) -> None:
        if not context.service.active:
            raise ValidationError(
                f'Service {context.service.id} is not available for booking.',
                field='service_id',
                code='service_unavailable',
            )


class ValidationPipeline:
    def __init__(self, validators: Iterable[Validator]) -> None:
        self._validators = tuple(validators)

    @property
    def names(self) -> list[str]:
        return [validator.name for validator in self._validators]

    def run(self, context: BookingContext) -> BookingContext:
        for validator in self._validators:
            logger.debug('Running %s validator', validator.name)
            try:
                validator.validate(context)
            except (ValidationError, ConflictError, NotFoundError) as exc:
                logger.warning('Booking rejected by %s validator: %s', validator.name, exc.message)
                raise
        return context

    def with_validator(self, validator: Validator, position: int | None = None) -> 'ValidationPipeline':
        validators = list(self._validators)
        if position is None:
            validators.append(validator)
        else:
            validators.insert(position, validator)
        return ValidationPipeline(validators)

    def without(self, name: str) -> 'ValidationPipeline':
        return ValidationPipeline(validator for validator in self._validators if validator.name != name)


def default_pipeline(
    store: SchedulingStore,
    clock: Callable[[], datetime] = datetime.now,
    catalog: ScheduleCatalog | None = None,
    detector: ConflictDetector | None = None,
) -> ValidationPipeline:
    catalog = catalog or ScheduleCatalog(store)
    detector = detector or ConflictDetector(store)
    return ValidationPipeline([
        DataValidator(store),
        AvailabilityValidator(catalog, detector, clock),
        PermissionValidator(),
        ResourceValidator(),
    ])
