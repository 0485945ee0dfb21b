"""Booking orchestration.

``BookingService`` is the only entry point that writes appointments. Every write
holds the (veterinarian, date) lock of each schedule it touches and runs inside a
single store transaction, so the overlap check and the insert cannot interleave
with another booking for the same schedule.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterator

from vetscheduling.scheduling.catalog import ScheduleCatalog
from vetscheduling.scheduling.conflicts import ConflictDetector
from vetscheduling.scheduling.entities import Appointment, SlotAvailability, TransitionResult
from vetscheduling.scheduling.errors import NotFoundError, SchedulingError, StateTransitionError
from vetscheduling.scheduling.locks import ScheduleLocks
from vetscheduling.scheduling.ports import ScheduleKey, SchedulingStore
from vetscheduling.scheduling.pricing import calculate_final_price
from vetscheduling.scheduling.schemas import BookingRequest
from vetscheduling.scheduling.state_machine import AppointmentStateMachine
from vetscheduling.scheduling.status import AppointmentStatus
from vetscheduling.scheduling.validators import BookingContext, ValidationPipeline, default_pipeline

logger = logging.getLogger(__name__)

RESCHEDULE_REASON = 'Rescheduled'


@dataclass(frozen=True)
class RescheduleResult:
    cancelled: TransitionResult
    appointment: Appointment


class BookingService:
    def __init__(
        self,
        store: SchedulingStore,
        pipeline: ValidationPipeline | None = None,
        clock: Callable[[], datetime] = datetime.now,
        locks: ScheduleLocks | None = None,
        state_machine: AppointmentStateMachine | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._catalog = ScheduleCatalog(store)
        self._detector = ConflictDetector(store)
        self._pipeline = pipeline or default_pipeline(store, clock, self._catalog, self._detector)
        self._locks = locks if locks is not None else ScheduleLocks()
        self._state_machine = state_machine or AppointmentStateMachine(clock)

    # Writes

    def create(self, request: BookingRequest) -> Appointment:
        with self._operation('create'):
            with self._exclusive(self._keys_for(request)):
                appointment = self._book(request)
        logger.info(
            'Booked appointment %s for pet %s with veterinarian %s on %s at %s',
            appointment.id,
            appointment.pet_id,
            appointment.veterinarian_id,
            appointment.appointment_date,
            appointment.start_time.strftime('%H:%M'),
        )
        return appointment

    def cancel(self, appointment_id: int, reason: str | None = None, actor: str | None = None) -> TransitionResult:
        return self._transition(
            appointment_id,
            'cancel',
            lambda appointment: self._state_machine.cancel(appointment, reason, actor),
        )

    def confirm(self, appointment_id: int) -> TransitionResult:
        return self._transition(appointment_id, 'confirm', self._state_machine.confirm)

    def start_attention(self, appointment_id: int) -> TransitionResult:
        return self._transition(appointment_id, 'start_attention', self._state_machine.start_attention)

    def mark_attended(self, appointment_id: int) -> TransitionResult:
        return self._transition(appointment_id, 'mark_attended', self._state_machine.mark_attended)

    def mark_no_show(self, appointment_id: int) -> TransitionResult:
        return self._transition(appointment_id, 'mark_no_show', self._state_machine.mark_no_show)

    def reschedule(self, appointment_id: int, request: BookingRequest, actor: str | None = None) -> RescheduleResult:
        """Cancel an appointment and book its replacement as one unit.

        Fields left unset on ``request`` are copied from the original appointment,
        except the duration when the service changes. The replacement goes through
        the full validation pipeline.
        """
        with self._operation('reschedule', appointment_id=appointment_id):
            original = self._load(appointment_id)
            updates = request.model_dump(exclude_unset=True)
            if 'service_id' in updates and 'duration_minutes' not in updates:
                updates['duration_minutes'] = None
            merged = self._request_from(original).model_copy(update=updates)
            keys = [(original.veterinarian_id, original.appointment_date)] + self._keys_for(merged)

            with self._exclusive(keys):
                original = self._load(appointment_id)
                if not original.can_be_rescheduled():
                    raise StateTransitionError(original.status, AppointmentStatus.CANCELLED, 'reschedule')
                cancelled = self._state_machine.cancel(original, RESCHEDULE_REASON, actor)
                self._store.save_appointment(original)
                appointment = self._book(merged, exclude_appointment_id=appointment_id)

        logger.info('Rescheduled appointment %s as %s', appointment_id, appointment.id)
        return RescheduleResult(cancelled=cancelled, appointment=appointment)

    # Reads

    def get(self, appointment_id: int) -> Appointment:
        with self._operation('get', appointment_id=appointment_id):
            return self._load(appointment_id)

    def schedule_for(self, veterinarian_id: int, day: date) -> list[Appointment]:
        with self._operation('schedule_for', veterinarian_id=veterinarian_id):
            appointments = self._store.appointments_for(veterinarian_id, day)
        return sorted(appointments, key=lambda appointment: (appointment.start_time, appointment.id))

    def appointments_for_pet(self, pet_id: int) -> list[Appointment]:
        with self._operation('appointments_for_pet', pet_id=pet_id):
            appointments = self._store.appointments_for_pet(pet_id)
        return sorted(appointments, key=lambda appointment: appointment.starts_at, reverse=True)

    def available_slots(
        self,
        veterinarian_id: int,
        day: date,
        duration_minutes: int | None = None,
    ) -> list[SlotAvailability]:
        with self._operation('available_slots', veterinarian_id=veterinarian_id):
            if self._store.get_veterinarian(veterinarian_id) is None:
                raise NotFoundError('veterinarian', veterinarian_id)
            windows = self._catalog.windows_on(veterinarian_id, day)
            return self._detector.booked_slots(veterinarian_id, day, windows, duration_minutes, now=self._clock())

    # Internals

    def _book(self, request: BookingRequest, exclude_appointment_id: int | None = None) -> Appointment:
        context = self._pipeline.run(BookingContext(request=request, exclude_appointment_id=exclude_appointment_id))
        now = self._clock()
        appointment = Appointment(
            pet_id=request.pet_id,
            veterinarian_id=request.veterinarian_id,
            service_id=request.service_id,
            appointment_date=request.appointment_date,
            start_time=request.start_time,
            duration_minutes=context.duration_minutes,
            reason=request.reason,
            notes=request.notes,
            is_emergency=request.is_emergency,
            is_house_call=request.is_house_call,
            house_call_address=request.house_call_address if request.is_house_call else None,
            final_price=calculate_final_price(context.service, request.is_emergency, request.is_house_call),
            status=AppointmentStatus.SCHEDULED,
            created_at=now,
            updated_at=now,
        )
        return self._store.add_appointment(appointment)

    def _transition(
        self,
        appointment_id: int,
        operation: str,
        apply: Callable[[Appointment], TransitionResult],
    ) -> TransitionResult:
        with self._operation(operation, appointment_id=appointment_id):
            current = self._load(appointment_id)
            with self._exclusive([(current.veterinarian_id, current.appointment_date)]):
                # Re-read under the lock; another worker may have moved it.
                appointment = self._load(appointment_id)
                result = apply(appointment)
                self._store.save_appointment(appointment)
        return result

    def _load(self, appointment_id: int) -> Appointment:
        appointment = self._store.get_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError('appointment', appointment_id)
        return appointment

    @contextmanager
    def _exclusive(self, keys: list[ScheduleKey]) -> Iterator[None]:
        with self._locks.hold(keys), self._store.transaction(keys):
            yield

    @staticmethod
    def _keys_for(request: BookingRequest) -> list[ScheduleKey]:
        if request.veterinarian_id is None or request.appointment_date is None:
            return []
        return [(request.veterinarian_id, request.appointment_date)]

    @staticmethod
    def _request_from(appointment: Appointment) -> BookingRequest:
        return BookingRequest(
            pet_id=appointment.pet_id,
            veterinarian_id=appointment.veterinarian_id,
            service_id=appointment.service_id,
            appointment_date=appointment.appointment_date,
            start_time=appointment.start_time,
            duration_minutes=appointment.duration_minutes,
            reason=appointment.reason,
            notes=appointment.notes,
            is_emergency=appointment.is_emergency,
            is_house_call=appointment.is_house_call,
            house_call_address=appointment.house_call_address,
        )

    @staticmethod
    @contextmanager
    def _operation(name: str, **context) -> Iterator[None]:
        try:
            yield
        except SchedulingError as exc:
            exc.add_context(operation=name, **context)
            raise
