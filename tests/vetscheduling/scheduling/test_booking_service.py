import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, time
from decimal import Decimal

import pytest

from vetscheduling.scheduling.booking import RESCHEDULE_REASON, BookingService
from vetscheduling.scheduling.entities import AvailabilityWindow, ServiceInfo
from vetscheduling.scheduling.errors import (
    ConflictError,
    NotFoundError,
    SchedulingError,
    StateTransitionError,
    ValidationError,
)
from vetscheduling.scheduling.locks import ScheduleLocks
from vetscheduling.scheduling.schemas import BookingRequest
from vetscheduling.scheduling.status import AppointmentStatus

MONDAY = date(2026, 1, 5)


def fixed_clock() -> datetime:
    return datetime(2026, 1, 4, 8, 0)


def test_monday_bookings_overlap_and_adjacency(booking_service, make_request) -> None:
    first = booking_service.create(make_request(start_time=time(9, 0)))

    with pytest.raises(ValidationError) as misaligned:
        booking_service.create(make_request(pet_id=2, start_time=time(9, 15)))
    adjacent = booking_service.create(make_request(pet_id=2, start_time=time(9, 30)))

    assert first.status is AppointmentStatus.SCHEDULED
    assert misaligned.value.code == 'not_aligned'
    assert adjacent.status is AppointmentStatus.SCHEDULED
    assert [appointment.id for appointment in booking_service.schedule_for(1, MONDAY)] == [first.id, adjacent.id]


def test_overlapping_booking_on_fine_grid_conflicts(store, make_request) -> None:
    store.add_window(AvailabilityWindow(veterinarian_id=1, day_of_week=3, window_start=time(9, 0),
                                        window_end=time(12, 0), slot_duration_minutes=15))
    service = BookingService(store, clock=fixed_clock)
    thursday = date(2026, 1, 8)
    first = service.create(make_request(appointment_date=thursday, start_time=time(9, 0)))

    with pytest.raises(ConflictError) as exception_info:
        service.create(make_request(pet_id=2, appointment_date=thursday, start_time=time(9, 15)))

    assert exception_info.value.conflicting_ids == [first.id]
    assert exception_info.value.conflicts[0]['start_time'] == '09:00'
    assert exception_info.value.capacity == 1
    assert exception_info.value.available_starts[0] == '09:30'
    assert exception_info.value.context['operation'] == 'create'


def test_create_prices_emergency_house_call(booking_service, make_request) -> None:
    appointment = booking_service.create(
        make_request(is_emergency=True, is_house_call=True, house_call_address='12 Orchard Lane')
    )

    assert appointment.final_price == Decimal('75.00')
    assert appointment.house_call_address == '12 Orchard Lane'
    assert appointment.created_at == fixed_clock()


def test_failed_create_persists_nothing(booking_service, make_request) -> None:
    with pytest.raises(ValidationError):
        booking_service.create(make_request(start_time=time(11, 45)))

    assert booking_service.schedule_for(1, MONDAY) == []


def test_cancel_frees_the_slot(booking_service, make_request) -> None:
    appointment = booking_service.create(make_request())

    result = booking_service.cancel(appointment.id, 'Owner is travelling', 'reception')
    replacement = booking_service.create(make_request(pet_id=2))

    assert result.previous_status is AppointmentStatus.SCHEDULED
    assert result.appointment.status is AppointmentStatus.CANCELLED
    assert booking_service.get(appointment.id).cancelled_by == 'reception'
    assert replacement.start_time == time(9, 0)


def test_cancel_twice_raises_state_transition_error_with_context(booking_service, make_request) -> None:
    appointment = booking_service.create(make_request())
    booking_service.cancel(appointment.id)

    with pytest.raises(StateTransitionError) as exception_info:
        booking_service.cancel(appointment.id)

    assert exception_info.value.context == {'operation': 'cancel', 'appointment_id': appointment.id}


def test_lifecycle_operations_persist(booking_service, make_request) -> None:
    appointment = booking_service.create(make_request())

    booking_service.confirm(appointment.id)
    booking_service.start_attention(appointment.id)
    result = booking_service.mark_attended(appointment.id)
    stored = booking_service.get(appointment.id)

    assert result.status is AppointmentStatus.ATTENDED
    assert stored.status is AppointmentStatus.ATTENDED
    assert stored.confirmed_at == fixed_clock()
    assert stored.attention_ended_at == fixed_clock()


def test_no_show_releases_the_slot(booking_service, make_request) -> None:
    appointment = booking_service.create(make_request())

    booking_service.mark_no_show(appointment.id)

    assert booking_service.available_slots(1, MONDAY)[0].is_available


def test_unknown_appointment_raises_not_found(booking_service) -> None:
    with pytest.raises(NotFoundError) as exception_info:
        booking_service.confirm(404)

    assert exception_info.value.to_dict() == {
        'error': 'not_found',
        'message': 'Appointment 404 not found.',
        'entity': 'appointment',
        'entity_id': 404,
        'context': {'operation': 'confirm', 'appointment_id': 404},
    }


def test_reschedule_moves_appointment_and_inherits_fields(booking_service, make_request) -> None:
    original = booking_service.create(make_request(notes='Bring vaccination card'))

    result = booking_service.reschedule(original.id, BookingRequest(start_time=time(10, 0)), actor='owner')

    assert result.cancelled.appointment.status is AppointmentStatus.CANCELLED
    assert result.cancelled.appointment.cancellation_reason == RESCHEDULE_REASON
    assert result.appointment.id != original.id
    assert result.appointment.start_time == time(10, 0)
    assert result.appointment.notes == 'Bring vaccination card'
    assert result.appointment.reason == original.reason
    assert booking_service.get(original.id).cancelled_by == 'owner'


def test_reschedule_into_the_same_slot_is_allowed(booking_service, make_request) -> None:
    original = booking_service.create(make_request())

    result = booking_service.reschedule(original.id, BookingRequest(reason='Follow-up for skin allergy'))

    assert result.appointment.start_time == original.start_time
    assert result.appointment.reason == 'Follow-up for skin allergy'


def test_failed_reschedule_keeps_original(booking_service, make_request) -> None:
    original = booking_service.create(make_request())
    booking_service.create(make_request(pet_id=2, start_time=time(10, 0)))

    with pytest.raises(ConflictError) as exception_info:
        booking_service.reschedule(original.id, BookingRequest(start_time=time(10, 0)))

    assert booking_service.get(original.id).status is AppointmentStatus.SCHEDULED
    assert len(booking_service.schedule_for(1, MONDAY)) == 2
    assert exception_info.value.context['operation'] == 'reschedule'


def test_reschedule_rejects_attended_appointment(booking_service, make_request) -> None:
    original = booking_service.create(make_request())
    booking_service.mark_attended(original.id)

    with pytest.raises(StateTransitionError) as exception_info:
        booking_service.reschedule(original.id, BookingRequest(start_time=time(10, 0)))

    assert exception_info.value.operation == 'reschedule'


def test_appointments_for_pet_newest_first(booking_service, make_request) -> None:
    early = booking_service.create(make_request())
    later = booking_service.create(make_request(appointment_date=date(2026, 1, 12)))

    assert [appointment.id for appointment in booking_service.appointments_for_pet(1)] == [later.id, early.id]


def test_available_slots_reports_remaining_capacity(booking_service, make_request) -> None:
    booking_service.create(make_request(start_time=time(9, 30)))

    slots = booking_service.available_slots(1, MONDAY)

    assert len(slots) == 6
    assert [slot.start_time for slot in slots if not slot.is_available] == [time(9, 30)]


def test_available_slots_unknown_veterinarian(booking_service) -> None:
    with pytest.raises(NotFoundError):
        booking_service.available_slots(99, MONDAY)


def test_concurrent_creates_respect_capacity(booking_service, make_request) -> None:
    barrier = threading.Barrier(20)

    def attempt(pet_id: int):
        barrier.wait()
        try:
            return booking_service.create(make_request(pet_id=pet_id % 2 + 1))
        except ConflictError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=20) as executor:
        outcomes = list(executor.map(attempt, range(20)))

    conflicts = [outcome for outcome in outcomes if isinstance(outcome, ConflictError)]
    assert len(conflicts) == 19
    assert len(booking_service.schedule_for(1, MONDAY)) == 1


def test_busy_schedule_times_out_with_conflict(store, make_request) -> None:
    locks = ScheduleLocks(timeout_seconds=0.05)
    service = BookingService(store, clock=fixed_clock, locks=locks)

    with locks.hold([(1, MONDAY)]):
        outcome = []
        worker = threading.Thread(target=lambda: outcome.append(_create_or_error(service, make_request())))
        worker.start()
        worker.join()

    assert isinstance(outcome[0], ConflictError)
    assert outcome[0].code == 'schedule_busy'
    assert service.schedule_for(1, MONDAY) == []
    assert len(locks) == 0


def _create_or_error(service: BookingService, request: BookingRequest):
    try:
        return service.create(request)
    except SchedulingError as exc:
        return exc


def test_reschedule_to_another_service_uses_its_standard_duration(store, booking_service, make_request) -> None:
    store.add_service(ServiceInfo(id=3, name='Dermatology review', base_price=Decimal('55.00'),
                                  standard_duration_minutes=60))
    original = booking_service.create(make_request())

    result = booking_service.reschedule(original.id, BookingRequest(service_id=3))

    assert result.appointment.duration_minutes == 60
    assert result.appointment.final_price == Decimal('55.00')


def test_window_capacity_above_one_admits_overlaps_up_to_the_limit(store, make_request) -> None:
    store.add_window(AvailabilityWindow(veterinarian_id=1, day_of_week=4, window_start=time(9, 0),
                                        window_end=time(12, 0), slot_duration_minutes=30, max_concurrent=2))
    service = BookingService(store, clock=fixed_clock)
    friday = date(2026, 1, 9)
    first = service.create(make_request(appointment_date=friday, start_time=time(9, 0)))
    second = service.create(make_request(pet_id=2, appointment_date=friday, start_time=time(9, 0), duration_minutes=60))

    with pytest.raises(ConflictError) as exception_info:
        service.create(make_request(appointment_date=friday, start_time=time(9, 0)))

    assert exception_info.value.capacity == 2
    assert exception_info.value.conflicting_ids == [first.id, second.id]
    assert exception_info.value.available_starts[0] == '09:30'
    assert len(service.schedule_for(1, friday)) == 2


def test_overlapping_shifts_book_against_the_window_the_start_aligns_to(store, make_request) -> None:
    store.add_window(AvailabilityWindow(veterinarian_id=1, day_of_week=5, window_start=time(8, 0),
                                        window_end=time(12, 0), slot_duration_minutes=30))
    store.add_window(AvailabilityWindow(veterinarian_id=1, day_of_week=5, window_start=time(10, 0),
                                        window_end=time(13, 0), slot_duration_minutes=15))
    service = BookingService(store, clock=fixed_clock)
    saturday = date(2026, 1, 10)

    appointment = service.create(make_request(appointment_date=saturday, start_time=time(10, 15)))

    assert appointment.start_time == time(10, 15)
    assert appointment.end_time == time(10, 45)
