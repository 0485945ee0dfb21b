from datetime import date
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException, Query, status

from vetscheduling.database import SessionLocal
from vetscheduling.repositories.sql_store import SqlAlchemyStore
from vetscheduling.scheduling.booking import BookingService
from vetscheduling.scheduling.errors import (
    ConflictError,
    NotFoundError,
    SchedulingError,
    StateTransitionError,
    StoreError,
    ValidationError,
)
from vetscheduling.scheduling.schemas import (
    AppointmentResponse,
    AvailabilitySlotResponse,
    BookingRequest,
    CancelRequest,
    TransitionResponse,
)

router = APIRouter(tags=['appointments'])

ERROR_STATUS_CODES = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    StateTransitionError: status.HTTP_409_CONFLICT,
    StoreError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@lru_cache
def get_booking_service() -> BookingService:
    return BookingService(SqlAlchemyStore(SessionLocal))


def to_http_exception(exc: SchedulingError) -> HTTPException:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    return HTTPException(status_code=status_code, detail=exc.to_dict())


def to_transition_response(result) -> TransitionResponse:
    return TransitionResponse.model_validate(result, from_attributes=True)


@router.post('/appointments', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: BookingRequest, service: BookingService = Depends(get_booking_service)):
    try:
        appointment = service.create(data)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return AppointmentResponse.model_validate(appointment, from_attributes=True)


@router.get('/appointments/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(appointment_id: int, service: BookingService = Depends(get_booking_service)):
    try:
        appointment = service.get(appointment_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return AppointmentResponse.model_validate(appointment, from_attributes=True)


@router.post('/appointments/{appointment_id}/confirm', response_model=TransitionResponse)
def confirm_appointment(appointment_id: int, service: BookingService = Depends(get_booking_service)):
    try:
        return to_transition_response(service.confirm(appointment_id))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/appointments/{appointment_id}/start', response_model=TransitionResponse)
def start_attention(appointment_id: int, service: BookingService = Depends(get_booking_service)):
    try:
        return to_transition_response(service.start_attention(appointment_id))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/appointments/{appointment_id}/attend', response_model=TransitionResponse)
def mark_attended(appointment_id: int, service: BookingService = Depends(get_booking_service)):
    try:
        return to_transition_response(service.mark_attended(appointment_id))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/appointments/{appointment_id}/no-show', response_model=TransitionResponse)
def mark_no_show(appointment_id: int, service: BookingService = Depends(get_booking_service)):
    try:
        return to_transition_response(service.mark_no_show(appointment_id))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/appointments/{appointment_id}/cancel', response_model=TransitionResponse)
def cancel_appointment(
    appointment_id: int,
    data: CancelRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        return to_transition_response(service.cancel(appointment_id, data.reason, data.cancelled_by))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.put('/appointments/{appointment_id}/schedule', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    data: BookingRequest,
    cancelled_by: str | None = Query(default=None),
    service: BookingService = Depends(get_booking_service),
):
    try:
        result = service.reschedule(appointment_id, data, actor=cancelled_by)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return AppointmentResponse.model_validate(result.appointment, from_attributes=True)


@router.get('/veterinarians/{veterinarian_id}/schedule', response_model=list[AppointmentResponse])
def list_veterinarian_schedule(
    veterinarian_id: int,
    day: date = Query(...),
    service: BookingService = Depends(get_booking_service),
):
    try:
        appointments = service.schedule_for(veterinarian_id, day)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return [AppointmentResponse.model_validate(appointment, from_attributes=True) for appointment in appointments]


@router.get('/veterinarians/{veterinarian_id}/availability', response_model=list[AvailabilitySlotResponse])
def list_available_slots(
    veterinarian_id: int,
    day: date = Query(...),
    duration_minutes: int | None = Query(default=None, ge=5, le=480),
    service: BookingService = Depends(get_booking_service),
):
    try:
        slots = service.available_slots(veterinarian_id, day, duration_minutes)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return [AvailabilitySlotResponse.model_validate(slot, from_attributes=True) for slot in slots]


@router.get('/pets/{pet_id}/appointments', response_model=list[AppointmentResponse])
def list_pet_appointments(pet_id: int, service: BookingService = Depends(get_booking_service)):
    try:
        appointments = service.appointments_for_pet(pet_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return [AppointmentResponse.model_validate(appointment, from_attributes=True) for appointment in appointments]
