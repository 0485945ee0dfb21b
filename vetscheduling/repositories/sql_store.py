"""SQLAlchemy-backed scheduling store.

Sessions are thread-local. ``transaction`` locks the veterinarian rows it is given
with ``SELECT ... FOR UPDATE`` so bookings from several processes against the same
database serialize per veterinarian; databases without row locks (SQLite) rely on
the in-process schedule locks alone.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Iterator, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from vetscheduling.models.appointment import Appointment as AppointmentRow
from vetscheduling.models.availability import AvailabilityWindow as AvailabilityWindowRow
from vetscheduling.models.catalog import Pet, Veterinarian, VetService
from vetscheduling.scheduling.entities import (
    Appointment,
    AvailabilityWindow,
    PetRef,
    ServiceInfo,
    VeterinarianRef,
)
from vetscheduling.scheduling.errors import NotFoundError, StoreError
from vetscheduling.scheduling.ports import ScheduleKey
from vetscheduling.scheduling.status import AppointmentStatus, check_persisted_change

logger = logging.getLogger(__name__)

STORE_UNAVAILABLE_MESSAGE = 'Database unavailable. Verify DATABASE_URL and database credentials.'

_APPOINTMENT_FIELDS = (
    'pet_id',
    'veterinarian_id',
    'service_id',
    'appointment_date',
    'start_time',
    'duration_minutes',
    'reason',
    'notes',
    'is_emergency',
    'is_house_call',
    'house_call_address',
    'final_price',
    'confirmed_at',
    'attention_started_at',
    'attention_ended_at',
    'cancelled_at',
    'cancellation_reason',
    'cancelled_by',
    'updated_at',
)


def appointment_from_row(row: AppointmentRow) -> Appointment:
    return Appointment(
        id=row.id,
        status=AppointmentStatus(row.status),
        created_at=row.created_at,
        **{name: getattr(row, name) for name in _APPOINTMENT_FIELDS},
    )


def window_from_row(row: AvailabilityWindowRow) -> AvailabilityWindow:
    return AvailabilityWindow(
        id=row.id,
        veterinarian_id=row.veterinarian_id,
        day_of_week=row.day_of_week,
        window_start=row.window_start,
        window_end=row.window_end,
        slot_duration_minutes=row.slot_duration_minutes,
        max_concurrent=row.max_concurrent,
        active=row.active,
    )


class SqlAlchemyStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._sessions = scoped_session(session_factory)
        self._local = threading.local()

    def _in_transaction(self) -> bool:
        return getattr(self._local, 'in_transaction', False)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._sessions()
        try:
            yield session
        except SQLAlchemyError as exc:
            logger.exception('Scheduling store query failed')
            raise StoreError(STORE_UNAVAILABLE_MESSAGE) from exc
        finally:
            if not self._in_transaction():
                self._sessions.remove()

    # Reads

    def windows_for(self, veterinarian_id: int, day_of_week: int) -> list[AvailabilityWindow]:
        with self._session() as session:
            rows = session.query(AvailabilityWindowRow).filter(
                AvailabilityWindowRow.veterinarian_id == veterinarian_id,
                AvailabilityWindowRow.day_of_week == day_of_week,
            ).all()
            return [window_from_row(row) for row in rows]

    def get_pet(self, pet_id: int) -> PetRef | None:
        with self._session() as session:
            row = session.get(Pet, pet_id)
            return PetRef(id=row.id, name=row.name, active=row.active) if row else None

    def get_veterinarian(self, veterinarian_id: int) -> VeterinarianRef | None:
        with self._session() as session:
            row = session.get(Veterinarian, veterinarian_id)
            return VeterinarianRef(id=row.id, name=row.name, active=row.active) if row else None

    def get_service(self, service_id: int) -> ServiceInfo | None:
        with self._session() as session:
            row = session.get(VetService, service_id)
            if row is None:
                return None
            return ServiceInfo(
                id=row.id,
                name=row.name,
                base_price=Decimal(row.base_price),
                standard_duration_minutes=row.standard_duration_minutes,
                active=row.active,
                allows_house_calls=row.allows_house_calls,
                house_call_surcharge=Decimal(row.house_call_surcharge) if row.house_call_surcharge is not None else None,
            )

    def get_appointment(self, appointment_id: int) -> Appointment | None:
        with self._session() as session:
            row = session.get(AppointmentRow, appointment_id)
            return appointment_from_row(row) if row else None

    def appointments_for(self, veterinarian_id: int, day: date) -> list[Appointment]:
        with self._session() as session:
            rows = session.query(AppointmentRow).filter(
                AppointmentRow.veterinarian_id == veterinarian_id,
                AppointmentRow.appointment_date == day,
            ).order_by(AppointmentRow.start_time.asc()).all()
            return [appointment_from_row(row) for row in rows]

    def appointments_for_pet(self, pet_id: int) -> list[Appointment]:
        with self._session() as session:
            rows = session.query(AppointmentRow).filter(AppointmentRow.pet_id == pet_id).all()
            return [appointment_from_row(row) for row in rows]

    # Writes

    def add_appointment(self, appointment: Appointment) -> Appointment:
        with self._session() as session:
            row = AppointmentRow(
                status=appointment.status.value,
                created_at=appointment.created_at,
                **{name: getattr(appointment, name) for name in _APPOINTMENT_FIELDS},
            )
            session.add(row)
            session.flush()
            if not self._in_transaction():
                session.commit()
            return appointment_from_row(row)

    def save_appointment(self, appointment: Appointment) -> Appointment:
        with self._session() as session:
            row = session.get(AppointmentRow, appointment.id)
            if row is None:
                raise NotFoundError('appointment', appointment.id)
            check_persisted_change(AppointmentStatus(row.status), appointment.status)

            row.status = appointment.status.value
            for name in _APPOINTMENT_FIELDS:
                setattr(row, name, getattr(appointment, name))
            session.flush()
            if not self._in_transaction():
                session.commit()
            return appointment_from_row(row)

    @contextmanager
    def transaction(self, schedules: Sequence[ScheduleKey]) -> Iterator[None]:
        if self._in_transaction():
            yield
            return

        session = self._sessions()
        self._local.in_transaction = True
        try:
            for veterinarian_id in sorted({veterinarian_id for veterinarian_id, _ in schedules}):
                session.query(Veterinarian.id).filter(Veterinarian.id == veterinarian_id).with_for_update().first()
            yield
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception('Scheduling transaction failed')
            raise StoreError(STORE_UNAVAILABLE_MESSAGE) from exc
        except BaseException:
            session.rollback()
            raise
        finally:
            self._local.in_transaction = False
            self._sessions.remove()
