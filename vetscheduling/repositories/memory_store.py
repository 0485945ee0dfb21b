"""Thread-safe in-memory store.

Writes made inside ``transaction`` are staged per thread and only become visible
to other threads on commit. Appointments are copied on the way in and out so
callers cannot change stored state without going through ``save_appointment``.
"""

import itertools
import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from typing import Iterator, Sequence

from vetscheduling.scheduling.entities import (
    Appointment,
    AvailabilityWindow,
    PetRef,
    ServiceInfo,
    VeterinarianRef,
)
from vetscheduling.scheduling.errors import NotFoundError
from vetscheduling.scheduling.ports import ScheduleKey
from vetscheduling.scheduling.status import check_persisted_change


class InMemoryStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._local = threading.local()
        self._appointment_ids = itertools.count(1)
        self._window_ids = itertools.count(1)
        self._pets: dict[int, PetRef] = {}
        self._veterinarians: dict[int, VeterinarianRef] = {}
        self._services: dict[int, ServiceInfo] = {}
        self._windows: dict[tuple[int, int], list[AvailabilityWindow]] = defaultdict(list)
        self._appointments: dict[int, Appointment] = {}

    # Catalog setup

    def add_pet(self, pet: PetRef) -> PetRef:
        with self._lock:
            self._pets[pet.id] = pet
        return pet

    def add_veterinarian(self, veterinarian: VeterinarianRef) -> VeterinarianRef:
        with self._lock:
            self._veterinarians[veterinarian.id] = veterinarian
        return veterinarian

    def add_service(self, service: ServiceInfo) -> ServiceInfo:
        with self._lock:
            self._services[service.id] = service
        return service

    def add_window(self, window: AvailabilityWindow) -> AvailabilityWindow:
        with self._lock:
            if window.id is None:
                window = replace(window, id=next(self._window_ids))
            self._windows[(window.veterinarian_id, window.day_of_week)].append(window)
        return window

    # Reads

    def windows_for(self, veterinarian_id: int, day_of_week: int) -> list[AvailabilityWindow]:
        with self._lock:
            return list(self._windows.get((veterinarian_id, day_of_week), []))

    def get_pet(self, pet_id: int) -> PetRef | None:
        with self._lock:
            return self._pets.get(pet_id)

    def get_veterinarian(self, veterinarian_id: int) -> VeterinarianRef | None:
        with self._lock:
            return self._veterinarians.get(veterinarian_id)

    def get_service(self, service_id: int) -> ServiceInfo | None:
        with self._lock:
            return self._services.get(service_id)

    def get_appointment(self, appointment_id: int) -> Appointment | None:
        appointment = self._visible().get(appointment_id)
        return appointment.snapshot() if appointment is not None else None

    def appointments_for(self, veterinarian_id: int, day: date) -> list[Appointment]:
        return [
            appointment.snapshot()
            for appointment in self._visible().values()
            if appointment.veterinarian_id == veterinarian_id and appointment.appointment_date == day
        ]

    def appointments_for_pet(self, pet_id: int) -> list[Appointment]:
        return [appointment.snapshot() for appointment in self._visible().values() if appointment.pet_id == pet_id]

    # Writes

    def add_appointment(self, appointment: Appointment) -> Appointment:
        with self._lock:
            stored = replace(appointment, id=next(self._appointment_ids))
        self._write(stored)
        return stored.snapshot()

    def save_appointment(self, appointment: Appointment) -> Appointment:
        existing = self._visible().get(appointment.id)
        if existing is None:
            raise NotFoundError('appointment', appointment.id)
        check_persisted_change(existing.status, appointment.status)
        stored = replace(appointment, created_at=existing.created_at)
        self._write(stored)
        return stored.snapshot()

    @contextmanager
    def transaction(self, schedules: Sequence[ScheduleKey]) -> Iterator[None]:
        if self._pending() is not None:
            yield
            return

        self._local.pending = {}
        try:
            yield
            with self._lock:
                self._appointments.update(self._local.pending)
        finally:
            self._local.pending = None

    def _pending(self) -> dict[int, Appointment] | None:
        return getattr(self._local, 'pending', None)

    def _visible(self) -> dict[int, Appointment]:
        with self._lock:
            merged = dict(self._appointments)
        pending = self._pending()
        if pending:
            merged.update(pending)
        return merged

    def _write(self, appointment: Appointment) -> None:
        pending = self._pending()
        if pending is not None:
            pending[appointment.id] = appointment
            return
        with self._lock:
            self._appointments[appointment.id] = appointment
