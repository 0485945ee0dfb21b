"""Store interface consumed by the scheduling core."""

from contextlib import AbstractContextManager
from datetime import date
from typing import Protocol, Sequence

from vetscheduling.scheduling.entities import (
    Appointment,
    AvailabilityWindow,
    PetRef,
    ServiceInfo,
    VeterinarianRef,
)

ScheduleKey = tuple[int, date]


class SchedulingStore(Protocol):
    """Backing store for windows, reference records and appointments.

    Implementations raise StoreError on backend failure and never return partially
    written appointments: everything done inside ``transaction`` is committed
    together or not at all.
    """

    def windows_for(self, veterinarian_id: int, day_of_week: int) -> list[AvailabilityWindow]:
        ...

    def get_pet(self, pet_id: int) -> PetRef | None:
        ...

    def get_veterinarian(self, veterinarian_id: int) -> VeterinarianRef | None:
        ...

    def get_service(self, service_id: int) -> ServiceInfo | None:
        ...

    def get_appointment(self, appointment_id: int) -> Appointment | None:
        ...

    def appointments_for(self, veterinarian_id: int, day: date) -> list[Appointment]:
        ...

    def appointments_for_pet(self, pet_id: int) -> list[Appointment]:
        ...

    def add_appointment(self, appointment: Appointment) -> Appointment:
        ...

    def save_appointment(self, appointment: Appointment) -> Appointment:
        ...

    def transaction(self, schedules: Sequence[ScheduleKey]) -> AbstractContextManager[None]:
        ...
