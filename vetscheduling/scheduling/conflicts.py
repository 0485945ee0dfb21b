from datetime import date, datetime, time
from typing import Iterable

from vetscheduling.scheduling.entities import Appointment, AvailabilityWindow, SlotAvailability, add_minutes
from vetscheduling.scheduling.ports import SchedulingStore


class ConflictDetector:
    """Finds appointments that still occupy a veterinarian's time."""

    def __init__(self, store: SchedulingStore) -> None:
        self._store = store

    def active_appointments(self, veterinarian_id: int, day: date) -> list[Appointment]:
        appointments = [
            appointment
            for appointment in self._store.appointments_for(veterinarian_id, day)
            if appointment.status.occupies_schedule()
        ]
        return sorted(appointments, key=lambda appointment: (appointment.start_time, appointment.id or 0))

    def overlapping(
        self,
        veterinarian_id: int,
        day: date,
        start_time: time,
        end_time: time,
        exclude_appointment_id: int | None = None,
    ) -> list[Appointment]:
        return [
            appointment
            for appointment in self.active_appointments(veterinarian_id, day)
            if appointment.id != exclude_appointment_id
            and appointment.overlaps(start_time, end_time)
        ]

    def booked_slots(
        self,
        veterinarian_id: int,
        day: date,
        windows: Iterable[AvailabilityWindow],
        duration_minutes: int | None = None,
        now: datetime | None = None,
        exclude_appointment_id: int | None = None,
    ) -> list[SlotAvailability]:
        """Capacity of every aligned start in ``windows`` on ``day``.

        Starts already in the past relative to ``now`` are left out.
        """
        active = [
            appointment
            for appointment in self.active_appointments(veterinarian_id, day)
            if appointment.id != exclude_appointment_id
        ]
        slots = []
        for window in sorted(windows, key=lambda window: window.window_start):
            duration = duration_minutes or window.slot_duration_minutes
            for start in window.slot_starts(duration):
                if now is not None and datetime.combine(day, start) < now:
                    continue
                end = add_minutes(start, duration)
                booked = [
                    appointment.id
                    for appointment in active
                    if appointment.overlaps(start, end)
                ]
                slots.append(
                    SlotAvailability(
                        start_time=start,
                        end_time=end,
                        capacity=window.max_concurrent,
                        booked=len(booked),
                        window_id=window.id,
                        booked_ids=tuple(booked),
                    )
                )
        return slots
