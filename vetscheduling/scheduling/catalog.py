from datetime import date
from typing import Iterable

from vetscheduling.scheduling.entities import AvailabilityWindow
from vetscheduling.scheduling.ports import SchedulingStore


class ScheduleCatalog:
    """Read-only view of veterinarians' weekly availability."""

    def __init__(self, store: SchedulingStore) -> None:
        self._store = store

    def windows_for(self, veterinarian_id: int, day_of_week: int) -> list[AvailabilityWindow]:
        return [
            window
            for window in self._store.windows_for(veterinarian_id, day_of_week)
            if window.active
        ]

    def windows_on(self, veterinarian_id: int, day: date) -> list[AvailabilityWindow]:
        return self.windows_for(veterinarian_id, day.weekday())

    @staticmethod
    def describe_ranges(windows: Iterable[AvailabilityWindow]) -> list[str]:
        ordered = sorted(windows, key=lambda window: (window.window_start, window.window_end))
        return [window.describe() for window in ordered]

    @staticmethod
    def containing_window(windows: Iterable[AvailabilityWindow], start, end) -> AvailabilityWindow | None:
        # Overlapping shifts: an aligned window wins, then the earliest one.
        containing = [
            window
            for window in sorted(windows, key=lambda window: window.window_start)
            if window.contains(start, end)
        ]
        for window in containing:
            if window.is_aligned(start):
                return window
        return containing[0] if containing else None
