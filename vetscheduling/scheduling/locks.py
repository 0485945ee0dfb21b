from contextlib import contextmanager
from threading import Lock
from typing import Iterable, Iterator

from vetscheduling.core import config
from vetscheduling.scheduling.errors import ConflictError
from vetscheduling.scheduling.ports import ScheduleKey


class ScheduleLocks:
    """One mutex per (veterinarian, date) schedule.

    Keys are always acquired in sorted order so two operations touching the same
    pair of schedules cannot deadlock, and every wait is bounded. A schedule's mutex
    is dropped from the registry once nobody holds or waits for it.
    """

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self._timeout = config.SCHEDULE_LOCK_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        self._registry_lock = Lock()
        self._locks: dict[ScheduleKey, Lock] = {}
        self._users: dict[ScheduleKey, int] = {}

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    def _check_out(self, key: ScheduleKey) -> Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
                self._users[key] = 0
            self._users[key] += 1
            return lock

    def _check_in(self, key: ScheduleKey) -> None:
        with self._registry_lock:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[ScheduleKey]) -> Iterator[None]:
        checked_out: list[ScheduleKey] = []
        acquired: list[Lock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._check_out(key)
                checked_out.append(key)
                if not lock.acquire(timeout=self._timeout):
                    veterinarian_id, day = key
                    raise ConflictError(
                        f'Schedule of veterinarian {veterinarian_id} on {day.isoformat()} is busy; try again.',
                        code='schedule_busy',
                    )
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in checked_out:
                self._check_in(key)
