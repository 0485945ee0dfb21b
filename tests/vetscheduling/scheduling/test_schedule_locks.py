import threading
from datetime import date, timedelta

from vetscheduling.scheduling.errors import ConflictError
from vetscheduling.scheduling.locks import ScheduleLocks

MONDAY = date(2026, 1, 5)


def test_registry_is_emptied_after_each_hold() -> None:
    locks = ScheduleLocks(timeout_seconds=0.05)

    for offset in range(5000):
        with locks.hold([(1, MONDAY + timedelta(days=offset))]):
            assert len(locks) == 1

    assert len(locks) == 0


def test_duplicate_keys_are_held_once() -> None:
    locks = ScheduleLocks(timeout_seconds=0.05)

    with locks.hold([(1, MONDAY), (2, MONDAY), (1, MONDAY)]):
        assert len(locks) == 2

    assert len(locks) == 0


def test_timed_out_waiter_leaves_holder_entry_in_place() -> None:
    locks = ScheduleLocks(timeout_seconds=0.05)
    errors = []

    def wait_for_schedule() -> None:
        try:
            with locks.hold([(1, MONDAY)]):
                pass
        except ConflictError as exc:
            errors.append(exc)

    with locks.hold([(1, MONDAY)]):
        worker = threading.Thread(target=wait_for_schedule)
        worker.start()
        worker.join()
        assert len(locks) == 1

    assert errors[0].code == 'schedule_busy'
    assert len(locks) == 0


def test_partial_acquisition_is_released_on_timeout() -> None:
    locks = ScheduleLocks(timeout_seconds=0.05)
    outcome = []

    def hold_both() -> None:
        try:
            with locks.hold([(1, MONDAY), (2, MONDAY)]):
                outcome.append('held')
        except ConflictError as exc:
            outcome.append(exc.code)

    with locks.hold([(2, MONDAY)]):
        worker = threading.Thread(target=hold_both)
        worker.start()
        worker.join()

    assert outcome == ['schedule_busy']
    assert len(locks) == 0
    with locks.hold([(1, MONDAY)]):
        pass


def test_sequential_holders_reuse_a_fresh_entry() -> None:
    locks = ScheduleLocks(timeout_seconds=0.05)

    with locks.hold([(1, MONDAY)]):
        pass
    with locks.hold([(1, MONDAY)]):
        assert len(locks) == 1
