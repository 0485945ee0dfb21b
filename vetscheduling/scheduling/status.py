"""Appointment lifecycle states and the table of legal transitions."""

from enum import Enum

from vetscheduling.scheduling.errors import StateTransitionError


class AppointmentStatus(str, Enum):
    SCHEDULED = 'scheduled'
    CONFIRMED = 'confirmed'
    IN_PROGRESS = 'in_progress'
    ATTENDED = 'attended'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'

    def can_transition_to(self, new_status: 'AppointmentStatus') -> bool:
        return new_status in ALLOWED_TRANSITIONS[self]

    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]

    def occupies_schedule(self) -> bool:
        """Whether an appointment in this state still takes up its time slot."""
        return self not in RELEASED_STATUSES


ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.ATTENDED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.ATTENDED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.IN_PROGRESS: frozenset({
        AppointmentStatus.ATTENDED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.ATTENDED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

RELEASED_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})
RESCHEDULABLE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})


def check_transition(current: AppointmentStatus, requested: AppointmentStatus, operation: str) -> None:
    if not current.can_transition_to(requested):
        raise StateTransitionError(current, requested, operation)


def check_persisted_change(stored: AppointmentStatus, updated: AppointmentStatus) -> None:
    """Guard used by stores so a direct status edit cannot skip the state machine."""
    if stored != updated:
        check_transition(stored, updated, 'save')
