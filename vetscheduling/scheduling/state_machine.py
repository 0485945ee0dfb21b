"""Appointment lifecycle.

Each operation checks the transition table before touching the appointment, so a
rejected call leaves every field as it was.
"""

import logging
from datetime import datetime
from typing import Callable

from vetscheduling.scheduling.entities import Appointment, TransitionResult
from vetscheduling.scheduling.errors import ValidationError
from vetscheduling.scheduling.status import AppointmentStatus, check_transition

logger = logging.getLogger(__name__)

MAX_CANCELLATION_REASON_LENGTH = 500
MAX_ACTOR_LENGTH = 100


class AppointmentStateMachine:
    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock

    def confirm(self, appointment: Appointment) -> TransitionResult:
        def apply(now: datetime) -> None:
            appointment.confirmed_at = now

        return self._transition(appointment, AppointmentStatus.CONFIRMED, 'confirm', apply)

    def start_attention(self, appointment: Appointment) -> TransitionResult:
        def apply(now: datetime) -> None:
            appointment.attention_started_at = now

        return self._transition(appointment, AppointmentStatus.IN_PROGRESS, 'start_attention', apply)

    def mark_attended(self, appointment: Appointment) -> TransitionResult:
        def apply(now: datetime) -> None:
            if appointment.attention_started_at is None:
                appointment.attention_started_at = now
            appointment.attention_ended_at = now

        return self._transition(appointment, AppointmentStatus.ATTENDED, 'mark_attended', apply)

    def cancel(self, appointment: Appointment, reason: str | None = None, actor: str | None = None) -> TransitionResult:
        check_transition(appointment.status, AppointmentStatus.CANCELLED, 'cancel')

        if reason is not None and len(reason) > MAX_CANCELLATION_REASON_LENGTH:
            raise ValidationError(
                f'Cancellation reason must be {MAX_CANCELLATION_REASON_LENGTH} characters or fewer.',
                field='reason',
                code='too_long',
            )
        if actor is not None and len(actor) > MAX_ACTOR_LENGTH:
            raise ValidationError(f'Actor must be {MAX_ACTOR_LENGTH} characters or fewer.',
                                  field='cancelled_by', code='too_long')

        def apply(now: datetime) -> None:
            appointment.cancelled_at = now
            appointment.cancellation_reason = reason
            appointment.cancelled_by = actor

        return self._transition(appointment, AppointmentStatus.CANCELLED, 'cancel', apply)

    def mark_no_show(self, appointment: Appointment) -> TransitionResult:
        return self._transition(appointment, AppointmentStatus.NO_SHOW, 'mark_no_show', lambda now: None)

    def _transition(
        self,
        appointment: Appointment,
        target: AppointmentStatus,
        operation: str,
        apply: Callable[[datetime], None],
    ) -> TransitionResult:
        previous = appointment.status
        check_transition(previous, target, operation)

        now = self._clock()
        apply(now)
        appointment.status = target
        appointment.updated_at = now

        logger.info('Appointment %s: %s -> %s (%s)', appointment.id, previous.value, target.value, operation)
        return TransitionResult(
            previous_status=previous,
            status=target,
            appointment=appointment.snapshot(),
            operation=operation,
        )
