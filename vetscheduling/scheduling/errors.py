"""Typed errors raised by the scheduling engine.

Every error carries a machine-readable ``code`` and enough structured data for a
caller to render a precise message without parsing text.
"""

from typing import Any


class SchedulingError(Exception):
    """Base class for everything the scheduling core raises on purpose."""

    code = 'scheduling_error'

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context: dict[str, Any] = {}

    def add_context(self, **context: Any) -> 'SchedulingError':
        for key, value in context.items():
            self.context.setdefault(key, value)
        return self

    def payload(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        data = {'error': self.code, 'message': self.message}
        data.update(self.payload())
        if self.context:
            data['context'] = dict(self.context)
        return data


class ValidationError(SchedulingError):
    """A request field failed a business rule."""

    code = 'validation_error'

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code=code)
        self.field = field
        self.details = details or {}

    def payload(self) -> dict[str, Any]:
        return {'field': self.field, 'details': self.details}


class ConflictError(SchedulingError):
    """The requested interval is already at capacity for the veterinarian."""

    code = 'schedule_conflict'

    def __init__(
        self,
        message: str,
        *,
        conflicts: list[dict[str, Any]] | None = None,
        capacity: int | None = None,
        available_starts: list[str] | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message, code=code)
        self.conflicts = conflicts or []
        self.capacity = capacity
        self.available_starts = available_starts or []

    @property
    def conflicting_ids(self) -> list[int]:
        return [conflict['id'] for conflict in self.conflicts]

    def payload(self) -> dict[str, Any]:
        return {
            'conflicts': self.conflicts,
            'capacity': self.capacity,
            'available_starts': self.available_starts,
        }


class StateTransitionError(SchedulingError):
    """The appointment lifecycle does not allow the requested change."""

    code = 'invalid_transition'

    def __init__(self, current: Any, requested: Any, operation: str) -> None:
        current_value = getattr(current, 'value', current)
        requested_value = getattr(requested, 'value', requested)
        super().__init__(
            f'Cannot {operation.replace("_", " ")}: appointment is {current_value}, '
            f'transition to {requested_value} is not allowed.'
        )
        self.current = current
        self.requested = requested
        self.operation = operation

    def payload(self) -> dict[str, Any]:
        return {
            'current_status': getattr(self.current, 'value', self.current),
            'requested_status': getattr(self.requested, 'value', self.requested),
            'operation': self.operation,
        }


class NotFoundError(SchedulingError):
    """A referenced pet, veterinarian, service or appointment does not exist."""

    code = 'not_found'

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f'{entity.capitalize()} {entity_id} not found.')
        self.entity = entity
        self.entity_id = entity_id

    def payload(self) -> dict[str, Any]:
        return {'entity': self.entity, 'entity_id': self.entity_id}


class StoreError(SchedulingError):
    """The backing store failed. The original exception is kept as ``__cause__``."""

    code = 'store_unavailable'
