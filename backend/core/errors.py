"""Scheduling error taxonomy.

Services raise these; ``backend.main`` renders them as JSON with the status
code attached to each class.
"""

from typing import Any


class SchedulingError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            'error': self.message,
            'code': self.__class__.__name__,
            'details': self.details,
        }


class ValidationError(SchedulingError):
    """Malformed request: bad duration, staff XOR, off-grid time, wrong participants."""


class SlotConflict(ValidationError):
    """Requested block overlaps an existing appointment on either calendar."""

    status_code = 409


class Forbidden(SchedulingError):
    status_code = 403

    def __init__(self, message: str = 'Forbidden', details: dict[str, Any] | None = None):
        super().__init__(message, details)


class InvalidTransition(SchedulingError):
    """Status change not permitted from the current state."""

    def __init__(self, current: str, requested: str, message: str | None = None):
        super().__init__(
            message or f'Cannot change appointment status from {current} to {requested}.',
            {'current': current, 'requested': requested},
        )
        self.current = current
        self.requested = requested


class NotFound(SchedulingError):
    status_code = 404

    def __init__(self, resource: str, resource_id: Any = None):
        message = f'{resource} not found.'
        details = {'resource': resource}
        if resource_id is not None:
            details['resource_id'] = resource_id
        super().__init__(message, details)


class NoAvailability(SchedulingError):
    status_code = 404

    def __init__(self, horizon_days: int):
        super().__init__(
            f'No available slot found in the next {horizon_days} days.',
            {'horizon_days': horizon_days},
        )
