"""Actor-gated appointment status transitions.

Petitioner moves are a lookup table keyed by current status; staff and admins
may only cancel.
"""

from dataclasses import dataclass
from datetime import datetime

from backend.auth.actor import Actor
from backend.core.errors import Forbidden, InvalidTransition
from backend.models.appointment import Appointment, AppointmentStatus
from backend.models.user import Role


S = AppointmentStatus

PETITIONER_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    S.PENDING: frozenset({S.ACCEPTED, S.REJECTED, S.RESCHEDULE_REQUESTED}),
    S.ACCEPTED: frozenset({S.CANCELLED, S.RESCHEDULE_REQUESTED}),
    S.REJECTED: frozenset(),
    S.CANCELLED: frozenset(),
    S.RESCHEDULE_REQUESTED: frozenset(),
}

# Staff participants and admins may cancel from any status.
STAFF_OVERRIDE_STATUSES: frozenset[AppointmentStatus] = frozenset({S.CANCELLED})

RESCHEDULABLE_STATUS = S.RESCHEDULE_REQUESTED


@dataclass(frozen=True)
class Relationship:
    is_petitioner: bool
    is_staff_participant: bool


def relationship_to(actor: Actor, appointment: Appointment) -> Relationship:
    if actor.role == Role.STAFF_ATTORNEY:
        is_staff = appointment.staff_attorney_id == actor.user_id
    elif actor.role == Role.STAFF_LEGAL_ASSISTANT:
        is_staff = appointment.staff_legal_assistant_id == actor.user_id
    else:
        is_staff = False
    return Relationship(
        is_petitioner=actor.role == Role.PETITIONER and appointment.petitioner_id == actor.user_id,
        is_staff_participant=is_staff,
    )


def _current_status(appointment: Appointment) -> AppointmentStatus:
    return AppointmentStatus(appointment.status or S.PENDING.value)


def allowed_transitions(actor: Actor, current: AppointmentStatus) -> frozenset[AppointmentStatus]:
    """Statuses the actor's role may request from ``current``, ignoring relationship."""
    if actor.role == Role.PETITIONER:
        return PETITIONER_TRANSITIONS[current]
    if actor.is_staff or actor.is_admin:
        return STAFF_OVERRIDE_STATUSES
    return frozenset()


def resolve_status_change(actor: Actor, appointment: Appointment, requested: AppointmentStatus) -> AppointmentStatus:
    """Validate a plain status change and return the status to write.

    Raises ``Forbidden`` when the actor has no standing on the appointment and
    ``InvalidTransition`` when the table does not allow the change.
    """
    current = _current_status(appointment)
    requested = AppointmentStatus(requested)
    relationship = relationship_to(actor, appointment)

    if actor.role == Role.PETITIONER:
        if not relationship.is_petitioner:
            raise Forbidden('Only the petitioner on this appointment can respond to it.')
        if requested not in PETITIONER_TRANSITIONS[current]:
            raise InvalidTransition(current.value, requested.value)
        return requested

    if actor.is_staff or actor.is_admin:
        if requested not in STAFF_OVERRIDE_STATUSES:
            raise InvalidTransition(
                current.value,
                requested.value,
                'Only the petitioner can accept or reject; staff may cancel the appointment.',
            )
        if actor.is_staff and not relationship.is_staff_participant:
            raise Forbidden('Only the assigned staff member or an admin can cancel this appointment.')
        return requested

    raise Forbidden()


def resolve_reschedule(
    actor: Actor,
    appointment: Appointment,
    scheduled_at: datetime,
    notes: str | None = None,
    update_notes: bool = False,
) -> dict:
    """Validate a reschedule and return the fields to patch; status resets to pending."""
    current = _current_status(appointment)
    if current != RESCHEDULABLE_STATUS:
        raise InvalidTransition(
            current.value,
            S.PENDING.value,
            'Only appointments with reschedule requested can be rescheduled.',
        )

    relationship = relationship_to(actor, appointment)
    if not (actor.is_admin or relationship.is_staff_participant):
        raise Forbidden('Only the assigned staff member or an admin can reschedule this appointment.')

    fields = {'scheduled_at': scheduled_at, 'status': S.PENDING.value}
    if update_notes:
        fields['notes'] = notes
    return fields
