"""Appointment operations: authorization, validation and persistence per request."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time

from sqlalchemy.orm import Session

from backend.auth.actor import Actor
from backend.core import config
from backend.core.errors import Forbidden, InvalidTransition, NotFound, SlotConflict, ValidationError
from backend.models.appointment import Appointment, AppointmentStatus, DEFAULT_DURATION_MINUTES
from backend.models.case import Case
from backend.models.user import Role
from backend.services.appointment_store import AppointmentFilter, AppointmentStore
from backend.services.availability import busy_slot_labels, busy_slots, is_selectable
from backend.services.next_slot_finder import validate_duration
from backend.services.notifications import NotificationDispatcher, send_appointment_invites
from backend.services.slot_grid import GRID_SLOTS, time_to_slot
from backend.services.status_transitions import resolve_reschedule, resolve_status_change

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationResult:
    appointment_id: int
    notification_sent: bool


def require_staff_or_admin(actor: Actor) -> None:
    if not (actor.is_staff or actor.is_admin):
        raise Forbidden('Only staff members or admins can manage appointment times.')


def resolve_staff_id(actor: Actor, staff_id: int | None) -> int:
    """Staff act on their own calendar; admins must name the staff member."""
    require_staff_or_admin(actor)
    if actor.is_staff:
        if staff_id is not None and staff_id != actor.user_id:
            raise Forbidden('Staff members can only search their own calendar.')
        return actor.user_id
    if staff_id is None:
        raise ValidationError('staffId is required when searching as an admin.')
    return staff_id


def get_appointment(store: AppointmentStore, appointment_id: int) -> Appointment:
    appointment = store.get(appointment_id)
    if appointment is None:
        raise NotFound('Appointment', appointment_id)
    return appointment


def ensure_slot_free(
    store: AppointmentStore,
    staff_id: int,
    petitioner_id: int,
    scheduled_at: datetime,
    duration_minutes: int,
    exclude_id: int | None = None,
) -> None:
    try:
        start_slot = time_to_slot(scheduled_at)
    except ValueError as exc:
        raise ValidationError(str(exc), {'scheduledAt': scheduled_at.isoformat()}) from exc

    day = scheduled_at.date()
    calendars = [
        [a for a in store.list(AppointmentFilter(staff_id=staff_id, day=day, exclude_cancelled=True)) if a.id != exclude_id],
        [
            a
            for a in store.list(AppointmentFilter(petitioner_id=petitioner_id, day=day, exclude_cancelled=True))
            if a.id != exclude_id
        ],
    ]
    if not is_selectable(start_slot, busy_slots(day, *calendars), duration_minutes):
        raise SlotConflict(
            'The requested time is not available for both participants.',
            {'scheduledAt': scheduled_at.isoformat(), 'durationMinutes': duration_minutes},
        )


def create_appointment(
    db: Session,
    actor: Actor,
    dispatcher: NotificationDispatcher,
    case_id: int,
    petitioner_id: int,
    scheduled_at: datetime,
    staff_attorney_id: int | None = None,
    staff_legal_assistant_id: int | None = None,
    duration_minutes: int | None = None,
    notes: str | None = None,
) -> MutationResult:
    require_staff_or_admin(actor)

    if (staff_attorney_id is None) == (staff_legal_assistant_id is None):
        raise ValidationError(
            'Provide exactly one of staffAttorneyId or staffLegalAssistantId.',
            {'required': ['staffAttorneyId', 'staffLegalAssistantId'], 'exactlyOne': True},
        )

    duration_minutes = validate_duration(DEFAULT_DURATION_MINUTES if duration_minutes is None else duration_minutes)

    case = db.query(Case).filter(Case.id == case_id).first()
    if case is None:
        raise NotFound('Case', case_id)
    if case.petitioner_id != petitioner_id:
        raise ValidationError('Petitioner is not on this case.', {'petitionerId': petitioner_id})

    if staff_attorney_id is not None:
        if case.petitioner_attorney_id != staff_attorney_id:
            raise ValidationError('Staff attorney is not on this case.', {'staffAttorneyId': staff_attorney_id})
        if actor.is_staff and not (actor.role == Role.STAFF_ATTORNEY and actor.user_id == staff_attorney_id):
            raise Forbidden('You can only create appointments on your own calendar.')
        staff_id = staff_attorney_id
    else:
        if case.legal_assistant_id != staff_legal_assistant_id:
            raise ValidationError(
                'Legal assistant is not on this case.',
                {'staffLegalAssistantId': staff_legal_assistant_id},
            )
        if actor.is_staff and not (
            actor.role == Role.STAFF_LEGAL_ASSISTANT and actor.user_id == staff_legal_assistant_id
        ):
            raise Forbidden('You can only create appointments on your own calendar.')
        staff_id = staff_legal_assistant_id

    store = AppointmentStore(db)
    if config.ENFORCE_NO_OVERLAP:
        ensure_slot_free(store, staff_id, petitioner_id, scheduled_at, duration_minutes)

    appointment_id = store.create(
        case_id=case_id,
        petitioner_id=petitioner_id,
        staff_attorney_id=staff_attorney_id,
        staff_legal_assistant_id=staff_legal_assistant_id,
        scheduled_at=scheduled_at,
        duration_minutes=duration_minutes,
        notes=notes,
        status=AppointmentStatus.PENDING.value,
        created_by=actor.user_id,
    )
    logger.info('Appointment %s created by user %s for case %s at %s.', appointment_id, actor.user_id, case_id, scheduled_at)

    notification_sent = send_appointment_invites(db, store.get(appointment_id), dispatcher)
    return MutationResult(appointment_id=appointment_id, notification_sent=notification_sent)


def change_status(
    db: Session,
    actor: Actor,
    appointment_id: int,
    requested: AppointmentStatus,
) -> AppointmentStatus:
    store = AppointmentStore(db)
    appointment = get_appointment(store, appointment_id)
    current = appointment.status
    new_status = resolve_status_change(actor, appointment, requested)

    if not store.patch(appointment_id, {'status': new_status.value}, expected_status=current):
        raise InvalidTransition(current, new_status.value, 'Appointment status changed; reload and try again.')

    logger.info('Appointment %s moved from %s to %s by user %s.', appointment_id, current, new_status.value, actor.user_id)
    return new_status


def reschedule_appointment(
    db: Session,
    actor: Actor,
    dispatcher: NotificationDispatcher,
    appointment_id: int,
    scheduled_at: datetime,
    notes: str | None = None,
    update_notes: bool = False,
    resend_invites: bool = True,
) -> MutationResult:
    store = AppointmentStore(db)
    appointment = get_appointment(store, appointment_id)
    current = appointment.status
    fields = resolve_reschedule(actor, appointment, scheduled_at, notes, update_notes)

    if config.ENFORCE_NO_OVERLAP:
        ensure_slot_free(
            store,
            appointment.staff_id,
            appointment.petitioner_id,
            scheduled_at,
            appointment.duration_minutes or DEFAULT_DURATION_MINUTES,
            exclude_id=appointment_id,
        )

    if not store.patch(appointment_id, fields, expected_status=current):
        raise InvalidTransition(current, AppointmentStatus.PENDING.value, 'Appointment status changed; reload and try again.')
    logger.info('Appointment %s rescheduled to %s by user %s.', appointment_id, scheduled_at, actor.user_id)

    notification_sent = False
    if resend_invites:
        notification_sent = send_appointment_invites(db, store.get(appointment_id), dispatcher)
    return MutationResult(appointment_id=appointment_id, notification_sent=notification_sent)


def list_appointments_for_actor(
    store: AppointmentStore,
    actor: Actor,
    case_id: int | None = None,
    day: date | None = None,
    staff_id: int | None = None,
    petitioner_id: int | None = None,
) -> list[Appointment]:
    criteria = AppointmentFilter(day=day)
    if actor.is_petitioner:
        criteria.petitioner_id = actor.user_id
    elif petitioner_id is not None:
        # Staff checking a client's calendar before booking.
        criteria.petitioner_id = petitioner_id
    elif actor.role == Role.STAFF_ATTORNEY:
        criteria.staff_attorney_id = actor.user_id
    elif actor.role == Role.STAFF_LEGAL_ASSISTANT:
        criteria.staff_legal_assistant_id = actor.user_id
    elif actor.is_admin:
        criteria.case_id = case_id
        criteria.staff_id = staff_id
    else:
        raise Forbidden()
    return store.list(criteria)


def pending_actions_count(store: AppointmentStore, actor: Actor) -> int:
    if actor.is_petitioner:
        criteria = AppointmentFilter(petitioner_id=actor.user_id, statuses=(AppointmentStatus.PENDING.value,))
    elif actor.role == Role.STAFF_ATTORNEY:
        criteria = AppointmentFilter(
            staff_attorney_id=actor.user_id,
            statuses=(AppointmentStatus.RESCHEDULE_REQUESTED.value,),
        )
    elif actor.role == Role.STAFF_LEGAL_ASSISTANT:
        criteria = AppointmentFilter(
            staff_legal_assistant_id=actor.user_id,
            statuses=(AppointmentStatus.RESCHEDULE_REQUESTED.value,),
        )
    elif actor.is_admin:
        criteria = AppointmentFilter(statuses=(AppointmentStatus.RESCHEDULE_REQUESTED.value,))
    else:
        raise Forbidden()
    return store.count(criteria)


@dataclass(frozen=True)
class SlotState:
    slot: time
    busy: bool
    selectable: bool
    label: str | None = None


def day_availability(
    db: Session,
    actor: Actor,
    day: date,
    petitioner_id: int,
    duration_minutes: int,
    staff_id: int | None = None,
) -> list[SlotState]:
    """Per-slot grid for one day across the staff and petitioner calendars."""
    staff_id = resolve_staff_id(actor, staff_id)
    validate_duration(duration_minutes)

    store = AppointmentStore(db)
    staff_appointments = store.list(AppointmentFilter(staff_id=staff_id, day=day, exclude_cancelled=True))
    petitioner_appointments = store.list(
        AppointmentFilter(petitioner_id=petitioner_id, day=day, exclude_cancelled=True)
    )
    busy = busy_slots(day, staff_appointments, petitioner_appointments)

    case_ids = {a.case_id for a in staff_appointments + petitioner_appointments}
    case_numbers = {
        case.id: case.case_number
        for case in db.query(Case).filter(Case.id.in_(case_ids)).all()
    } if case_ids else {}
    labels = busy_slot_labels(
        day,
        staff_appointments + petitioner_appointments,
        lambda a: f'Case #{case_numbers[a.case_id]}' if case_numbers.get(a.case_id) else 'Busy',
    )

    return [
        SlotState(
            slot=slot,
            busy=slot in busy,
            selectable=is_selectable(slot, busy, duration_minutes),
            label=labels.get(slot),
        )
        for slot in GRID_SLOTS
    ]
