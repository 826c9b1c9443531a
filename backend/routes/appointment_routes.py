from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.actor import Actor
from backend.auth.dependencies import get_current_actor
from backend.core.errors import ValidationError
from backend.database import SessionLocal, ensure_appointment_schema
from backend.models.appointment import (
    Appointment,
    AppointmentStatus,
    DEFAULT_DURATION_MINUTES,
    MAX_APPOINTMENT_NOTES_LENGTH,
)
from backend.models.case import Case
from backend.models.user import User
from backend.services import appointments as appointment_service
from backend.services.appointment_store import AppointmentStore
from backend.services.next_slot_finder import find_next_available
from backend.services.notifications import NotificationDispatcher, get_notification_dispatcher
from backend.services.slot_grid import format_slot, format_slot_display

router = APIRouter(tags=['appointments'])


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def normalize_scheduled_at(value: datetime) -> datetime:
    """Store timestamps as naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(second=0, microsecond=0)


def normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


class CreateAppointmentRequest(CamelModel):
    case_id: int
    petitioner_id: int
    staff_attorney_id: int | None = None
    staff_legal_assistant_id: int | None = None
    scheduled_at: datetime
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    notes: str | None = None

    @field_validator('scheduled_at')
    @classmethod
    def validate_scheduled_at(cls, value: datetime) -> datetime:
        return normalize_scheduled_at(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class UpdateAppointmentRequest(CamelModel):
    status: AppointmentStatus | None = None
    scheduled_at: datetime | None = None
    notes: str | None = None
    resend_invites: bool = True

    @field_validator('scheduled_at')
    @classmethod
    def validate_scheduled_at(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return normalize_scheduled_at(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class UserSummaryResponse(CamelModel):
    id: int
    uname: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    model_config = ConfigDict(from_attributes=True)


class AppointmentResponse(CamelModel):
    id: int
    case_id: int
    case_number: str | None = None
    petitioner_id: int
    petitioner: UserSummaryResponse | None = None
    staff_attorney_id: int | None = None
    staff_attorney: UserSummaryResponse | None = None
    staff_legal_assistant_id: int | None = None
    staff_legal_assistant: UserSummaryResponse | None = None
    scheduled_at: datetime
    duration_minutes: int
    status: str
    notes: str | None = None
    created_at: datetime | None = None


class CreateAppointmentResponse(CamelModel):
    id: int
    notification_sent: bool


class UpdateAppointmentResponse(CamelModel):
    ok: bool = True
    status: str
    notification_sent: bool = False


class NextAvailableResponse(CamelModel):
    date: date
    slot: str
    scheduled_at: datetime


class SlotAvailabilityResponse(CamelModel):
    slot: str
    display: str
    busy: bool
    selectable: bool
    label: str | None = None


class CountResponse(CamelModel):
    count: int


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail='Database unavailable. Verify DATABASE_URL and Postgres credentials.',
    )


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def build_appointment_responses(db: Session, appointments: list[Appointment]) -> list[AppointmentResponse]:
    case_ids = {appointment.case_id for appointment in appointments}
    user_ids = set()
    for appointment in appointments:
        user_ids.update(
            user_id
            for user_id in (
                appointment.petitioner_id,
                appointment.staff_attorney_id,
                appointment.staff_legal_assistant_id,
            )
            if user_id is not None
        )

    case_by_id = {case.id: case for case in db.query(Case).filter(Case.id.in_(case_ids)).all()} if case_ids else {}
    user_by_id = {user.id: user for user in db.query(User).filter(User.id.in_(user_ids)).all()} if user_ids else {}

    def summary(user_id: int | None) -> UserSummaryResponse | None:
        user = user_by_id.get(user_id)
        return UserSummaryResponse.model_validate(user) if user else None

    return [
        AppointmentResponse(
            id=appointment.id,
            case_id=appointment.case_id,
            case_number=case_by_id[appointment.case_id].case_number if appointment.case_id in case_by_id else None,
            petitioner_id=appointment.petitioner_id,
            petitioner=summary(appointment.petitioner_id),
            staff_attorney_id=appointment.staff_attorney_id,
            staff_attorney=summary(appointment.staff_attorney_id),
            staff_legal_assistant_id=appointment.staff_legal_assistant_id,
            staff_legal_assistant=summary(appointment.staff_legal_assistant_id),
            scheduled_at=appointment.scheduled_at,
            duration_minutes=appointment.duration_minutes or DEFAULT_DURATION_MINUTES,
            status=appointment.status or AppointmentStatus.PENDING.value,
            notes=appointment.notes,
            created_at=appointment.created_at,
        )
        for appointment in appointments
    ]


@router.get('/pending-actions-count', response_model=CountResponse)
def get_pending_actions_count(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return CountResponse(count=appointment_service.pending_actions_count(AppointmentStore(db), actor))
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/next-available', response_model=NextAvailableResponse)
def get_next_available(
    petitioner_id: int = Query(..., alias='petitionerId'),
    duration_minutes: int = Query(default=DEFAULT_DURATION_MINUTES, alias='durationMinutes'),
    staff_id: int | None = Query(default=None, alias='staffId'),
    from_date: date | None = Query(default=None, alias='from'),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    staff_id = appointment_service.resolve_staff_id(actor, staff_id)
    ensure_database_ready()

    try:
        opening = find_next_available(
            AppointmentStore(db),
            staff_id=staff_id,
            petitioner_id=petitioner_id,
            duration_minutes=duration_minutes,
            start_date=from_date,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return NextAvailableResponse(date=opening.date, slot=format_slot(opening.slot), scheduled_at=opening.scheduled_at)


@router.get('/availability', response_model=list[SlotAvailabilityResponse])
def get_day_availability(
    day: date = Query(..., alias='date'),
    petitioner_id: int = Query(..., alias='petitionerId'),
    duration_minutes: int = Query(default=DEFAULT_DURATION_MINUTES, alias='durationMinutes'),
    staff_id: int | None = Query(default=None, alias='staffId'),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        slots = appointment_service.day_availability(
            db,
            actor,
            day=day,
            petitioner_id=petitioner_id,
            duration_minutes=duration_minutes,
            staff_id=staff_id,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [
        SlotAvailabilityResponse(
            slot=format_slot(state.slot),
            display=format_slot_display(state.slot),
            busy=state.busy,
            selectable=state.selectable,
            label=state.label,
        )
        for state in slots
    ]


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    case_id: int | None = Query(default=None, alias='caseId'),
    day: date | None = Query(default=None, alias='date'),
    staff_id: int | None = Query(default=None, alias='staffId'),
    petitioner_id: int | None = Query(default=None, alias='petitionerId'),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointments = appointment_service.list_appointments_for_actor(
            AppointmentStore(db),
            actor,
            case_id=case_id,
            day=day,
            staff_id=staff_id,
            petitioner_id=petitioner_id,
        )
        return build_appointment_responses(db, appointments)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=CreateAppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    ensure_database_ready()

    try:
        result = appointment_service.create_appointment(
            db,
            actor,
            dispatcher,
            case_id=data.case_id,
            petitioner_id=data.petitioner_id,
            scheduled_at=data.scheduled_at,
            staff_attorney_id=data.staff_attorney_id,
            staff_legal_assistant_id=data.staff_legal_assistant_id,
            duration_minutes=data.duration_minutes,
            notes=data.notes,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return CreateAppointmentResponse(id=result.appointment_id, notification_sent=result.notification_sent)


@router.patch('/{appointment_id}', response_model=UpdateAppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    ensure_database_ready()

    try:
        if data.scheduled_at is not None:
            result = appointment_service.reschedule_appointment(
                db,
                actor,
                dispatcher,
                appointment_id,
                scheduled_at=data.scheduled_at,
                notes=data.notes,
                update_notes='notes' in data.model_fields_set,
                resend_invites=data.resend_invites,
            )
            return UpdateAppointmentResponse(
                status=AppointmentStatus.PENDING.value,
                notification_sent=result.notification_sent,
            )

        if data.status is None:
            raise ValidationError('Provide either a status or a new scheduledAt.', {'fields': ['status', 'scheduledAt']})

        new_status = appointment_service.change_status(db, actor, appointment_id, data.status)
        return UpdateAppointmentResponse(status=new_status.value)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
