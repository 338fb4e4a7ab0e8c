from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medassist.auth.dependencies import get_current_user, require_admin
from medassist.core import config
from medassist.database import ensure_appointment_schema, get_db
from medassist.models.appointment import APPOINTMENT_STATUSES, APPOINTMENT_TYPES, Appointment
from medassist.models.user import User
from medassist.scheduling.errors import (
    AppointmentNotFound,
    DoctorNotFound,
    InvalidArgument,
    SchedulingError,
    StoreUnavailable,
    TimeSlotUnavailable,
)
from medassist.services import appointments as appointment_service

router = APIRouter(tags=['appointments'])

MAX_APPOINTMENT_NOTES_LENGTH = 600
MAX_TITLE_LENGTH = 200
DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def _normalize_optional_text(value: str | None, max_length: int, field_name: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > max_length:
        raise ValueError(f'{field_name} must be {max_length} characters or fewer.')

    return normalized


def _validate_duration(value: int) -> int:
    if value <= 0:
        raise ValueError('Duration must be a positive number of minutes.')
    if value > config.MAX_APPOINTMENT_DURATION_MINUTES:
        raise ValueError(f'Duration cannot exceed {config.MAX_APPOINTMENT_DURATION_MINUTES} minutes.')
    return value


def _normalize_choice(value: str | None, choices: tuple[str, ...], message: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip().lower()
    if normalized not in choices:
        raise ValueError(message)
    return normalized


class CreateAppointmentRequest(BaseModel):
    doctor_id: str
    start_time: datetime
    duration_minutes: int = config.DEFAULT_APPOINTMENT_DURATION_MINUTES
    appointment_type: str | None = None
    title: str | None = None
    description: str | None = None
    notes: str | None = None

    @field_validator('doctor_id')
    @classmethod
    def validate_doctor_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Doctor is required.')
        return normalized

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration_minutes(cls, value: int) -> int:
        return _validate_duration(value)

    @field_validator('appointment_type')
    @classmethod
    def validate_appointment_type(cls, value: str | None) -> str | None:
        return _normalize_choice(value, APPOINTMENT_TYPES, 'Invalid appointment type.')

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_TITLE_LENGTH, 'Title')

    @field_validator('description', 'notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_APPOINTMENT_NOTES_LENGTH, 'Notes')


class UpdateAppointmentRequest(BaseModel):
    start_time: datetime | None = None
    duration_minutes: int | None = None
    status: str | None = None
    appointment_type: str | None = None
    title: str | None = None
    description: str | None = None
    notes: str | None = None

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration_minutes(cls, value: int | None) -> int | None:
        if value is None:
            return None
        return _validate_duration(value)

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        return _normalize_choice(value, APPOINTMENT_STATUSES, 'Invalid appointment status.')

    @field_validator('appointment_type')
    @classmethod
    def validate_appointment_type(cls, value: str | None) -> str | None:
        return _normalize_choice(value, APPOINTMENT_TYPES, 'Invalid appointment type.')

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_TITLE_LENGTH, 'Title')

    @field_validator('description', 'notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_APPOINTMENT_NOTES_LENGTH, 'Notes')


class CancelAppointmentRequest(BaseModel):
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_APPOINTMENT_NOTES_LENGTH, 'Notes')


class AppointmentResponse(BaseModel):
    id: str
    doctor_id: str
    patient_id: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: str
    appointment_type: str | None = None
    title: str | None = None
    description: str | None = None
    notes: str | None = None

    class Config:
        from_attributes = True


class AppointmentPageResponse(BaseModel):
    appointments: list[AppointmentResponse]
    page: int
    limit: int
    total: int
    pages: int


class AppointmentStatsResponse(BaseModel):
    total: int
    upcoming: int
    this_month: int
    by_status: dict[str, int]


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def to_http_exception(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, TimeSlotUnavailable):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, (AppointmentNotFound, DoctorNotFound)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, InvalidArgument):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, StoreUnavailable):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE_DETAIL)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail='Scheduling failed.')


def load_visible_appointment(db: Session, appointment_id: str, current_user: User) -> Appointment:
    try:
        appointment = appointment_service.get_appointment(db, appointment_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    if appointment.patient_id != current_user.id and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only the patient who booked this appointment can access it.',
        )
    return appointment


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        return appointment_service.create_appointment(
            db,
            patient_id=current_user.id,
            doctor_id=data.doctor_id,
            start_time=data.start_time,
            duration_minutes=data.duration_minutes,
            appointment_type=data.appointment_type,
            title=data.title,
            description=data.description,
            notes=data.notes,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('', response_model=AppointmentPageResponse)
def list_my_appointments(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    appointment_status: str | None = Query(default=None, alias='status'),
    appointment_type: str | None = Query(default=None),
    doctor_id: str | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if appointment_status is not None and appointment_status not in APPOINTMENT_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid appointment status.')

    ensure_database_ready()

    try:
        appointments, total, pages = appointment_service.list_appointments(
            db,
            patient_id=current_user.id,
            doctor_id=doctor_id,
            status=appointment_status,
            appointment_type=appointment_type,
            date_from=date_from,
            date_to=date_to,
            page=page,
            limit=limit,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return AppointmentPageResponse(
        appointments=[AppointmentResponse.model_validate(appointment) for appointment in appointments],
        page=page,
        limit=limit,
        total=total,
        pages=pages,
    )


@router.get('/upcoming', response_model=list[AppointmentResponse])
def list_upcoming_appointments(
    limit: int = Query(default=config.UPCOMING_APPOINTMENTS_LIMIT, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        return appointment_service.upcoming_appointments(db, current_user.id, limit=limit)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/stats', response_model=AppointmentStatsResponse)
def get_appointment_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        return appointment_service.appointment_stats(db, current_user.id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()
    return load_visible_appointment(db, appointment_id, current_user)


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: str,
    data: UpdateAppointmentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()
    appointment = load_visible_appointment(db, appointment_id, current_user)

    try:
        return appointment_service.update_appointment(db, appointment, data.model_dump(exclude_unset=True))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: str,
    data: CancelAppointmentRequest | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()
    appointment = load_visible_appointment(db, appointment_id, current_user)

    try:
        return appointment_service.cancel_appointment(db, appointment, notes=data.notes if data else None)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    ensure_database_ready()
    appointment = load_visible_appointment(db, appointment_id, admin)

    try:
        appointment_service.delete_appointment(db, appointment)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
