import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medassist.auth.dependencies import require_admin
from medassist.core import config
from medassist.database import get_db
from medassist.models.doctor import Doctor
from medassist.models.user import User
from medassist.routes.appointment_routes import (
    DATABASE_UNAVAILABLE_DETAIL,
    AppointmentPageResponse,
    AppointmentResponse,
    ensure_database_ready,
    to_http_exception,
)
from medassist.scheduling.errors import SchedulingError
from medassist.scheduling.slots import available_slots
from medassist.services import appointments as appointment_service

router = APIRouter(tags=['doctors'])

logger = logging.getLogger(__name__)


class CreateDoctorRequest(BaseModel):
    name: str
    specialization: str
    phone: str | None = None
    hospital: str | None = None

    @field_validator('name', 'specialization')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name and specialization are required.')
        return normalized

    @field_validator('phone', 'hospital')
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class DoctorResponse(BaseModel):
    id: str
    name: str
    specialization: str
    phone: str | None = None
    hospital: str | None = None
    is_active: bool

    class Config:
        from_attributes = True


class AvailableSlotsResponse(BaseModel):
    doctor_id: str
    date: date
    duration_minutes: int
    slots: list[datetime]


def get_active_doctor(db: Session, doctor_id: str) -> Doctor:
    try:
        doctor = db.query(Doctor).filter(Doctor.id == doctor_id, Doctor.is_active.is_(True)).first()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    if doctor is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Doctor not found.')
    return doctor


@router.get('', response_model=list[DoctorResponse])
def list_doctors(
    specialization: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Doctor).filter(Doctor.is_active.is_(True))
        if specialization:
            query = query.filter(Doctor.specialization.ilike(f'%{specialization.strip()}%'))
        return query.order_by(Doctor.name.asc()).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/{doctor_id}', response_model=DoctorResponse)
def get_doctor(doctor_id: str, db: Session = Depends(get_db)):
    return get_active_doctor(db, doctor_id)


@router.post('', response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
def create_doctor(
    data: CreateDoctorRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        doctor = Doctor(
            name=data.name,
            specialization=data.specialization,
            phone=data.phone,
            hospital=data.hospital,
            is_active=True,
        )
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    logger.info('Admin %s added doctor %s', admin.email, doctor.id)
    return doctor


@router.delete('/{doctor_id}', status_code=status.HTTP_204_NO_CONTENT)
def deactivate_doctor(
    doctor_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    doctor = get_active_doctor(db, doctor_id)

    try:
        doctor.is_active = False
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    logger.info('Admin %s deactivated doctor %s', admin.email, doctor_id)


@router.get('/{doctor_id}/slots', response_model=AvailableSlotsResponse)
def list_available_slots(
    doctor_id: str,
    slot_date: date = Query(..., alias='date'),
    duration_minutes: int = Query(
        default=config.DEFAULT_APPOINTMENT_DURATION_MINUTES,
        ge=1,
        le=config.MAX_APPOINTMENT_DURATION_MINUTES,
    ),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    get_active_doctor(db, doctor_id)

    try:
        slots = available_slots(db, doctor_id, slot_date, duration_minutes)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return AvailableSlotsResponse(
        doctor_id=doctor_id,
        date=slot_date,
        duration_minutes=duration_minutes,
        slots=slots,
    )


@router.get(
    '/{doctor_id}/appointments',
    response_model=AppointmentPageResponse,
    dependencies=[Depends(require_admin)],
)
def list_doctor_appointments(
    doctor_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    get_active_doctor(db, doctor_id)

    try:
        appointments, total, pages = appointment_service.list_appointments(
            db,
            doctor_id=doctor_id,
            date_from=date_from,
            date_to=date_to,
            page=page,
            limit=limit,
            newest_first=False,
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
