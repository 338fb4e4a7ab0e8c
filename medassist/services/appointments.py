"""Appointment lifecycle: booking, rescheduling, cancellation and reporting.

Every write that can make an appointment occupy calendar time runs the
conflict check first, inside the same transaction as the write. The doctor
row is locked for the duration of that transaction on backends that support
``SELECT ... FOR UPDATE``; on others the check-then-write window remains open.
"""

import logging
import math
from datetime import date, datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medassist.core import config
from medassist.models.appointment import (
    ACTIVE_STATUSES,
    APPOINTMENT_STATUSES,
    DEFAULT_APPOINTMENT_TYPE,
    STATUS_CANCELLED,
    STATUS_SCHEDULED,
    Appointment,
)
from medassist.models.doctor import Doctor
from medassist.scheduling.conflicts import has_conflict
from medassist.scheduling.errors import (
    AppointmentNotFound,
    DoctorNotFound,
    InvalidArgument,
    StoreUnavailable,
    TimeSlotUnavailable,
)
from medassist.scheduling.intervals import validate_doctor_id, validate_duration, validate_start_time

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and database credentials.'
METADATA_FIELDS = ('appointment_type', 'title', 'description', 'notes')


def validate_booking_duration(duration_minutes) -> int:
    duration_minutes = validate_duration(duration_minutes)
    if duration_minutes > config.MAX_APPOINTMENT_DURATION_MINUTES:
        raise InvalidArgument(f'Duration cannot exceed {config.MAX_APPOINTMENT_DURATION_MINUTES} minutes.')
    return duration_minutes


def normalize_start_time(start_time: datetime) -> datetime:
    return validate_start_time(start_time).replace(second=0, microsecond=0)


def lock_doctor(db: Session, doctor_id: str) -> Doctor:
    doctor = db.query(Doctor).filter(
        Doctor.id == doctor_id,
        Doctor.is_active.is_(True),
    ).with_for_update().first()

    if doctor is None:
        raise DoctorNotFound('Doctor not found.')
    return doctor


def get_appointment(db: Session, appointment_id: str) -> Appointment:
    try:
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    except SQLAlchemyError as exc:
        logger.exception('Appointment lookup failed for %s', appointment_id)
        raise StoreUnavailable(DATABASE_UNAVAILABLE) from exc

    if appointment is None:
        raise AppointmentNotFound('Appointment not found.')
    return appointment


def create_appointment(
    db: Session,
    patient_id: str,
    doctor_id: str,
    start_time: datetime,
    duration_minutes: int | None = None,
    appointment_type: str | None = None,
    title: str | None = None,
    description: str | None = None,
    notes: str | None = None,
) -> Appointment:
    doctor_id = validate_doctor_id(doctor_id)
    start_time = normalize_start_time(start_time)
    duration_minutes = validate_booking_duration(
        config.DEFAULT_APPOINTMENT_DURATION_MINUTES if duration_minutes is None else duration_minutes
    )

    try:
        lock_doctor(db, doctor_id)

        if has_conflict(db, doctor_id, start_time, duration_minutes):
            logger.warning(
                'Rejected booking for doctor %s at %s (%s min): slot taken',
                doctor_id,
                start_time.isoformat(),
                duration_minutes,
            )
            raise TimeSlotUnavailable()

        appointment = Appointment(
            doctor_id=doctor_id,
            patient_id=patient_id,
            start_time=start_time,
            duration_minutes=duration_minutes,
            status=STATUS_SCHEDULED,
            appointment_type=appointment_type or DEFAULT_APPOINTMENT_TYPE,
            title=title,
            description=description,
            notes=notes,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Creating appointment for doctor %s failed', doctor_id)
        raise StoreUnavailable(DATABASE_UNAVAILABLE) from exc
    except (DoctorNotFound, TimeSlotUnavailable, StoreUnavailable):
        db.rollback()
        raise

    logger.info('Booked appointment %s with doctor %s at %s', appointment.id, doctor_id, start_time.isoformat())
    return appointment


def update_appointment(db: Session, appointment: Appointment, changes: dict) -> Appointment:
    """Apply ``changes`` to ``appointment``, re-checking the calendar when needed.

    A fresh conflict check (excluding the appointment itself) runs when the
    start time or duration changes while the appointment stays active, or when
    the status moves it from an inactive status back into an active one.
    """
    new_start = appointment.start_time
    if changes.get('start_time') is not None:
        new_start = normalize_start_time(changes['start_time'])

    new_duration = appointment.duration_minutes
    if changes.get('duration_minutes') is not None:
        new_duration = validate_booking_duration(changes['duration_minutes'])

    new_status = changes.get('status') or appointment.status
    if new_status not in APPOINTMENT_STATUSES:
        raise InvalidArgument('Invalid appointment status.')

    time_changed = new_start != appointment.start_time or new_duration != appointment.duration_minutes
    needs_check = new_status in ACTIVE_STATUSES and (time_changed or not appointment.is_active)

    try:
        if needs_check:
            lock_doctor(db, appointment.doctor_id)
            if has_conflict(
                db,
                appointment.doctor_id,
                new_start,
                new_duration,
                exclude_appointment_id=appointment.id,
            ):
                logger.warning(
                    'Rejected update of appointment %s to %s (%s min): slot taken',
                    appointment.id,
                    new_start.isoformat(),
                    new_duration,
                )
                raise TimeSlotUnavailable()

        appointment.start_time = new_start
        appointment.duration_minutes = new_duration
        appointment.status = new_status
        for field in METADATA_FIELDS:
            if field in changes:
                setattr(appointment, field, changes[field])

        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Updating appointment %s failed', appointment.id)
        raise StoreUnavailable(DATABASE_UNAVAILABLE) from exc
    except (DoctorNotFound, TimeSlotUnavailable, StoreUnavailable):
        db.rollback()
        raise

    return appointment


def cancel_appointment(db: Session, appointment: Appointment, notes: str | None = None) -> Appointment:
    try:
        appointment.status = STATUS_CANCELLED
        appointment.notes = notes or 'Appointment cancelled'
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Cancelling appointment %s failed', appointment.id)
        raise StoreUnavailable(DATABASE_UNAVAILABLE) from exc

    logger.info('Cancelled appointment %s', appointment.id)
    return appointment


def delete_appointment(db: Session, appointment: Appointment) -> None:
    try:
        db.delete(appointment)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Deleting appointment %s failed', appointment.id)
        raise StoreUnavailable(DATABASE_UNAVAILABLE) from exc

    logger.info('Deleted appointment %s', appointment.id)


def list_appointments(
    db: Session,
    patient_id: str | None = None,
    doctor_id: str | None = None,
    status: str | None = None,
    appointment_type: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    page: int = 1,
    limit: int = 10,
    newest_first: bool = True,
) -> tuple[list[Appointment], int, int]:
    """Return ``(appointments, total, pages)`` for one page of matching appointments."""
    query = db.query(Appointment)
    if patient_id:
        query = query.filter(Appointment.patient_id == patient_id)
    if doctor_id:
        query = query.filter(Appointment.doctor_id == doctor_id)
    if status:
        query = query.filter(Appointment.status == status)
    if appointment_type:
        query = query.filter(Appointment.appointment_type == appointment_type)
    if date_from:
        query = query.filter(Appointment.start_time >= datetime.combine(date_from, datetime.min.time()))
    if date_to:
        query = query.filter(
            Appointment.start_time < datetime.combine(date_to + timedelta(days=1), datetime.min.time())
        )

    ordering = Appointment.start_time.desc() if newest_first else Appointment.start_time.asc()

    try:
        total = query.count()
        appointments = query.order_by(ordering).offset((page - 1) * limit).limit(limit).all()
    except SQLAlchemyError as exc:
        logger.exception('Listing appointments failed')
        raise StoreUnavailable(DATABASE_UNAVAILABLE) from exc

    return appointments, total, math.ceil(total / limit)


def upcoming_appointments(
    db: Session,
    patient_id: str,
    limit: int = config.UPCOMING_APPOINTMENTS_LIMIT,
    now: datetime | None = None,
) -> list[Appointment]:
    now = now or datetime.now()
    try:
        return db.query(Appointment).filter(
            Appointment.patient_id == patient_id,
            Appointment.start_time >= now,
            Appointment.status.in_(ACTIVE_STATUSES),
        ).order_by(Appointment.start_time.asc()).limit(limit).all()
    except SQLAlchemyError as exc:
        logger.exception('Upcoming appointment lookup failed for %s', patient_id)
        raise StoreUnavailable(DATABASE_UNAVAILABLE) from exc


def appointment_stats(db: Session, patient_id: str, now: datetime | None = None) -> dict:
    now = now or datetime.now()
    start_of_month = datetime(now.year, now.month, 1)

    try:
        status_rows = db.query(Appointment.status, func.count(Appointment.id)).filter(
            Appointment.patient_id == patient_id,
        ).group_by(Appointment.status).all()

        upcoming = db.query(Appointment).filter(
            Appointment.patient_id == patient_id,
            Appointment.start_time >= now,
            Appointment.status.in_(ACTIVE_STATUSES),
        ).count()

        this_month = db.query(Appointment).filter(
            Appointment.patient_id == patient_id,
            Appointment.start_time >= start_of_month,
        ).count()
    except SQLAlchemyError as exc:
        logger.exception('Appointment statistics failed for %s', patient_id)
        raise StoreUnavailable(DATABASE_UNAVAILABLE) from exc

    by_status = {appointment_status: 0 for appointment_status in APPOINTMENT_STATUSES}
    for appointment_status, count in status_rows:
        by_status[appointment_status] = count

    return {
        'total': sum(by_status.values()),
        'upcoming': upcoming,
        'this_month': this_month,
        'by_status': by_status,
    }
