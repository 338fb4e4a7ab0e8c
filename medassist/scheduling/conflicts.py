"""Conflict detection for a doctor's calendar."""

from datetime import datetime

from sqlalchemy.orm import Session

from medassist.core import config
from medassist.scheduling.intervals import (
    appointment_end,
    overlaps,
    validate_doctor_id,
    validate_duration,
    validate_start_time,
)
from medassist.scheduling.store import find_active_appointments


def has_conflict(
    db: Session,
    doctor_id: str,
    start_time: datetime,
    duration_minutes: int = config.DEFAULT_APPOINTMENT_DURATION_MINUTES,
    exclude_appointment_id: str | None = None,
) -> bool:
    """Return True if an active appointment of the doctor overlaps the candidate interval.

    The candidate is ``[start_time, start_time + duration_minutes)``. Appointments
    that end exactly at ``start_time`` or begin exactly at the candidate's end do
    not conflict. ``exclude_appointment_id`` lets an appointment being rescheduled
    skip itself.

    Raises ``InvalidArgument`` for malformed input and ``StoreUnavailable`` when
    the store query fails.
    """
    doctor_id = validate_doctor_id(doctor_id)
    start_time = validate_start_time(start_time)
    duration_minutes = validate_duration(duration_minutes)
    end_time = appointment_end(start_time, duration_minutes)

    candidates = find_active_appointments(
        db,
        doctor_id,
        window_start=start_time,
        window_end=end_time,
        exclude_appointment_id=exclude_appointment_id,
    )

    return any(
        overlaps(start_time, end_time, appointment.start_time, appointment.end_time)
        for appointment in candidates
    )
