"""Free slot enumeration for a doctor's day."""

from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from medassist.core import config
from medassist.scheduling.intervals import (
    DEFAULT_BUSINESS_HOURS,
    BusinessHours,
    overlaps,
    validate_day,
    validate_doctor_id,
    validate_duration,
)
from medassist.scheduling.store import find_active_appointments


def available_slots(
    db: Session,
    doctor_id: str,
    day: date,
    duration_minutes: int = config.DEFAULT_APPOINTMENT_DURATION_MINUTES,
    business_hours: BusinessHours = DEFAULT_BUSINESS_HOURS,
) -> list[datetime]:
    """Start times of free ``duration_minutes`` slots for the doctor on ``day``.

    Slots are stepped from opening time in increments of ``duration_minutes``
    and never run past closing. A slot is dropped if it intersects any active
    appointment. One store query serves the whole day.
    """
    doctor_id = validate_doctor_id(doctor_id)
    day = validate_day(day)
    duration_minutes = validate_duration(duration_minutes)

    day_open, day_close = business_hours.bounds_for(day)
    booked = [
        (appointment.start_time, appointment.end_time)
        for appointment in find_active_appointments(
            db,
            doctor_id,
            window_start=day_open,
            window_end=day_close,
        )
    ]

    step = timedelta(minutes=duration_minutes)
    slots: list[datetime] = []
    current_start = day_open

    while current_start + step <= day_close:
        slot_end = current_start + step
        if not any(overlaps(current_start, slot_end, booked_start, booked_end) for booked_start, booked_end in booked):
            slots.append(current_start)
        current_start = slot_end

    return slots
