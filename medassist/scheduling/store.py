"""Read access to active appointments for the scheduling core."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medassist.models.appointment import ACTIVE_STATUSES, Appointment
from medassist.scheduling.errors import StoreUnavailable

logger = logging.getLogger(__name__)


def find_active_appointments(
    db: Session,
    doctor_id: str,
    window_start: datetime,
    window_end: datetime,
    exclude_appointment_id: str | None = None,
) -> list[Appointment]:
    """Active appointments of ``doctor_id`` that may intersect ``[window_start, window_end)``.

    The lookback before ``window_start`` is the longest active appointment the
    doctor has on record, so long-running appointments that began earlier are
    still returned. Ordered by start time. Database failures are raised as
    ``StoreUnavailable``.
    """
    try:
        active = db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status.in_(ACTIVE_STATUSES),
        )
        if exclude_appointment_id:
            active = active.filter(Appointment.id != exclude_appointment_id)

        longest = active.with_entities(func.max(Appointment.duration_minutes)).scalar()
        if not longest:
            return []

        return active.filter(
            Appointment.start_time > window_start - timedelta(minutes=longest),
            Appointment.start_time < window_end,
        ).order_by(Appointment.start_time.asc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Active appointment lookup failed for doctor %s', doctor_id)
        raise StoreUnavailable('Database unavailable. Verify DATABASE_URL and database credentials.') from exc
