"""Errors raised by the scheduling core and the appointment service."""


class SchedulingError(Exception):
    """Base class for scheduling failures."""


class InvalidArgument(SchedulingError, ValueError):
    """A doctor id, timestamp or duration failed validation."""


class StoreUnavailable(SchedulingError):
    """The appointment store could not be queried."""


class TimeSlotUnavailable(SchedulingError):
    """The requested time overlaps an active appointment for the doctor."""

    def __init__(self, message: str = 'This time slot is unavailable. Please choose another time.'):
        super().__init__(message)


class DoctorNotFound(SchedulingError):
    """No active doctor exists with the given id."""


class AppointmentNotFound(SchedulingError):
    """No appointment exists with the given id."""
