from datetime import date, datetime

import pytest

from medassist.models.appointment import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_SCHEDULED,
    Appointment,
)
from medassist.scheduling.errors import DoctorNotFound, InvalidArgument, TimeSlotUnavailable
from medassist.scheduling.slots import available_slots
from medassist.services import appointments as appointment_service


def at(hour: int, minute: int = 0, day: int = 2) -> datetime:
    return datetime(2026, 3, day, hour, minute)


def test_create_appointment_persists_with_defaults(db, doctor, patient) -> None:
    appointment = appointment_service.create_appointment(
        db,
        patient_id=patient.id,
        doctor_id=doctor.id,
        start_time=datetime(2026, 3, 2, 10, 0, 42, 500),
    )

    assert appointment.id
    assert appointment.start_time == at(10)
    assert appointment.duration_minutes == 30
    assert appointment.end_time == at(10, 30)
    assert appointment.status == STATUS_SCHEDULED
    assert appointment.appointment_type == 'consultation'


def test_create_appointment_rejects_overlap_without_writing(db, doctor, patient, other_patient) -> None:
    appointment_service.create_appointment(db, patient_id=patient.id, doctor_id=doctor.id, start_time=at(10))

    with pytest.raises(TimeSlotUnavailable) as exception_info:
        appointment_service.create_appointment(
            db,
            patient_id=other_patient.id,
            doctor_id=doctor.id,
            start_time=at(10, 15),
        )

    assert str(exception_info.value) == 'This time slot is unavailable. Please choose another time.'
    assert db.query(Appointment).count() == 1


def test_back_to_back_bookings_are_allowed(db, doctor, patient) -> None:
    appointment_service.create_appointment(db, patient_id=patient.id, doctor_id=doctor.id, start_time=at(10))
    appointment_service.create_appointment(db, patient_id=patient.id, doctor_id=doctor.id, start_time=at(10, 30))

    assert db.query(Appointment).count() == 2


def test_create_appointment_requires_active_doctor(db, doctor, patient) -> None:
    doctor.is_active = False
    db.commit()

    with pytest.raises(DoctorNotFound):
        appointment_service.create_appointment(db, patient_id=patient.id, doctor_id=doctor.id, start_time=at(10))

    with pytest.raises(DoctorNotFound):
        appointment_service.create_appointment(db, patient_id=patient.id, doctor_id='missing', start_time=at(10))


def test_create_appointment_validates_arguments(db, doctor, patient) -> None:
    with pytest.raises(InvalidArgument):
        appointment_service.create_appointment(
            db,
            patient_id=patient.id,
            doctor_id=doctor.id,
            start_time=at(10),
            duration_minutes=0,
        )


def test_reschedule_overlapping_its_own_old_slot_is_allowed(db, doctor, book) -> None:
    appointment = book(at(10), 30)

    updated = appointment_service.update_appointment(db, appointment, {'start_time': at(10, 15)})

    assert updated.start_time == at(10, 15)


def test_reschedule_into_taken_slot_is_rejected(db, doctor, book) -> None:
    book(at(11), 30)
    appointment = book(at(10), 30)

    with pytest.raises(TimeSlotUnavailable):
        appointment_service.update_appointment(db, appointment, {'start_time': at(11, 15)})

    db.refresh(appointment)
    assert appointment.start_time == at(10)


def test_extending_duration_into_next_appointment_is_rejected(db, doctor, book) -> None:
    book(at(10, 30), 30)
    appointment = book(at(10), 30)

    with pytest.raises(TimeSlotUnavailable):
        appointment_service.update_appointment(db, appointment, {'duration_minutes': 45})


def test_reactivating_cancelled_appointment_rechecks_calendar(db, doctor, book) -> None:
    cancelled = book(at(10), 30, status=STATUS_CANCELLED)
    book(at(10), 30)

    with pytest.raises(TimeSlotUnavailable):
        appointment_service.update_appointment(db, cancelled, {'status': STATUS_CONFIRMED})


def test_metadata_and_status_updates_skip_conflict_check(db, doctor, book) -> None:
    appointment = book(at(10), 30)

    updated = appointment_service.update_appointment(
        db,
        appointment,
        {'status': STATUS_COMPLETED, 'notes': 'Follow up in two weeks', 'title': 'Checkup'},
    )

    assert updated.status == STATUS_COMPLETED
    assert updated.notes == 'Follow up in two weeks'
    assert updated.title == 'Checkup'


def test_cancel_appointment_frees_the_slot(db, doctor, book) -> None:
    appointment = book(at(12), 30)
    assert at(12) not in available_slots(db, doctor.id, date(2026, 3, 2), 30)

    cancelled = appointment_service.cancel_appointment(db, appointment)

    assert cancelled.status == STATUS_CANCELLED
    assert cancelled.notes == 'Appointment cancelled'
    assert at(12) in available_slots(db, doctor.id, date(2026, 3, 2), 30)


def test_delete_appointment_removes_row(db, book) -> None:
    appointment = book(at(12), 30)

    appointment_service.delete_appointment(db, appointment)

    assert db.query(Appointment).count() == 0


def test_list_appointments_filters_and_paginates(db, doctor, other_doctor, patient, book) -> None:
    for day in range(2, 7):
        book(at(10, day=day), 30)
    book(at(11), 30, doctor_id=other_doctor.id, status=STATUS_CANCELLED)

    first_page, total, pages = appointment_service.list_appointments(db, patient_id=patient.id, page=1, limit=4)
    assert total == 6
    assert pages == 2
    assert len(first_page) == 4
    assert first_page[0].start_time == at(10, day=6)

    cancelled, total, _ = appointment_service.list_appointments(db, patient_id=patient.id, status=STATUS_CANCELLED)
    assert total == 1
    assert cancelled[0].doctor_id == other_doctor.id

    ranged, total, _ = appointment_service.list_appointments(
        db,
        doctor_id=doctor.id,
        date_from=date(2026, 3, 3),
        date_to=date(2026, 3, 4),
        newest_first=False,
    )
    assert total == 2
    assert [appointment.start_time for appointment in ranged] == [at(10, day=3), at(10, day=4)]


def test_upcoming_appointments_only_returns_future_active(db, patient, book) -> None:
    book(at(9, day=1), 30)
    book(at(9, day=3), 30, status=STATUS_CANCELLED)
    later = book(at(15, day=4), 30)
    sooner = book(at(9, day=4), 30)

    upcoming = appointment_service.upcoming_appointments(db, patient.id, limit=5, now=at(12, day=2))

    assert [appointment.id for appointment in upcoming] == [sooner.id, later.id]


def test_appointment_stats_counts_by_status(db, patient, book) -> None:
    book(at(9, day=1), 30, status=STATUS_COMPLETED)
    book(at(10, day=3), 30, status=STATUS_CANCELLED)
    book(at(11, day=4), 30)

    stats = appointment_service.appointment_stats(db, patient.id, now=at(12, day=2))

    assert stats['total'] == 3
    assert stats['upcoming'] == 1
    assert stats['this_month'] == 3
    assert stats['by_status'][STATUS_COMPLETED] == 1
    assert stats['by_status'][STATUS_CANCELLED] == 1
    assert stats['by_status'][STATUS_SCHEDULED] == 1
    assert stats['by_status'][STATUS_CONFIRMED] == 0


def test_booking_longer_than_cap_is_rejected(db, doctor, patient) -> None:
    with pytest.raises(InvalidArgument) as exception_info:
        appointment_service.create_appointment(
            db,
            patient_id=patient.id,
            doctor_id=doctor.id,
            start_time=at(9),
            duration_minutes=481,
        )

    assert str(exception_info.value) == 'Duration cannot exceed 480 minutes.'
    assert db.query(Appointment).count() == 0
