import logging
from datetime import time, timedelta

import pytest
from django.db import IntegrityError
from django.utils import timezone

from engine.exceptions import (
    ChamberNotFound,
    DoctorNotApproved,
    NoAvailabilityConfigured,
    OddSerialNumber,
    SerialOutOfRange,
    SlotNotOffered,
    SlotUnavailable,
    ValidationError,
)
from engine.models import Appointment, AppointmentStatus, DoctorStatus
from engine.services import appointments as svc
from engine.services import reservation

pytestmark = pytest.mark.django_db


def test_book_appointment_creates_pending_row(patient, doctor, chamber, schedule, day):
    appt = svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:15', reason='<img src=x onerror=alert(1)>fever')
    assert appt.status == AppointmentStatus.PENDING
    assert appt.start_time == time(9, 15)
    assert appt.end_time == time(9, 30)
    assert appt.session_duration == 15
    assert appt.fee == 800
    assert appt.reason == 'fever'
    assert appt.booking_type == Appointment.BOOKING_SLOT
    assert appt.appointment_number.startswith('APT-')
    assert appt.transitions.get().to_status == AppointmentStatus.PENDING


def test_follow_up_uses_follow_up_fee(patient, doctor, chamber, schedule, day):
    appt = svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:00', consultation_type='follow_up')
    assert appt.fee == 500


def test_same_slot_cannot_be_booked_twice(patient, make_user, doctor, chamber, schedule, day):
    svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:00')
    with pytest.raises(SlotUnavailable):
        svc.book_appointment(make_user(), doctor.pk, chamber.pk, day, '09:00')
    assert Appointment.objects.filter(doctor=doctor, appointment_date=day).count() == 1


def test_cancelled_slot_can_be_rebooked(patient, make_user, doctor, chamber, schedule, day):
    first = svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:00')
    svc.cancel_appointment(patient, first.pk, 'travelling')
    second = svc.book_appointment(make_user(), doctor.pk, chamber.pk, day, '09:00')
    assert second.status == AppointmentStatus.PENDING


def test_start_time_must_be_a_calculated_slot(patient, doctor, chamber, schedule, day):
    with pytest.raises(SlotNotOffered):
        svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:10')
    with pytest.raises(SlotNotOffered):
        svc.book_appointment(patient, doctor.pk, chamber.pk, day + timedelta(days=1), '09:00')


def test_past_date_is_rejected(patient, doctor, chamber, schedule):
    with pytest.raises(ValidationError):
        svc.book_appointment(patient, doctor.pk, chamber.pk, timezone.localdate() - timedelta(days=1), '09:00')


def test_unapproved_doctor_cannot_be_booked(patient, make_doctor, day):
    pending = make_doctor(status=DoctorStatus.PENDING_HOSPITAL)
    with pytest.raises(DoctorNotApproved):
        svc.book_appointment(patient, pending.pk, 1, day, '09:00')
    assert not Appointment.objects.exists()


def test_inactive_chamber_is_not_bookable(patient, doctor, chamber, schedule, day):
    chamber.is_active = False
    chamber.save()
    with pytest.raises(ChamberNotFound):
        svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:00')


def test_book_serial(patient, doctor, serial_policy, day):
    appt = svc.book_serial(patient, doctor.pk, 4, day)
    assert appt.serial_number == 4
    assert appt.booking_type == Appointment.BOOKING_SERIAL
    assert (appt.start_time, appt.end_time) == (time(9, 24), time(9, 48))
    assert appt.fee == 600


def test_serial_booked_twice_is_unavailable(patient, make_user, doctor, serial_policy, day):
    svc.book_serial(patient, doctor.pk, 4, day)
    with pytest.raises(SlotUnavailable):
        svc.book_serial(make_user(), doctor.pk, 4, day)


@pytest.mark.parametrize('number', [1, 3, 19])
def test_odd_serials_are_walk_in_only(patient, doctor, serial_policy, day, number):
    with pytest.raises(OddSerialNumber):
        svc.book_serial(patient, doctor.pk, number, day)


@pytest.mark.parametrize('number', [0, -2, 22, 21])
def test_serials_outside_range_are_rejected(patient, doctor, serial_policy, day, number):
    with pytest.raises(SerialOutOfRange):
        svc.book_serial(patient, doctor.pk, number, day)


def test_serial_on_unavailable_day(patient, doctor, serial_policy, day):
    from engine.services.availability import weekday_of
    serial_policy.available_days = [(weekday_of(day) + 3) % 7]
    serial_policy.save()
    with pytest.raises(ValidationError):
        svc.book_serial(patient, doctor.pk, 2, day)


def test_serial_without_policy(patient, doctor, day):
    with pytest.raises(NoAvailabilityConfigured):
        svc.book_serial(patient, doctor.pk, 2, day)


def test_lost_race_maps_to_slot_unavailable(patient, make_user, doctor, serial_policy, day, monkeypatch):
    svc.book_serial(patient, doctor.pk, 2, day)
    # the pre-check misses the committed row, so only the unique constraint stops the second insert
    monkeypatch.setattr(reservation, 'slot_taken', lambda *args, **kwargs: False)
    with pytest.raises(SlotUnavailable):
        svc.book_serial(make_user(), doctor.pk, 2, day)
    assert Appointment.objects.filter(doctor=doctor, serial_number=2).count() == 1


def test_failed_creation_releases_the_reservation(patient, doctor, chamber, schedule, day, monkeypatch, caplog):
    def broken_number():
        raise RuntimeError('number service down')

    monkeypatch.setattr(svc, 'generate_appointment_number', broken_number)
    with caplog.at_level(logging.WARNING, logger='engine.services.reservation'):
        with pytest.raises(RuntimeError):
            svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:00')
    assert 'released' in caplog.text
    assert not Appointment.objects.exists()

    monkeypatch.undo()
    appt = svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:00')
    assert appt.pk


def test_reserve_denies_taken_slot_without_writing(patient, doctor, serial_policy, day):
    svc.book_serial(patient, doctor.pk, 2, day)
    with pytest.raises(SlotUnavailable):
        with reservation.reserve(doctor, day, time(9, 0), time(9, 24), serial_number=2):
            pytest.fail('reservation should not be granted')


def test_appointment_numbers_are_unique(patient, doctor, serial_policy, day):
    numbers = {svc.book_serial(patient, doctor.pk, n, day).appointment_number for n in (2, 4, 6)}
    assert len(numbers) == 3


def test_markup_allowed_by_bleach_is_kept(patient, doctor, chamber, schedule, day):
    appt = svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:30', reason='<b>fever</b> <script>x</script>')
    assert appt.reason == '<b>fever</b> x'


def test_serial_refused_on_a_schedule_day(patient, doctor, schedule, serial_policy, day):
    with pytest.raises(SlotNotOffered):
        svc.book_serial(patient, doctor.pk, 20, day)
    assert not Appointment.objects.exists()


def test_appointment_number_clash_is_not_a_slot_conflict(patient, doctor, chamber, schedule, day, monkeypatch):
    first = svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:00')
    monkeypatch.setattr(svc, 'generate_appointment_number', lambda: first.appointment_number)
    with pytest.raises(IntegrityError):
        svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:15')
    assert Appointment.objects.count() == 1
