from datetime import date, time, timedelta

import pytest

from engine.exceptions import (
    ChamberNotFound,
    DoctorNotApproved,
    DoctorNotFound,
    InvalidDate,
    NoAvailabilityConfigured,
    ValidationError,
)
from engine.models import Appointment, AppointmentStatus, Chamber, DoctorStatus, Schedule, SerialSettings
from engine.services.availability import (
    get_availability,
    get_available_serials,
    resolve_serial_settings,
    serial_window,
    split_windows,
    weekday_of,
)

pytestmark = pytest.mark.django_db


def _book(doctor, day, start, end, serial=None, status=AppointmentStatus.PENDING, n=1, patient=None):
    return Appointment.objects.create(
        patient=patient or doctor.user, doctor=doctor, appointment_date=day, start_time=start, end_time=end,
        serial_number=serial, appointment_number=f'APT-TEST-{n}', status=status,
    )


def test_weekday_counts_from_sunday():
    assert weekday_of(date(2024, 6, 2)) == 0  # Sunday
    assert weekday_of(date(2024, 6, 3)) == 1
    assert weekday_of(date(2024, 6, 8)) == 6


def test_split_windows_keeps_whole_sessions_only():
    sessions = split_windows([{'start': '09:00', 'end': '09:50'}], 15)
    assert sessions == [(540, 555), (555, 570), (570, 585)]


def test_serial_policy_offers_even_serials_only(doctor, serial_policy, day):
    data = get_availability(doctor.pk, day)
    assert data['mode'] == 'serial'
    assert [s['serialNumber'] for s in data['slots']] == list(range(2, 21, 2))
    assert data['slots'][0]['start'] == '09:00'
    assert data['slots'][0]['end'] == '09:24'
    assert all(s['duration'] == 24 for s in data['slots'])


def test_serial_remainder_minutes_are_discarded(doctor):
    policy = SerialSettings.objects.create(
        doctor=doctor, total_serials_per_day=7, start_time=time(9, 0), end_time=time(10, 0),
    )
    # 60 // 7 = 8 minute serials, 4 minutes left over
    assert serial_window(policy, 2) == (time(9, 0), time(9, 8))
    assert serial_window(policy, 6) == (time(9, 16), time(9, 24))


def test_claimed_serial_is_not_offered(doctor, serial_policy, day, patient):
    start, end = serial_window(serial_policy, 4)
    _book(doctor, day, start, end, serial=4, patient=patient)
    serials = [s['serialNumber'] for s in get_availability(doctor.pk, day)['slots']]
    assert 4 not in serials
    assert len(serials) == 9


def test_cancelled_serial_is_offered_again(doctor, serial_policy, day, patient):
    start, end = serial_window(serial_policy, 4)
    _book(doctor, day, start, end, serial=4, status=AppointmentStatus.CANCELLED, patient=patient)
    serials = [s['serialNumber'] for s in get_availability(doctor.pk, day)['slots']]
    assert 4 in serials


def test_serial_policy_respects_available_days(doctor, serial_policy, day):
    serial_policy.available_days = [(weekday_of(day) + 1) % 7]
    serial_policy.save()
    data = get_availability(doctor.pk, day)
    assert data['mode'] == 'serial'
    assert data['slots'] == []


def test_schedule_slots_split_by_session_length(doctor, schedule, day):
    data = get_availability(doctor.pk, day)
    assert data['mode'] == 'schedule'
    assert [s['start'] for s in data['slots']] == ['09:00', '09:15', '09:30', '09:45']
    assert data['slots'][-1]['end'] == '10:00'


def test_schedule_wins_over_serial_policy(doctor, schedule, serial_policy, day):
    assert get_availability(doctor.pk, day)['mode'] == 'schedule'


def test_booked_slot_is_excluded(doctor, schedule, day, patient):
    _book(doctor, day, time(9, 15), time(9, 30), patient=patient)
    starts = [s['start'] for s in get_availability(doctor.pk, day)['slots']]
    assert starts == ['09:00', '09:30', '09:45']


def test_merged_chambers_never_repeat_a_start_time(doctor, schedule, day):
    other = Chamber.objects.create(doctor=doctor, name='Room 2', session_duration=30)
    Schedule.objects.create(
        doctor=doctor, chamber=other, day_of_week=weekday_of(day),
        time_slots=[{'start': '09:00', 'end': '11:00'}],
    )
    starts = [s['start'] for s in get_availability(doctor.pk, day)['slots']]
    assert len(starts) == len(set(starts))
    assert starts == sorted(starts)
    assert '10:30' in starts


def test_chamber_filter(doctor, schedule, day):
    other = Chamber.objects.create(doctor=doctor, name='Room 2', session_duration=30)
    Schedule.objects.create(
        doctor=doctor, chamber=other, day_of_week=weekday_of(day),
        time_slots=[{'start': '14:00', 'end': '15:00'}],
    )
    data = get_availability(doctor.pk, day, chamber_id=other.pk)
    assert [s['start'] for s in data['slots']] == ['14:00', '14:30']
    assert all(s['chamberId'] == other.pk for s in data['slots'])


def test_expired_schedule_does_not_apply(doctor, schedule, day):
    schedule.valid_until = day - timedelta(days=1)
    schedule.save()
    data = get_availability(doctor.pk, day)
    assert data['mode'] is None
    assert data['slots'] == []


def test_no_configuration_raises(doctor, day):
    with pytest.raises(NoAvailabilityConfigured):
        get_availability(doctor.pk, day)


def test_unknown_doctor_raises(day):
    with pytest.raises(DoctorNotFound):
        get_availability(999999, day)


def test_unapproved_doctor_raises(make_doctor, day):
    pending = make_doctor(status=DoctorStatus.PENDING_SUPER_ADMIN)
    with pytest.raises(DoctorNotApproved):
        get_availability(pending.pk, day)


def test_foreign_chamber_raises(doctor, make_doctor, day):
    other_chamber = Chamber.objects.create(doctor=make_doctor(), name='Elsewhere')
    with pytest.raises(ChamberNotFound):
        get_availability(doctor.pk, day, chamber_id=other_chamber.pk)


def test_invalid_date_raises(doctor, serial_policy):
    with pytest.raises(InvalidDate):
        get_availability(doctor.pk, '2024-13-40')
    with pytest.raises(InvalidDate):
        get_availability(doctor.pk, 'tomorrow')


def test_hospital_policy_preferred_over_independent(make_doctor, hospital):
    affiliated = make_doctor(hospital=hospital)
    SerialSettings.objects.create(
        doctor=affiliated, total_serials_per_day=10, start_time=time(18, 0), end_time=time(20, 0),
    )
    at_hospital = SerialSettings.objects.create(
        doctor=affiliated, hospital=hospital, total_serials_per_day=20, start_time=time(9, 0),
        end_time=time(13, 0),
    )
    assert resolve_serial_settings(affiliated) == at_hospital


def test_available_serials_summary(doctor, serial_policy, day):
    data = get_available_serials(doctor.pk, day)
    assert data['availableDay'] is True
    assert data['totalSerials'] == 20
    assert data['price'] == '600.00'
    assert len(data['serials']) == 10


def test_zero_length_sessions_are_rejected():
    with pytest.raises(ValidationError):
        split_windows([{'start': '09:00', 'end': '10:00'}], 0)


def test_zero_session_chamber_without_default_is_rejected(doctor, chamber, schedule, day, settings):
    chamber.session_duration = 0
    chamber.save()
    settings.ENGINE_SESSION_MINUTES = 0
    with pytest.raises(ValidationError):
        get_availability(doctor.pk, day)
