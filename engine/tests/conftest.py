from datetime import time, timedelta

import pytest
from django.core.cache import cache
from django.utils import timezone

from engine.models import (
    Chamber,
    Doctor,
    DoctorStatus,
    Hospital,
    HospitalStatus,
    Schedule,
    SerialSettings,
    User,
)
from engine.services.availability import weekday_of

PASSWORD = 'P@ssw0rd1'


@pytest.fixture(autouse=True)
def _reset_throttles():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def make_user(db):
    counter = {'n': 0}

    def _make(role=User.ROLE_PATIENT, username=None, **extra):
        counter['n'] += 1
        username = username or f'{role}{counter["n"]}'
        user = User.objects.create_user(username=username, password=PASSWORD, **extra)
        user.role = role
        user.save(update_fields=['role'])
        return user
    return _make


@pytest.fixture
def patient(make_user):
    return make_user(User.ROLE_PATIENT, username='patient')


@pytest.fixture
def super_admin(make_user):
    return make_user(User.ROLE_SUPER_ADMIN, username='root')


@pytest.fixture
def hospital_admin(make_user):
    return make_user(User.ROLE_HOSPITAL_ADMIN, username='cityadmin')


@pytest.fixture
def hospital(hospital_admin):
    h = Hospital.objects.create(
        name='City General', registration_number='REG-1', status=HospitalStatus.APPROVED,
        address={'city': 'Dhaka'}, departments=['Medicine'],
    )
    h.admins.add(hospital_admin)
    return h


@pytest.fixture
def make_doctor(make_user):
    counter = {'n': 0}

    def _make(status=DoctorStatus.APPROVED, hospital=None, **extra):
        counter['n'] += 1
        user = make_user(User.ROLE_DOCTOR, username=f'dr{counter["n"]}')
        return Doctor.objects.create(
            user=user, name=f'Doctor {counter["n"]}', medical_license_number=f'LIC-{counter["n"]}',
            status=status, hospital=hospital, **extra,
        )
    return _make


@pytest.fixture
def doctor(make_doctor):
    return make_doctor()


@pytest.fixture
def day():
    """A date one week ahead, so bookings are never in the past."""
    return timezone.localdate() + timedelta(days=7)


@pytest.fixture
def chamber(doctor):
    return Chamber.objects.create(
        doctor=doctor, name='Room 1', consultation_fee=800, follow_up_fee=500, session_duration=15,
    )


@pytest.fixture
def schedule(doctor, chamber, day):
    return Schedule.objects.create(
        doctor=doctor, chamber=chamber, day_of_week=weekday_of(day),
        time_slots=[{'start': '09:00', 'end': '10:00'}],
    )


@pytest.fixture
def serial_policy(doctor):
    return SerialSettings.objects.create(
        doctor=doctor, total_serials_per_day=20, start_time=time(9, 0), end_time=time(17, 0),
        appointment_price=600,
    )
