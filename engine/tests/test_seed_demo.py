from io import StringIO

import pytest
from django.core.management import call_command

from engine.models import ApprovalLog, Doctor, HospitalDoctor, Schedule, SerialSettings
from engine.services.availability import get_available_serials

pytestmark = pytest.mark.django_db


def test_seed_demo_is_idempotent(day):
    call_command('seed_demo', stdout=StringIO())
    call_command('seed_demo', stdout=StringIO())

    assert Doctor.objects.filter(status='approved').count() == 2
    rahman = Doctor.objects.get(user__username='drrahman')
    assert HospitalDoctor.objects.filter(doctor=rahman).count() == 1
    assert Schedule.objects.filter(doctor=rahman).count() == 5
    assert SerialSettings.objects.count() == 1
    assert ApprovalLog.objects.count() == 3

    karim = Doctor.objects.get(user__username='drkarim')
    data = get_available_serials(karim.pk, day)
    assert data['totalSerials'] == 20
