import threading

import pytest
from django.db import connection

from engine.exceptions import SlotUnavailable
from engine.models import Appointment
from engine.services import appointments as svc


@pytest.mark.django_db(transaction=True)
def test_exactly_one_of_two_concurrent_bookings_wins(make_user, doctor, serial_policy, day, settings):
    settings.ENGINE_NOTIFICATIONS_ENABLED = False
    patients = [make_user(), make_user()]
    barrier = threading.Barrier(len(patients))
    outcomes = []

    def book(patient):
        try:
            barrier.wait()
            svc.book_serial(patient, doctor.pk, 4, day)
            outcomes.append('ok')
        except SlotUnavailable:
            outcomes.append('unavailable')
        except Exception as exc:
            outcomes.append(f'{type(exc).__name__}: {exc}')
        finally:
            connection.close()

    threads = [threading.Thread(target=book, args=(p,)) for p in patients]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(outcomes) == ['ok', 'unavailable']
    assert Appointment.objects.filter(doctor=doctor, serial_number=4).count() == 1
