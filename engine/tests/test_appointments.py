import pytest

from engine.exceptions import AppointmentNotFound, InvalidTransition, ValidationError
from engine.models import AppointmentStatus, Notification
from engine.services import appointments as svc
from engine.services.notifications import list_notifications, mark_read

pytestmark = pytest.mark.django_db


@pytest.fixture
def appointment(patient, doctor, chamber, schedule, day):
    return svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:00')


def test_doctor_accepts_then_completes(doctor, appointment):
    svc.update_appointment_status(doctor.user, appointment.pk, AppointmentStatus.ACCEPTED)
    appt = svc.update_appointment_status(doctor.user, appointment.pk, AppointmentStatus.COMPLETED, notes='rest')
    assert appt.status == AppointmentStatus.COMPLETED
    assert appt.notes == 'rest'
    assert list(appt.transitions.order_by('id').values_list('from_status', 'to_status')) == [
        (None, 'pending'), ('pending', 'accepted'), ('accepted', 'completed'),
    ]


def test_pending_cannot_jump_to_completed(doctor, appointment):
    with pytest.raises(InvalidTransition):
        svc.update_appointment_status(doctor.user, appointment.pk, AppointmentStatus.COMPLETED)


def test_doctor_cannot_cancel(doctor, appointment):
    with pytest.raises(InvalidTransition):
        svc.update_appointment_status(doctor.user, appointment.pk, AppointmentStatus.CANCELLED)


def test_terminal_states_are_final(doctor, appointment):
    svc.update_appointment_status(doctor.user, appointment.pk, AppointmentStatus.REJECTED)
    with pytest.raises(InvalidTransition):
        svc.update_appointment_status(doctor.user, appointment.pk, AppointmentStatus.ACCEPTED)


def test_other_doctor_cannot_touch_appointment(make_doctor, appointment):
    stranger = make_doctor()
    with pytest.raises(AppointmentNotFound):
        svc.update_appointment_status(stranger.user, appointment.pk, AppointmentStatus.ACCEPTED)


def test_patient_cancels_accepted_appointment_once(patient, doctor, appointment):
    svc.update_appointment_status(doctor.user, appointment.pk, AppointmentStatus.ACCEPTED)
    appt = svc.cancel_appointment(patient, appointment.pk, 'feeling better')
    assert appt.status == AppointmentStatus.CANCELLED
    assert appt.cancelled_by == 'patient'
    assert appt.cancellation_reason == 'feeling better'
    assert appt.cancelled_at is not None
    with pytest.raises(InvalidTransition):
        svc.cancel_appointment(patient, appointment.pk, 'again')


def test_cancel_requires_reason(patient, appointment):
    with pytest.raises(ValidationError):
        svc.cancel_appointment(patient, appointment.pk, '   ')


def test_only_owner_can_cancel(make_user, appointment):
    with pytest.raises(AppointmentNotFound):
        svc.cancel_appointment(make_user(), appointment.pk, 'not mine')


def test_attach_record_completes_accepted_appointment(doctor, appointment):
    svc.update_appointment_status(doctor.user, appointment.pk, AppointmentStatus.ACCEPTED)
    appt = svc.attach_record(doctor.user, appointment.pk, 'RX-42')
    assert appt.status == AppointmentStatus.COMPLETED
    assert appt.linked_record_ref == 'RX-42'


def test_attach_record_to_completed_appointment(doctor, appointment):
    svc.update_appointment_status(doctor.user, appointment.pk, AppointmentStatus.ACCEPTED)
    svc.update_appointment_status(doctor.user, appointment.pk, AppointmentStatus.COMPLETED)
    appt = svc.attach_record(doctor.user, appointment.pk, 'RX-43')
    assert appt.status == AppointmentStatus.COMPLETED
    assert appt.linked_record_ref == 'RX-43'
    assert appt.transitions.count() == 3


def test_attach_record_to_pending_is_invalid(doctor, appointment):
    with pytest.raises(InvalidTransition):
        svc.attach_record(doctor.user, appointment.pk, 'RX-44')


def test_doctor_listing_filters(doctor, appointment):
    data, total = svc.list_doctor_appointments(doctor.user, filter_='upcoming')
    assert total == 1 and data[0]['appointmentNumber'] == appointment.appointment_number
    assert svc.list_doctor_appointments(doctor.user, filter_='today')[1] == 0
    assert svc.list_doctor_appointments(doctor.user, filter_='cancelled')[1] == 0
    with pytest.raises(ValidationError):
        svc.list_doctor_appointments(doctor.user, filter_='someday')


def test_patient_listing(patient, appointment):
    data, total = svc.list_patient_appointments(patient)
    assert total == 1
    assert data[0]['timeSlot'] == {'start': '09:00', 'end': '09:15', 'duration': 15}


def test_daily_serial_list(patient, doctor, serial_policy, day):
    svc.book_serial(patient, doctor.pk, 6, day)
    svc.book_serial(patient, doctor.pk, 2, day)
    data = svc.daily_serial_list(doctor.user, day.isoformat())
    assert [e['serialNumber'] for e in data['entries']] == [2, 6]
    assert data['entries'][0]['patientName'] == 'patient'


def test_notifications_dispatched_after_commit(patient, doctor, chamber, schedule, day,
                                               django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        appt = svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:30')
    assert Notification.objects.filter(recipient=doctor.user, type='appointment_created').exists()
    assert Notification.objects.filter(recipient=patient, related_id=str(appt.pk)).exists()

    with django_capture_on_commit_callbacks(execute=True):
        svc.update_appointment_status(doctor.user, appt.pk, AppointmentStatus.ACCEPTED)
    items, total = list_notifications(patient, unread_only=True)
    assert items[0]['type'] == 'appointment_accepted'
    assert mark_read(patient) == total
    assert list_notifications(patient, unread_only=True)[1] == 0


def test_notification_failure_does_not_undo_booking(patient, doctor, chamber, schedule, day, monkeypatch,
                                                    django_capture_on_commit_callbacks, caplog):
    def broken_create(**kwargs):
        raise RuntimeError('notification store down')

    monkeypatch.setattr(Notification.objects, 'create', broken_create)
    with django_capture_on_commit_callbacks(execute=True):
        appt = svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:45')
    appt.refresh_from_db()
    assert appt.status == AppointmentStatus.PENDING
    assert 'notification appointment_created' in caplog.text


def test_notifications_can_be_disabled(patient, doctor, chamber, schedule, day, settings,
                                       django_capture_on_commit_callbacks):
    settings.ENGINE_NOTIFICATIONS_ENABLED = False
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        svc.book_appointment(patient, doctor.pk, chamber.pk, day, '09:00')
    assert callbacks == []
    assert not Notification.objects.exists()
