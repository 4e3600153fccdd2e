"""
Appointment lifecycle.

Appointments are created ``pending`` under a reservation and then move
through a fixed transition table.  Doctors accept, reject, complete or
mark no-show; patients may only cancel.  Every change writes an
:class:`AppointmentTransition` row under a row lock and notifies the
other party once the transaction has committed.
"""
from __future__ import annotations

import logging
import secrets
from typing import Optional

import bleach
from django.db import transaction
from django.utils import timezone

from engine.exceptions import (
    AppointmentNotFound,
    ChamberNotFound,
    DoctorNotFound,
    InvalidTransition,
    NoAvailabilityConfigured,
    SlotNotOffered,
    ValidationError,
)
from engine.models import (
    ACTIVE_APPOINTMENT_STATUSES,
    Appointment,
    AppointmentStatus,
    AppointmentTransition,
    Chamber,
    Doctor,
    User,
)
from engine.services.availability import (
    get_approved_doctor,
    parse_date,
    parse_time,
    resolve_serial_settings,
    schedule_slots,
    serial_length,
    serial_window,
    weekday_of,
)
from engine.services.notifications import notify
from engine.services.reservation import check_serial_number, reserve

logger = logging.getLogger(__name__)

TRANSITIONS = {
    AppointmentStatus.PENDING: {AppointmentStatus.ACCEPTED, AppointmentStatus.REJECTED, AppointmentStatus.CANCELLED},
    AppointmentStatus.ACCEPTED: {AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW, AppointmentStatus.CANCELLED},
    AppointmentStatus.REJECTED: set(),
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.NO_SHOW: set(),
    AppointmentStatus.CANCELLED: set(),
}

DOCTOR_STATUSES = {
    AppointmentStatus.ACCEPTED,
    AppointmentStatus.REJECTED,
    AppointmentStatus.COMPLETED,
    AppointmentStatus.NO_SHOW,
}

STATUS_MESSAGES = {
    AppointmentStatus.ACCEPTED: ('appointment_accepted', 'Appointment Accepted', 'has been accepted'),
    AppointmentStatus.REJECTED: ('appointment_rejected', 'Appointment Rejected', 'has been rejected'),
    AppointmentStatus.COMPLETED: ('appointment_completed', 'Appointment Completed', 'has been completed'),
    AppointmentStatus.NO_SHOW: ('appointment_no_show', 'Appointment Missed', 'was marked as no-show'),
}


def can_transition(current: str, new: str) -> bool:
    """Return True if an appointment may move from ``current`` to ``new``."""
    return new in TRANSITIONS.get(current, set())


def generate_appointment_number() -> str:
    while True:
        number = f"APT-{timezone.localdate():%Y%m%d}-{secrets.token_hex(6).upper()}"
        if not Appointment.objects.filter(appointment_number=number).exists():
            return number


def _clean(text: Optional[str]) -> str:
    return bleach.clean((text or '').strip(), strip=True)


def _ensure_bookable_date(day) -> None:
    if day < timezone.localdate():
        raise ValidationError(f'cannot book an appointment on a past date ({day})')


def _patient_name(user: User) -> str:
    return user.get_full_name() or user.username


def book_appointment(patient: User, doctor_id, chamber_id, appointment_date, start_time, *,
                     consultation_type: str = Appointment.TYPE_NEW, reason: str = '') -> Appointment:
    """Book a schedule slot of ``chamber_id`` starting at ``start_time``."""
    day = parse_date(appointment_date)
    start = parse_time(start_time)
    doctor = get_approved_doctor(doctor_id)
    _ensure_bookable_date(day)
    chamber = Chamber.objects.select_related('hospital').filter(pk=chamber_id, doctor=doctor, is_active=True).first()
    if chamber is None:
        raise ChamberNotFound(f'chamber {chamber_id} not found for doctor {doctor.pk}')
    if consultation_type not in (Appointment.TYPE_NEW, Appointment.TYPE_FOLLOW_UP):
        raise ValidationError(f'unknown consultation type {consultation_type!r}')

    offered = {slot.start: slot for slot in schedule_slots(doctor, day, chamber) or []}
    slot = offered.get(start)
    if slot is None:
        raise SlotNotOffered(f'{start:%H:%M} on {day} is not offered at chamber {chamber.pk}')
    fee = chamber.follow_up_fee if consultation_type == Appointment.TYPE_FOLLOW_UP else chamber.consultation_fee

    with reserve(doctor, day, slot.start, slot.end):
        appointment = Appointment.objects.create(
            patient=patient,
            doctor=doctor,
            chamber=chamber,
            hospital=chamber.hospital,
            appointment_date=day,
            start_time=slot.start,
            end_time=slot.end,
            session_duration=slot.duration,
            appointment_number=generate_appointment_number(),
            consultation_type=consultation_type,
            booking_type=Appointment.BOOKING_SLOT,
            fee=fee,
            reason=_clean(reason),
        )
        AppointmentTransition.objects.create(
            appointment=appointment, from_status=None, to_status=appointment.status, operator=patient, reason='booked'
        )
    logger.info('booked %s for doctor %s on %s at %s', appointment.appointment_number, doctor.pk, day, slot.start)
    _notify_booked(appointment, patient)
    return appointment


def book_serial(patient: User, doctor_id, serial_number: int, appointment_date, *,
                reason: str = '', hospital_id=None) -> Appointment:
    """Book an online (even) serial of the doctor's serial settings."""
    day = parse_date(appointment_date)
    doctor = get_approved_doctor(doctor_id)
    policy = resolve_serial_settings(doctor, hospital_id=hospital_id)
    if policy is None:
        raise NoAvailabilityConfigured(f'doctor {doctor.pk} has no active serial settings')
    check_serial_number(policy, serial_number)
    _ensure_bookable_date(day)
    if not policy.offers_day(weekday_of(day)):
        raise ValidationError(f'serials are not available on {day:%A}')
    if schedule_slots(doctor, day) is not None:
        # a schedule applying to the date replaces serials for that day
        raise SlotNotOffered(f'doctor {doctor.pk} takes slot bookings on {day}, not serials')
    start, end = serial_window(policy, serial_number)

    with reserve(doctor, day, start, end, serial_number=serial_number):
        appointment = Appointment.objects.create(
            patient=patient,
            doctor=doctor,
            chamber=policy.chamber,
            hospital=policy.hospital,
            appointment_date=day,
            start_time=start,
            end_time=end,
            session_duration=serial_length(policy),
            serial_number=serial_number,
            appointment_number=generate_appointment_number(),
            consultation_type=Appointment.TYPE_NEW,
            booking_type=Appointment.BOOKING_SERIAL,
            fee=policy.appointment_price,
            reason=_clean(reason),
        )
        AppointmentTransition.objects.create(
            appointment=appointment, from_status=None, to_status=appointment.status, operator=patient,
            reason=f'serial {serial_number} booked',
        )
    logger.info('booked serial %s (%s) for doctor %s on %s', serial_number, appointment.appointment_number,
                doctor.pk, day)
    _notify_booked(appointment, patient)
    return appointment


def _notify_booked(appointment: Appointment, patient: User) -> None:
    notify(
        appointment.doctor.user, 'appointment_created', 'New Appointment Request',
        f'You have a new appointment request from {_patient_name(patient)}',
        appointment.pk, 'appointment',
    )
    notify(
        patient, 'appointment_created', 'Appointment Booked',
        f'Your appointment is booked. Appointment #{appointment.appointment_number}',
        appointment.pk, 'appointment',
    )


def _locked_appointment(appointment_id, **scope) -> Appointment:
    appointment = (
        Appointment.objects.select_for_update()
        .select_related('doctor__user', 'patient')
        .filter(pk=appointment_id, **scope)
        .first()
    )
    if appointment is None:
        raise AppointmentNotFound(f'appointment {appointment_id} not found')
    return appointment


def _record_transition(appointment: Appointment, old_status: str, operator: User, reason: str) -> None:
    AppointmentTransition.objects.create(
        appointment=appointment,
        from_status=old_status,
        to_status=appointment.status,
        operator=operator,
        reason=reason[:255],
    )


def update_appointment_status(caller: User, appointment_id, new_status: str, notes: Optional[str] = None) -> Appointment:
    """Doctor-side transition: accept, reject, complete or mark no-show."""
    if new_status not in DOCTOR_STATUSES:
        raise InvalidTransition(f'doctors cannot set status {new_status!r}')
    with transaction.atomic():
        appointment = _locked_appointment(appointment_id, doctor__user=caller)
        old_status = appointment.status
        if not can_transition(old_status, new_status):
            raise InvalidTransition(f'cannot move appointment from {old_status} to {new_status}')
        appointment.status = new_status
        update_fields = ['status', 'updated_at']
        notes = _clean(notes)
        if notes:
            appointment.notes = notes
            update_fields.append('notes')
        appointment.save(update_fields=update_fields)
        _record_transition(appointment, old_status, caller, notes or 'status update')
    logger.info('appointment %s: %s -> %s by doctor user %s', appointment.appointment_number, old_status,
                new_status, caller.pk)
    event_type, title, verb = STATUS_MESSAGES[new_status]
    notify(
        appointment.patient, event_type, title,
        f'Your appointment #{appointment.appointment_number} {verb}',
        appointment.pk, 'appointment',
    )
    return appointment


def cancel_appointment(caller: User, appointment_id, reason: str) -> Appointment:
    """Patient-side cancellation from ``pending`` or ``accepted``."""
    reason = _clean(reason)
    if not reason:
        raise ValidationError('a cancellation reason is required')
    with transaction.atomic():
        appointment = _locked_appointment(appointment_id, patient=caller)
        old_status = appointment.status
        if not can_transition(old_status, AppointmentStatus.CANCELLED):
            raise InvalidTransition(f'cannot cancel an appointment that is {old_status}')
        appointment.status = AppointmentStatus.CANCELLED
        appointment.cancelled_by = 'patient'
        appointment.cancellation_reason = reason
        appointment.cancelled_at = timezone.now()
        appointment.save(update_fields=['status', 'cancelled_by', 'cancellation_reason', 'cancelled_at', 'updated_at'])
        _record_transition(appointment, old_status, caller, reason)
    logger.info('appointment %s cancelled by patient %s', appointment.appointment_number, caller.pk)
    notify(
        appointment.doctor.user, 'appointment_cancelled', 'Appointment Cancelled',
        f'Appointment #{appointment.appointment_number} has been cancelled by patient',
        appointment.pk, 'appointment',
    )
    return appointment


def attach_record(caller: User, appointment_id, record_ref: str) -> Appointment:
    """Link a visit record (e.g. a prescription) to an appointment.

    Linking an ``accepted`` appointment completes it; a ``completed`` one
    is linked retroactively without a status change.
    """
    record_ref = _clean(record_ref)
    if not record_ref:
        raise ValidationError('a record reference is required')
    with transaction.atomic():
        appointment = _locked_appointment(appointment_id, doctor__user=caller)
        old_status = appointment.status
        if old_status not in (AppointmentStatus.ACCEPTED, AppointmentStatus.COMPLETED):
            raise InvalidTransition(f'cannot attach a record to an appointment that is {old_status}')
        appointment.linked_record_ref = record_ref
        update_fields = ['linked_record_ref', 'updated_at']
        if old_status == AppointmentStatus.ACCEPTED:
            appointment.status = AppointmentStatus.COMPLETED
            update_fields.append('status')
        appointment.save(update_fields=update_fields)
        if appointment.status != old_status:
            _record_transition(appointment, old_status, caller, f'record {record_ref} attached')
    notify(
        appointment.patient, 'prescription_ready', 'Prescription Ready',
        f'Your prescription for appointment #{appointment.appointment_number} is ready',
        appointment.pk, 'prescription',
    )
    return appointment


def format_appointment(a: Appointment) -> dict:
    return {
        'id': a.id,
        'appointmentNumber': a.appointment_number,
        'patientId': a.patient_id,
        'doctorId': a.doctor_id,
        'chamberId': a.chamber_id,
        'hospitalId': a.hospital_id,
        'date': a.appointment_date.isoformat(),
        'timeSlot': {
            'start': a.start_time.strftime('%H:%M'),
            'end': a.end_time.strftime('%H:%M'),
            'duration': a.session_duration,
        },
        'serialNumber': a.serial_number,
        'bookingType': a.booking_type,
        'consultationType': a.consultation_type,
        'fee': str(a.fee),
        'status': a.status,
        'reason': a.reason,
        'notes': a.notes,
        'cancellation': {
            'by': a.cancelled_by,
            'reason': a.cancellation_reason,
            'at': a.cancelled_at.isoformat() if a.cancelled_at else None,
        } if a.cancelled_at else None,
        'linkedRecordRef': a.linked_record_ref or None,
        'createdAt': a.created_at.isoformat(),
    }


def _paginate(qs, page: int, page_size: int):
    total = qs.count()
    page = max(1, int(page or 1))
    page_size = min(100, max(1, int(page_size or 20)))
    start = (page - 1) * page_size
    return [format_appointment(a) for a in qs[start:start + page_size]], total


def list_patient_appointments(patient: User, *, status: Optional[str] = None, page: int = 1, page_size: int = 20):
    qs = Appointment.objects.filter(patient=patient)
    if status:
        qs = qs.filter(status=status)
    return _paginate(qs.order_by('-appointment_date', '-created_at'), page, page_size)


def _doctor_for(caller: User) -> Doctor:
    doctor = Doctor.objects.filter(user=caller).first()
    if doctor is None:
        raise DoctorNotFound('doctor profile not found')
    return doctor


def list_doctor_appointments(caller: User, *, filter_: str = 'all', page: int = 1, page_size: int = 20):
    doctor = _doctor_for(caller)
    today = timezone.localdate()
    qs = Appointment.objects.filter(doctor=doctor)
    if filter_ == 'today':
        qs = qs.filter(appointment_date=today)
    elif filter_ == 'upcoming':
        qs = qs.filter(appointment_date__gt=today, status__in=ACTIVE_APPOINTMENT_STATUSES)
    elif filter_ == 'past':
        qs = qs.filter(appointment_date__lt=today)
    elif filter_ in AppointmentStatus.values:
        qs = qs.filter(status=filter_)
    elif filter_ != 'all':
        raise ValidationError(f'unknown filter {filter_!r}')
    return _paginate(qs.order_by('appointment_date', 'start_time'), page, page_size)


def daily_serial_list(caller: User, day=None) -> dict:
    """Active appointments of one day in sitting order.

    This is the row set a printed serial list is rendered from.
    """
    doctor = _doctor_for(caller)
    day = parse_date(day) if day else timezone.localdate()
    rows = (
        Appointment.objects.filter(doctor=doctor, appointment_date=day, status__in=ACTIVE_APPOINTMENT_STATUSES)
        .select_related('patient')
        .order_by('start_time')
    )
    return {
        'doctorId': doctor.pk,
        'date': day.isoformat(),
        'entries': [
            {
                'appointmentNumber': a.appointment_number,
                'serialNumber': a.serial_number,
                'start': a.start_time.strftime('%H:%M'),
                'end': a.end_time.strftime('%H:%M'),
                'patientName': _patient_name(a.patient),
                'phone': a.patient.phone,
                'status': a.status,
            }
            for a in rows
        ],
    }
