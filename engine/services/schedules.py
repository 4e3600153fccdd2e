"""Doctor-maintained availability configuration: weekly schedules and serial settings."""
from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction

from engine.exceptions import ChamberNotFound, DoctorNotFound, HospitalNotFound, ValidationError
from engine.models import Chamber, Doctor, Schedule, SerialSettings, User
from engine.services.availability import parse_date, parse_time, to_minutes

logger = logging.getLogger(__name__)


def _doctor_for(caller: User) -> Doctor:
    doctor = Doctor.objects.filter(user=caller).first()
    if doctor is None:
        raise DoctorNotFound('doctor profile not found')
    return doctor


def _check_day(day) -> int:
    try:
        day = int(day)
    except (TypeError, ValueError):
        raise ValidationError(f'invalid day of week: {day!r}') from None
    if not 0 <= day <= 6:
        raise ValidationError(f'day of week must be between 0 (Sunday) and 6 (Saturday), got {day}')
    return day


def normalize_windows(windows) -> list[dict]:
    """Validate ``[{start, end}]`` windows and return them sorted as HH:MM strings."""
    result = []
    for window in windows or []:
        try:
            start, end = parse_time(window['start']), parse_time(window['end'])
        except (KeyError, TypeError):
            raise ValidationError('each time slot needs a start and an end') from None
        if to_minutes(start) >= to_minutes(end):
            raise ValidationError(f'time slot {start:%H:%M}-{end:%H:%M} ends before it starts')
        result.append({'start': start.strftime('%H:%M'), 'end': end.strftime('%H:%M')})
    result.sort(key=lambda w: w['start'])
    for prev, cur in zip(result, result[1:]):
        if cur['start'] < prev['end']:
            raise ValidationError(f"time slots {prev['start']}-{prev['end']} and {cur['start']}-{cur['end']} overlap")
    return result


def upsert_schedule(caller: User, chamber_id, day_of_week, time_slots, valid_from=None, valid_until=None,
                    is_active: Optional[bool] = None) -> Schedule:
    doctor = _doctor_for(caller)
    chamber = Chamber.objects.filter(pk=chamber_id, doctor=doctor).first()
    if chamber is None:
        raise ChamberNotFound(f'chamber {chamber_id} not found for doctor {doctor.pk}')
    day_of_week = _check_day(day_of_week)
    defaults = {'time_slots': normalize_windows(time_slots)}
    if valid_from:
        defaults['valid_from'] = parse_date(valid_from)
    if valid_until:
        defaults['valid_until'] = parse_date(valid_until)
    if 'valid_from' in defaults and 'valid_until' in defaults and defaults['valid_until'] < defaults['valid_from']:
        raise ValidationError('valid_until is before valid_from')
    if is_active is not None:
        defaults['is_active'] = bool(is_active)
    schedule, created = Schedule.objects.update_or_create(
        doctor=doctor, chamber=chamber, day_of_week=day_of_week, defaults=defaults,
    )
    logger.info('schedule %s %s for doctor %s, chamber %s, day %s', schedule.pk,
                'created' if created else 'updated', doctor.pk, chamber.pk, day_of_week)
    return schedule


def list_schedules(caller: User) -> list[dict]:
    doctor = _doctor_for(caller)
    rows = Schedule.objects.filter(doctor=doctor).order_by('chamber_id', 'day_of_week')
    return [format_schedule(s) for s in rows]


def format_schedule(s: Schedule) -> dict:
    return {
        'id': s.id,
        'chamberId': s.chamber_id,
        'dayOfWeek': s.day_of_week,
        'timeSlots': s.time_slots,
        'validFrom': s.valid_from.isoformat(),
        'validUntil': s.valid_until.isoformat() if s.valid_until else None,
        'isActive': s.is_active,
    }


def upsert_serial_settings(caller: User, *, total_serials_per_day: int, start_time, end_time, appointment_price,
                           hospital_id=None, chamber_id=None, available_days=None,
                           is_active: bool = True) -> SerialSettings:
    """Create or replace the serial settings of the caller for one hospital (or none)."""
    doctor = _doctor_for(caller)
    if hospital_id is not None and int(hospital_id) != doctor.hospital_id:
        raise HospitalNotFound(f'doctor {doctor.pk} is not affiliated with hospital {hospital_id}')
    chamber = None
    if chamber_id:
        chamber = Chamber.objects.filter(pk=chamber_id, doctor=doctor).first()
        if chamber is None:
            raise ChamberNotFound(f'chamber {chamber_id} not found for doctor {doctor.pk}')
    start, end = parse_time(start_time), parse_time(end_time)
    try:
        total = int(total_serials_per_day)
    except (TypeError, ValueError):
        raise ValidationError('total serials per day must be a number') from None
    if total < 1:
        raise ValidationError('total serials per day must be at least 1')
    if to_minutes(end) - to_minutes(start) < total:
        raise ValidationError(f'{start:%H:%M}-{end:%H:%M} is too short for {total} serials')
    days = sorted({_check_day(d) for d in available_days or []})

    with transaction.atomic():
        policy, created = SerialSettings.objects.select_for_update().update_or_create(
            doctor=doctor,
            hospital_id=hospital_id,
            defaults={
                'chamber': chamber,
                'total_serials_per_day': total,
                'start_time': start,
                'end_time': end,
                'appointment_price': appointment_price,
                'available_days': days,
                'is_active': bool(is_active),
            },
        )
    logger.info('serial settings %s %s for doctor %s (hospital %s)', policy.pk,
                'created' if created else 'updated', doctor.pk, hospital_id)
    return policy


def format_serial_settings(p: SerialSettings) -> dict:
    return {
        'id': p.id,
        'doctorId': p.doctor_id,
        'hospitalId': p.hospital_id,
        'chamberId': p.chamber_id,
        'totalSerialsPerDay': p.total_serials_per_day,
        'startTime': p.start_time.strftime('%H:%M'),
        'endTime': p.end_time.strftime('%H:%M'),
        'appointmentPrice': str(p.appointment_price),
        'availableDays': p.available_days,
        'isActive': p.is_active,
    }
