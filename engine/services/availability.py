"""
Availability calculator.

Derives the bookable windows of a doctor's day either from the recurring
weekly schedule of a chamber or from the doctor's serial settings.  Serial
days are divided into ``total_serials_per_day`` equal sessions; only the
even-numbered serials are offered online, the odd ones stay with the
front desk for walk-in patients.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional

from django.conf import settings
from django.utils.dateparse import parse_date as _parse_date

from engine.exceptions import (
    ChamberNotFound,
    DoctorNotApproved,
    DoctorNotFound,
    InvalidDate,
    NoAvailabilityConfigured,
    ValidationError,
)
from engine.models import ACTIVE_APPOINTMENT_STATUSES, Appointment, Chamber, Doctor, Schedule, SerialSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    start: time
    end: time
    duration: int
    chamber_id: Optional[int] = None
    serial_number: Optional[int] = None

    def as_dict(self) -> dict:
        data = {
            'start': self.start.strftime('%H:%M'),
            'end': self.end.strftime('%H:%M'),
            'duration': self.duration,
        }
        if self.chamber_id is not None:
            data['chamberId'] = self.chamber_id
        if self.serial_number is not None:
            data['serialNumber'] = self.serial_number
        return data


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = _parse_date(str(value or '').strip())
    except ValueError:
        parsed = None
    if parsed is None:
        raise InvalidDate(f'invalid date: {value!r}')
    return parsed


def parse_time(value) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    try:
        hours, minutes = str(value or '').strip().split(':')[:2]
        return time(int(hours), int(minutes))
    except ValueError:
        raise ValidationError(f'invalid time: {value!r}, expected HH:MM') from None


def to_minutes(value) -> int:
    t = parse_time(value)
    return t.hour * 60 + t.minute


def from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def weekday_of(day: date) -> int:
    """Weekday counted from Sunday (0) to Saturday (6)."""
    return (day.weekday() + 1) % 7


def get_approved_doctor(doctor_id) -> Doctor:
    doctor = Doctor.objects.select_related('user', 'hospital').filter(pk=doctor_id).first()
    if doctor is None:
        raise DoctorNotFound(f'doctor {doctor_id} not found')
    if not doctor.is_approved:
        raise DoctorNotApproved(f'doctor {doctor.pk} is {doctor.status}')
    return doctor


def session_minutes(chamber: Chamber) -> int:
    return chamber.session_duration or settings.ENGINE_SESSION_MINUTES


def split_windows(windows, duration: int) -> list[tuple[int, int]]:
    """Split ``[{start, end}]`` windows into whole sessions of ``duration`` minutes."""
    if duration < 1:
        raise ValidationError(f'session length must be at least one minute, got {duration}')
    sessions = []
    for window in windows or []:
        cursor, end = to_minutes(window['start']), to_minutes(window['end'])
        while cursor + duration <= end:
            sessions.append((cursor, cursor + duration))
            cursor += duration
    return sessions


def schedule_slots(doctor: Doctor, day: date, chamber: Optional[Chamber] = None) -> Optional[list[Slot]]:
    """Return every schedule session of ``day``, or None when no schedule row applies.

    Without a chamber all of the doctor's active chambers are merged and a
    start time already produced by a lower chamber id is skipped.
    """
    rows = Schedule.objects.select_related('chamber').filter(
        doctor=doctor, day_of_week=weekday_of(day), chamber__is_active=True
    )
    if chamber is not None:
        rows = rows.filter(chamber=chamber)
    rows = [row for row in rows.order_by('chamber_id') if row.applies_on(day)]
    if not rows:
        return None
    seen: set[int] = set()
    slots: list[Slot] = []
    for row in rows:
        duration = session_minutes(row.chamber)
        for start, end in split_windows(row.time_slots, duration):
            if start in seen:
                continue
            seen.add(start)
            slots.append(Slot(from_minutes(start), from_minutes(end), duration, chamber_id=row.chamber_id))
    slots.sort(key=lambda s: s.start)
    return slots


def resolve_serial_settings(doctor: Doctor, hospital_id=None) -> Optional[SerialSettings]:
    """Pick the active serial settings governing ``doctor``.

    An explicit hospital selects that hospital's row.  Otherwise the row of
    the doctor's own hospital wins over the independent row.
    """
    qs = SerialSettings.objects.select_related('hospital', 'chamber').filter(doctor=doctor, is_active=True)
    if hospital_id is not None:
        return qs.filter(hospital_id=hospital_id).first()
    if doctor.hospital_id:
        found = qs.filter(hospital_id=doctor.hospital_id).first()
        if found is not None:
            return found
    return qs.filter(hospital__isnull=True).first()


def serial_length(policy: SerialSettings) -> int:
    # remainder minutes at the end of the range are not assigned to any serial
    span = to_minutes(policy.end_time) - to_minutes(policy.start_time)
    return span // policy.total_serials_per_day


def serial_window(policy: SerialSettings, serial_number: int) -> tuple[time, time]:
    """Time window of an online (even) serial.

    The k-th online serial, i.e. serial ``2k``, takes the k-th window of the
    range: serial 2 starts when the range starts.
    """
    length = serial_length(policy)
    start = to_minutes(policy.start_time) + (serial_number // 2 - 1) * length
    return from_minutes(start), from_minutes(start + length)


def online_serials(policy: SerialSettings) -> list[Slot]:
    length = serial_length(policy)
    if length <= 0:
        return []
    slots = []
    for number in range(2, policy.total_serials_per_day + 1, 2):
        start, end = serial_window(policy, number)
        slots.append(Slot(start, end, length, chamber_id=policy.chamber_id, serial_number=number))
    return slots


def claimed_for_day(doctor: Doctor, day: date) -> tuple[set[time], set[int]]:
    rows = Appointment.objects.filter(
        doctor=doctor, appointment_date=day, status__in=ACTIVE_APPOINTMENT_STATUSES
    ).values_list('start_time', 'serial_number')
    starts = {start for start, _ in rows}
    serials = {serial for _, serial in rows if serial is not None}
    return starts, serials


def has_configuration(doctor: Doctor) -> bool:
    return Schedule.objects.filter(doctor=doctor).exists() or SerialSettings.objects.filter(doctor=doctor).exists()


def get_availability(doctor_id, day, chamber_id=None) -> dict:
    """Return the free windows of ``doctor_id`` on ``day`` in chronological order."""
    day = parse_date(day)
    doctor = get_approved_doctor(doctor_id)
    chamber = None
    if chamber_id:
        chamber = Chamber.objects.filter(pk=chamber_id, doctor=doctor).first()
        if chamber is None:
            raise ChamberNotFound(f'chamber {chamber_id} not found for doctor {doctor.pk}')

    mode = 'schedule'
    slots = schedule_slots(doctor, day, chamber)
    if slots is None:
        policy = resolve_serial_settings(doctor, hospital_id=chamber.hospital_id if chamber else None)
        if policy is not None:
            mode = 'serial'
            slots = online_serials(policy) if policy.offers_day(weekday_of(day)) else []
        elif has_configuration(doctor):
            mode, slots = None, []
        else:
            raise NoAvailabilityConfigured(f'doctor {doctor.pk} has no schedule or serial settings')

    starts, serials = claimed_for_day(doctor, day)
    free = [s for s in slots if s.start not in starts and s.serial_number not in serials]
    logger.debug('doctor %s on %s: %d of %d %s slots free', doctor.pk, day, len(free), len(slots), mode)
    return {
        'doctorId': doctor.pk,
        'date': day.isoformat(),
        'mode': mode,
        'slots': [s.as_dict() for s in free],
    }


def get_available_serials(doctor_id, day, hospital_id=None) -> dict:
    day = parse_date(day)
    doctor = get_approved_doctor(doctor_id)
    policy = resolve_serial_settings(doctor, hospital_id=hospital_id)
    if policy is None:
        raise NoAvailabilityConfigured(f'doctor {doctor.pk} has no active serial settings')
    available_day = policy.offers_day(weekday_of(day))
    serials = online_serials(policy) if available_day else []
    _, claimed = claimed_for_day(doctor, day)
    return {
        'doctorId': doctor.pk,
        'hospitalId': policy.hospital_id,
        'date': day.isoformat(),
        'availableDay': available_day,
        'totalSerials': policy.total_serials_per_day,
        'price': str(policy.appointment_price),
        'serials': [s.as_dict() for s in serials if s.serial_number not in claimed],
    }
