"""
Conflict guard for appointment creation.

A reservation is the exclusive claim on ``(doctor, date, start time)``
(and, for serial bookings, on the serial number) under which exactly one
appointment row is written.  Two mechanisms back it:

* the doctor row is locked with ``select_for_update`` (on SQLite, which
  has no row locks, with a no-op write) so concurrent bookings for the
  same doctor queue up behind each other; a caller that cannot get the
  lock sees :class:`SlotUnavailable`;
* the partial unique constraints on ``Appointment`` reject the second
  active row where the database does not honour row locks.

The claim lives only as long as the enclosing transaction.  If the body
raises, the savepoint rollback is the release.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, time
from typing import Iterator, Optional

from django.db import IntegrityError, OperationalError, connection, transaction
from django.db.models import F, Q

from engine.exceptions import OddSerialNumber, ReservationReleaseFailed, SerialOutOfRange, SlotUnavailable
from engine.models import ACTIVE_APPOINTMENT_STATUSES, Appointment, Doctor, SerialSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservation:
    doctor_id: int
    appointment_date: date
    start_time: time
    end_time: time
    serial_number: Optional[int] = None


def check_serial_number(policy: SerialSettings, serial_number: int) -> None:
    if serial_number < 1 or serial_number > policy.total_serials_per_day:
        raise SerialOutOfRange(f'serial {serial_number} is outside 1..{policy.total_serials_per_day}')
    if serial_number % 2:
        raise OddSerialNumber(f'serial {serial_number} is reserved for walk-in patients')


def slot_taken(doctor_id: int, day: date, start_time: time, serial_number: Optional[int] = None) -> bool:
    clash = Q(start_time=start_time)
    if serial_number is not None:
        clash |= Q(serial_number=serial_number)
    return Appointment.objects.filter(
        clash, doctor_id=doctor_id, appointment_date=day, status__in=ACTIVE_APPOINTMENT_STATUSES
    ).exists()


def _release_failed() -> bool:
    conn = transaction.get_connection()
    # Django closes the connection when an outer rollback fails and flags
    # the outer block when a savepoint rollback fails.
    return conn.connection is None or conn.needs_rollback


def _lock_doctor(doctor_id: int) -> None:
    if connection.features.has_select_for_update:
        Doctor.objects.select_for_update().only('pk').get(pk=doctor_id)
    else:
        # SQLite has no row locks; a write takes the database write lock instead
        Doctor.objects.filter(pk=doctor_id).update(updated_at=F('updated_at'))


def _lost_race(exc: Exception) -> bool:
    """True when ``exc`` means a concurrent booking holds the slot."""
    message = str(exc).lower()
    if isinstance(exc, IntegrityError):
        # the appointment number column is unique too, but a clash there is not about the slot
        return 'appointment_number' not in message
    return 'locked' in message


def _release(reservation: Reservation, claimed: bool, exc: Exception) -> None:
    if not claimed:
        return
    if _release_failed():
        logger.critical('reservation %s could not be released after %r', reservation, exc)
        raise ReservationReleaseFailed(
            f'slot {reservation.start_time:%H:%M} on {reservation.appointment_date} may be held'
        ) from exc
    logger.warning('reservation %s released after failed booking: %r', reservation, exc)


@contextmanager
def reserve(doctor: Doctor, appointment_date: date, start_time: time, end_time: time,
            serial_number: Optional[int] = None) -> Iterator[Reservation]:
    """Claim a doctor's slot for the duration of the ``with`` block.

    Raises :class:`SlotUnavailable` when the slot is already held, either
    by a committed booking or by a concurrent one that won the race.
    """
    reservation = Reservation(doctor.pk, appointment_date, start_time, end_time, serial_number)
    claimed = False
    try:
        with transaction.atomic():
            _lock_doctor(doctor.pk)
            if slot_taken(doctor.pk, appointment_date, start_time, serial_number):
                raise SlotUnavailable(f'{appointment_date} {start_time:%H:%M} is already booked')
            claimed = True
            yield reservation
    except (IntegrityError, OperationalError) as exc:
        if not _lost_race(exc):
            _release(reservation, claimed, exc)
            raise
        logger.warning('reservation %s lost to a concurrent booking: %s', reservation, exc)
        raise SlotUnavailable(f'{appointment_date} {start_time:%H:%M} is already booked') from exc
    except SlotUnavailable:
        logger.info('reservation %s denied: slot taken', reservation)
        raise
    except Exception as exc:
        _release(reservation, claimed, exc)
        raise
