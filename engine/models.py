"""
Database models for the booking & approval engine.

The models capture the actors of the platform (users, doctors and
hospitals), the availability configuration doctors publish (chambers,
weekly schedules and serial settings), the appointments patients book
against that configuration, and the append-only approval trail that
records every onboarding decision.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone


class User(AbstractUser):
    """Custom user model carrying the caller role.

    Roles: 'patient', 'doctor', 'hospital_admin' and 'super_admin'.  The
    role is trusted as given by the authentication layer; services take
    the user explicitly as ``caller``.
    """
    ROLE_PATIENT = 'patient'
    ROLE_DOCTOR = 'doctor'
    ROLE_HOSPITAL_ADMIN = 'hospital_admin'
    ROLE_SUPER_ADMIN = 'super_admin'
    ROLE_CHOICES = [
        (ROLE_PATIENT, 'Patient'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_HOSPITAL_ADMIN, 'Hospital administrator'),
        (ROLE_SUPER_ADMIN, 'Super administrator'),
    ]
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    phone = models.CharField(max_length=32, blank=True)

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class HospitalStatus(models.TextChoices):
    PENDING_SUPER_ADMIN = 'pending_super_admin', 'Pending super admin'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'


class DoctorStatus(models.TextChoices):
    PENDING_HOSPITAL = 'pending_hospital', 'Pending hospital'
    PENDING_SUPER_ADMIN = 'pending_super_admin', 'Pending super admin'
    PENDING_HOSPITAL_AND_SUPER_ADMIN = 'pending_hospital_and_super_admin', 'Pending hospital and super admin'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'


class Hospital(models.Model):
    """A facility that hosts doctors and manages its own administrators.

    ``name``, ``address`` and ``registration_number`` identify the
    facility legally and become read-only once the platform approves it.
    """
    CRITICAL_FIELDS = ('name', 'address', 'registration_number')

    name = models.CharField(max_length=255)
    address = models.JSONField(default=dict, blank=True)
    registration_number = models.CharField(max_length=64, unique=True)
    documents = models.JSONField(default=list, blank=True)
    departments = models.JSONField(default=list, blank=True)
    contact_email = models.EmailField(blank=True)
    contact_phone = models.CharField(max_length=32, blank=True)
    status = models.CharField(
        max_length=40, choices=HospitalStatus.choices, default=HospitalStatus.PENDING_SUPER_ADMIN, db_index=True
    )
    rejection_reason = models.TextField(blank=True)
    admins = models.ManyToManyField(User, related_name='administered_hospitals', blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.name} ({self.status})"

    @property
    def is_approved(self) -> bool:
        return self.status == HospitalStatus.APPROVED


class Doctor(models.Model):
    """A credentialed practitioner.

    ``hospital`` is empty for independent practice.  ``status`` only moves
    through the approval services; profile edits require ``approved``.
    """
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='doctor_profile')
    name = models.CharField(max_length=255)
    medical_license_number = models.CharField(max_length=64, unique=True)
    specialization = models.JSONField(default=list, blank=True)
    qualifications = models.TextField(blank=True)
    experience_years = models.PositiveIntegerField(default=0)
    bio = models.TextField(blank=True)
    consultation_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    follow_up_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctors'
    )
    status = models.CharField(
        max_length=40, choices=DoctorStatus.choices, default=DoctorStatus.PENDING_SUPER_ADMIN, db_index=True
    )
    rejection_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"Dr. {self.name} ({self.status})"

    @property
    def is_approved(self) -> bool:
        return self.status == DoctorStatus.APPROVED


class HospitalDoctor(models.Model):
    """Roster entry linking an admitted doctor to a hospital."""
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='roster')
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='affiliations')
    joined_at = models.DateTimeField(default=timezone.now)
    department = models.CharField(max_length=128, blank=True)
    title = models.CharField(max_length=128, blank=True)

    class Meta:
        unique_together = [('hospital', 'doctor')]

    def __str__(self) -> str:
        return f"{self.doctor} at {self.hospital}"


class Chamber(models.Model):
    """A consultation venue a doctor sees patients at."""
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='chambers')
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='chambers'
    )
    name = models.CharField(max_length=255)
    address = models.TextField(blank=True)
    consultation_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    follow_up_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    # 0 falls back to ENGINE_SESSION_MINUTES
    session_duration = models.PositiveSmallIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.name} (doctor={self.doctor_id})"


class Schedule(models.Model):
    """Recurring weekly availability for one doctor, chamber and weekday.

    ``day_of_week`` counts from Sunday (0) to Saturday (6).  ``time_slots``
    holds ``[{"start": "HH:MM", "end": "HH:MM"}, ...]`` windows which the
    availability calculator splits into fixed-length sessions.
    """
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='schedules')
    chamber = models.ForeignKey(Chamber, on_delete=models.CASCADE, related_name='schedules')
    day_of_week = models.PositiveSmallIntegerField(validators=[MaxValueValidator(6)])
    time_slots = models.JSONField(default=list)
    valid_from = models.DateField(default=timezone.localdate)
    valid_until = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [('doctor', 'chamber', 'day_of_week')]

    def __str__(self) -> str:
        return f"Schedule(d={self.doctor_id}, c={self.chamber_id}, day={self.day_of_week})"

    def applies_on(self, day) -> bool:
        if not self.is_active or day < self.valid_from:
            return False
        return self.valid_until is None or day <= self.valid_until


class SerialSettings(models.Model):
    """Fixed daily serial capacity for a doctor.

    One row per (doctor, hospital) pair and at most one row for an
    independent doctor.  Only even serial numbers are booked online; odd
    numbers are kept for walk-in patients.
    """
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='serial_settings')
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.CASCADE, related_name='serial_settings'
    )
    chamber = models.ForeignKey(
        Chamber, null=True, blank=True, on_delete=models.SET_NULL, related_name='serial_settings'
    )
    total_serials_per_day = models.PositiveIntegerField(default=20, validators=[MinValueValidator(1)])
    start_time = models.TimeField()
    end_time = models.TimeField()
    appointment_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    # weekday numbers (0 = Sunday); empty means every day
    available_days = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['doctor', 'hospital'],
                condition=Q(hospital__isnull=False),
                name='uniq_serial_settings_doctor_hospital',
            ),
            models.UniqueConstraint(
                fields=['doctor'],
                condition=Q(hospital__isnull=True),
                name='uniq_serial_settings_independent_doctor',
            ),
        ]

    def __str__(self) -> str:
        return f"Serials(d={self.doctor_id}, h={self.hospital_id}, n={self.total_serials_per_day})"

    def offers_day(self, weekday: int) -> bool:
        return not self.available_days or weekday in self.available_days


class AppointmentStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    ACCEPTED = 'accepted', 'Accepted'
    REJECTED = 'rejected', 'Rejected'
    COMPLETED = 'completed', 'Completed'
    NO_SHOW = 'no_show', 'No show'
    CANCELLED = 'cancelled', 'Cancelled'


ACTIVE_APPOINTMENT_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.ACCEPTED)


class Appointment(models.Model):
    """A patient's booking of a doctor's slot or serial on a date.

    The partial unique constraints are the storage-level half of the
    reservation guarantee: no two active appointments may share a doctor,
    date and start time (or serial number).
    """
    TYPE_NEW = 'new'
    TYPE_FOLLOW_UP = 'follow_up'
    CONSULTATION_TYPE_CHOICES = ((TYPE_NEW, 'new'), (TYPE_FOLLOW_UP, 'follow_up'))

    BOOKING_SLOT = 'slot'
    BOOKING_SERIAL = 'serial'
    BOOKING_TYPE_CHOICES = ((BOOKING_SLOT, 'slot'), (BOOKING_SERIAL, 'serial'))

    CANCELLED_BY_CHOICES = (('patient', 'patient'), ('doctor', 'doctor'))

    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='appointments')
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='appointments')
    chamber = models.ForeignKey(
        Chamber, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments'
    )
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments'
    )
    appointment_date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    session_duration = models.PositiveSmallIntegerField(default=15)
    serial_number = models.PositiveIntegerField(null=True, blank=True)
    appointment_number = models.CharField(max_length=32, unique=True)
    consultation_type = models.CharField(max_length=16, choices=CONSULTATION_TYPE_CHOICES, default=TYPE_NEW)
    booking_type = models.CharField(max_length=16, choices=BOOKING_TYPE_CHOICES, default=BOOKING_SLOT)
    fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    reason = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    status = models.CharField(
        max_length=16, choices=AppointmentStatus.choices, default=AppointmentStatus.PENDING, db_index=True
    )
    cancelled_by = models.CharField(max_length=16, choices=CANCELLED_BY_CHOICES, blank=True)
    cancellation_reason = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    linked_record_ref = models.CharField(max_length=128, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['doctor', 'appointment_date', 'start_time'],
                condition=Q(status__in=['pending', 'accepted']),
                name='uniq_active_appointment_slot',
            ),
            models.UniqueConstraint(
                fields=['doctor', 'appointment_date', 'serial_number'],
                condition=Q(status__in=['pending', 'accepted'], serial_number__isnull=False),
                name='uniq_active_appointment_serial',
            ),
        ]
        indexes = [
            models.Index(fields=['doctor', 'appointment_date', 'status'], name='appt_doctor_date_status_idx'),
            models.Index(fields=['patient', 'appointment_date'], name='appt_patient_date_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.appointment_number} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status not in ACTIVE_APPOINTMENT_STATUSES


class AppointmentTransition(models.Model):
    """Records a status transition for an appointment."""
    appointment = models.ForeignKey(Appointment, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=16, null=True, blank=True)
    to_status = models.CharField(max_length=16)
    operator = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointment_transitions'
    )
    reason = models.CharField(max_length=255, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.appointment_id}: {self.from_status} → {self.to_status}"


class ApprovalLog(models.Model):
    """Append-only audit entry for a doctor or hospital status change.

    Exactly one entry is written per transition, in the same database
    transaction as the status change.  Existing rows can be neither
    updated nor deleted.
    """
    TARGET_DOCTOR = 'doctor'
    TARGET_HOSPITAL = 'hospital'
    TARGET_CHOICES = ((TARGET_DOCTOR, 'doctor'), (TARGET_HOSPITAL, 'hospital'))

    ACTION_REGISTER = 'register'
    ACTION_APPROVE = 'approve'
    ACTION_REJECT = 'reject'
    ACTION_CHOICES = ((ACTION_REGISTER, 'register'), (ACTION_APPROVE, 'approve'), (ACTION_REJECT, 'reject'))

    actor = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='approval_logs')
    actor_role = models.CharField(max_length=20)
    target_type = models.CharField(max_length=16, choices=TARGET_CHOICES)
    target_id = models.PositiveBigIntegerField()
    action = models.CharField(max_length=16, choices=ACTION_CHOICES)
    reason = models.TextField(blank=True)
    previous_status = models.CharField(max_length=40, null=True, blank=True)
    new_status = models.CharField(max_length=40)
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        indexes = [
            models.Index(fields=['target_type', 'target_id', 'timestamp'], name='approval_target_time_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.target_type}:{self.target_id} {self.previous_status} → {self.new_status} ({self.action})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise RuntimeError('approval log entries are append-only')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise RuntimeError('approval log entries cannot be deleted')


class Notification(models.Model):
    """A stored notification for a user, pushed to their socket group."""
    recipient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=64)
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True)
    related_id = models.CharField(max_length=64, blank=True)
    related_type = models.CharField(max_length=32, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['recipient', 'is_read', 'created_at'], name='notif_recipient_read_idx')]

    def __str__(self) -> str:
        return f"notify u={self.recipient_id} {self.type}"
