"""
Approval lifecycle for doctors and hospitals.

Hospitals are approved by a super admin only.  Doctors may need two
approvals: one from the hospital they registered under and one from the
platform.  The two sides are independent, so a doctor registering under a
hospital that is itself still pending waits in
``pending_hospital_and_super_admin`` until both have signed off.

Every status write happens under a row lock together with exactly one
:class:`~engine.models.ApprovalLog` entry.
"""
from __future__ import annotations

import logging
import secrets
from typing import Optional

import bleach
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from engine.exceptions import (
    CriticalFieldLocked,
    DoctorNotApproved,
    DoctorNotFound,
    DuplicateRegistration,
    Forbidden,
    HospitalNotApproved,
    HospitalNotFound,
    InvalidTransition,
    PreconditionFailed,
    ValidationError,
)
from engine.models import (
    ApprovalLog,
    Doctor,
    DoctorStatus,
    Hospital,
    HospitalDoctor,
    HospitalStatus,
    User,
)
from engine.services.audit import log_approval
from engine.services.notifications import notify

logger = logging.getLogger(__name__)

# doctor transitions by approving side
HOSPITAL_APPROVAL = {
    DoctorStatus.PENDING_HOSPITAL: DoctorStatus.APPROVED,
    DoctorStatus.PENDING_HOSPITAL_AND_SUPER_ADMIN: DoctorStatus.PENDING_SUPER_ADMIN,
}
PLATFORM_APPROVAL = {
    DoctorStatus.PENDING_SUPER_ADMIN: DoctorStatus.APPROVED,
    DoctorStatus.PENDING_HOSPITAL_AND_SUPER_ADMIN: DoctorStatus.PENDING_HOSPITAL,
}
PENDING_DOCTOR_STATUSES = (
    DoctorStatus.PENDING_HOSPITAL,
    DoctorStatus.PENDING_SUPER_ADMIN,
    DoctorStatus.PENDING_HOSPITAL_AND_SUPER_ADMIN,
)

HOSPITAL_EDITABLE_FIELDS = (
    'name', 'address', 'registration_number', 'documents', 'departments', 'contact_email', 'contact_phone',
)
DOCTOR_EDITABLE_FIELDS = (
    'specialization', 'qualifications', 'experience_years', 'bio', 'consultation_fee', 'follow_up_fee',
)


def _clean(text: Optional[str]) -> str:
    return bleach.clean((text or '').strip(), strip=True)


def _require_reason(reason: Optional[str]) -> str:
    reason = _clean(reason)
    if not reason:
        raise ValidationError('a rejection reason is required')
    return reason


def _check_password(password: str) -> None:
    try:
        validate_password(password)
    except DjangoValidationError as e:
        raise ValidationError('; '.join(e.messages)) from None


def _create_user(*, username: str, password: str, email: str, role: str, first_name: str = '',
                 phone: str = '', is_active: bool = True) -> User:
    if not username:
        raise ValidationError('username is required')
    if User.objects.filter(username=username).exists():
        raise DuplicateRegistration(f'username {username!r} is already taken')
    _check_password(password)
    user = User.objects.create_user(
        username=username, password=password, email=email or '', first_name=first_name,
    )
    user.role = role
    user.phone = phone or ''
    user.is_active = is_active
    user.save(update_fields=['role', 'phone', 'is_active'])
    return user


def _check_license(license_number: str) -> None:
    if not license_number:
        raise ValidationError('medical license number is required')
    if Doctor.objects.filter(medical_license_number=license_number).exists():
        raise DuplicateRegistration(f'license {license_number} is already registered')


def _locked_hospital(hospital_id) -> Hospital:
    hospital = Hospital.objects.select_for_update().filter(pk=hospital_id).first()
    if hospital is None:
        raise HospitalNotFound(f'hospital {hospital_id} not found')
    return hospital


def _locked_doctor(doctor_id) -> Doctor:
    doctor = Doctor.objects.select_for_update().select_related('user').filter(pk=doctor_id).first()
    if doctor is None:
        raise DoctorNotFound(f'doctor {doctor_id} not found')
    return doctor


def _require_hospital_admin(caller: User, hospital: Hospital) -> None:
    if getattr(caller, 'role', '') == User.ROLE_SUPER_ADMIN:
        return
    if not hospital.admins.filter(pk=caller.pk).exists():
        raise Forbidden(f'user {caller.pk} is not an administrator of hospital {hospital.pk}')


def _require_approved_hospital(hospital: Hospital) -> None:
    if not hospital.is_approved:
        raise HospitalNotApproved(f'hospital {hospital.pk} is {hospital.status}')


def join_roster(hospital: Hospital, doctor: Doctor, department: str = '', title: str = '') -> None:
    HospitalDoctor.objects.get_or_create(
        hospital=hospital, doctor=doctor, defaults={'department': department, 'title': title},
    )


def _set_doctor_status(doctor: Doctor, new_status: str, *, actor: User, action: str,
                       reason: Optional[str] = None) -> str:
    previous = doctor.status
    doctor.status = new_status
    update_fields = ['status', 'updated_at']
    if new_status == DoctorStatus.REJECTED:
        doctor.rejection_reason = reason or ''
        update_fields.append('rejection_reason')
    doctor.save(update_fields=update_fields)
    log_approval(
        actor=actor, actor_role=getattr(actor, 'role', ''), target_type=ApprovalLog.TARGET_DOCTOR,
        target_id=doctor.pk, action=action, previous_status=previous, new_status=new_status, reason=reason,
    )
    if new_status == DoctorStatus.APPROVED and doctor.hospital_id:
        join_roster(doctor.hospital, doctor)
    return previous


# ---- hospitals ----

def register_hospital(*, username: str, password: str, email: str, name: str, registration_number: str,
                      address: Optional[dict] = None, documents: Optional[list] = None,
                      departments: Optional[list] = None, contact_email: str = '', contact_phone: str = '') -> Hospital:
    """Register a hospital and its first administrator.

    The administrator account stays inactive until the hospital is approved.
    """
    name = _clean(name)
    if not name:
        raise ValidationError('hospital name is required')
    if not registration_number:
        raise ValidationError('registration number is required')
    if Hospital.objects.filter(registration_number=registration_number).exists():
        raise DuplicateRegistration(f'registration number {registration_number} is already registered')
    with transaction.atomic():
        admin = _create_user(
            username=username, password=password, email=email, role=User.ROLE_HOSPITAL_ADMIN,
            first_name=name[:150], phone=contact_phone, is_active=False,
        )
        hospital = Hospital.objects.create(
            name=name,
            address=address or {},
            registration_number=registration_number,
            documents=documents or [],
            departments=departments or [],
            contact_email=contact_email or email or '',
            contact_phone=contact_phone or '',
        )
        hospital.admins.add(admin)
        log_approval(
            actor=admin, actor_role=admin.role, target_type=ApprovalLog.TARGET_HOSPITAL, target_id=hospital.pk,
            action=ApprovalLog.ACTION_REGISTER, previous_status=None, new_status=hospital.status,
        )
    logger.info('hospital %s registered (%s)', hospital.pk, registration_number)
    for super_admin in User.objects.filter(role=User.ROLE_SUPER_ADMIN, is_active=True):
        notify(super_admin, 'hospital_registered', 'New Hospital Registration',
               f'{hospital.name} is waiting for approval', hospital.pk, 'hospital')
    return hospital


def approve_hospital(caller: User, hospital_id, reason: Optional[str] = None) -> Hospital:
    with transaction.atomic():
        hospital = _locked_hospital(hospital_id)
        if hospital.status != HospitalStatus.PENDING_SUPER_ADMIN:
            raise InvalidTransition(f'cannot approve a hospital that is {hospital.status}')
        previous = hospital.status
        hospital.status = HospitalStatus.APPROVED
        hospital.approved_at = timezone.now()
        hospital.save(update_fields=['status', 'approved_at', 'updated_at'])
        hospital.admins.update(is_active=True)
        log_approval(
            actor=caller, actor_role=caller.role, target_type=ApprovalLog.TARGET_HOSPITAL, target_id=hospital.pk,
            action=ApprovalLog.ACTION_APPROVE, previous_status=previous, new_status=hospital.status,
            reason=_clean(reason),
        )
    logger.info('hospital %s approved by %s', hospital.pk, caller.pk)
    for admin in hospital.admins.all():
        notify(admin, 'hospital_approved', 'Hospital Approved',
               f'{hospital.name} has been approved', hospital.pk, 'hospital')
    return hospital


def reject_hospital(caller: User, hospital_id, reason: str) -> Hospital:
    reason = _require_reason(reason)
    with transaction.atomic():
        hospital = _locked_hospital(hospital_id)
        if hospital.status != HospitalStatus.PENDING_SUPER_ADMIN:
            raise InvalidTransition(f'cannot reject a hospital that is {hospital.status}')
        previous = hospital.status
        hospital.status = HospitalStatus.REJECTED
        hospital.rejection_reason = reason
        hospital.save(update_fields=['status', 'rejection_reason', 'updated_at'])
        log_approval(
            actor=caller, actor_role=caller.role, target_type=ApprovalLog.TARGET_HOSPITAL, target_id=hospital.pk,
            action=ApprovalLog.ACTION_REJECT, previous_status=previous, new_status=hospital.status, reason=reason,
        )
    logger.info('hospital %s rejected by %s', hospital.pk, caller.pk)
    for admin in hospital.admins.all():
        notify(admin, 'hospital_rejected', 'Hospital Rejected',
               f'{hospital.name} has been rejected: {reason}', hospital.pk, 'hospital')
    return hospital


def update_hospital(caller: User, hospital_id, changes: dict) -> Hospital:
    """Apply ``changes`` to a hospital.

    Only the given fields are written, so two updates touching different
    fields never overwrite each other.
    """
    unknown = set(changes) - set(HOSPITAL_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f'fields cannot be updated: {", ".join(sorted(unknown))}')
    if not changes:
        raise ValidationError('no changes given')
    with transaction.atomic():
        hospital = _locked_hospital(hospital_id)
        _require_hospital_admin(caller, hospital)
        if hospital.is_approved:
            locked = [f for f in Hospital.CRITICAL_FIELDS if f in changes and changes[f] != getattr(hospital, f)]
            if locked:
                raise CriticalFieldLocked(f'{", ".join(locked)} cannot be changed after approval')
        new_number = changes.get('registration_number')
        if new_number and new_number != hospital.registration_number and \
                Hospital.objects.filter(registration_number=new_number).exists():
            raise DuplicateRegistration(f'registration number {new_number} is already registered')
        for field, value in changes.items():
            setattr(hospital, field, _clean(value) if isinstance(value, str) else value)
        hospital.save(update_fields=[*changes, 'updated_at'])
    logger.info('hospital %s updated: %s', hospital.pk, ', '.join(sorted(changes)))
    return hospital


# ---- doctors ----

def register_doctor(*, username: str, password: str, email: str, name: str, medical_license_number: str,
                    hospital_id=None, specialization: Optional[list] = None, qualifications: str = '',
                    experience_years: int = 0, consultation_fee=0, follow_up_fee=0, phone: str = '') -> Doctor:
    """Self-registration.

    The initial status depends on the hospital the doctor registers under:
    none means the platform alone decides, an approved hospital decides
    alone, and a hospital still pending means both must approve.
    """
    name = _clean(name)
    if not name:
        raise ValidationError('doctor name is required')
    _check_license(medical_license_number)
    hospital = None
    if hospital_id:
        hospital = Hospital.objects.filter(pk=hospital_id).first()
        if hospital is None:
            raise HospitalNotFound(f'hospital {hospital_id} not found')
    if hospital is None:
        status = DoctorStatus.PENDING_SUPER_ADMIN
    elif hospital.status == HospitalStatus.APPROVED:
        status = DoctorStatus.PENDING_HOSPITAL
    elif hospital.status == HospitalStatus.PENDING_SUPER_ADMIN:
        status = DoctorStatus.PENDING_HOSPITAL_AND_SUPER_ADMIN
    else:
        raise HospitalNotApproved(f'hospital {hospital.pk} is {hospital.status}')

    with transaction.atomic():
        user = _create_user(
            username=username, password=password, email=email, role=User.ROLE_DOCTOR,
            first_name=name[:150], phone=phone,
        )
        doctor = Doctor.objects.create(
            user=user,
            name=name,
            medical_license_number=medical_license_number,
            specialization=specialization or [],
            qualifications=_clean(qualifications),
            experience_years=experience_years or 0,
            consultation_fee=consultation_fee or 0,
            follow_up_fee=follow_up_fee or 0,
            hospital=hospital,
            status=status,
        )
        log_approval(
            actor=user, actor_role=user.role, target_type=ApprovalLog.TARGET_DOCTOR, target_id=doctor.pk,
            action=ApprovalLog.ACTION_REGISTER, previous_status=None, new_status=status,
        )
    logger.info('doctor %s registered as %s', doctor.pk, status)
    if hospital is not None and status == DoctorStatus.PENDING_HOSPITAL:
        for admin in hospital.admins.all():
            notify(admin, 'doctor_registered', 'New Doctor Registration',
                   f'Dr. {doctor.name} is waiting for your approval', doctor.pk, 'doctor')
    return doctor


def add_doctor_by_hospital(caller: User, hospital_id, *, username: str, email: str, name: str,
                           medical_license_number: str, password: Optional[str] = None,
                           specialization: Optional[list] = None, qualifications: str = '',
                           experience_years: int = 0, consultation_fee=0, follow_up_fee=0, phone: str = '',
                           department: str = '', title: str = ''):
    """Create an already-approved doctor on an approved hospital's roster.

    Returns ``(doctor, password)``; a password is generated when none is given.
    """
    name = _clean(name)
    if not name:
        raise ValidationError('doctor name is required')
    if not password:
        password = secrets.token_urlsafe(12)
    with transaction.atomic():
        hospital = _locked_hospital(hospital_id)
        _require_approved_hospital(hospital)
        _require_hospital_admin(caller, hospital)
        _check_license(medical_license_number)
        user = _create_user(
            username=username, password=password, email=email, role=User.ROLE_DOCTOR,
            first_name=name[:150], phone=phone,
        )
        doctor = Doctor.objects.create(
            user=user,
            name=name,
            medical_license_number=medical_license_number,
            specialization=specialization or [],
            qualifications=_clean(qualifications),
            experience_years=experience_years or 0,
            consultation_fee=consultation_fee or 0,
            follow_up_fee=follow_up_fee or 0,
            hospital=hospital,
            status=DoctorStatus.APPROVED,
        )
        join_roster(hospital, doctor, _clean(department), _clean(title))
        log_approval(
            actor=caller, actor_role=caller.role, target_type=ApprovalLog.TARGET_DOCTOR, target_id=doctor.pk,
            action=ApprovalLog.ACTION_APPROVE, previous_status=None, new_status=doctor.status,
            reason='added by hospital',
        )
    logger.info('doctor %s added to hospital %s by %s', doctor.pk, hospital.pk, caller.pk)
    notify(user, 'doctor_approved', 'Account Created',
           f'{hospital.name} added you as a doctor', doctor.pk, 'doctor')
    return doctor, password


def approve_doctor_by_hospital(caller: User, hospital_id, doctor_id) -> Doctor:
    with transaction.atomic():
        hospital = _locked_hospital(hospital_id)
        _require_approved_hospital(hospital)
        _require_hospital_admin(caller, hospital)
        doctor = _locked_doctor(doctor_id)
        if doctor.hospital_id != hospital.pk:
            raise DoctorNotFound(f'doctor {doctor.pk} is not registered with hospital {hospital.pk}')
        new_status = HOSPITAL_APPROVAL.get(doctor.status)
        if new_status is None:
            raise PreconditionFailed(f'doctor {doctor.pk} is {doctor.status} and needs no hospital approval')
        previous = _set_doctor_status(doctor, new_status, actor=caller, action=ApprovalLog.ACTION_APPROVE)
    logger.info('doctor %s: %s -> %s by hospital %s', doctor.pk, previous, new_status, hospital.pk)
    _notify_doctor_approval(doctor, f'{hospital.name} approved your registration')
    return doctor


def reject_doctor_by_hospital(caller: User, hospital_id, doctor_id, reason: str) -> Doctor:
    reason = _require_reason(reason)
    with transaction.atomic():
        hospital = _locked_hospital(hospital_id)
        _require_approved_hospital(hospital)
        _require_hospital_admin(caller, hospital)
        doctor = _locked_doctor(doctor_id)
        if doctor.hospital_id != hospital.pk:
            raise DoctorNotFound(f'doctor {doctor.pk} is not registered with hospital {hospital.pk}')
        if doctor.status not in HOSPITAL_APPROVAL:
            raise InvalidTransition(f'hospital cannot reject a doctor who is {doctor.status}')
        previous = _set_doctor_status(
            doctor, DoctorStatus.REJECTED, actor=caller, action=ApprovalLog.ACTION_REJECT, reason=reason,
        )
    logger.info('doctor %s: %s -> rejected by hospital %s', doctor.pk, previous, hospital.pk)
    notify(doctor.user, 'doctor_rejected', 'Registration Rejected',
           f'{hospital.name} rejected your registration: {reason}', doctor.pk, 'doctor')
    return doctor


def approve_doctor(caller: User, doctor_id, reason: Optional[str] = None) -> Doctor:
    with transaction.atomic():
        doctor = _locked_doctor(doctor_id)
        new_status = PLATFORM_APPROVAL.get(doctor.status)
        if new_status is None:
            raise InvalidTransition(f'cannot approve a doctor who is {doctor.status}')
        previous = _set_doctor_status(
            doctor, new_status, actor=caller, action=ApprovalLog.ACTION_APPROVE, reason=_clean(reason),
        )
    logger.info('doctor %s: %s -> %s by super admin %s', doctor.pk, previous, new_status, caller.pk)
    _notify_doctor_approval(doctor, 'The platform approved your registration')
    return doctor


def reject_doctor(caller: User, doctor_id, reason: str) -> Doctor:
    reason = _require_reason(reason)
    with transaction.atomic():
        doctor = _locked_doctor(doctor_id)
        if doctor.status not in PENDING_DOCTOR_STATUSES:
            raise InvalidTransition(f'cannot reject a doctor who is {doctor.status}')
        previous = _set_doctor_status(
            doctor, DoctorStatus.REJECTED, actor=caller, action=ApprovalLog.ACTION_REJECT, reason=reason,
        )
    logger.info('doctor %s: %s -> rejected by super admin %s', doctor.pk, previous, caller.pk)
    notify(doctor.user, 'doctor_rejected', 'Registration Rejected',
           f'Your registration was rejected: {reason}', doctor.pk, 'doctor')
    return doctor


def _notify_doctor_approval(doctor: Doctor, message: str) -> None:
    if doctor.status == DoctorStatus.APPROVED:
        notify(doctor.user, 'doctor_approved', 'Registration Approved',
               f'{message}. You can now accept appointments.', doctor.pk, 'doctor')
    else:
        notify(doctor.user, 'doctor_approval_progress', 'Registration Update',
               f'{message}. Waiting for the remaining approval.', doctor.pk, 'doctor')


def update_doctor_profile(caller: User, changes: dict) -> Doctor:
    unknown = set(changes) - set(DOCTOR_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f'fields cannot be updated: {", ".join(sorted(unknown))}')
    if not changes:
        raise ValidationError('no changes given')
    with transaction.atomic():
        doctor = Doctor.objects.select_for_update().filter(user=caller).first()
        if doctor is None:
            raise DoctorNotFound('doctor profile not found')
        if not doctor.is_approved:
            raise DoctorNotApproved(f'profile can be edited once approved, doctor is {doctor.status}')
        for field, value in changes.items():
            setattr(doctor, field, _clean(value) if isinstance(value, str) else value)
        doctor.save(update_fields=[*changes, 'updated_at'])
    return doctor


# ---- queries ----

def format_hospital(h: Hospital) -> dict:
    return {
        'id': h.id,
        'name': h.name,
        'address': h.address,
        'registrationNumber': h.registration_number,
        'departments': h.departments,
        'documents': h.documents,
        'contactEmail': h.contact_email,
        'contactPhone': h.contact_phone,
        'status': h.status,
        'rejectionReason': h.rejection_reason or None,
        'approvedAt': h.approved_at.isoformat() if h.approved_at else None,
        'createdAt': h.created_at.isoformat(),
    }


def format_doctor(d: Doctor) -> dict:
    return {
        'id': d.id,
        'userId': d.user_id,
        'name': d.name,
        'medicalLicenseNumber': d.medical_license_number,
        'specialization': d.specialization,
        'qualifications': d.qualifications,
        'experienceYears': d.experience_years,
        'bio': d.bio,
        'consultationFee': str(d.consultation_fee),
        'followUpFee': str(d.follow_up_fee),
        'hospitalId': d.hospital_id,
        'status': d.status,
        'rejectionReason': d.rejection_reason or None,
        'createdAt': d.created_at.isoformat(),
    }


def pending_items(caller: Optional[User] = None) -> dict:
    """Items waiting for the caller's decision.

    Super admins see pending hospitals and doctors awaiting the platform;
    hospital admins see doctors awaiting their hospitals.
    """
    if caller is not None and getattr(caller, 'role', '') == User.ROLE_HOSPITAL_ADMIN:
        doctors = Doctor.objects.filter(
            hospital__admins=caller,
            status__in=[DoctorStatus.PENDING_HOSPITAL, DoctorStatus.PENDING_HOSPITAL_AND_SUPER_ADMIN],
        )
        return {'hospitals': [], 'doctors': [format_doctor(d) for d in doctors.order_by('created_at')]}
    hospitals = Hospital.objects.filter(status=HospitalStatus.PENDING_SUPER_ADMIN).order_by('created_at')
    doctors = Doctor.objects.filter(
        status__in=[DoctorStatus.PENDING_SUPER_ADMIN, DoctorStatus.PENDING_HOSPITAL_AND_SUPER_ADMIN],
    ).order_by('created_at')
    return {
        'hospitals': [format_hospital(h) for h in hospitals],
        'doctors': [format_doctor(d) for d in doctors],
    }
