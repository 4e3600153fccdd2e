import pytest

from engine.exceptions import (
    CriticalFieldLocked,
    DoctorNotApproved,
    DuplicateRegistration,
    Forbidden,
    HospitalNotApproved,
    InvalidTransition,
    PreconditionFailed,
    ValidationError,
)
from engine.models import (
    ApprovalLog,
    DoctorStatus,
    Hospital,
    HospitalDoctor,
    HospitalStatus,
    User,
)
from engine.services import approvals as svc
from engine.services.audit import approval_history

pytestmark = pytest.mark.django_db

PASSWORD = 'Str0ng!Passw0rd'


def _register_doctor(username='drnew', license_number='LIC-NEW', hospital_id=None):
    return svc.register_doctor(
        username=username, password=PASSWORD, email=f'{username}@example.com', name='New Doctor',
        medical_license_number=license_number, hospital_id=hospital_id,
    )


def _register_hospital(username='hadmin', registration_number='REG-NEW'):
    return svc.register_hospital(
        username=username, password=PASSWORD, email=f'{username}@example.com', name='Lakeside Clinic',
        registration_number=registration_number, departments=['Medicine'],
    )


def _entries(target_type, target_id):
    return list(
        ApprovalLog.objects.filter(target_type=target_type, target_id=target_id)
        .order_by('id').values_list('action', 'previous_status', 'new_status')
    )


def test_independent_doctor_waits_for_platform(super_admin):
    doctor = _register_doctor()
    assert doctor.status == DoctorStatus.PENDING_SUPER_ADMIN
    svc.approve_doctor(super_admin, doctor.pk)
    doctor.refresh_from_db()
    assert doctor.is_approved
    assert _entries('doctor', doctor.pk) == [
        ('register', None, 'pending_super_admin'),
        ('approve', 'pending_super_admin', 'approved'),
    ]


def test_doctor_under_approved_hospital_waits_for_hospital(hospital, hospital_admin):
    doctor = _register_doctor(hospital_id=hospital.pk)
    assert doctor.status == DoctorStatus.PENDING_HOSPITAL
    svc.approve_doctor_by_hospital(hospital_admin, hospital.pk, doctor.pk)
    doctor.refresh_from_db()
    assert doctor.is_approved
    assert HospitalDoctor.objects.filter(hospital=hospital, doctor=doctor).exists()


def test_doctor_under_pending_hospital_needs_both_sides(super_admin):
    hospital = _register_hospital()
    admin = hospital.admins.get()
    doctor = _register_doctor(hospital_id=hospital.pk)
    assert doctor.status == DoctorStatus.PENDING_HOSPITAL_AND_SUPER_ADMIN

    # the hospital itself is not approved yet
    with pytest.raises(HospitalNotApproved):
        svc.approve_doctor_by_hospital(admin, hospital.pk, doctor.pk)

    svc.approve_doctor(super_admin, doctor.pk)
    doctor.refresh_from_db()
    assert doctor.status == DoctorStatus.PENDING_HOSPITAL

    svc.approve_hospital(super_admin, hospital.pk)
    svc.approve_doctor_by_hospital(admin, hospital.pk, doctor.pk)
    doctor.refresh_from_db()
    assert doctor.status == DoctorStatus.APPROVED
    assert [e[2] for e in _entries('doctor', doctor.pk)] == [
        'pending_hospital_and_super_admin', 'pending_hospital', 'approved',
    ]


def test_hospital_side_first_then_platform(hospital, hospital_admin, super_admin, make_doctor):
    doctor = make_doctor(status=DoctorStatus.PENDING_HOSPITAL_AND_SUPER_ADMIN, hospital=hospital)
    svc.approve_doctor_by_hospital(hospital_admin, hospital.pk, doctor.pk)
    doctor.refresh_from_db()
    assert doctor.status == DoctorStatus.PENDING_SUPER_ADMIN
    svc.approve_doctor(super_admin, doctor.pk)
    doctor.refresh_from_db()
    assert doctor.is_approved


def test_rejected_hospital_refuses_registrations():
    hospital = Hospital.objects.create(name='Closed', registration_number='REG-X', status=HospitalStatus.REJECTED)
    with pytest.raises(HospitalNotApproved):
        _register_doctor(hospital_id=hospital.pk)


def test_hospital_approval_needs_pending_status(hospital, hospital_admin, make_doctor):
    doctor = make_doctor(status=DoctorStatus.PENDING_SUPER_ADMIN, hospital=hospital)
    with pytest.raises(PreconditionFailed):
        svc.approve_doctor_by_hospital(hospital_admin, hospital.pk, doctor.pk)
    assert not ApprovalLog.objects.filter(target_id=doctor.pk).exists()


def test_platform_cannot_approve_approved_doctor(super_admin, doctor):
    with pytest.raises(InvalidTransition):
        svc.approve_doctor(super_admin, doctor.pk)


def test_non_admin_cannot_approve_for_hospital(hospital, make_user, make_doctor):
    doctor = make_doctor(status=DoctorStatus.PENDING_HOSPITAL, hospital=hospital)
    outsider = make_user(User.ROLE_HOSPITAL_ADMIN)
    with pytest.raises(Forbidden):
        svc.approve_doctor_by_hospital(outsider, hospital.pk, doctor.pk)


def test_rejection_requires_reason_and_pending_status(super_admin, make_doctor, doctor):
    pending = make_doctor(status=DoctorStatus.PENDING_SUPER_ADMIN)
    with pytest.raises(ValidationError):
        svc.reject_doctor(super_admin, pending.pk, '')
    svc.reject_doctor(super_admin, pending.pk, 'license could not be verified')
    pending.refresh_from_db()
    assert pending.status == DoctorStatus.REJECTED
    assert pending.rejection_reason == 'license could not be verified'
    with pytest.raises(InvalidTransition):
        svc.reject_doctor(super_admin, pending.pk, 'again')
    with pytest.raises(InvalidTransition):
        svc.reject_doctor(super_admin, doctor.pk, 'approved already')


def test_hospital_rejects_its_doctor(hospital, hospital_admin, make_doctor):
    doctor = make_doctor(status=DoctorStatus.PENDING_HOSPITAL, hospital=hospital)
    svc.reject_doctor_by_hospital(hospital_admin, hospital.pk, doctor.pk, 'not on staff')
    doctor.refresh_from_db()
    assert doctor.status == DoctorStatus.REJECTED
    assert _entries('doctor', doctor.pk) == [('reject', 'pending_hospital', 'rejected')]


def test_add_doctor_by_hospital_is_approved_immediately(hospital, hospital_admin):
    doctor, password = svc.add_doctor_by_hospital(
        hospital_admin, hospital.pk, username='drstaff', email='staff@example.com', name='Staff Doctor',
        medical_license_number='LIC-STAFF', department='Medicine', title='Consultant',
    )
    assert doctor.status == DoctorStatus.APPROVED
    assert password
    assert doctor.user.check_password(password)
    assert _entries('doctor', doctor.pk) == [('approve', None, 'approved')]
    roster = HospitalDoctor.objects.get(hospital=hospital, doctor=doctor)
    assert roster.department == 'Medicine'


def test_add_doctor_requires_approved_hospital_and_admin(make_user):
    hospital = _register_hospital()
    admin = hospital.admins.get()
    with pytest.raises(HospitalNotApproved):
        svc.add_doctor_by_hospital(
            admin, hospital.pk, username='drx', email='x@example.com', name='X Doctor',
            medical_license_number='LIC-X',
        )


def test_add_doctor_by_outsider_is_forbidden(hospital, make_user):
    with pytest.raises(Forbidden):
        svc.add_doctor_by_hospital(
            make_user(User.ROLE_HOSPITAL_ADMIN), hospital.pk, username='dry', email='y@example.com',
            name='Y Doctor', medical_license_number='LIC-Y',
        )


def test_hospital_registration_and_approval_activate_admin(super_admin):
    hospital = _register_hospital()
    admin = hospital.admins.get()
    assert hospital.status == HospitalStatus.PENDING_SUPER_ADMIN
    assert not admin.is_active
    svc.approve_hospital(super_admin, hospital.pk)
    hospital.refresh_from_db()
    admin.refresh_from_db()
    assert hospital.is_approved and hospital.approved_at is not None
    assert admin.is_active
    assert _entries('hospital', hospital.pk) == [
        ('register', None, 'pending_super_admin'),
        ('approve', 'pending_super_admin', 'approved'),
    ]
    with pytest.raises(InvalidTransition):
        svc.approve_hospital(super_admin, hospital.pk)


def test_reject_hospital(super_admin):
    hospital = _register_hospital()
    with pytest.raises(ValidationError):
        svc.reject_hospital(super_admin, hospital.pk, None)
    svc.reject_hospital(super_admin, hospital.pk, 'documents missing')
    hospital.refresh_from_db()
    assert hospital.status == HospitalStatus.REJECTED
    assert hospital.rejection_reason == 'documents missing'


def test_critical_fields_locked_after_approval(hospital, hospital_admin):
    with pytest.raises(CriticalFieldLocked):
        svc.update_hospital(hospital_admin, hospital.pk, {'name': 'Renamed'})
    # non-critical fields stay editable
    svc.update_hospital(hospital_admin, hospital.pk, {'departments': ['Medicine', 'Cardiology']})
    hospital.refresh_from_db()
    assert hospital.name == 'City General'
    assert hospital.departments == ['Medicine', 'Cardiology']


def test_update_writes_only_given_fields(hospital, hospital_admin):
    stale = Hospital.objects.get(pk=hospital.pk)
    svc.update_hospital(hospital_admin, hospital.pk, {'departments': ['Surgery']})
    svc.update_hospital(hospital_admin, stale.pk, {'contact_phone': '+8801700000000'})
    hospital.refresh_from_db()
    assert hospital.departments == ['Surgery']
    assert hospital.contact_phone == '+8801700000000'


def test_pending_hospital_can_change_critical_fields():
    hospital = _register_hospital()
    svc.update_hospital(hospital.admins.get(), hospital.pk, {'name': 'Lakeside Hospital'})
    hospital.refresh_from_db()
    assert hospital.name == 'Lakeside Hospital'


def test_duplicate_registrations_are_rejected():
    _register_doctor()
    with pytest.raises(DuplicateRegistration):
        _register_doctor(username='drother')
    with pytest.raises(DuplicateRegistration):
        _register_doctor(license_number='LIC-OTHER')
    _register_hospital()
    with pytest.raises(DuplicateRegistration):
        _register_hospital(username='another')


def test_weak_password_is_rejected():
    with pytest.raises(ValidationError):
        svc.register_doctor(
            username='drweak', password='123', email='w@example.com', name='Weak Doctor',
            medical_license_number='LIC-WEAK',
        )


def test_profile_edit_requires_approval(make_doctor, doctor):
    pending = make_doctor(status=DoctorStatus.PENDING_SUPER_ADMIN)
    with pytest.raises(DoctorNotApproved):
        svc.update_doctor_profile(pending.user, {'bio': 'hello'})
    updated = svc.update_doctor_profile(doctor.user, {'bio': 'Cardiologist', 'experience_years': 12})
    assert updated.bio == 'Cardiologist'
    with pytest.raises(ValidationError):
        svc.update_doctor_profile(doctor.user, {'status': 'approved'})


def test_approval_log_is_append_only(super_admin):
    doctor = _register_doctor()
    entry = ApprovalLog.objects.get(target_id=doctor.pk)
    entry.reason = 'tampered'
    with pytest.raises(RuntimeError):
        entry.save()
    with pytest.raises(RuntimeError):
        entry.delete()


def test_pending_items_and_history(super_admin, hospital, hospital_admin):
    _register_hospital()
    independent = _register_doctor()
    affiliated = _register_doctor(username='draff', license_number='LIC-AFF', hospital_id=hospital.pk)

    platform = svc.pending_items(super_admin)
    assert [d['id'] for d in platform['doctors']] == [independent.pk]
    assert len(platform['hospitals']) == 1

    own = svc.pending_items(hospital_admin)
    assert [d['id'] for d in own['doctors']] == [affiliated.pk]

    history = approval_history('doctor', independent.pk)
    assert history[0]['action'] == 'register' and history[0]['previousStatus'] is None


def test_hospital_cannot_reject_after_its_own_approval(hospital, hospital_admin, super_admin, make_doctor):
    doctor = make_doctor(status=DoctorStatus.PENDING_HOSPITAL_AND_SUPER_ADMIN, hospital=hospital)
    svc.approve_doctor_by_hospital(hospital_admin, hospital.pk, doctor.pk)
    with pytest.raises(InvalidTransition):
        svc.reject_doctor_by_hospital(hospital_admin, hospital.pk, doctor.pk, 'changed our mind')
    doctor.refresh_from_db()
    assert doctor.status == DoctorStatus.PENDING_SUPER_ADMIN
    # the platform still decides
    svc.reject_doctor(super_admin, doctor.pk, 'license could not be verified')
