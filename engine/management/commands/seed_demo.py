"""
Management command to populate the database with demo data.
"""
from datetime import time

from django.core.management.base import BaseCommand
from django.db import transaction
from rest_framework.authtoken.models import Token

from engine.models import (
    ApprovalLog,
    Chamber,
    Doctor,
    DoctorStatus,
    Hospital,
    HospitalStatus,
    Schedule,
    SerialSettings,
    User,
)
from engine.services.approvals import join_roster
from engine.services.audit import log_approval

DEMO_PASSWORD = 'Demo@12345'


class Command(BaseCommand):
    help = 'Populate database with demo hospitals, doctors and availability'

    def add_arguments(self, parser):
        parser.add_argument('--password', default=DEMO_PASSWORD, help='password for every demo account')

    @transaction.atomic
    def handle(self, *args, **options):
        password = options['password']
        self.stdout.write('Creating demo data...')

        super_admin = self.create_user('superadmin', User.ROLE_SUPER_ADMIN, password, is_staff=True)
        hospital_admin = self.create_user('cityadmin', User.ROLE_HOSPITAL_ADMIN, password)
        patient = self.create_user('patient1', User.ROLE_PATIENT, password)

        hospital = self.create_hospital(super_admin, hospital_admin)
        hospital_doctor = self.create_doctor('drrahman', 'Rahman', 'BMDC-1001', password, super_admin, hospital)
        independent = self.create_doctor('drkarim', 'Karim', 'BMDC-1002', password, super_admin, None)

        chamber = self.create_schedule(hospital_doctor, hospital)
        self.create_serial_settings(independent)

        for user in (super_admin, hospital_admin, patient, hospital_doctor.user, independent.user):
            token, _ = Token.objects.get_or_create(user=user)
            self.stdout.write(f'{user.username:<12} {user.role:<15} token={token.key}')
        self.stdout.write(f'chamber {chamber.pk} schedules Sunday to Thursday, 09:00-13:00')
        self.stdout.write(self.style.SUCCESS('Demo data created.'))

    def create_user(self, username, role, password, **extra):
        user, created = User.objects.get_or_create(username=username, defaults={'role': role, **extra})
        if created:
            user.set_password(password)
            user.save()
        return user

    def create_hospital(self, super_admin, hospital_admin):
        hospital, created = Hospital.objects.get_or_create(
            registration_number='DGHS-0001',
            defaults={
                'name': 'City General Hospital',
                'address': {'street': '12 Green Road', 'city': 'Dhaka', 'country': 'Bangladesh'},
                'departments': ['Medicine', 'Cardiology', 'Paediatrics'],
                'status': HospitalStatus.APPROVED,
            },
        )
        hospital.admins.add(hospital_admin)
        if created:
            log_approval(
                actor=super_admin, actor_role=super_admin.role, target_type=ApprovalLog.TARGET_HOSPITAL,
                target_id=hospital.pk, action=ApprovalLog.ACTION_APPROVE, previous_status=None,
                new_status=hospital.status, reason='demo data',
            )
            self.stdout.write(f'Created hospital: {hospital.name}')
        return hospital

    def create_doctor(self, username, name, license_number, password, super_admin, hospital):
        user = self.create_user(username, User.ROLE_DOCTOR, password)
        doctor, created = Doctor.objects.get_or_create(
            user=user,
            defaults={
                'name': name,
                'medical_license_number': license_number,
                'specialization': ['Medicine'],
                'consultation_fee': 800,
                'follow_up_fee': 500,
                'hospital': hospital,
                'status': DoctorStatus.APPROVED,
            },
        )
        if created:
            log_approval(
                actor=super_admin, actor_role=super_admin.role, target_type=ApprovalLog.TARGET_DOCTOR,
                target_id=doctor.pk, action=ApprovalLog.ACTION_APPROVE, previous_status=None,
                new_status=doctor.status, reason='demo data',
            )
            if hospital is not None:
                join_roster(hospital, doctor, 'Medicine', 'Consultant')
            self.stdout.write(f'Created doctor: Dr. {doctor.name}')
        return doctor

    def create_schedule(self, doctor, hospital):
        chamber, _ = Chamber.objects.get_or_create(
            doctor=doctor, name='Outpatient Room 3',
            defaults={'hospital': hospital, 'consultation_fee': 800, 'follow_up_fee': 500, 'session_duration': 15},
        )
        for day in range(0, 5):
            Schedule.objects.get_or_create(
                doctor=doctor, chamber=chamber, day_of_week=day,
                defaults={'time_slots': [{'start': '09:00', 'end': '13:00'}]},
            )
        return chamber

    def create_serial_settings(self, doctor):
        SerialSettings.objects.get_or_create(
            doctor=doctor, hospital=None,
            defaults={
                'total_serials_per_day': 20,
                'start_time': time(17, 0),
                'end_time': time(21, 0),
                'appointment_price': 600,
                'available_days': [0, 1, 2, 3, 4, 6],
            },
        )
        self.stdout.write(f'Created serial settings for Dr. {doctor.name}')
