"""
URL mappings for the booking & approval API.

Trailing slashes are deliberately omitted, matching ``APPEND_SLASH = False``.
"""
from django.urls import include, path

from .views import appointments, approvals, availability, health, notifications, schedules

urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Availability
    path('api/doctors/<int:doctor_id>/availability', availability.doctor_availability),
    path('api/doctors/<int:doctor_id>/serials', availability.doctor_serials),
    # Patient bookings
    path('api/appointments/book', appointments.book_appointment),
    path('api/serials/book', appointments.book_serial),
    path('api/appointments/my', appointments.my_appointments),
    path('api/appointments/<int:appointment_id>/cancel', appointments.cancel_appointment),
    # Doctor side
    path('api/doctor/appointments', appointments.doctor_appointments),
    path('api/doctor/appointments/<int:appointment_id>/status', appointments.update_appointment_status),
    path('api/doctor/appointments/<int:appointment_id>/record', appointments.attach_record),
    path('api/doctor/serial-list', appointments.serial_list),
    path('api/doctor/schedules', schedules.schedules),
    path('api/doctor/serial-settings', schedules.serial_settings),
    path('api/doctor/profile', approvals.doctor_profile),
    # Registration & hospital administration
    path('api/doctors/register', approvals.register_doctor),
    path('api/hospitals/register', approvals.register_hospital),
    path('api/hospitals/<int:hospital_id>/update', approvals.update_hospital),
    path('api/hospitals/<int:hospital_id>/doctors', approvals.add_hospital_doctor),
    path('api/hospitals/<int:hospital_id>/approve/doctor/<int:doctor_id>', approvals.hospital_approve_doctor),
    path('api/hospitals/<int:hospital_id>/reject/doctor/<int:doctor_id>', approvals.hospital_reject_doctor),
    # Platform administration
    path('api/admin/pending', approvals.pending),
    path('api/admin/approve/doctor/<int:doctor_id>', approvals.admin_approve_doctor),
    path('api/admin/reject/doctor/<int:doctor_id>', approvals.admin_reject_doctor),
    path('api/admin/approve/hospital/<int:hospital_id>', approvals.admin_approve_hospital),
    path('api/admin/reject/hospital/<int:hospital_id>', approvals.admin_reject_hospital),
    path('api/admin/approvals', approvals.approvals),
    # Notifications
    path('api/notifications', notifications.notifications),
    path('api/notifications/read', notifications.notifications_read),
]
