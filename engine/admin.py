"""
Django admin registrations for the engine models.

Approval state is read-only here: it only changes through the approval
services, which write the audit trail. The trail itself is append-only.
"""

from django.contrib import admin

from .models import (
    Appointment,
    AppointmentTransition,
    ApprovalLog,
    Chamber,
    Doctor,
    Hospital,
    HospitalDoctor,
    Notification,
    Schedule,
    SerialSettings,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'is_active', 'is_staff', 'is_superuser')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'first_name', 'last_name', 'email')


@admin.register(Hospital)
class HospitalAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'registration_number', 'status', 'approved_at', 'created_at')
    list_filter = ('status',)
    search_fields = ('name', 'registration_number')
    filter_horizontal = ('admins',)
    readonly_fields = ('status', 'rejection_reason', 'approved_at')

    def get_readonly_fields(self, request, obj=None):
        fields = super().get_readonly_fields(request, obj)
        if obj is not None and obj.is_approved:
            return (*fields, *Hospital.CRITICAL_FIELDS)
        return fields


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'medical_license_number', 'hospital', 'status', 'created_at')
    list_filter = ('status', 'hospital')
    search_fields = ('name', 'medical_license_number', 'user__username')
    readonly_fields = ('status', 'rejection_reason')


@admin.register(HospitalDoctor)
class HospitalDoctorAdmin(admin.ModelAdmin):
    list_display = ('hospital', 'doctor', 'department', 'title', 'joined_at')
    search_fields = ('hospital__name', 'doctor__name')


@admin.register(Chamber)
class ChamberAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'doctor', 'hospital', 'session_duration', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name', 'doctor__name')


@admin.register(Schedule)
class ScheduleAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'chamber', 'day_of_week', 'valid_from', 'valid_until', 'is_active')
    list_filter = ('day_of_week', 'is_active')


@admin.register(SerialSettings)
class SerialSettingsAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'hospital', 'total_serials_per_day', 'start_time', 'end_time', 'is_active')
    list_filter = ('is_active',)


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('appointment_number', 'patient', 'doctor', 'appointment_date', 'start_time',
                    'serial_number', 'status')
    list_filter = ('status', 'booking_type', 'appointment_date')
    search_fields = ('appointment_number', 'patient__username', 'doctor__name')


@admin.register(AppointmentTransition)
class AppointmentTransitionAdmin(admin.ModelAdmin):
    list_display = ('appointment', 'from_status', 'to_status', 'operator', 'timestamp')
    list_filter = ('to_status',)
    search_fields = ('appointment__appointment_number', 'operator__username')


@admin.register(ApprovalLog)
class ApprovalLogAdmin(admin.ModelAdmin):
    list_display = ('target_type', 'target_id', 'action', 'previous_status', 'new_status', 'actor', 'timestamp')
    list_filter = ('target_type', 'action')
    search_fields = ('target_id', 'actor__username')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('recipient', 'type', 'title', 'is_read', 'created_at')
    list_filter = ('type', 'is_read')
    search_fields = ('recipient__username', 'title')
