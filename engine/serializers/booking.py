import bleach
from rest_framework import serializers

from engine.models import AppointmentStatus


class AvailabilityQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    chamberId = serializers.IntegerField(min_value=1, required=False)


class SerialsQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    hospitalId = serializers.IntegerField(min_value=1, required=False)


class BookAppointmentSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1)
    chamberId = serializers.IntegerField(min_value=1)
    appointmentDate = serializers.DateField()
    startTime = serializers.RegexField(r'^([01]\d|2[0-3]):[0-5]\d$')
    consultationType = serializers.ChoiceField(choices=['new', 'follow_up'], required=False, default='new')
    reason = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')

    def validate_reason(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class BookSerialSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1)
    serialNumber = serializers.IntegerField()
    appointmentDate = serializers.DateField()
    hospitalId = serializers.IntegerField(min_value=1, required=False)
    reason = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')


class CancelAppointmentSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000)


class AppointmentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['accepted', 'rejected', 'completed', 'no_show'])
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True)


class AttachRecordSerializer(serializers.Serializer):
    recordRef = serializers.CharField(max_length=128)


class AppointmentListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=AppointmentStatus.values, required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=100, required=False)


class DoctorAppointmentQuerySerializer(serializers.Serializer):
    filter = serializers.ChoiceField(
        choices=['all', 'today', 'upcoming', 'past', *AppointmentStatus.values], required=False
    )
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=100, required=False)


class SerialListQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
