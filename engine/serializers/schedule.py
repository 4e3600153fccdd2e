from rest_framework import serializers

TIME_RE = r'^([01]\d|2[0-3]):[0-5]\d$'


class TimeWindowSerializer(serializers.Serializer):
    start = serializers.RegexField(TIME_RE)
    end = serializers.RegexField(TIME_RE)


class ScheduleUpsertSerializer(serializers.Serializer):
    chamberId = serializers.IntegerField(min_value=1)
    dayOfWeek = serializers.IntegerField(min_value=0, max_value=6)
    timeSlots = TimeWindowSerializer(many=True)
    validFrom = serializers.DateField(required=False)
    validUntil = serializers.DateField(required=False, allow_null=True)
    isActive = serializers.BooleanField(required=False)


class SerialSettingsSerializer(serializers.Serializer):
    hospitalId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    chamberId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    totalSerialsPerDay = serializers.IntegerField(min_value=1, max_value=500)
    startTime = serializers.RegexField(TIME_RE)
    endTime = serializers.RegexField(TIME_RE)
    appointmentPrice = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    availableDays = serializers.ListField(child=serializers.IntegerField(min_value=0, max_value=6), required=False)
    isActive = serializers.BooleanField(required=False, default=True)
