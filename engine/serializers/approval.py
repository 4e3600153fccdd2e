import bleach
from rest_framework import serializers

from engine.models import ApprovalLog


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class HospitalRegisterSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    password = serializers.CharField(write_only=True)
    email = serializers.EmailField()
    name = serializers.CharField(max_length=255)
    registrationNumber = serializers.CharField(max_length=64)
    address = serializers.DictField(required=False)
    documents = serializers.ListField(child=serializers.CharField(max_length=512), required=False)
    departments = serializers.ListField(child=serializers.CharField(max_length=128), required=False)
    contactEmail = serializers.EmailField(required=False, allow_blank=True)
    contactPhone = serializers.CharField(max_length=32, required=False, allow_blank=True)

    def validate_name(self, v):
        v = _clean(v)
        if len(v) < 2:
            raise serializers.ValidationError('name must be at least 2 characters')
        return v


class HospitalUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False)
    address = serializers.DictField(required=False)
    registrationNumber = serializers.CharField(max_length=64, required=False)
    documents = serializers.ListField(child=serializers.CharField(max_length=512), required=False)
    departments = serializers.ListField(child=serializers.CharField(max_length=128), required=False)
    contactEmail = serializers.EmailField(required=False, allow_blank=True)
    contactPhone = serializers.CharField(max_length=32, required=False, allow_blank=True)

    FIELD_MAP = {
        'name': 'name',
        'address': 'address',
        'registrationNumber': 'registration_number',
        'documents': 'documents',
        'departments': 'departments',
        'contactEmail': 'contact_email',
        'contactPhone': 'contact_phone',
    }

    def to_changes(self) -> dict:
        return {self.FIELD_MAP[k]: v for k, v in self.validated_data.items()}


class DoctorFieldsSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    name = serializers.CharField(max_length=255)
    medicalLicenseNumber = serializers.CharField(max_length=64)
    specialization = serializers.ListField(child=serializers.CharField(max_length=128), required=False)
    qualifications = serializers.CharField(required=False, allow_blank=True)
    experienceYears = serializers.IntegerField(min_value=0, required=False)
    consultationFee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    followUpFee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)

    def validate_name(self, v):
        v = _clean(v)
        if len(v) < 2:
            raise serializers.ValidationError('name must be at least 2 characters')
        return v

    def service_kwargs(self) -> dict:
        d = self.validated_data
        return {
            'username': d['username'],
            'email': d['email'],
            'name': d['name'],
            'medical_license_number': d['medicalLicenseNumber'],
            'specialization': d.get('specialization'),
            'qualifications': d.get('qualifications', ''),
            'experience_years': d.get('experienceYears', 0),
            'consultation_fee': d.get('consultationFee', 0),
            'follow_up_fee': d.get('followUpFee', 0),
            'phone': d.get('phone', ''),
        }


class DoctorRegisterSerializer(DoctorFieldsSerializer):
    password = serializers.CharField(write_only=True)
    hospitalId = serializers.IntegerField(min_value=1, required=False, allow_null=True)


class HospitalAddDoctorSerializer(DoctorFieldsSerializer):
    password = serializers.CharField(write_only=True, required=False, allow_blank=True)
    department = serializers.CharField(max_length=128, required=False, allow_blank=True)
    title = serializers.CharField(max_length=128, required=False, allow_blank=True)


class DoctorProfileSerializer(serializers.Serializer):
    specialization = serializers.ListField(child=serializers.CharField(max_length=128), required=False)
    qualifications = serializers.CharField(required=False, allow_blank=True)
    experienceYears = serializers.IntegerField(min_value=0, required=False)
    bio = serializers.CharField(required=False, allow_blank=True)
    consultationFee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    followUpFee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)

    FIELD_MAP = {
        'specialization': 'specialization',
        'qualifications': 'qualifications',
        'experienceYears': 'experience_years',
        'bio': 'bio',
        'consultationFee': 'consultation_fee',
        'followUpFee': 'follow_up_fee',
    }

    def to_changes(self) -> dict:
        return {self.FIELD_MAP[k]: v for k, v in self.validated_data.items()}


class ApproveSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000, required=False, allow_blank=True)


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000)


class ApprovalHistoryQuerySerializer(serializers.Serializer):
    targetType = serializers.ChoiceField(choices=[ApprovalLog.TARGET_DOCTOR, ApprovalLog.TARGET_HOSPITAL])
    targetId = serializers.IntegerField(min_value=1)
