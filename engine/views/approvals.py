"""
Registration and approval endpoints.

Self-registration is anonymous.  Hospital-side decisions require a
hospital administrator; platform-side decisions require the super admin.
"""
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from engine.permissions import IsDoctorRole, IsHospitalAdminRole, IsSuperAdmin
from engine.serializers.approval import (
    ApprovalHistoryQuerySerializer,
    ApproveSerializer,
    DoctorProfileSerializer,
    DoctorRegisterSerializer,
    HospitalAddDoctorSerializer,
    HospitalRegisterSerializer,
    HospitalUpdateSerializer,
    RejectSerializer,
)
from engine.services import approvals as svc
from engine.services.audit import approval_history
from engine.throttling import RegistrationRateThrottle


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([RegistrationRateThrottle])
def register_hospital(request):
    s = HospitalRegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    hospital = svc.register_hospital(
        username=d['username'],
        password=d['password'],
        email=d['email'],
        name=d['name'],
        registration_number=d['registrationNumber'],
        address=d.get('address'),
        documents=d.get('documents'),
        departments=d.get('departments'),
        contact_email=d.get('contactEmail', ''),
        contact_phone=d.get('contactPhone', ''),
    )
    return Response({'ok': True, 'data': svc.format_hospital(hospital)}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([RegistrationRateThrottle])
def register_doctor(request):
    s = DoctorRegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doctor = svc.register_doctor(
        password=s.validated_data['password'],
        hospital_id=s.validated_data.get('hospitalId'),
        **s.service_kwargs(),
    )
    return Response({'ok': True, 'data': svc.format_doctor(doctor)}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsHospitalAdminRole])
def update_hospital(request, hospital_id: int):
    s = HospitalUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    hospital = svc.update_hospital(request.user, hospital_id, s.to_changes())
    return Response({'ok': True, 'data': svc.format_hospital(hospital)})


@api_view(['POST'])
@permission_classes([IsHospitalAdminRole])
def add_hospital_doctor(request, hospital_id: int):
    s = HospitalAddDoctorSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doctor, password = svc.add_doctor_by_hospital(
        request.user,
        hospital_id,
        password=s.validated_data.get('password') or None,
        department=s.validated_data.get('department', ''),
        title=s.validated_data.get('title', ''),
        **s.service_kwargs(),
    )
    data = svc.format_doctor(doctor)
    if not s.validated_data.get('password'):
        # generated; returned once so the hospital can hand it over
        data['initialPassword'] = password
    return Response({'ok': True, 'data': data}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsHospitalAdminRole])
def hospital_approve_doctor(request, hospital_id: int, doctor_id: int):
    doctor = svc.approve_doctor_by_hospital(request.user, hospital_id, doctor_id)
    return Response({'ok': True, 'data': svc.format_doctor(doctor)})


@api_view(['POST'])
@permission_classes([IsHospitalAdminRole])
def hospital_reject_doctor(request, hospital_id: int, doctor_id: int):
    s = RejectSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doctor = svc.reject_doctor_by_hospital(request.user, hospital_id, doctor_id, s.validated_data['reason'])
    return Response({'ok': True, 'data': svc.format_doctor(doctor)})


@api_view(['GET'])
@permission_classes([IsHospitalAdminRole])
def pending(request):
    return Response({'ok': True, 'data': svc.pending_items(request.user)})


@api_view(['POST'])
@permission_classes([IsSuperAdmin])
def admin_approve_doctor(request, doctor_id: int):
    s = ApproveSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doctor = svc.approve_doctor(request.user, doctor_id, s.validated_data.get('reason'))
    return Response({'ok': True, 'data': svc.format_doctor(doctor)})


@api_view(['POST'])
@permission_classes([IsSuperAdmin])
def admin_reject_doctor(request, doctor_id: int):
    s = RejectSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doctor = svc.reject_doctor(request.user, doctor_id, s.validated_data['reason'])
    return Response({'ok': True, 'data': svc.format_doctor(doctor)})


@api_view(['POST'])
@permission_classes([IsSuperAdmin])
def admin_approve_hospital(request, hospital_id: int):
    s = ApproveSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    hospital = svc.approve_hospital(request.user, hospital_id, s.validated_data.get('reason'))
    return Response({'ok': True, 'data': svc.format_hospital(hospital)})


@api_view(['POST'])
@permission_classes([IsSuperAdmin])
def admin_reject_hospital(request, hospital_id: int):
    s = RejectSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    hospital = svc.reject_hospital(request.user, hospital_id, s.validated_data['reason'])
    return Response({'ok': True, 'data': svc.format_hospital(hospital)})


@api_view(['GET'])
@permission_classes([IsSuperAdmin])
def approvals(request):
    q = ApprovalHistoryQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    data = approval_history(q.validated_data['targetType'], q.validated_data['targetId'])
    return Response({'ok': True, 'data': data})


@api_view(['POST'])
@permission_classes([IsDoctorRole])
def doctor_profile(request):
    s = DoctorProfileSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doctor = svc.update_doctor_profile(request.user, s.to_changes())
    return Response({'ok': True, 'data': svc.format_doctor(doctor)})
