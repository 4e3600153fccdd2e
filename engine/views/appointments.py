"""
Appointment endpoints for patients and doctors.

Domain failures are raised by the services as ``EngineError`` and rendered
by the project exception handler, so the views only validate input and
shape the response.
"""
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.response import Response

from engine.permissions import IsDoctorRole, IsPatientRole
from engine.serializers.booking import (
    AppointmentListQuerySerializer,
    AppointmentStatusSerializer,
    AttachRecordSerializer,
    BookAppointmentSerializer,
    BookSerialSerializer,
    CancelAppointmentSerializer,
    DoctorAppointmentQuerySerializer,
    SerialListQuerySerializer,
)
from engine.services import appointments as svc
from engine.throttling import BookingRateThrottle


@api_view(['POST'])
@permission_classes([IsPatientRole])
@throttle_classes([BookingRateThrottle])
def book_appointment(request):
    s = BookAppointmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    appt = svc.book_appointment(
        request.user,
        d['doctorId'],
        d['chamberId'],
        d['appointmentDate'],
        d['startTime'],
        consultation_type=d['consultationType'],
        reason=d['reason'],
    )
    return Response({'ok': True, 'data': svc.format_appointment(appt)}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsPatientRole])
@throttle_classes([BookingRateThrottle])
def book_serial(request):
    s = BookSerialSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    appt = svc.book_serial(
        request.user,
        d['doctorId'],
        d['serialNumber'],
        d['appointmentDate'],
        reason=d['reason'],
        hospital_id=d.get('hospitalId'),
    )
    return Response({'ok': True, 'data': svc.format_appointment(appt)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsPatientRole])
def my_appointments(request):
    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    page, page_size = q.validated_data.get('page', 1), q.validated_data.get('pageSize', 20)
    data, total = svc.list_patient_appointments(
        request.user, status=q.validated_data.get('status'), page=page, page_size=page_size,
    )
    return Response({'ok': True, 'data': data, 'pagination': {'total': total, 'page': page, 'pageSize': page_size}})


@api_view(['POST'])
@permission_classes([IsPatientRole])
def cancel_appointment(request, appointment_id: int):
    s = CancelAppointmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = svc.cancel_appointment(request.user, appointment_id, s.validated_data['reason'])
    return Response({'ok': True, 'data': svc.format_appointment(appt)})


@api_view(['GET'])
@permission_classes([IsDoctorRole])
def doctor_appointments(request):
    q = DoctorAppointmentQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    page, page_size = q.validated_data.get('page', 1), q.validated_data.get('pageSize', 20)
    data, total = svc.list_doctor_appointments(
        request.user, filter_=q.validated_data.get('filter', 'all'), page=page, page_size=page_size,
    )
    return Response({'ok': True, 'data': data, 'pagination': {'total': total, 'page': page, 'pageSize': page_size}})


@api_view(['POST'])
@permission_classes([IsDoctorRole])
def update_appointment_status(request, appointment_id: int):
    s = AppointmentStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = svc.update_appointment_status(
        request.user, appointment_id, s.validated_data['status'], s.validated_data.get('notes'),
    )
    return Response({'ok': True, 'data': svc.format_appointment(appt)})


@api_view(['POST'])
@permission_classes([IsDoctorRole])
def attach_record(request, appointment_id: int):
    s = AttachRecordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = svc.attach_record(request.user, appointment_id, s.validated_data['recordRef'])
    return Response({'ok': True, 'data': svc.format_appointment(appt)})


@api_view(['GET'])
@permission_classes([IsDoctorRole])
def serial_list(request):
    q = SerialListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return Response({'ok': True, 'data': svc.daily_serial_list(request.user, q.validated_data.get('date'))})
