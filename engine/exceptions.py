"""
Domain errors raised by the engine services and the API exception handler.

Every domain failure is an :class:`EngineError`, which is a DRF
``APIException`` so views can let it propagate.  ``kind`` names the broad
category the caller reacts to; ``default_code`` names the specific rule.
"""
import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class EngineError(APIException):
    kind = 'EngineError'
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'request could not be completed'
    default_code = 'engine_error'


class NotFound(EngineError):
    kind = 'NotFound'
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'not found'
    default_code = 'not_found'


class PreconditionFailed(EngineError):
    kind = 'PreconditionFailed'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'precondition failed'
    default_code = 'precondition_failed'


class SlotUnavailable(EngineError):
    kind = 'SlotUnavailable'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'this slot is no longer available'
    default_code = 'slot_unavailable'


class InvalidTransition(EngineError):
    kind = 'InvalidTransition'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'invalid status transition'
    default_code = 'invalid_transition'


class ValidationError(EngineError):
    kind = 'ValidationError'
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'invalid request'
    default_code = 'validation_error'


class Forbidden(EngineError):
    kind = 'Forbidden'
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'forbidden'
    default_code = 'forbidden'


class DoctorNotFound(NotFound):
    default_detail = 'doctor not found'
    default_code = 'doctor_not_found'


class HospitalNotFound(NotFound):
    default_detail = 'hospital not found'
    default_code = 'hospital_not_found'


class ChamberNotFound(NotFound):
    default_detail = 'chamber not found'
    default_code = 'chamber_not_found'


class AppointmentNotFound(NotFound):
    default_detail = 'appointment not found'
    default_code = 'appointment_not_found'


class NoAvailabilityConfigured(NotFound):
    default_detail = 'doctor has no schedule or serial settings'
    default_code = 'no_availability_configured'


class DoctorNotApproved(PreconditionFailed):
    default_detail = 'doctor is not approved'
    default_code = 'doctor_not_approved'


class HospitalNotApproved(PreconditionFailed):
    default_detail = 'hospital is not approved'
    default_code = 'hospital_not_approved'


class CriticalFieldLocked(PreconditionFailed):
    default_detail = 'field cannot be changed after approval'
    default_code = 'critical_field_locked'


class InvalidDate(ValidationError):
    default_detail = 'date must be in YYYY-MM-DD format'
    default_code = 'invalid_date'


class OddSerialNumber(ValidationError):
    default_detail = 'odd serial numbers are reserved for walk-in patients'
    default_code = 'odd_serial_number'


class SerialOutOfRange(ValidationError):
    default_detail = 'serial number is out of range'
    default_code = 'serial_out_of_range'


class SlotNotOffered(ValidationError):
    default_detail = 'requested time is not a bookable slot'
    default_code = 'slot_not_offered'


class DuplicateRegistration(ValidationError):
    default_detail = 'already registered'
    default_code = 'duplicate_registration'


class ReservationReleaseFailed(EngineError):
    kind = 'ReservationReleaseFailed'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'reservation could not be released'
    default_code = 'reservation_release_failed'


def api_exception_handler(exc, context):
    if isinstance(exc, EngineError):
        return Response(
            {'ok': False, 'error': {'kind': exc.kind, 'code': exc.default_code, 'message': str(exc.detail)}},
            status=exc.status_code,
        )
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled API error in %s', context.get('view'))
        return Response({'ok': False, 'error': {'kind': 'ServerError', 'code': 'server_error', 'message': str(exc)}},
                        status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    return Response({'ok': False, 'error': {'kind': 'RequestError', 'code': 'api_error', 'message': detail}},
                    status=resp.status_code)
