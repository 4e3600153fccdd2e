"""
Role based permission classes.

The role carried on the user is trusted as given; finer checks such as
"is this caller an administrator of that hospital" live in the services.
"""
from rest_framework.permissions import BasePermission

from engine.models import User


def _has_role(request, *roles) -> bool:
    user = getattr(request, "user", None)
    return bool(user and user.is_authenticated and getattr(user, "role", None) in roles)


class IsPatientRole(BasePermission):
    """Allow access only to users with the patient role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _has_role(request, User.ROLE_PATIENT)


class IsDoctorRole(BasePermission):
    """Allow access only to users with the doctor role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _has_role(request, User.ROLE_DOCTOR)


class IsHospitalAdminRole(BasePermission):
    """Hospital administrators, or the super admin acting for them."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _has_role(request, User.ROLE_HOSPITAL_ADMIN, User.ROLE_SUPER_ADMIN)


class IsSuperAdmin(BasePermission):
    """Only super admin."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _has_role(request, User.ROLE_SUPER_ADMIN)
