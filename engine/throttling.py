"""Rate limits for the write-heavy public endpoints."""
from rest_framework.throttling import AnonRateThrottle, UserRateThrottle


class BookingRateThrottle(UserRateThrottle):
    scope = 'booking'


class RegistrationRateThrottle(AnonRateThrottle):
    scope = 'registration'
