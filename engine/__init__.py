"""Booking & approval engine for the MedBook backend.

This package contains the models, services, serializers, views and route
registrations behind appointment booking (schedule slots and numbered
serials) and the onboarding approval of doctors and hospitals.
"""
