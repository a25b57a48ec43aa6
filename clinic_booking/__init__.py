"""
Clinic Booking Service

A FastAPI-based service that books patient/doctor appointments without
double-booking, enforcing per-doctor daily capacity and the appointment
status lifecycle.
"""

__version__ = "1.0.0"
