"""
Test suite for the Clinic Booking Service.

Contains unit tests for the booking core and integration tests for the API.
"""
import os
import tempfile

# Set environment for testing
os.environ["TESTING"] = "1"
os.environ.setdefault(
    "TEST_DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.gettempdir(), 'clinic_booking_test.db')}"
)
