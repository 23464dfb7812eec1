"""Database models."""

from mediconnect.models.appointments import appointments
from mediconnect.models.base import metadata
from mediconnect.models.doctors import availabilities, doctors
from mediconnect.models.messages import messages
from mediconnect.models.notifications import notifications
from mediconnect.models.payments import payments
from mediconnect.models.prescriptions import prescriptions
from mediconnect.models.users import user_sessions, users

__all__ = [
    "appointments",
    "availabilities",
    "doctors",
    "messages",
    "metadata",
    "notifications",
    "payments",
    "prescriptions",
    "user_sessions",
    "users",
]
