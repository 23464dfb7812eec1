"""API v1 router configuration."""

from fastapi import APIRouter

from mediconnect.api.v1.endpoints import (
    admin,
    appointments,
    auth,
    availability,
    doctors,
    health,
    messages,
    notifications,
    payments,
    prescriptions,
    users,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, tags=["Users"])
api_router.include_router(doctors.router, tags=["Doctors"])
api_router.include_router(availability.router, tags=["Availability"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(messages.router, tags=["Messages"])
api_router.include_router(payments.router, tags=["Payments"])
api_router.include_router(prescriptions.router, tags=["Prescriptions"])
api_router.include_router(notifications.router, tags=["Notifications"])
api_router.include_router(admin.router, tags=["Admin"])
