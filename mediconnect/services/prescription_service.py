"""Prescription service."""

from uuid import UUID

import structlog
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.core.exceptions import ForbiddenException, NotFoundException
from mediconnect.models.appointments import appointments
from mediconnect.models.prescriptions import prescriptions
from mediconnect.schemas.prescriptions import PrescriptionCreate, PrescriptionResponse
from mediconnect.services.doctor_service import DoctorService

logger = structlog.get_logger(__name__)


class PrescriptionService:
    """Doctor-authored prescriptions attached to appointments."""

    @staticmethod
    async def create_prescription(
        db: AsyncSession,
        user: dict,
        data: PrescriptionCreate,
    ) -> PrescriptionResponse:
        """
        Write a prescription for one of the caller's appointments.

        Doctor and patient are taken from the appointment, not the request.

        Raises:
            ForbiddenException: If the caller is not the appointment's doctor
            NotFoundException: If the appointment does not exist
        """
        if user["role"] != "doctor":
            raise ForbiddenException("Only doctors can create prescriptions")

        doctor = await DoctorService.get_doctor_by_user_id(db, user["id"])
        if not doctor:
            raise ForbiddenException("Doctor profile not found")

        result = await db.execute(select(appointments).where(appointments.c.id == data.appointment_id))
        appointment = result.mappings().first()
        if not appointment:
            raise NotFoundException("Appointment not found")

        if appointment["doctor_id"] != doctor["id"]:
            raise ForbiddenException("Not authorized to prescribe for this appointment")

        result = await db.execute(
            insert(prescriptions)
            .values(
                appointment_id=appointment["id"],
                doctor_id=doctor["id"],
                patient_id=appointment["patient_id"],
                diagnosis=data.diagnosis,
                medications=[med.model_dump() for med in data.medications],
                instructions=data.instructions,
                doctor_notes=data.doctor_notes,
                pdf_url=data.pdf_url,
            )
            .returning(prescriptions)
        )
        row = dict(result.mappings().one())
        await db.commit()

        logger.info(
            "prescription_created",
            prescription_id=str(row["id"]),
            appointment_id=str(appointment["id"]),
        )

        return PrescriptionResponse.model_validate(row)

    @staticmethod
    async def latest_for_appointment(db: AsyncSession, appointment_id: UUID) -> dict | None:
        """Most recent prescription written for an appointment."""
        result = await db.execute(
            select(prescriptions)
            .where(prescriptions.c.appointment_id == appointment_id)
            .order_by(prescriptions.c.created_at.desc())
            .limit(1)
        )
        row = result.mappings().first()
        return dict(row) if row else None

    @staticmethod
    async def list_for_user(db: AsyncSession, user: dict) -> list[PrescriptionResponse]:
        """Prescriptions the caller wrote (doctor) or received (patient); all for admins."""
        stmt = select(prescriptions).order_by(prescriptions.c.created_at.desc())

        if user["role"] == "patient":
            stmt = stmt.where(prescriptions.c.patient_id == user["id"])
        elif user["role"] == "doctor":
            doctor = await DoctorService.get_doctor_by_user_id(db, user["id"])
            if not doctor:
                return []
            stmt = stmt.where(prescriptions.c.doctor_id == doctor["id"])

        result = await db.execute(stmt)
        return [PrescriptionResponse.model_validate(dict(row)) for row in result.mappings().all()]

    @staticmethod
    async def list_for_appointment(
        db: AsyncSession,
        user: dict,
        appointment_id: UUID,
    ) -> list[PrescriptionResponse]:
        """
        Prescriptions for one appointment, visible to its patient, doctor and admins.

        Raises:
            NotFoundException: If the appointment does not exist
            ForbiddenException: If the caller is not a party to it
        """
        result = await db.execute(select(appointments).where(appointments.c.id == appointment_id))
        appointment = result.mappings().first()
        if not appointment:
            raise NotFoundException("Appointment not found")

        if user["role"] != "admin" and appointment["patient_id"] != user["id"]:
            doctor = await DoctorService.get_doctor_by_user_id(db, user["id"])
            if not doctor or doctor["id"] != appointment["doctor_id"]:
                raise ForbiddenException("Access denied to this appointment")

        result = await db.execute(
            select(prescriptions)
            .where(prescriptions.c.appointment_id == appointment_id)
            .order_by(prescriptions.c.created_at.desc())
        )
        return [PrescriptionResponse.model_validate(dict(row)) for row in result.mappings().all()]
