"""Plain-text bodies for transactional emails."""

from datetime import date

SIGNATURE = "Best regards,\nThe MediConnect Team"


def _long_date(value: date) -> str:
    return value.strftime("%A, %B %d, %Y")


def booking_patient(
    patient_name: str,
    doctor_name: str,
    appointment_date: date,
    appointment_time: str,
    appointment_type: str,
    amount: object,
) -> tuple[str, str]:
    """Subject and body for the patient's booking receipt."""
    emergency = appointment_type == "emergency"
    subject = f"Appointment {'Confirmed' if emergency else 'Booking Received'} - MediConnect"
    closing = (
        "Your emergency appointment is confirmed and payment has been processed."
        if emergency
        else "Please complete the payment to confirm your appointment."
    )
    text = (
        f"Dear {patient_name},\n\n"
        f"Your {appointment_type} appointment has been {'confirmed' if emergency else 'booked'}.\n\n"
        "Appointment Details:\n"
        f"- Doctor: {doctor_name}\n"
        f"- Date: {_long_date(appointment_date)}\n"
        f"- Time: {appointment_time}\n"
        f"- Type: {appointment_type}\n"
        f"- Amount: {amount}\n\n"
        f"{closing}\n\n{SIGNATURE}"
    )
    return subject, text


def booking_doctor(
    doctor_name: str,
    patient_name: str,
    appointment_date: date,
    appointment_time: str,
    appointment_type: str,
    amount: object,
) -> tuple[str, str]:
    """Subject and body telling a doctor about a new booking."""
    emergency = appointment_type == "emergency"
    subject = f"New {'Emergency ' if emergency else ''}Appointment Booking - MediConnect"
    closing = (
        "This is an emergency appointment and is already confirmed."
        if emergency
        else "The appointment is pending payment confirmation."
    )
    text = (
        f"Dear Dr. {doctor_name},\n\n"
        f"You have a new {appointment_type} appointment.\n\n"
        "Appointment Details:\n"
        f"- Patient: {patient_name}\n"
        f"- Date: {_long_date(appointment_date)}\n"
        f"- Time: {appointment_time}\n"
        f"- Amount: {amount}\n\n"
        f"{closing}\n\n{SIGNATURE}"
    )
    return subject, text


def confirmed_by_doctor(
    patient_name: str,
    doctor_name: str,
    appointment_date: date,
    appointment_time: str,
) -> tuple[str, str]:
    """Subject and body for a doctor-confirmed appointment."""
    text = (
        f"Dear {patient_name},\n\n"
        f"Dr. {doctor_name} has confirmed your appointment on "
        f"{_long_date(appointment_date)} at {appointment_time}.\n\n"
        "Chat and video are now available from your dashboard.\n\n"
        f"{SIGNATURE}"
    )
    return "Appointment Confirmed by Doctor - MediConnect", text


def cancelled(
    recipient_name: str,
    cancelled_by: str,
    appointment_date: date,
    appointment_time: str,
) -> tuple[str, str]:
    """Subject and body for a cancellation notice."""
    text = (
        f"Dear {recipient_name},\n\n"
        f"The appointment on {_long_date(appointment_date)} at {appointment_time} "
        f"has been cancelled by {cancelled_by}.\n\n"
        f"{SIGNATURE}"
    )
    return "Appointment Cancelled - MediConnect", text


def payment_patient(
    patient_name: str,
    doctor_name: str,
    appointment_date: date,
    appointment_time: str,
    amount: object,
) -> tuple[str, str]:
    """Subject and body for the patient's payment receipt."""
    text = (
        f"Dear {patient_name},\n\n"
        f"Your payment of {amount} has been successfully processed.\n\n"
        "Your appointment is now confirmed!\n\n"
        "Appointment Details:\n"
        f"- Doctor: {doctor_name}\n"
        f"- Date: {_long_date(appointment_date)}\n"
        f"- Time: {appointment_time}\n"
        f"- Amount Paid: {amount}\n\n"
        f"{SIGNATURE}"
    )
    return "Payment Successful - Appointment Confirmed - MediConnect", text


def payment_doctor(
    doctor_name: str,
    patient_name: str,
    appointment_date: date,
    appointment_time: str,
    amount: object,
) -> tuple[str, str]:
    """Subject and body telling a doctor a booking was paid."""
    text = (
        f"Dear Dr. {doctor_name},\n\n"
        f"Payment has been received for an appointment with {patient_name}.\n\n"
        "Appointment Details:\n"
        f"- Patient: {patient_name}\n"
        f"- Date: {_long_date(appointment_date)}\n"
        f"- Time: {appointment_time}\n"
        f"- Amount: {amount}\n\n"
        f"{SIGNATURE}"
    )
    return "Appointment Confirmed - Payment Received - MediConnect", text


def video_link(
    recipient_name: str,
    appointment_date: date,
    appointment_time: str,
    join_url: str,
) -> tuple[str, str]:
    """Subject and body carrying a video call link."""
    text = (
        f"Hello {recipient_name},\n\n"
        f"The video call for the appointment on {_long_date(appointment_date)} "
        f"at {appointment_time} is ready.\n\n"
        f"Join link: {join_url}\n\n"
        f"{SIGNATURE}"
    )
    return f"Video Call Link for {appointment_date.isoformat()}", text


def consultation_completed(
    patient_name: str,
    doctor_name: str,
    appointment_date: date,
    appointment_time: str,
    dashboard_url: str,
    prescription: dict | None = None,
) -> tuple[str, str]:
    """Subject and body for the completion notice, with the prescription if any."""
    lines = [
        f"Dear {patient_name},",
        "",
        f"Thank you for your consultation with Dr. {doctor_name} on "
        f"{_long_date(appointment_date)} at {appointment_time}.",
        "",
    ]

    if prescription:
        lines.append(f"Diagnosis: {prescription['diagnosis']}")
        medications = prescription.get("medications") or []
        if medications:
            lines.append("Medications:")
            for med in medications:
                details = ", ".join(
                    part for part in (med.get("dosage"), med.get("frequency"), med.get("duration")) if part
                )
                lines.append(f"- {med['name']}" + (f" ({details})" if details else ""))
        if prescription.get("instructions"):
            lines.append(f"Instructions: {prescription['instructions']}")
        if prescription.get("pdf_url"):
            lines.append(f"Prescription PDF: {prescription['pdf_url']}")
        lines.append("")

    lines.append(f"You can review the details on your dashboard: {dashboard_url}")
    lines.append("")
    lines.append(SIGNATURE)

    return "Consultation Completed - Thank You for Choosing MediConnect", "\n".join(lines)
