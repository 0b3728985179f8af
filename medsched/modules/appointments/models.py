from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, ForeignKey, Index
from medsched.core.base import Base, TimestampedMixin

class Appointment(Base, TimestampedMixin):
    doctor_id: Mapped[str] = mapped_column(ForeignKey("doctor.id"))
    patient_id: Mapped[str] = mapped_column(ForeignKey("patient.id"))

    # Scheduling: single implicit timezone, half-open [start, end)
    date: Mapped[str] = mapped_column(String(10))   # YYYY-MM-DD
    start: Mapped[str] = mapped_column(String(5))   # HH:MM
    end: Mapped[str] = mapped_column(String(5))     # HH:MM

    type: Mapped[str] = mapped_column(String(64))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="confirmed")  # confirmed, in-progress, canceled

    __table_args__ = (Index("ix_appointment_doctor_date", "doctor_id", "date"),)
