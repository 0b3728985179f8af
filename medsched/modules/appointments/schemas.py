import datetime as dt
from pydantic import BaseModel, Field, field_validator
from medsched.modules.appointments.lifecycle import AppointmentStatus
from medsched.modules.scheduling.timeutils import normalize_time

# ---- Appointments ----

class AppointmentCreate(BaseModel):
    doctor_id: str
    patient_id: str
    date: dt.date
    start: str
    end: str
    type: str = Field(..., min_length=1, max_length=64)
    description: str | None = None

    @field_validator("start", "end")
    @classmethod
    def _hhmm(cls, v: str) -> str:
        return normalize_time(v)

class AppointmentUpdate(BaseModel):
    # partial edit; status changes go through cancel/confirm, never through edit
    doctor_id: str | None = None
    date: dt.date | None = None
    start: str | None = None
    end: str | None = None
    type: str | None = Field(default=None, min_length=1, max_length=64)
    description: str | None = None

    @field_validator("start", "end")
    @classmethod
    def _hhmm(cls, v: str | None) -> str | None:
        return normalize_time(v) if v is not None else None

class AppointmentOut(BaseModel):
    id: str
    doctor_id: str
    patient_id: str
    date: dt.date
    start: str
    end: str
    type: str
    description: str | None = None
    status: AppointmentStatus

class BatchCancel(BaseModel):
    appointment_ids: list[str] = Field(..., min_length=1)
