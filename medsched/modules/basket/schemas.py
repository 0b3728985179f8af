import datetime as dt
from pydantic import BaseModel, Field
from medsched.modules.appointments.schemas import AppointmentCreate, AppointmentOut

class BasketItem(BaseModel):
    id: str
    appointment_id: str
    added_at: dt.datetime

class BasketAdd(BaseModel):
    doctor_id: str
    date: dt.date
    start: str
    end: str
    type: str = Field(..., min_length=1, max_length=64)
    description: str | None = None

    def for_patient(self, patient_id: str) -> AppointmentCreate:
        return AppointmentCreate(patient_id=patient_id, **self.model_dump())

class BasketItemOut(BaseModel):
    id: str
    appointment_id: str
    added_at: dt.datetime
    expires_in: str  # "MM:SS"
    appointment: AppointmentOut | None = None

class CheckoutRequest(BaseModel):
    # outcome reported by the payment collaborator; the charge itself happens elsewhere
    paid: bool
    reference: str | None = None

class CheckoutResult(BaseModel):
    paid: bool
    confirmed: list[str] = Field(default_factory=list)
    expired: list[str] = Field(default_factory=list)
    message: str
