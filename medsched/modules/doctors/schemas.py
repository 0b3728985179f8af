import datetime as dt
from pydantic import BaseModel, Field, field_validator, model_validator
from medsched.modules.scheduling.timeutils import WEEKDAYS, normalize_time

# ---- Availability ----

class TimeRange(BaseModel):
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _hhmm(cls, v: str) -> str:
        return normalize_time(v)

class RecurringAvailability(BaseModel):
    day: str
    start_date: dt.date
    end_date: dt.date
    time_ranges: list[TimeRange] = Field(default_factory=list)

    @field_validator("day")
    @classmethod
    def _weekday(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in WEEKDAYS:
            raise ValueError(f"day must be one of {', '.join(WEEKDAYS)}")
        return v

class OneTimeAvailability(BaseModel):
    date: dt.date
    time_ranges: list[TimeRange] = Field(default_factory=list)

class Absence(BaseModel):
    start_date: dt.date
    end_date: dt.date
    reason: str | None = None

class Availability(BaseModel):
    recurring: list[RecurringAvailability] = Field(default_factory=list)
    one_time_availabilities: list[OneTimeAvailability] = Field(default_factory=list)
    absences: list[Absence] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _none_lists(cls, data):
        # documents written by older clients may carry explicit nulls
        if isinstance(data, dict):
            return {k: (v if v is not None else []) for k, v in data.items()}
        return data

# ---- Doctors ----

class DoctorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=160)
    specialty: str = Field(..., min_length=1, max_length=120)
    availability: Availability = Field(default_factory=Availability)

class DoctorUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    specialty: str | None = Field(default=None, min_length=1, max_length=120)

class DoctorOut(BaseModel):
    id: str
    name: str
    specialty: str
    availability: Availability = Field(default_factory=Availability)

    @field_validator("availability", mode="before")
    @classmethod
    def _missing(cls, v):
        return v or {}

# ---- Calendar ----

class SlotOut(BaseModel):
    time: str
    is_taken: bool
    is_absent: bool
    is_one_time_available: bool
    is_recurring_available: bool
    state: str
    # the viewing patient already holds an appointment covering this slot
    is_own: bool = False

class DayOut(BaseModel):
    date: dt.date
    slots: list[SlotOut]
