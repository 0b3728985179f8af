from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, JSON
from medsched.core.base import Base, TimestampedMixin

class Doctor(Base, TimestampedMixin):
    name: Mapped[str] = mapped_column(String(160), index=True)
    specialty: Mapped[str] = mapped_column(String(120), index=True)  # keyed by specialty name, not id
    # {"recurring": [...], "one_time_availabilities": [...], "absences": [...]}
    availability: Mapped[dict] = mapped_column(JSON, default=dict)
