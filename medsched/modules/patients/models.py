from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, JSON
from medsched.core.base import Base, TimestampedMixin

class Patient(Base, TimestampedMixin):
    name: Mapped[str] = mapped_column(String(200), index=True)
    gender: Mapped[str] = mapped_column(String(16))  # male, female, other
    age: Mapped[int] = mapped_column()
    # reverse index of appointment ids; the appointment row is the source of truth
    appointments: Mapped[list] = mapped_column(JSON, default=list)
