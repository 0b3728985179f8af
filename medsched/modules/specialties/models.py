from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, UniqueConstraint
from medsched.core.base import Base, TimestampedMixin

class Specialty(Base, TimestampedMixin):
    name: Mapped[str] = mapped_column(String(120))
    color: Mapped[str] = mapped_column(String(32))  # display only
    __table_args__ = (UniqueConstraint("name", name="uq_specialty_name"),)
