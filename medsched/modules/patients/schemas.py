from typing import Literal
from pydantic import BaseModel, Field

Gender = Literal["male", "female", "other"]

class PatientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    gender: Gender
    age: int = Field(..., ge=0, le=150)

class PatientUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    gender: Gender | None = None
    age: int | None = Field(default=None, ge=0, le=150)

class PatientOut(BaseModel):
    id: str
    name: str
    gender: str
    age: int
    appointments: list[str] = Field(default_factory=list)

    class Config:
        from_attributes = True
