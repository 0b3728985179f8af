from pydantic import BaseModel, Field

class SpecialtyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    color: str = Field(..., min_length=1, max_length=32)

class SpecialtyUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    color: str | None = Field(default=None, min_length=1, max_length=32)

class SpecialtyOut(BaseModel):
    id: str
    name: str
    color: str
