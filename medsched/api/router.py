from fastapi import APIRouter
from medsched.modules.doctors.router import router as doctors_router
from medsched.modules.patients.router import router as patients_router
from medsched.modules.specialties.router import router as specialties_router
from medsched.modules.appointments.router import router as appointments_router
from medsched.modules.basket.router import router as basket_router

api_router = APIRouter()
api_router.include_router(doctors_router, prefix="/doctors", tags=["doctors"])
api_router.include_router(patients_router, prefix="/patients", tags=["patients"])
api_router.include_router(basket_router, prefix="/patients", tags=["basket"])
api_router.include_router(specialties_router, prefix="/specialties", tags=["specialties"])
api_router.include_router(appointments_router, prefix="/appointments", tags=["appointments"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
