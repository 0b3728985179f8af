import datetime as dt
from fastapi import APIRouter, Depends, HTTPException, status
from medsched.core.security import get_principal, require_roles, Principal
from medsched.platform.provider_registry import registry
from medsched.platform.ports.record_store import RecordStorePort
from medsched.modules.doctors.schemas import (
    DoctorCreate, DoctorUpdate, DoctorOut, DayOut,
    RecurringAvailability, OneTimeAvailability, Absence,
)
from medsched.modules.doctors.service import DoctorService

router = APIRouter()

def svc(store: RecordStorePort = Depends(registry.record_store)) -> DoctorService:
    return DoctorService(store)

def _availability_error(obj, err):
    if err == "not_found":
        raise HTTPException(status_code=404, detail="Doctor not found")
    if err == "invalid_availability":
        raise HTTPException(status_code=422, detail={"code": err, "messages": obj})

@router.post("", response_model=DoctorOut, status_code=201, dependencies=[Depends(require_roles("doctor"))])
async def create_doctor(payload: DoctorCreate, service: DoctorService = Depends(svc)):
    obj, err = await service.create(payload)
    _availability_error(obj, err)
    return obj

@router.get("", response_model=list[DoctorOut])
async def list_doctors(
    specialty: str | None = None,
    principal: Principal = Depends(get_principal),
    service: DoctorService = Depends(svc),
):
    return await service.list(specialty)

@router.get("/available", response_model=list[DoctorOut])
async def available_doctors(
    date: dt.date, time: str,
    specialty: str | None = None,
    principal: Principal = Depends(get_principal),
    service: DoctorService = Depends(svc),
):
    return await service.available(date, time, specialty)

@router.get("/{doctor_id}", response_model=DoctorOut)
async def get_doctor(doctor_id: str, principal: Principal = Depends(get_principal), service: DoctorService = Depends(svc)):
    obj = await service.get(doctor_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Doctor not found")
    return obj

@router.patch("/{doctor_id}", response_model=DoctorOut, dependencies=[Depends(require_roles("doctor"))])
async def update_doctor(doctor_id: str, payload: DoctorUpdate, service: DoctorService = Depends(svc)):
    obj = await service.update(doctor_id, payload)
    if not obj:
        raise HTTPException(status_code=404, detail="Doctor not found")
    return obj

@router.delete("/{doctor_id}", status_code=204, dependencies=[Depends(require_roles())])
async def delete_doctor(doctor_id: str, service: DoctorService = Depends(svc)):
    ok, err = await service.delete(doctor_id)
    if err == "not_found":
        raise HTTPException(status_code=404, detail="Doctor not found")
    if err == "in_use":
        raise HTTPException(status_code=409, detail="Doctor still has appointments")
    return

# Availability sub-lists: each PUT replaces one section and leaves the others alone

@router.put("/{doctor_id}/availability/recurring", response_model=DoctorOut, dependencies=[Depends(require_roles("doctor"))])
async def set_recurring(doctor_id: str, payload: list[RecurringAvailability], service: DoctorService = Depends(svc)):
    obj, err = await service.set_availability(doctor_id, "recurring", payload)
    _availability_error(obj, err)
    return obj

@router.put("/{doctor_id}/availability/one-time", response_model=DoctorOut, dependencies=[Depends(require_roles("doctor"))])
async def set_one_time(doctor_id: str, payload: list[OneTimeAvailability], service: DoctorService = Depends(svc)):
    obj, err = await service.set_availability(doctor_id, "one_time_availabilities", payload)
    _availability_error(obj, err)
    return obj

@router.put("/{doctor_id}/availability/absences", response_model=DoctorOut, dependencies=[Depends(require_roles("doctor"))])
async def set_absences(doctor_id: str, payload: list[Absence], service: DoctorService = Depends(svc)):
    obj, err = await service.set_availability(doctor_id, "absences", payload)
    _availability_error(obj, err)
    return obj

@router.get("/{doctor_id}/calendar", response_model=list[DayOut])
async def week_calendar(
    doctor_id: str, date: dt.date,
    patient_id: str | None = None,
    principal: Principal = Depends(get_principal),
    service: DoctorService = Depends(svc),
):
    days = await service.week(doctor_id, date, patient_id)
    if days is None:
        raise HTTPException(status_code=404, detail="Doctor not found")
    return days
