import datetime as dt
from fastapi import APIRouter, Depends, HTTPException
from medsched.core.security import get_principal, require_roles, Principal
from medsched.platform.provider_registry import registry
from medsched.platform.ports.record_store import RecordStorePort
from medsched.modules.appointments.lifecycle import AppointmentStatus
from medsched.modules.appointments.schemas import AppointmentCreate, AppointmentUpdate, AppointmentOut, BatchCancel
from medsched.modules.appointments.service import AppointmentService

router = APIRouter()

def svc(store: RecordStorePort = Depends(registry.record_store)) -> AppointmentService:
    return AppointmentService(store)

def raise_for(obj, err: str | None):
    """Maps service error codes to HTTP errors; shared with the basket routes."""
    if err is None:
        return
    if err == "not_found":
        raise HTTPException(404, "Appointment not found")
    if err == "doctor_not_found":
        raise HTTPException(404, "Doctor not found")
    if err == "patient_not_found":
        raise HTTPException(404, "Patient not found")
    if err == "invalid_range":
        raise HTTPException(400, "Start time must be earlier than end time")
    if err == "slot_unavailable":
        raise HTTPException(409, {"code": err, "message": AppointmentService.conflict_message(obj)})
    if err in ("invalid_transition", "not_editable", "not_deletable"):
        current = obj.status.value if obj is not None and hasattr(obj, "status") else None
        raise HTTPException(409, {"code": err, "status": current})
    raise HTTPException(400, err)

@router.post("", response_model=AppointmentOut, status_code=201, dependencies=[Depends(require_roles("patient", "doctor"))])
async def book_appointment(payload: AppointmentCreate, service: AppointmentService = Depends(svc)):
    obj, err = await service.book(payload)
    raise_for(obj, err)
    return obj

@router.get("", response_model=list[AppointmentOut])
async def list_appointments(
    doctor_id: str | None = None,
    patient_id: str | None = None,
    date: dt.date | None = None,
    status: AppointmentStatus | None = None,
    principal: Principal = Depends(get_principal),
    service: AppointmentService = Depends(svc),
):
    return await service.list(doctor_id=doctor_id, patient_id=patient_id, date=date, status=status)

@router.post("/cancel", response_model=list[AppointmentOut], dependencies=[Depends(require_roles("patient", "doctor"))])
async def cancel_many(payload: BatchCancel, service: AppointmentService = Depends(svc)):
    objs, err = await service.cancel_many(payload.appointment_ids)
    raise_for(objs, err)
    return objs

@router.get("/{appt_id}", response_model=AppointmentOut)
async def get_appointment(appt_id: str, principal: Principal = Depends(get_principal), service: AppointmentService = Depends(svc)):
    obj = await service.get(appt_id)
    if not obj:
        raise HTTPException(404, "Appointment not found")
    return obj

@router.patch("/{appt_id}", response_model=AppointmentOut, dependencies=[Depends(require_roles("patient", "doctor"))])
async def update_appointment(appt_id: str, payload: AppointmentUpdate, service: AppointmentService = Depends(svc)):
    obj, err = await service.update(appt_id, payload)
    raise_for(obj, err)
    return obj

@router.post("/{appt_id}/cancel", response_model=AppointmentOut, dependencies=[Depends(require_roles("patient", "doctor"))])
async def cancel_appointment(appt_id: str, service: AppointmentService = Depends(svc)):
    obj, err = await service.cancel(appt_id)
    raise_for(obj, err)
    return obj

@router.delete("/{appt_id}", status_code=204, dependencies=[Depends(require_roles("doctor"))])
async def delete_appointment(appt_id: str, service: AppointmentService = Depends(svc)):
    obj, err = await service.delete(appt_id)
    raise_for(obj, err)
    return
