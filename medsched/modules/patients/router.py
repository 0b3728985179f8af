from fastapi import APIRouter, Depends, HTTPException, status
from medsched.core.security import get_principal, require_roles, Principal
from medsched.platform.provider_registry import registry
from medsched.platform.ports.record_store import RecordStorePort
from medsched.modules.patients.schemas import PatientCreate, PatientUpdate, PatientOut
from medsched.modules.patients.service import PatientService

router = APIRouter()

def svc(store: RecordStorePort = Depends(registry.record_store)) -> PatientService:
    return PatientService(store)

@router.post("", response_model=PatientOut, status_code=201, dependencies=[Depends(require_roles("patient"))])
async def create_patient(payload: PatientCreate, service: PatientService = Depends(svc)):
    return await service.create(payload)

@router.get("/{patient_id}", response_model=PatientOut)
async def get_patient(
    patient_id: str,
    principal: Principal = Depends(get_principal),
    service: PatientService = Depends(svc),
):
    obj = await service.get(patient_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    return obj

@router.get("", response_model=list[PatientOut], dependencies=[Depends(require_roles("doctor"))])
async def list_patients(service: PatientService = Depends(svc)):
    return await service.list()

@router.patch("/{patient_id}", response_model=PatientOut, dependencies=[Depends(require_roles("patient"))])
async def update_patient(patient_id: str, payload: PatientUpdate, service: PatientService = Depends(svc)):
    obj = await service.update(patient_id, payload)
    if not obj:
        raise HTTPException(status_code=404, detail="Patient not found")
    return obj

@router.delete("/{patient_id}", status_code=204, dependencies=[Depends(require_roles())])
async def delete_patient(patient_id: str, service: PatientService = Depends(svc)):
    ok, err = await service.delete(patient_id)
    if err == "not_found":
        raise HTTPException(status_code=404, detail="Patient not found")
    if err == "in_use":
        raise HTTPException(status_code=409, detail="Patient still has appointments")
    return
