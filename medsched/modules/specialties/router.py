from fastapi import APIRouter, Depends, HTTPException
from medsched.core.security import get_principal, require_roles, Principal
from medsched.platform.provider_registry import registry
from medsched.platform.ports.record_store import RecordStorePort
from medsched.modules.specialties.schemas import SpecialtyCreate, SpecialtyUpdate, SpecialtyOut
from medsched.modules.specialties.service import SpecialtyService

router = APIRouter()

def svc(store: RecordStorePort = Depends(registry.record_store)) -> SpecialtyService:
    return SpecialtyService(store)

def _raise(err: str | None):
    if err == "not_found":
        raise HTTPException(404, "Specialty not found")
    if err == "duplicate_name":
        raise HTTPException(409, "A specialty with this name already exists")
    if err == "in_use":
        raise HTTPException(409, "Specialty is still assigned to doctors")

@router.post("", response_model=SpecialtyOut, status_code=201, dependencies=[Depends(require_roles())])
async def create_specialty(payload: SpecialtyCreate, service: SpecialtyService = Depends(svc)):
    obj, err = await service.create(payload)
    _raise(err)
    return obj

@router.get("", response_model=list[SpecialtyOut])
async def list_specialties(principal: Principal = Depends(get_principal), service: SpecialtyService = Depends(svc)):
    return await service.list()

@router.get("/{specialty_id}", response_model=SpecialtyOut)
async def get_specialty(specialty_id: str, principal: Principal = Depends(get_principal), service: SpecialtyService = Depends(svc)):
    obj = await service.get(specialty_id)
    if not obj:
        raise HTTPException(404, "Specialty not found")
    return obj

@router.patch("/{specialty_id}", response_model=SpecialtyOut, dependencies=[Depends(require_roles())])
async def update_specialty(specialty_id: str, payload: SpecialtyUpdate, service: SpecialtyService = Depends(svc)):
    obj, err = await service.update(specialty_id, payload)
    _raise(err)
    return obj

@router.delete("/{specialty_id}", status_code=204, dependencies=[Depends(require_roles())])
async def delete_specialty(specialty_id: str, service: SpecialtyService = Depends(svc)):
    ok, err = await service.delete(specialty_id)
    _raise(err)
    return
