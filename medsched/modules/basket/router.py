from fastapi import APIRouter, Depends, HTTPException, Request
from medsched.core.security import require_roles
from medsched.platform.provider_registry import registry
from medsched.platform.ports.record_store import RecordStorePort
from medsched.modules.appointments.router import raise_for
from medsched.modules.basket.schemas import BasketAdd, BasketItemOut, CheckoutRequest, CheckoutResult
from medsched.modules.basket.service import BasketService

router = APIRouter()

def svc(request: Request, store: RecordStorePort = Depends(registry.record_store)) -> BasketService:
    return BasketService(store, request.app.state.baskets)

@router.get("/{patient_id}/basket", response_model=list[BasketItemOut], dependencies=[Depends(require_roles("patient"))])
async def get_basket(patient_id: str, service: BasketService = Depends(svc)):
    return await service.list(patient_id)

@router.post("/{patient_id}/basket", response_model=BasketItemOut, status_code=201, dependencies=[Depends(require_roles("patient"))])
async def add_to_basket(patient_id: str, payload: BasketAdd, service: BasketService = Depends(svc)):
    obj, err = await service.add(patient_id, payload)
    raise_for(obj, err)
    return obj

@router.delete("/{patient_id}/basket/{item_id}", status_code=204, dependencies=[Depends(require_roles("patient"))])
async def remove_from_basket(patient_id: str, item_id: str, service: BasketService = Depends(svc)):
    ok, err = await service.remove(patient_id, item_id)
    if err == "not_found":
        raise HTTPException(404, "Basket item not found")
    if err == "busy":
        raise HTTPException(409, "Basket item is already being released")
    return

@router.post("/{patient_id}/basket/checkout", response_model=CheckoutResult, dependencies=[Depends(require_roles("patient"))])
async def checkout(patient_id: str, payload: CheckoutRequest, service: BasketService = Depends(svc)):
    # declined payments come back as paid=false with the basket untouched
    return await service.checkout(patient_id, payload)
