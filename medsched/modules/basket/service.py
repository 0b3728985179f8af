from __future__ import annotations
import asyncio
import logging
from functools import partial
from medsched.core.config import settings
from medsched.platform.provider_registry import registry
from medsched.platform.ports.record_store import RecordStorePort
from medsched.modules.appointments.service import AppointmentService
from medsched.modules.basket.engine import (
    EXPIRED, RELEASE_FAILED, REMOVED, ReservationEngine, format_countdown,
)
from medsched.modules.basket.schemas import BasketAdd, BasketItem, BasketItemOut, CheckoutRequest, CheckoutResult
from medsched.modules.events.publisher import (
    BASKET_CHECKED_OUT, BASKET_ITEM_ADDED, BASKET_ITEM_EXPIRED, BASKET_ITEM_REMOVED, BASKET_RELEASE_FAILED,
    publish_event,
)

log = logging.getLogger(__name__)

_EVENTS = {
    EXPIRED: BASKET_ITEM_EXPIRED,
    REMOVED: BASKET_ITEM_REMOVED,
    RELEASE_FAILED: BASKET_RELEASE_FAILED,
}

class BasketRegistry:
    """One reservation engine per patient, owned by the application instance and dropped once empty."""

    def __init__(self, hold_seconds: float | None = None, retry_seconds: float | None = None,
                 tick_seconds: float | None = None, open_store=None):
        self.hold_seconds = hold_seconds or settings.BASKET_HOLD_SECONDS
        self.retry_seconds = retry_seconds or settings.BASKET_RETRY_SECONDS
        self.tick_seconds = tick_seconds or settings.BASKET_TICK_SECONDS
        self._open_store = open_store or registry.open_store
        self.engines: dict[str, ReservationEngine] = {}

    def get(self, patient_id: str) -> ReservationEngine | None:
        return self.engines.get(patient_id)

    def engine(self, patient_id: str) -> ReservationEngine:
        eng = self.engines.get(patient_id)
        if eng is None:
            eng = ReservationEngine(
                release=self._release,
                confirm=self._confirm,
                hold_seconds=self.hold_seconds,
                retry_seconds=self.retry_seconds,
                notify=partial(self._notify, patient_id),
            )
            self.engines[patient_id] = eng
        return eng

    # collaborators run outside any request, so each opens its own store
    async def _release(self, appointment_id: str):
        async with self._open_store() as store:
            obj, err = await AppointmentService(store).release_hold(appointment_id)
        if err:
            # the hold is no longer ours to release (deleted or confirmed elsewhere)
            log.warning(f"hold {appointment_id} not released: {err}")

    async def _confirm(self, appointment_ids: list[str]) -> list[str]:
        async with self._open_store() as store:
            confirmed, skipped = await AppointmentService(store).confirm_held(appointment_ids)
        if skipped:
            log.warning(f"checkout skipped appointments that are no longer held: {skipped}")
        return skipped

    async def _notify(self, patient_id: str, kind: str, item: BasketItem, message: str):
        event_type = _EVENTS.get(kind)
        if event_type is not None:
            await publish_event(event_type, "basket_item", item.id,
                                {"patient_id": patient_id, "appointment_id": item.appointment_id}, message=message)
        self._prune(patient_id)

    def _prune(self, patient_id: str):
        eng = self.engines.get(patient_id)
        if eng is not None and not eng.items:
            eng.close()
            del self.engines[patient_id]

    async def tick(self) -> int:
        released = 0
        for eng in list(self.engines.values()):
            released += len(await eng.tick())
        return released

    async def run_ticker(self):
        """Polling safety net next to the per-item timers; claims keep releases single."""
        log.info(f"Basket ticker started (every {self.tick_seconds}s)")
        try:
            while True:
                await asyncio.sleep(self.tick_seconds)
                try:
                    await self.tick()
                except Exception:
                    log.exception("Basket tick failed")
        except asyncio.CancelledError:
            log.info("Basket ticker cancelled; shutting down")
            raise

    def close(self):
        for eng in self.engines.values():
            eng.close()


class BasketService:
    def __init__(self, store: RecordStorePort, baskets: BasketRegistry):
        self.store = store
        self.baskets = baskets
        self.appointments = AppointmentService(store)

    def _out(self, eng: ReservationEngine, item: BasketItem, appointment=None) -> BasketItemOut:
        return BasketItemOut(
            id=item.id, appointment_id=item.appointment_id, added_at=item.added_at,
            expires_in=format_countdown(eng.remaining(item.id)), appointment=appointment,
        )

    async def add(self, patient_id: str, payload: BasketAdd):
        appt, err = await self.appointments.hold(payload.for_patient(patient_id))
        if err:
            return appt, err
        eng = self.baskets.engine(patient_id)
        try:
            item = eng.add(appt.id)
        except Exception:
            # no basket item, no hold
            await self.appointments.cancel(appt.id)
            raise
        await publish_event(BASKET_ITEM_ADDED, "basket_item", item.id,
                            {"patient_id": patient_id, "appointment_id": appt.id},
                            message="Appointment added to your basket.")
        return self._out(eng, item, appt), None

    async def list(self, patient_id: str) -> list[BasketItemOut]:
        eng = self.baskets.get(patient_id)
        if eng is None:
            return []
        out = []
        for item in list(eng.items.values()):
            appt = await self.appointments.get(item.appointment_id)
            if item.id in eng.items:
                out.append(self._out(eng, item, appt))
        return out

    async def remove(self, patient_id: str, item_id: str):
        eng = self.baskets.get(patient_id)
        if eng is None or item_id not in eng.items:
            return False, "not_found"
        if not await eng.remove(item_id):
            return False, "busy"
        return True, None

    async def checkout(self, patient_id: str, payload: CheckoutRequest) -> CheckoutResult:
        eng = self.baskets.get(patient_id)
        if eng is None:
            return CheckoutResult(paid=False, message="Basket is empty.")

        async def charge() -> bool:
            return payload.paid

        result = await eng.checkout(charge)
        if result.paid:
            await publish_event(BASKET_CHECKED_OUT, "patient", patient_id,
                                {"confirmed": result.confirmed, "expired": result.expired, "reference": payload.reference},
                                message=result.message)
        return result
