"""
Reservation engine.

A basket holds in-progress appointments for a limited time. Each item has an
expiry timer; when it fires (or when the patient removes the item) the held
appointment is released through the ``release`` collaborator. Checkout asks
the payment collaborator first and, only on success, confirms every held
appointment through ``confirm``. Appointments that stopped being held in the
meantime (canceled elsewhere, for instance) are reported as expired rather
than failing the paid checkout.

Release is at-most-once per item: the item is claimed synchronously before the
first await, so a timer firing during a manual removal (or the other way
round) finds the claim and does nothing. A release that fails gives the claim
back and re-arms a retry timer; the item stays in the basket.

Timers live in this process only. ``close`` cancels them without releasing, so
holds that were pending at shutdown stay in-progress in the store.
"""

import math
import time
import uuid
import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable

from medsched.core.errors import NotFound, RaceOnRelease
from medsched.modules.basket.schemas import BasketItem, CheckoutResult

log = logging.getLogger("basket.engine")

Release = Callable[[str], Awaitable[None]]
# answers the appointment ids it could not confirm because they are no longer held
Confirm = Callable[[list[str]], Awaitable[Iterable[str] | None]]
Charge = Callable[[], Awaitable[bool]]
Notify = Callable[[str, BasketItem, str], Awaitable[None]]

EXPIRED = "expired"
REMOVED = "removed"
RELEASE_FAILED = "release_failed"
CHECKED_OUT = "checked_out"


def format_countdown(seconds: float) -> str:
    left = max(0, math.ceil(seconds))
    return f"{left // 60:02d}:{left % 60:02d}"


class ReservationEngine:
    def __init__(
        self,
        release: Release,
        confirm: Confirm,
        hold_seconds: float = 600.0,
        retry_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        notify: Notify | None = None,
    ):
        if hold_seconds <= 0 or retry_seconds <= 0:
            raise ValueError("hold_seconds and retry_seconds must be positive")
        self._release_cb = release
        self._confirm_cb = confirm
        self._notify_cb = notify
        self.hold_seconds = hold_seconds
        self.retry_seconds = retry_seconds
        self.clock = clock

        self.items: dict[str, BasketItem] = {}
        self.timers: dict[str, asyncio.Task] = {}
        self._started: dict[str, float] = {}
        self._claimed: set[str] = set()

    # ---- timers ----

    def _arm(self, item_id: str, delay: float):
        self._disarm(item_id)
        self.timers[item_id] = asyncio.create_task(self._expire_after(item_id, max(0.0, delay)))

    def _disarm(self, item_id: str):
        task = self.timers.pop(item_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _expire_after(self, item_id: str, delay: float):
        await asyncio.sleep(delay)
        if self.timers.get(item_id) is asyncio.current_task():
            del self.timers[item_id]
        await self._release(item_id, EXPIRED)

    # ---- claims ----

    def _claim(self, item_id: str):
        # no await between the membership check and the add
        if item_id not in self.items or item_id in self._claimed:
            raise RaceOnRelease(f"basket item {item_id} is gone or already being released")
        self._claimed.add(item_id)

    async def _notify(self, kind: str, item: BasketItem, message: str):
        if self._notify_cb is not None:
            await self._notify_cb(kind, item, message)

    async def _release(self, item_id: str, reason: str) -> bool:
        try:
            self._claim(item_id)
        except RaceOnRelease:
            log.debug(f"release of {item_id} skipped ({reason}): already handled")
            return False
        self._disarm(item_id)
        item = self.items[item_id]
        try:
            await self._release_cb(item.appointment_id)
        except Exception as exc:
            self._claimed.discard(item_id)
            self._arm(item_id, self.retry_seconds)
            log.warning(f"release of {item_id} ({reason}) failed, retrying in {self.retry_seconds}s: {exc}")
            await self._notify(RELEASE_FAILED, item, "Could not release the held appointment; will retry.")
            if reason == REMOVED:
                raise
            return False

        self.items.pop(item_id, None)
        self._started.pop(item_id, None)
        self._claimed.discard(item_id)
        log.info(f"basket item {item_id} {reason}, appointment {item.appointment_id} released")
        if reason == EXPIRED:
            await self._notify(EXPIRED, item, "Basket item expired and has been removed.")
        else:
            await self._notify(REMOVED, item, "Basket item removed.")
        return True

    # ---- operations ----

    def add(self, appointment_id: str) -> BasketItem:
        """Tracks a held appointment and starts its expiry timer. Needs a running loop."""
        item = BasketItem(id=str(uuid.uuid4()), appointment_id=appointment_id, added_at=datetime.now(timezone.utc))
        self.items[item.id] = item
        self._started[item.id] = self.clock()
        self._arm(item.id, self.hold_seconds)
        return item

    def remaining(self, item_id: str) -> float:
        if item_id not in self._started:
            raise NotFound("basket item", item_id)
        return max(0.0, self.hold_seconds - (self.clock() - self._started[item_id]))

    def countdowns(self) -> dict[str, str]:
        return {item_id: format_countdown(self.remaining(item_id)) for item_id in self.items}

    async def tick(self) -> list[str]:
        """Releases every item whose time is up; for hosts that poll instead of relying on timers."""
        due = [i for i in list(self.items) if i not in self._claimed and self.remaining(i) <= 0]
        released = []
        for item_id in due:
            if await self._release(item_id, EXPIRED):
                released.append(item_id)
        return released

    async def remove(self, item_id: str) -> bool:
        """Manual removal. False when the item is gone or already being released."""
        return await self._release(item_id, REMOVED)

    async def checkout(self, charge: Charge) -> CheckoutResult:
        snapshot = {i: item.appointment_id for i, item in self.items.items() if i not in self._claimed}
        if not snapshot:
            return CheckoutResult(paid=False, message="Basket is empty.")

        paid = await charge()
        if not paid:
            log.info(f"checkout declined, {len(snapshot)} item(s) left untouched")
            return CheckoutResult(paid=False, message="Payment failed. Your basket is unchanged.")

        # items that expired or were removed while the payment was in flight are not confirmed
        live = [i for i in snapshot if i in self.items and i not in self._claimed]
        expired = [snapshot[i] for i in snapshot if i not in live]
        for item_id in live:
            self._claimed.add(item_id)
            self._disarm(item_id)
        appointment_ids = [snapshot[i] for i in live]
        try:
            skipped = set(await self._confirm_cb(appointment_ids) or ()) if appointment_ids else set()
        except Exception:
            for item_id in live:
                self._claimed.discard(item_id)
                self._arm(item_id, self.remaining(item_id))
            log.exception("checkout confirmation failed, holds re-armed")
            raise

        confirmed = []
        for item_id in live:
            item = self.items.pop(item_id)
            self._started.pop(item_id, None)
            self._claimed.discard(item_id)
            if item.appointment_id in skipped:
                expired.append(item.appointment_id)
                log.info(f"basket item {item_id} dropped at checkout, appointment {item.appointment_id} no longer held")
                await self._notify(EXPIRED, item, "Appointment was no longer held and has not been confirmed.")
                continue
            confirmed.append(item.appointment_id)
            await self._notify(CHECKED_OUT, item, "Appointment confirmed.")
        if not confirmed:
            message = "Payment received, but none of your held appointments were still available."
        else:
            message = "Checkout successful! Your appointments are confirmed."
        if expired:
            message += f" {len(expired)} item(s) expired before payment completed and were not confirmed."
        return CheckoutResult(paid=True, confirmed=confirmed, expired=expired, message=message)

    def close(self):
        """Cancels pending timers without releasing anything."""
        for task in self.timers.values():
            task.cancel()
        self.timers.clear()
