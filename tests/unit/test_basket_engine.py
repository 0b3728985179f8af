"""Tests for the reservation engine (basket holds)."""

import asyncio

import pytest

from medsched.core.errors import NotFound
from medsched.modules.basket.engine import EXPIRED, RELEASE_FAILED, REMOVED, ReservationEngine, format_countdown


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class Collaborators:
    """Release/confirm doubles that record calls."""

    def __init__(self):
        self.released: list[str] = []
        self.confirmed: list[list[str]] = []
        self.notified: list[tuple[str, str]] = []
        self.release_failures = 0
        self.confirm_fails = False
        self.no_longer_held: set[str] = set()
        self.gate: asyncio.Event | None = None

    async def release(self, appointment_id: str):
        if self.gate is not None:
            await self.gate.wait()
        if self.release_failures:
            self.release_failures -= 1
            raise RuntimeError("store unavailable")
        self.released.append(appointment_id)

    async def confirm(self, appointment_ids: list[str]):
        if self.confirm_fails:
            raise RuntimeError("store unavailable")
        self.confirmed.append(list(appointment_ids))
        return [i for i in appointment_ids if i in self.no_longer_held]

    async def notify(self, kind, item, message):
        self.notified.append((kind, item.appointment_id))


@pytest.fixture
def collab():
    return Collaborators()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def make_engine(collab, clock):
    engines = []

    def build(hold_seconds=600.0, retry_seconds=5.0, use_clock=True):
        kwargs = {"clock": clock} if use_clock else {}
        eng = ReservationEngine(collab.release, collab.confirm, hold_seconds=hold_seconds,
                                retry_seconds=retry_seconds, notify=collab.notify, **kwargs)
        engines.append(eng)
        return eng

    yield build
    for eng in engines:
        eng.close()


class TestCountdown:
    """Tests for remaining time and display countdowns."""

    def test_format(self):
        assert format_countdown(600) == "10:00"
        assert format_countdown(538.2) == "08:59"
        assert format_countdown(-3) == "00:00"

    async def test_remaining_tracks_clock(self, make_engine, clock):
        engine = make_engine()
        item = engine.add("appt-1")
        clock.now = 61.5
        assert engine.remaining(item.id) == pytest.approx(538.5)
        assert engine.countdowns() == {item.id: "08:59"}
        clock.now = 10_000
        assert engine.remaining(item.id) == 0.0

    async def test_remaining_unknown_item(self, make_engine):
        with pytest.raises(NotFound):
            make_engine().remaining("nope")

    def test_rejects_non_positive_hold(self, collab):
        with pytest.raises(ValueError):
            ReservationEngine(collab.release, collab.confirm, hold_seconds=0)


class TestRelease:
    """Expiry and manual removal."""

    async def test_expiry_releases_exactly_once(self, make_engine, collab):
        """After the hold elapses the appointment is released once; a later removal is a no-op."""
        engine = make_engine(hold_seconds=0.05, use_clock=False)
        item = engine.add("appt-1")
        await asyncio.sleep(0.2)
        assert collab.released == ["appt-1"]
        assert engine.items == {}
        assert engine.timers == {}
        assert await engine.remove(item.id) is False
        assert collab.released == ["appt-1"]
        assert collab.notified == [(EXPIRED, "appt-1")]

    async def test_manual_removal_cancels_timer(self, make_engine, collab):
        engine = make_engine(hold_seconds=0.05, use_clock=False)
        item = engine.add("appt-1")
        assert await engine.remove(item.id) is True
        await asyncio.sleep(0.15)
        assert collab.released == ["appt-1"]
        assert collab.notified == [(REMOVED, "appt-1")]

    async def test_concurrent_removal_is_noop(self, make_engine, collab):
        """A second release while the first is in flight finds the claim."""
        engine = make_engine()
        item = engine.add("appt-1")
        collab.gate = asyncio.Event()
        first = asyncio.create_task(engine.remove(item.id))
        await asyncio.sleep(0)
        assert await engine.remove(item.id) is False
        assert await engine.tick() == []
        collab.gate.set()
        assert await first is True
        assert collab.released == ["appt-1"]

    async def test_tick_releases_due_items(self, make_engine, collab, clock):
        engine = make_engine()
        old = engine.add("appt-old")
        clock.now = 300
        engine.add("appt-new")
        clock.now = 601
        assert await engine.tick() == [old.id]
        assert collab.released == ["appt-old"]
        assert len(engine.items) == 1
        assert old.id not in engine.timers

    async def test_failed_expiry_retries(self, make_engine, collab):
        """A failed release keeps the item and re-arms a retry timer."""
        collab.release_failures = 1
        engine = make_engine(hold_seconds=0.02, retry_seconds=0.02, use_clock=False)
        engine.add("appt-1")
        await asyncio.sleep(0.25)
        assert collab.released == ["appt-1"]
        assert engine.items == {}
        assert collab.notified == [(RELEASE_FAILED, "appt-1"), (EXPIRED, "appt-1")]

    async def test_failed_manual_removal_raises_and_keeps_item(self, make_engine, collab):
        collab.release_failures = 1
        engine = make_engine()
        item = engine.add("appt-1")
        with pytest.raises(RuntimeError):
            await engine.remove(item.id)
        assert item.id in engine.items
        assert item.id in engine.timers
        assert await engine.remove(item.id) is True

    async def test_close_does_not_release(self, make_engine, collab):
        engine = make_engine(hold_seconds=0.05, use_clock=False)
        item = engine.add("appt-1")
        engine.close()
        await asyncio.sleep(0.15)
        assert collab.released == []
        assert item.id in engine.items
        assert engine.timers == {}


class TestCheckout:
    """Checkout confirms every hold only after a successful payment."""

    async def test_successful_checkout_confirms_all(self, make_engine, collab):
        engine = make_engine()
        for i in range(3):
            engine.add(f"appt-{i}")

        async def charge():
            return True

        result = await engine.checkout(charge)
        assert result.paid
        assert sorted(result.confirmed) == ["appt-0", "appt-1", "appt-2"]
        assert collab.confirmed == [result.confirmed]
        assert engine.items == {}
        assert engine.timers == {}
        assert collab.released == []

    async def test_failed_payment_leaves_basket(self, make_engine, collab):
        engine = make_engine()
        for i in range(3):
            engine.add(f"appt-{i}")

        async def charge():
            return False

        result = await engine.checkout(charge)
        assert not result.paid
        assert collab.confirmed == []
        assert len(engine.items) == 3
        assert len(engine.timers) == 3

    async def test_empty_basket(self, make_engine):
        async def charge():
            raise AssertionError("payment must not be attempted")

        result = await make_engine().checkout(charge)
        assert not result.paid
        assert result.message == "Basket is empty."

    async def test_item_expiring_during_payment_is_not_confirmed(self, make_engine, collab, clock):
        engine = make_engine()
        engine.add("appt-old")
        clock.now = 300
        engine.add("appt-new")

        async def charge():
            clock.now = 650
            await engine.tick()
            return True

        result = await engine.checkout(charge)
        assert result.paid
        assert result.confirmed == ["appt-new"]
        assert result.expired == ["appt-old"]
        assert collab.released == ["appt-old"]
        assert "expired" in result.message

    async def test_no_longer_held_is_reported_not_raised(self, make_engine, collab):
        """A hold canceled elsewhere is dropped from a paid checkout; the rest are confirmed."""
        collab.no_longer_held = {"appt-0"}
        engine = make_engine()
        engine.add("appt-0")
        engine.add("appt-1")

        async def charge():
            return True

        result = await engine.checkout(charge)
        assert result.paid
        assert result.confirmed == ["appt-1"]
        assert result.expired == ["appt-0"]
        assert engine.items == {}
        assert engine.timers == {}
        assert (EXPIRED, "appt-0") in collab.notified
        assert "expired" in result.message

    async def test_nothing_left_to_confirm(self, make_engine, collab):
        collab.no_longer_held = {"appt-0"}
        engine = make_engine()
        engine.add("appt-0")

        async def charge():
            return True

        result = await engine.checkout(charge)
        assert result.paid
        assert result.confirmed == []
        assert result.expired == ["appt-0"]
        assert "none of your held appointments" in result.message

    async def test_confirm_failure_rearms_holds(self, make_engine, collab):
        collab.confirm_fails = True
        engine = make_engine()
        item = engine.add("appt-1")

        async def charge():
            return True

        with pytest.raises(RuntimeError):
            await engine.checkout(charge)
        assert item.id in engine.items
        assert item.id in engine.timers
        assert await engine.remove(item.id) is True
