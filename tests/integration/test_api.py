"""End-to-end tests for the HTTP surface (SQL backend, in-process ASGI)."""

import uuid

import httpx
import pytest

from medsched.core.config import settings
from medsched.main import create_app
from medsched.modules.basket.service import BasketRegistry

API = settings.API_PREFIX


@pytest.fixture
async def client(sessions):
    baskets = BasketRegistry(hold_seconds=600, retry_seconds=5, tick_seconds=1)
    app = create_app(baskets=baskets, manage_resources=False)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    baskets.close()


@pytest.fixture
async def seeded(client):
    """A Monday doctor and one patient."""
    r = await client.post(f"{API}/specialties", json={"name": "Diagnostics", "color": "#3366ff"})
    assert r.status_code == 201
    r = await client.post(f"{API}/doctors", json={
        "name": "Dr. House",
        "specialty": "Diagnostics",
        "availability": {"recurring": [{
            "day": "monday", "start_date": "2024-01-01", "end_date": "2024-01-31",
            "time_ranges": [{"start": "9:00", "end": "12:00"}],
        }]},
    })
    assert r.status_code == 201, r.text
    doctor = r.json()
    r = await client.post(f"{API}/patients", json={"name": "Ann Smith", "gender": "female", "age": 34})
    assert r.status_code == 201
    return doctor, r.json()


def appointment(doctor, patient, start="10:00", end="10:30", date="2024-01-08"):
    return {"doctor_id": doctor["id"], "patient_id": patient["id"], "date": date,
            "start": start, "end": end, "type": "checkup"}


class TestHealth:
    async def test_health(self, client):
        r = await client.get(f"{API}/health")
        assert r.json() == {"status": "ok"}


class TestDoctorsApi:
    """Doctor routes."""

    async def test_times_are_normalized(self, seeded):
        doctor, _ = seeded
        assert doctor["availability"]["recurring"][0]["time_ranges"][0]["start"] == "09:00"

    async def test_invalid_time_is_422(self, client):
        r = await client.post(f"{API}/doctors", json={
            "name": "Dr. Bad", "specialty": "X",
            "availability": {"one_time_availabilities": [
                {"date": "2024-01-08", "time_ranges": [{"start": "25:00", "end": "26:00"}]}]},
        })
        assert r.status_code == 422

    async def test_overlapping_rules_are_422(self, client, seeded):
        doctor, _ = seeded
        rule = {"day": "monday", "start_date": "2024-01-15", "end_date": "2024-02-15",
                "time_ranges": [{"start": "13:00", "end": "14:00"}]}
        existing = doctor["availability"]["recurring"]
        r = await client.put(f"{API}/doctors/{doctor['id']}/availability/recurring", json=existing + [rule])
        assert r.status_code == 422
        assert r.json()["detail"]["code"] == "invalid_availability"

    async def test_absences_replace_only_that_section(self, client, seeded):
        doctor, _ = seeded
        r = await client.put(f"{API}/doctors/{doctor['id']}/availability/absences",
                             json=[{"start_date": "2024-01-08", "end_date": "2024-01-08", "reason": "conference"}])
        assert r.status_code == 200
        body = r.json()
        assert len(body["availability"]["absences"]) == 1
        assert len(body["availability"]["recurring"]) == 1

    async def test_calendar(self, client, seeded):
        doctor, _ = seeded
        r = await client.get(f"{API}/doctors/{doctor['id']}/calendar", params={"date": "2024-01-08"})
        assert r.status_code == 200
        monday = r.json()[0]
        slot = next(s for s in monday["slots"] if s["time"] == "09:30")
        assert slot == {"time": "09:30", "is_taken": False, "is_absent": False,
                        "is_one_time_available": False, "is_recurring_available": True, "state": "recurring",
                        "is_own": False}

    async def test_available(self, client, seeded):
        doctor, _ = seeded
        r = await client.get(f"{API}/doctors/available", params={"date": "2024-01-08", "time": "09:30"})
        assert [d["id"] for d in r.json()] == [doctor["id"]]
        r = await client.get(f"{API}/doctors/available", params={"date": "2024-01-08", "time": "9h30"})
        assert r.status_code == 400

    async def test_by_specialty(self, client, seeded):
        r = await client.get(f"{API}/doctors", params={"specialty": "Diagnostics"})
        assert len(r.json()) == 1
        r = await client.get(f"{API}/doctors", params={"specialty": "Surgery"})
        assert r.json() == []

    async def test_malformed_and_missing_ids(self, client):
        assert (await client.get(f"{API}/doctors/not-a-uuid")).status_code == 400
        assert (await client.get(f"{API}/doctors/{uuid.uuid4()}")).status_code == 404


class TestAppointmentsApi:
    """Appointment routes."""

    async def test_book_and_conflict(self, client, seeded):
        doctor, patient = seeded
        r = await client.post(f"{API}/appointments", json=appointment(doctor, patient, "10:30", "11:00"))
        assert r.status_code == 201
        assert r.json()["status"] == "confirmed"

        r = await client.post(f"{API}/appointments", json=appointment(doctor, patient, "10:15", "10:45"))
        assert r.status_code == 409
        assert "overlaps" in r.json()["detail"]["message"]

        r = await client.post(f"{API}/appointments", json=appointment(doctor, patient, "10:00", "10:30"))
        assert r.status_code == 201

    async def test_invalid_range(self, client, seeded):
        doctor, patient = seeded
        r = await client.post(f"{API}/appointments", json=appointment(doctor, patient, "11:00", "10:00"))
        assert r.status_code == 400

    async def test_unknown_doctor(self, client, seeded):
        _, patient = seeded
        r = await client.post(f"{API}/appointments", json=appointment({"id": str(uuid.uuid4())}, patient))
        assert r.status_code == 404

    async def test_edit_cancel_delete(self, client, seeded):
        doctor, patient = seeded
        appt = (await client.post(f"{API}/appointments", json=appointment(doctor, patient))).json()

        r = await client.patch(f"{API}/appointments/{appt['id']}", json={"start": "10:15", "end": "10:45"})
        assert r.status_code == 200
        assert r.json()["status"] == "confirmed"

        r = await client.post(f"{API}/appointments/{appt['id']}/cancel")
        assert r.json()["status"] == "canceled"
        r = await client.post(f"{API}/appointments/{appt['id']}/cancel")
        assert r.status_code == 409

        r = await client.delete(f"{API}/appointments/{appt['id']}")
        assert r.status_code == 204
        assert (await client.get(f"{API}/appointments/{appt['id']}")).status_code == 404

    async def test_future_confirmed_not_deletable(self, client, seeded):
        doctor, patient = seeded
        appt = (await client.post(f"{API}/appointments", json=appointment(doctor, patient, date="2099-01-05"))).json()
        r = await client.delete(f"{API}/appointments/{appt['id']}")
        assert r.status_code == 409

    async def test_batch_cancel(self, client, seeded):
        doctor, patient = seeded
        a = (await client.post(f"{API}/appointments", json=appointment(doctor, patient, "09:00", "09:30"))).json()
        b = (await client.post(f"{API}/appointments", json=appointment(doctor, patient, "09:30", "10:00"))).json()
        r = await client.post(f"{API}/appointments/cancel", json={"appointment_ids": [a["id"], b["id"]]})
        assert r.status_code == 200
        assert {x["status"] for x in r.json()} == {"canceled"}
        r = await client.get(f"{API}/appointments", params={"doctor_id": doctor["id"], "status": "canceled"})
        assert len(r.json()) == 2


class TestBasketApi:
    """Basket routes: hold, countdown, removal and checkout."""

    async def add(self, client, doctor, patient, start, end):
        body = appointment(doctor, patient, start, end)
        body.pop("patient_id")
        r = await client.post(f"{API}/patients/{patient['id']}/basket", json=body)
        assert r.status_code == 201, r.text
        return r.json()

    async def test_add_holds_slot(self, client, seeded):
        doctor, patient = seeded
        item = await self.add(client, doctor, patient, "09:00", "09:30")
        assert item["expires_in"] == "10:00"
        assert item["appointment"]["status"] == "in-progress"

        r = await client.post(f"{API}/appointments", json=appointment(doctor, patient, "09:00", "09:30"))
        assert r.status_code == 409

        r = await client.get(f"{API}/patients/{patient['id']}/basket")
        assert [i["id"] for i in r.json()] == [item["id"]]

    async def test_remove_cancels_hold(self, client, seeded):
        doctor, patient = seeded
        item = await self.add(client, doctor, patient, "09:00", "09:30")
        r = await client.delete(f"{API}/patients/{patient['id']}/basket/{item['id']}")
        assert r.status_code == 204
        appt = (await client.get(f"{API}/appointments/{item['appointment_id']}")).json()
        assert appt["status"] == "canceled"
        r = await client.delete(f"{API}/patients/{patient['id']}/basket/{item['id']}")
        assert r.status_code == 404

    async def test_checkout(self, client, seeded, bus):
        doctor, patient = seeded
        first = await self.add(client, doctor, patient, "09:00", "09:30")
        second = await self.add(client, doctor, patient, "09:30", "10:00")

        r = await client.post(f"{API}/patients/{patient['id']}/basket/checkout", json={"paid": False})
        assert r.json()["paid"] is False
        assert len((await client.get(f"{API}/patients/{patient['id']}/basket")).json()) == 2

        r = await client.post(f"{API}/patients/{patient['id']}/basket/checkout", json={"paid": True, "reference": "pay_1"})
        result = r.json()
        assert result["paid"] is True
        assert sorted(result["confirmed"]) == sorted([first["appointment_id"], second["appointment_id"]])
        assert (await client.get(f"{API}/patients/{patient['id']}/basket")).json() == []
        for appt_id in result["confirmed"]:
            assert (await client.get(f"{API}/appointments/{appt_id}")).json()["status"] == "confirmed"
        assert "BASKET_CHECKED_OUT" in bus.types()

    async def test_empty_checkout(self, client, seeded):
        _, patient = seeded
        r = await client.post(f"{API}/patients/{patient['id']}/basket/checkout", json={"paid": True})
        assert r.json() == {"paid": False, "confirmed": [], "expired": [], "message": "Basket is empty."}
