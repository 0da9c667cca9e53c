"""Test the FastAPI endpoints."""
from contextlib import asynccontextmanager

import pytest
from httpx import ASGITransport, AsyncClient

from rogues.api import app as api_app


@asynccontextmanager
async def client():
    api_app.runner = None
    transport = ASGITransport(app=api_app.app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        await api_app.shutdown()


async def start_with_knight(ac: AsyncClient):
    await ac.post("/battle/start", json={"seed": 42})
    r = await ac.post("/battle/local/army", json={"counts": {"KNIGHT": 1}})
    assert r.json()["accepted"]
    r = await ac.post("/battle/local/place", json={"type": "KNIGHT", "x": 0, "y": 3})
    assert r.json()["accepted"]


@pytest.mark.asyncio
async def test_start_battle():
    """Test starting a new campaign."""
    async with client() as ac:
        response = await ac.post("/battle/start", json={"seed": 123})
    assert response.status_code == 200
    assert response.json() == {"battle_id": "local"}


@pytest.mark.asyncio
async def test_requires_started_battle():
    async with client() as ac:
        response = await ac.get("/battle/local/state")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_army_and_placement_start_battle():
    async with client() as ac:
        await start_with_knight(ac)
        response = await ac.get("/battle/local/state")

    assert response.status_code == 200
    data = response.json()
    assert data["phase"] in ("battle", "defeat")
    assert data["battle_number"] == 1
    assert data["units"]["p1"]["type"] == "KNIGHT"
    assert any(u["side"] == "OPPONENT" for u in data["units"].values())


@pytest.mark.asyncio
async def test_illegal_action_is_declined():
    async with client() as ac:
        await ac.post("/battle/start", json={"seed": 42})
        response = await ac.post("/battle/local/army", json={"counts": {"PALADIN": 2}})
        state = await ac.get("/battle/local/state")

    assert response.status_code == 200
    assert response.json() == {"accepted": False, "events": 0}
    assert state.json()["phase"] == "army"


@pytest.mark.asyncio
async def test_get_events():
    """Test retrieving events."""
    async with client() as ac:
        await start_with_knight(ac)
        response = await ac.get("/battle/local/events?since=0")
        later = await ac.get(f"/battle/local/events?since={response.json()['next_offset']}")

    assert response.status_code == 200
    data = response.json()
    kinds = [e["kind"] for e in data["events"]]
    assert "BattleStarted" in kinds
    assert data["next_offset"] == len(data["events"])
    assert later.json()["events"] == []


@pytest.mark.asyncio
async def test_spell_then_cancel():
    async with client() as ac:
        await start_with_knight(ac)
        armed = await ac.post("/battle/local/spell", json={"spell_id": "meteor"})
        cancelled = await ac.post("/battle/local/spell/cancel")
        state = await ac.get("/battle/local/state")

    if state.json()["phase"] == "battle":
        assert armed.json()["accepted"]
        assert cancelled.json()["accepted"]
        assert state.json()["active_spell"] is None
        assert state.json()["mana"] == 100


@pytest.mark.asyncio
async def test_save_and_load_round_trip():
    async with client() as ac:
        await start_with_knight(ac)
        save = await ac.get("/battle/local/save")
        loaded = await ac.post("/battle/local/load", json=save.json())

    assert save.status_code == 200
    assert save.json()["battle_number"] == 1
    assert loaded.status_code == 200
    assert loaded.json()["battle_number"] == 1


@pytest.mark.asyncio
async def test_time_control():
    async with client() as ac:
        await ac.post("/battle/start", json={})
        await ac.post("/battle/local/time-control", params={"time_compression": 50})
        response = await ac.get("/battle/local/time-control")
    assert response.json() == {"time_compression": 50.0}
