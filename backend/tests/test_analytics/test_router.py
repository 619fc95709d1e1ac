from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from app.analytics import ingestion
from app.auth.jwt import create_access_token, create_refresh_token

URL = "/api/v1/analytics/response-times"
T0 = datetime.now(timezone.utc) - timedelta(days=2)

ZEROS = {
    "mediaMensagensPorIA": 0,
    "tempoMedioAtendimentoIAMinutos": 0,
    "tempoMedioAtendimentoHumanoMinutos": 0,
}


def msg(sender, minutes, customer="C1", owner="U1", sent=True):
    created = T0 + timedelta(minutes=minutes)
    return {
        "customer_id": customer,
        "owner_id": owner,
        "sender": sender,
        "sent_at": created if sent else None,
        "created_at": created,
    }


@pytest_asyncio.fixture
async def seeded_messages(add_messages):
    """Two owners; U1 has one conversation, U2 two."""
    await add_messages([
        msg("Cliente", 0),
        msg("IA", 2),
        msg("Cliente", 5),
        msg("Humano", 9),
        msg("IA", 10),
        msg("Cliente", 0, customer="C2", owner="U2"),
        msg("ia", 4, customer="C2", owner="U2"),
        msg("cliente", 0, customer="C3", owner="U2", sent=False),
        msg("atendente", 6, customer="C3", owner="U2", sent=False),
        msg("sistema", 1, customer="C3", owner="U2"),
        msg(None, 1, customer="C3", owner="U2"),
    ])


@pytest.mark.asyncio
async def test_response_times_empty(client: AsyncClient, admin_headers: dict):
    response = await client.get(URL, headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == ZEROS


@pytest.mark.asyncio
async def test_response_times_all_owners(client: AsyncClient, admin_headers: dict, seeded_messages):
    response = await client.get(URL, headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    # Automated tallies: C1/U1 = 2, C2/U2 = 1 -> 1.5
    assert data["mediaMensagensPorIA"] == 1.5
    # Automated samples: 2 min, 4 min
    assert data["tempoMedioAtendimentoIAMinutos"] == 3.0
    # Human samples: 4 min, 6 min
    assert data["tempoMedioAtendimentoHumanoMinutos"] == 5.0
    assert "_debug" not in data


@pytest.mark.asyncio
async def test_response_times_owner_filter(client: AsyncClient, admin_headers: dict, seeded_messages):
    response = await client.get(URL, params={"owner_id": " U1 "}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {
        "mediaMensagensPorIA": 2.0,
        "tempoMedioAtendimentoIAMinutos": 2.0,
        "tempoMedioAtendimentoHumanoMinutos": 4.0,
    }


@pytest.mark.asyncio
async def test_response_times_blank_owner_means_everyone(
    client: AsyncClient, admin_headers: dict, seeded_messages
):
    response = await client.get(URL, params={"owner_id": "  "}, headers=admin_headers)
    assert response.json()["mediaMensagensPorIA"] == 1.5


@pytest.mark.asyncio
async def test_response_times_debug_payload(client: AsyncClient, admin_headers: dict, seeded_messages):
    response = await client.get(URL, params={"debug": "1"}, headers=admin_headers)
    assert response.status_code == 200
    debug = response.json()["_debug"]
    assert set(debug["sender_labels"]) == {
        "Cliente", "IA", "Humano", "ia", "cliente", "atendente", "sistema", "(null)",
    }
    assert debug["records"] == 11
    assert debug["conversations"] == 3
    assert debug["human_samples"] == 2
    assert debug["automated_samples"] == 2
    assert debug["rejected_samples"] == 0


@pytest.mark.asyncio
async def test_response_times_is_repeatable(client: AsyncClient, admin_headers: dict, seeded_messages):
    first = await client.get(URL, headers=admin_headers)
    second = await client.get(URL, headers=admin_headers)
    assert first.json() == second.json()


@pytest.mark.asyncio
async def test_response_times_store_failure_returns_zeros(
    client: AsyncClient, admin_headers: dict, seeded_messages, monkeypatch
):
    async def fetch_page(*args):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(ingestion, "_fetch_page", fetch_page)

    response = await client.get(URL, params={"debug": "true"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == ZEROS


@pytest.mark.asyncio
async def test_response_times_malformed_row_returns_zeros(
    client: AsyncClient, admin_headers: dict, add_messages, db_session
):
    await add_messages([msg("Cliente", 0), msg("IA", 2)])
    await db_session.execute(text("UPDATE messages SET sent_at = 'not-a-date'"))
    await db_session.commit()

    response = await client.get(URL, headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == ZEROS


@pytest.mark.asyncio
async def test_response_times_no_auth(client: AsyncClient):
    response = await client.get(URL)
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_response_times_invalid_token(client: AsyncClient):
    response = await client.get(URL, headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_response_times_refresh_token_rejected(client: AsyncClient, admin_user):
    token = create_refresh_token(str(admin_user.id))
    response = await client.get(URL, headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_response_times_inactive_admin(client: AsyncClient, inactive_admin):
    token = create_access_token(str(inactive_admin.id))
    response = await client.get(URL, headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_response_times_requires_admin(client: AsyncClient, agent_headers: dict):
    response = await client.get(URL, headers=agent_headers)
    assert response.status_code == 403
