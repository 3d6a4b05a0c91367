import pytest
from httpx import AsyncClient

from binevo.core.database.entities import Campaign, Donor

pytestmark = pytest.mark.asyncio

URL = "/api/v1/campaigns"

NEWSLETTER = {"name": "Newsletter martie", "subject": "Vesti bune", "email_body": "<p>Draga {{name}}</p>"}


async def test_create_draft_and_scheduled(client: AsyncClient, auth_headers):
    draft = await client.post(URL, json=NEWSLETTER, headers=auth_headers)
    scheduled = await client.post(
        URL, json={**NEWSLETTER, "scheduled_at": "2030-03-01T09:00:00"}, headers=auth_headers
    )

    assert draft.status_code == 201
    assert draft.json()["status"] == "DRAFT"
    assert scheduled.json()["status"] == "SCHEDULED"

    listed = await client.get(URL, headers=auth_headers)
    assert listed.json()["pagination"]["total"] == 2


async def test_ab_test_needs_elite(client: AsyncClient, auth_headers):
    response = await client.post(URL, json={**NEWSLETTER, "is_ab_test": True}, headers=auth_headers)

    assert response.status_code == 403
    assert response.json()["detail"] == "Feature not available on your plan"


async def test_templates(client: AsyncClient, auth_headers):
    response = await client.get(f"{URL}/templates", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()
    assert {"type", "name", "subject", "email_body", "sms_body"} <= set(response.json()[0])


async def test_update_reschedules(client: AsyncClient, auth_headers):
    campaign_id = (await client.post(URL, json=NEWSLETTER, headers=auth_headers)).json()["id"]

    response = await client.patch(
        f"{URL}/{campaign_id}", json={"scheduled_at": "2030-01-01T10:00:00", "name": "Ianuarie"}, headers=auth_headers
    )

    assert response.json()["status"] == "SCHEDULED"
    assert response.json()["name"] == "Ianuarie"


async def test_sent_campaign_is_read_only(client: AsyncClient, session, ngo, auth_headers):
    campaign = Campaign(ngo_id=ngo.id, name="Trimisa", status="SENT")
    session.add(campaign)
    await session.commit()

    response = await client.patch(f"{URL}/{campaign.id}", json={"name": "Alt nume"}, headers=auth_headers)
    resend = await client.post(f"{URL}/{campaign.id}/send", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Only draft or scheduled campaigns can be edited"
    assert resend.status_code == 400
    assert resend.json()["code"] == "INVALID_STATUS"


async def test_send_counts_failed_deliveries(client: AsyncClient, session, ngo, auth_headers):
    session.add(Donor(ngo_id=ngo.id, email="ion@example.ro", name="Ion", email_consent=True))
    await session.commit()
    campaign_id = (await client.post(URL, json=NEWSLETTER, headers=auth_headers)).json()["id"]

    response = await client.post(f"{URL}/{campaign_id}/send", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["recipients"] == 1
    assert response.json()["sent"] + response.json()["failed"] == 1
    fetched = await client.get(f"{URL}/{campaign_id}", headers=auth_headers)
    assert fetched.json()["status"] == "SENT"


async def test_delete(client: AsyncClient, auth_headers):
    campaign_id = (await client.post(URL, json=NEWSLETTER, headers=auth_headers)).json()["id"]

    assert (await client.delete(f"{URL}/{campaign_id}", headers=auth_headers)).status_code == 204
    assert (await client.get(f"{URL}/{campaign_id}", headers=auth_headers)).status_code == 404
