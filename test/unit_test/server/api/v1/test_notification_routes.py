import pytest
from httpx import AsyncClient

from binevo.core.database.entities import Ngo, Notification

pytestmark = pytest.mark.asyncio

URL = "/api/v1/notifications"


@pytest.fixture
def notify(session):
    def _add(ngo_id, title, user_id=None, is_read=False):
        notification = Notification(
            ngo_id=ngo_id, user_id=user_id, type="DONATION_RECEIVED", title=title, message="...", is_read=is_read
        )
        session.add(notification)
        return notification

    return _add


async def test_list_only_visible(client: AsyncClient, session, ngo, ngo_admin, auth_headers, notify):
    other_ngo = Ngo(name="Alta", slug="alta")
    session.add(other_ngo)
    await session.flush()
    notify(ngo.id, "Pentru toti")
    notify(ngo.id, "Pentru Ana", user_id=ngo_admin.id)
    notify(other_ngo.id, "Alt ONG")
    await session.commit()

    response = await client.get(URL, headers=auth_headers)

    assert sorted(n["title"] for n in response.json()["items"]) == ["Pentru Ana", "Pentru toti"]


async def test_unread_count_and_mark_read(client: AsyncClient, session, ngo, auth_headers, notify):
    first = notify(ngo.id, "Unu")
    notify(ngo.id, "Doi")
    notify(ngo.id, "Citit", is_read=True)
    await session.commit()
    first_id = first.id

    assert (await client.get(f"{URL}/unread-count", headers=auth_headers)).json() == {"unread": 2}

    one = await client.post(f"{URL}/read", json={"ids": [first_id]}, headers=auth_headers)
    assert one.json()["message"] == "1 notifications marked as read"

    rest = await client.post(f"{URL}/read", json={"all": True}, headers=auth_headers)
    assert rest.json()["message"] == "1 notifications marked as read"
    assert (await client.get(f"{URL}/unread-count", headers=auth_headers)).json() == {"unread": 0}


async def test_mark_read_without_ids(client: AsyncClient, auth_headers):
    response = await client.post(f"{URL}/read", json={}, headers=auth_headers)

    assert response.json()["message"] == "0 notifications marked as read"
