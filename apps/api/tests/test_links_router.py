from datetime import datetime, timedelta, timezone

import pytest

from conftest import ADVISER_AUTH_HEADER, LINK_ID, LINK_TOKEN, PROPOSAL_ID
from models.link_view import LinkView
from models.slide_analytic import SlideAnalytic
from services.session_token import create_session_token


OTHER_AUTH_HEADER = {"Authorization": f"Bearer {create_session_token('adviser-2', 'other@example.com')['token']}"}


async def _seed_views(session_maker):
    """Two visits: one sees every slide, one leaves after the first."""
    start = datetime.now(timezone.utc) - timedelta(minutes=30)
    async with session_maker() as session:
        session.add_all(
            [
                LinkView(id="view-a", link_id=LINK_ID, session_id="tab-a", is_unique_visitor=True,
                         device_type="desktop", started_at=start),
                LinkView(id="view-b", link_id=LINK_ID, session_id="tab-a", is_unique_visitor=False,
                         device_type="desktop", started_at=start + timedelta(minutes=5)),
            ]
        )
        for index, duration in enumerate([10, 20, 30]):
            session.add(
                SlideAnalytic(
                    id=f"a-{index}",
                    view_id="view-a",
                    link_id=LINK_ID,
                    slide_index=index,
                    slide_title=f"Slide {index + 1}",
                    time_entered=start + timedelta(seconds=index * 40),
                    time_exited=start + timedelta(seconds=index * 40 + duration),
                    duration_seconds=duration,
                )
            )
        session.add(
            SlideAnalytic(
                id="b-0",
                view_id="view-b",
                link_id=LINK_ID,
                slide_index=0,
                slide_title="Slide 1",
                time_entered=start + timedelta(minutes=5),
                time_exited=start + timedelta(minutes=5, seconds=4),
                duration_seconds=4,
            )
        )
        await session.commit()


@pytest.mark.asyncio
async def test_adviser_creates_and_lists_links(api_client):
    created = await api_client.post(
        "/links",
        json={
            "proposal_id": PROPOSAL_ID,
            "recipient_email": " sam@example.com ",
            "recipient_name": "Sam Smith",
            "allow_download": False,
        },
        headers=ADVISER_AUTH_HEADER,
    )
    assert created.status_code == 200
    payload = created.json()
    assert len(payload["token"]) == 12
    assert payload["link"].endswith(f"/view/{payload['token']}")
    assert payload["recipient_email"] == "sam@example.com"
    assert payload["allow_download"] is False

    listed = await api_client.get(f"/proposals/{PROPOSAL_ID}/links", headers=ADVISER_AUTH_HEADER)
    assert listed.status_code == 200
    tokens = {item["token"] for item in listed.json()}
    assert tokens == {LINK_TOKEN, payload["token"]}

    metadata = await api_client.get(f"/viewer/links/{payload['token']}")
    assert metadata.json()["masked_email"] == "s****@example.com"


@pytest.mark.asyncio
async def test_link_creation_validates_input(api_client):
    bad_email = await api_client.post(
        "/links",
        json={"proposal_id": PROPOSAL_ID, "recipient_email": "not-an-email", "recipient_name": "Sam"},
        headers=ADVISER_AUTH_HEADER,
    )
    assert bad_email.status_code == 422

    past = await api_client.post(
        "/links",
        json={
            "proposal_id": PROPOSAL_ID,
            "recipient_email": "sam@example.com",
            "recipient_name": "Sam",
            "expires_at": (datetime.now(timezone.utc) - timedelta(days=1)).isoformat(),
        },
        headers=ADVISER_AUTH_HEADER,
    )
    assert past.status_code == 422

    anonymous = await api_client.post(
        "/links",
        json={"proposal_id": PROPOSAL_ID, "recipient_email": "sam@example.com", "recipient_name": "Sam"},
    )
    assert anonymous.status_code == 401


@pytest.mark.asyncio
async def test_other_advisers_cannot_touch_the_proposal(api_client):
    listed = await api_client.get(f"/proposals/{PROPOSAL_ID}/links", headers=OTHER_AUTH_HEADER)
    assert listed.status_code == 404

    revoked = await api_client.post(f"/links/{LINK_ID}/revoke", headers=OTHER_AUTH_HEADER)
    assert revoked.status_code == 404

    analytics = await api_client.get(f"/proposals/{PROPOSAL_ID}/analytics", headers=OTHER_AUTH_HEADER)
    assert analytics.status_code == 404


@pytest.mark.asyncio
async def test_revoked_link_stops_new_codes_but_keeps_history(api_client, session_maker):
    await _seed_views(session_maker)

    revoked = await api_client.post(f"/links/{LINK_ID}/revoke", headers=ADVISER_AUTH_HEADER)
    assert revoked.json() == {"id": LINK_ID, "is_active": False}

    send = await api_client.post("/verify-access", json={"action": "send_otp", "token": LINK_TOKEN})
    assert send.status_code == 403

    proposal = await api_client.get(
        f"/viewer/links/{LINK_TOKEN}/proposal", headers={"X-Viewer-Session": "anything"}
    )
    assert proposal.status_code == 403

    listed = await api_client.get(f"/proposals/{PROPOSAL_ID}/links", headers=ADVISER_AUTH_HEADER)
    item = listed.json()[0]
    assert item["is_active"] is False
    assert item["view_count"] == 2
    assert item["last_viewed_at"] is not None


@pytest.mark.asyncio
async def test_analytics_overview_heatmap_and_sessions(api_client, session_maker):
    await _seed_views(session_maker)

    response = await api_client.get(
        f"/proposals/{PROPOSAL_ID}/analytics",
        params={"total_slides": 3},
        headers=ADVISER_AUTH_HEADER,
    )
    assert response.status_code == 200
    body = response.json()

    assert body["overview"] == {
        "total_views": 2,
        "unique_visitors": 1,
        "avg_time_spent": 32.0,
        "completion_rate": 50,
    }

    heatmap = {row["slide_index"]: row for row in body["heatmap"]}
    assert heatmap[0]["view_count"] == 2
    assert heatmap[0]["avg_duration"] == 7.0
    assert heatmap[0]["min_duration"] == 4.0
    assert heatmap[0]["max_duration"] == 10.0
    assert heatmap[2]["view_count"] == 1

    sessions = body["sessions"]
    assert [session["view_id"] for session in sessions] == ["view-b", "view-a"]
    assert sessions[1]["total_duration"] == 60.0
    assert sessions[1]["slides_viewed"] == 3
    assert sessions[1]["recipient_email"] == "jane@example.com"
    assert body["live"] is False


@pytest.mark.asyncio
async def test_analytics_without_views_is_zeroed(api_client):
    response = await api_client.get(f"/proposals/{PROPOSAL_ID}/analytics", headers=ADVISER_AUTH_HEADER)
    assert response.json() == {
        "overview": {"total_views": 0, "unique_visitors": 0, "avg_time_spent": 0.0, "completion_rate": 0},
        "heatmap": [],
        "sessions": [],
        "live": False,
    }


@pytest.mark.asyncio
async def test_proposal_requires_a_valid_viewer_session(api_client, mailer):
    missing = await api_client.get(f"/viewer/links/{LINK_TOKEN}/proposal")
    assert missing.status_code == 401

    await api_client.post("/verify-access", json={"action": "send_otp", "token": LINK_TOKEN})
    verified = await api_client.post(
        "/verify-access",
        json={"action": "verify_otp", "token": LINK_TOKEN, "code": mailer.last_code},
    )
    session_token = verified.json()["session_token"]

    response = await api_client.get(
        f"/viewer/links/{LINK_TOKEN}/proposal", headers={"X-Viewer-Session": session_token}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["link_id"] == LINK_ID
    assert [slide["label"] for slide in body["slides"]] == [
        "Introduction Slide 1",
        "Summary of Context",
        "Pensions - Slide 1",
    ]
    assert body["pdf_url"].endswith("generated/proposal-1.pdf")


@pytest.mark.asyncio
async def test_dev_session_endpoint_is_disabled_by_default(api_client, monkeypatch):
    from routers import auth

    disabled = await api_client.post("/auth/session", json={"user_id": "adviser-1"})
    assert disabled.status_code == 404

    monkeypatch.setattr(auth.settings, "ENABLE_DEV_AUTH", True)
    enabled = await api_client.post("/auth/session", json={"user_id": "adviser-1"})
    assert enabled.status_code == 200
    assert enabled.json()["email"] == "adviser@example.com"
