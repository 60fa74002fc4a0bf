import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy import select

from conftest import LINK_ID, add_link
from models.link_view import LinkView
from models.slide_analytic import SlideAnalytic
from services.view_tracking import duration_between
from viewer_client import AccessClient, TabStorage, ViewRecorder, classify_device


T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class StepClock:
    """Returns the queued instants in order, then repeats the last one."""

    def __init__(self, *instants):
        self.instants = list(instants)

    def __call__(self) -> datetime:
        if len(self.instants) > 1:
            return self.instants.pop(0)
        return self.instants[0]


def _recorder(transport, storage=None, clock=None, **kwargs):
    client = AccessClient("http://test", transport=transport)
    return ViewRecorder(
        client,
        storage if storage is not None else TabStorage(),
        user_agent="Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148",
        clock=clock or StepClock(T0),
        **kwargs,
    )


async def _slide_rows(session_maker):
    async with session_maker() as session:
        result = await session.execute(select(SlideAnalytic).order_by(SlideAnalytic.time_entered))
        return list(result.scalars().all())


async def _views(session_maker):
    async with session_maker() as session:
        result = await session.execute(select(LinkView).order_by(LinkView.started_at))
        return list(result.scalars().all())


def test_duration_rounds_half_up_to_hundredths():
    assert str(duration_between(T0, T0 + timedelta(seconds=2, microseconds=345000))) == "2.35"
    assert str(duration_between(T0, T0 + timedelta(seconds=2, microseconds=344999))) == "2.34"
    assert str(duration_between(T0, T0)) == "0.00"


def test_device_classification():
    assert classify_device("Mozilla/5.0 (Linux; Android 14)") == "mobile"
    assert classify_device("Mozilla/5.0 (iPad; CPU OS 17_0)") == "tablet"
    assert classify_device("Mozilla/5.0 (Windows NT 10.0; Win64; x64)") == "desktop"
    assert classify_device("") == "desktop"


@pytest.mark.asyncio
async def test_recorder_stores_two_decimal_dwell_time(asgi_transport, session_maker):
    clock = StepClock(T0, T0 + timedelta(seconds=2, microseconds=345000))
    recorder = _recorder(asgi_transport, clock=clock)

    view_id = await recorder.start_session(LINK_ID)
    event_id = await recorder.enter_slide(view_id, LINK_ID, 0, "Introduction Slide 1")
    await recorder.exit_slide(event_id, T0)

    rows = await _slide_rows(session_maker)
    assert len(rows) == 1
    assert rows[0].slide_index == 0
    assert rows[0].slide_title == "Introduction Slide 1"
    assert float(rows[0].duration_seconds) == 2.35
    assert recorder.pending_exit is None

    views = await _views(session_maker)
    assert views[0].device_type == "mobile"
    assert views[0].is_unique_visitor is True


@pytest.mark.asyncio
async def test_entering_a_slide_closes_the_previous_one(asgi_transport, session_maker):
    clock = StepClock(
        T0,
        T0 + timedelta(seconds=4),
        T0 + timedelta(seconds=4),
        T0 + timedelta(seconds=10, microseconds=500000),
        T0 + timedelta(seconds=10, microseconds=500000),
    )
    recorder = _recorder(asgi_transport, clock=clock)
    view_id = await recorder.start_session(LINK_ID)

    await recorder.enter_slide(view_id, LINK_ID, 0, "Intro")
    await recorder.enter_slide(view_id, LINK_ID, 1, "Summary")
    last = await recorder.enter_slide(view_id, LINK_ID, 2, "Pensions")

    rows = await _slide_rows(session_maker)
    assert [row.slide_index for row in rows] == [0, 1, 2]
    assert [float(row.duration_seconds) for row in rows[:2]] == [4.0, 6.5]
    assert rows[2].time_exited is None
    assert recorder.pending_exit.event_id == last


@pytest.mark.asyncio
async def test_reload_in_same_tab_is_not_a_unique_visit(asgi_transport, session_maker):
    storage = TabStorage()
    first = _recorder(asgi_transport, storage=storage)
    second = _recorder(asgi_transport, storage=storage)
    other_tab = _recorder(asgi_transport)

    await first.start_session(LINK_ID)
    await second.start_session(LINK_ID)
    await other_tab.start_session(LINK_ID)

    views = await _views(session_maker)
    assert len(views) == 3
    assert sorted(view.is_unique_visitor for view in views) == [False, True, True]
    same_tab = [view for view in views if view.session_id == storage.get_item("hxt_viewer_session")]
    assert len(same_tab) == 2


@pytest.mark.asyncio
async def test_recorder_swallows_transport_failures():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    recorder = _recorder(httpx.MockTransport(handler))

    assert await recorder.start_session(LINK_ID) is None
    assert await recorder.enter_slide("view-1", LINK_ID, 0, "Intro") is None
    await recorder.exit_slide("event-1", T0)
    assert recorder.pending_exit is None


@pytest.mark.asyncio
async def test_unload_flushes_open_slide_and_view():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path, json.loads(request.content or b"{}")))
        if request.url.path == "/viewer/views":
            return httpx.Response(200, json={"id": "view-1", "is_unique_visitor": True})
        if request.url.path.endswith("/slides"):
            return httpx.Response(200, json={"id": "event-1"})
        return httpx.Response(200, json={})

    clock = StepClock(T0, T0 + timedelta(seconds=3, microseconds=125000))
    recorder = _recorder(
        httpx.MockTransport(handler),
        clock=clock,
        flush_transport=httpx.MockTransport(handler),
    )
    view_id = await recorder.start_session(LINK_ID)
    await recorder.enter_slide(view_id, LINK_ID, 0, "Intro")

    recorder.flush_on_unload()

    assert calls[-2][0] == "PATCH"
    assert calls[-2][1] == "/viewer/slides/event-1"
    assert calls[-2][2]["duration_seconds"] == 3.13
    assert calls[-1][1] == "/viewer/views/view-1"
    assert "ended_at" in calls[-1][2]
    assert recorder.pending_exit is None


@pytest.mark.asyncio
async def test_closing_a_slide_twice_keeps_first_exit(api_client):
    view = await api_client.post("/viewer/views", json={"link_id": LINK_ID, "session_id": "tab-1"})
    view_id = view.json()["id"]
    entered = await api_client.post(
        f"/viewer/views/{view_id}/slides",
        json={"slide_index": 0, "slide_title": "Intro", "time_entered": T0.isoformat()},
    )
    event_id = entered.json()["id"]

    first = await api_client.patch(
        f"/viewer/slides/{event_id}", json={"time_exited": (T0 + timedelta(seconds=5)).isoformat()}
    )
    second = await api_client.patch(
        f"/viewer/slides/{event_id}", json={"time_exited": (T0 + timedelta(seconds=50)).isoformat()}
    )

    assert first.json()["duration_seconds"] == 5.0
    assert second.json()["duration_seconds"] == 5.0


@pytest.mark.asyncio
async def test_slide_event_rejects_mismatched_link(api_client, session_maker):
    await add_link(session_maker)
    view = await api_client.post("/viewer/views", json={"link_id": LINK_ID})
    response = await api_client.post(
        f"/viewer/views/{view.json()['id']}/slides",
        json={"link_id": "link-extra", "slide_index": 0},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_view_for_unknown_link_is_not_found(api_client):
    response = await api_client.post("/viewer/views", json={"link_id": "nope"})
    assert response.status_code == 404

    negative = await api_client.post("/viewer/views/anything/slides", json={"slide_index": -1})
    assert negative.status_code == 422


@pytest.mark.asyncio
async def test_viewer_ip_comes_from_peer_address(api_client, session_maker):
    response = await api_client.post(
        "/viewer/views",
        json={"link_id": LINK_ID},
        headers={"x-forwarded-for": "198.51.100.7"},
    )
    assert response.status_code == 200

    views = await _views(session_maker)
    assert views[0].viewer_ip == "127.0.0.1"
