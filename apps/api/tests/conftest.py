from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db
from main import app
from models.proposal import Proposal
from models.proposal_link import ProposalLink
from models.user import User
from routers import rate_limit
from services.mailer import get_mailer
from services.session_token import create_session_token


ADVISER_ID = "adviser-1"
ADVISER_EMAIL = "adviser@example.com"
ADVISER_AUTH_HEADER = {"Authorization": f"Bearer {create_session_token(ADVISER_ID, ADVISER_EMAIL)['token']}"}
PROPOSAL_ID = "proposal-1"
LINK_ID = "link-1"
LINK_TOKEN = "abc123"
SLIDE_ORDER = [
    {"id": "intro-1", "label": "Introduction Slide 1", "image_path": "intro-uk/Slide1.PNG"},
    {"id": "context-summary", "label": "Summary of Context", "image_path": "context/summary.PNG"},
    {"id": "product-pension-1", "label": "Pensions - Slide 1", "image_path": "products/pension/Slide1.PNG"},
    {"id": "closing-1", "label": "Closing Slide 1", "image_path": "closing-uk/Slide1.PNG"},
]


class RecordingMailer:
    """Captures passcode deliveries instead of calling the mail provider."""

    def __init__(self):
        self.sent: List[dict] = []

    async def send_passcode(self, to: str, code: str, *, client_name: str, masked_email: str) -> bool:
        self.sent.append(
            {"to": to, "code": code, "client_name": client_name, "masked_email": masked_email}
        )
        return True

    @property
    def last_code(self) -> Optional[str]:
        return self.sent[-1]["code"] if self.sent else None


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "proposal_links.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    now = datetime.now(timezone.utc)
    async with maker() as session:
        session.add(User(id=ADVISER_ID, email=ADVISER_EMAIL, name="Alex Adviser"))
        session.add(
            Proposal(
                id=PROPOSAL_ID,
                advisor_id=ADVISER_ID,
                client_name="Jane Doe",
                status="sent",
                slide_order=SLIDE_ORDER,
                disabled_slides=["closing-1"],
                pdf_path="generated/proposal-1.pdf",
            )
        )
        session.add(
            ProposalLink(
                id=LINK_ID,
                proposal_id=PROPOSAL_ID,
                token=LINK_TOKEN,
                recipient_email="jane@example.com",
                recipient_name="Jane Doe",
                is_active=True,
                expires_at=now + timedelta(days=30),
                allow_download=True,
                sent_by=ADVISER_ID,
                created_at=now,
            )
        )
        await session.commit()

    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def api_client(session_maker, mailer):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_mailer, None)


@pytest.fixture
def asgi_transport(api_client):
    """Transport for viewer_client tests; depends on api_client for the overrides."""
    return ASGITransport(app=app)


async def add_link(session_maker, **overrides) -> ProposalLink:
    values = {
        "id": "link-extra",
        "proposal_id": PROPOSAL_ID,
        "token": "extra-token",
        "recipient_email": "sam@example.com",
        "recipient_name": "Sam Smith",
        "is_active": True,
        "expires_at": None,
        "allow_download": False,
        "sent_by": ADVISER_ID,
        "created_at": datetime.now(timezone.utc),
    }
    values.update(overrides)
    link = ProposalLink(**values)
    async with session_maker() as session:
        session.add(link)
        await session.commit()
    return link
