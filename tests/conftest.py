"""Pytest configuration and fixtures."""
import os

# Set test env BEFORE any imports that use config
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_KEY"] = ""
os.environ["SUPABASE_SERVICE_KEY"] = ""
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-that-is-long-enough-for-hs256-signing"
os.environ["INITIAL_ADMIN_EMAIL"] = "admin@example.com"
os.environ["INITIAL_ADMIN_PASSWORD"] = "testpass123"

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from arena.gateway import Identity
from arena.gateway.sql import SqlGateway
from arena.models.base import new_id
from arena.session import SessionState
from web.api.main import app

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class Seed:
    """Inserts rows with strictly increasing ``created_at`` so newest-first order is deterministic."""

    def __init__(self, gateway: SqlGateway):
        self.gateway = gateway
        self._tick = 0

    def next_time(self) -> datetime:
        self._tick += 1
        return BASE_TIME + timedelta(minutes=self._tick)

    async def profile(self, username="player1", role="player", full_name=None, **values):
        row = {
            "id": new_id(),
            "username": username,
            "full_name": full_name,
            "role": role,
            "game_ids": [],
            "created_at": self.next_time(),
        }
        row.update(values)
        return await self.gateway.insert("profiles", row)

    async def news(self, author, title="Headline", published=True, featured=False, **values):
        row = {
            "title": title,
            "content": f"{title} body text",
            "excerpt": f"{title} excerpt",
            "author_id": author["id"],
            "published": published,
            "featured": featured,
            "created_at": self.next_time(),
        }
        row.update(values)
        return await self.gateway.insert("news", row)

    async def tournament(
        self,
        creator,
        title="Spring Cup",
        starts_in=timedelta(days=10),
        duration=timedelta(days=2),
        deadline_before_start=timedelta(days=1),
        published=True,
        game_type="chess",
        **values,
    ):
        start = datetime.now(timezone.utc) + starts_in
        row = {
            "title": title,
            "description": f"{title} description",
            "game_type": game_type,
            "start_date": start,
            "end_date": start + duration,
            "registration_deadline": start - deadline_before_start,
            "max_participants": 16,
            "status": "upcoming",
            "published": published,
            "created_by": creator["id"],
            "created_at": self.next_time(),
        }
        row.update(values)
        return await self.gateway.insert("tournaments", row)

    async def participant(self, tournament, player):
        return await self.gateway.insert(
            "tournament_participants",
            {"tournament_id": tournament["id"], "player_id": player["id"], "registered_at": self.next_time()},
        )

    async def result(self, tournament, player, rank, points=0):
        return await self.gateway.insert(
            "tournament_results",
            {
                "tournament_id": tournament["id"],
                "player_id": player["id"],
                "rank": rank,
                "points": points,
                "created_at": self.next_time(),
            },
        )


def _session_for(profile: dict) -> SessionState:
    return SessionState(
        identity=Identity(id=profile["id"], email=f"{profile['username']}@example.com"),
        profile=profile,
        loading=False,
    )


@pytest.fixture
def session_for():
    """Build a signed-in session state for a seeded profile."""
    return _session_for


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def gateway(tmp_path):
    """Fresh SQL gateway on a throwaway SQLite file per test."""
    gw = SqlGateway(f"sqlite+aiosqlite:///{tmp_path / 'arena.db'}")
    await gw.init()
    yield gw
    await gw.close()


@pytest.fixture
def seed(gateway):
    return Seed(gateway)


@pytest.fixture
async def admin(seed):
    return await seed.profile("admin", role="admin", full_name="Site Admin")


@pytest.fixture
async def player(seed):
    return await seed.profile("player1", full_name="Player One")


@pytest.fixture
async def client(gateway):
    """Async HTTP client for the app (ASGI lifespan doesn't run with httpx, so the gateway is set here)."""
    app.state.gateway = gateway
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


async def _bearer(r) -> dict:
    assert r.status_code == 200, f"Auth failed: {r.text}"
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
async def player_headers(client):
    """Sign up a player and return Authorization headers."""
    r = await client.post(
        "/auth/sign-up",
        json={"email": "p1@example.com", "password": "secret123", "username": "p1", "full_name": "P One"},
    )
    return await _bearer(r)


@pytest.fixture
async def admin_headers(client):
    """Sign in with the initial admin credentials (bootstraps the account) and return headers."""
    r = await client.post(
        "/auth/sign-in",
        json={"email": "admin@example.com", "password": "testpass123"},
    )
    return await _bearer(r)
