"""Tests for the HTTP surface: routing, guards, sessions and page payloads."""
from datetime import datetime, timedelta, timezone

import pytest

from web.auth import ACCESS_COOKIE


@pytest.mark.asyncio
async def test_health(client):
    """Health endpoint returns ok."""
    r = await client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_home_renders_shell_and_empty_sections(client):
    r = await client.get("/")
    assert r.status_code == 200
    data = r.json()
    assert data["shell"]["page"] == "home"
    assert [link["label"] for link in data["shell"]["header"]["links"]] == ["Home", "News", "Tournaments"]
    assert data["page"]["featured_news"]["empty_message"] == "No featured news available."


@pytest.mark.asyncio
async def test_unknown_path_redirects_home(client):
    r = await client.get("/no/such/page")
    assert r.status_code == 307
    assert r.headers["location"] == "/"


@pytest.mark.asyncio
async def test_dashboard_requires_sign_in(client):
    r = await client.get("/dashboard")
    assert r.status_code == 303
    assert r.headers["location"] == "/auth"


@pytest.mark.asyncio
async def test_admin_requires_admin_role(client, player_headers):
    r = await client.get("/admin", headers=player_headers)
    assert r.status_code == 303
    assert r.headers["location"] == "/dashboard"


@pytest.mark.asyncio
async def test_sign_up_sets_session_cookies(client):
    r = await client.post(
        "/auth/sign-up",
        json={"email": "new@example.com", "password": "pw123456", "username": "newbie"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["notice"]["redirect"] == "/dashboard"
    assert body["session"]["profile"]["username"] == "newbie"
    cookies = r.headers.get_list("set-cookie")
    assert any(c.startswith(f"{ACCESS_COOKIE}=") for c in cookies)


@pytest.mark.asyncio
async def test_cookie_session_reaches_dashboard(client):
    r = await client.post(
        "/auth/sign-up",
        json={"email": "kim@example.com", "password": "pw123456", "username": "kim", "full_name": "Kim K"},
    )
    token = r.json()["access_token"]
    client.cookies.clear()

    r = await client.get("/dashboard", headers={"Cookie": f"{ACCESS_COOKIE}={token}"})
    assert r.status_code == 200
    data = r.json()
    assert data["page"]["welcome_name"] == "Kim K"
    assert data["shell"]["layout"] == "signed_in"
    active = [item["label"] for item in data["shell"]["sidebar"] if item["active"]]
    assert active == ["Dashboard"]


@pytest.mark.asyncio
async def test_duplicate_sign_up_is_conflict(client, player_headers):
    r = await client.post(
        "/auth/sign-up",
        json={"email": "p1@example.com", "password": "other", "username": "someone"},
    )
    assert r.status_code == 409
    assert r.json()["notice"]["level"] == "error"


@pytest.mark.asyncio
async def test_sign_in_wrong_password(client, player_headers):
    r = await client.post("/auth/sign-in", json={"email": "p1@example.com", "password": "nope"})
    assert r.status_code == 401
    assert r.json()["notice"]["message"] == "Invalid e-mail or password."


@pytest.mark.asyncio
async def test_initial_admin_bootstrap(client, admin_headers):
    r = await client.get("/admin", headers=admin_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["page"]["stats"]["data"]["total_players"] == 1
    labels = [link["label"] for link in data["shell"]["header"]["links"]]
    assert "Admin Panel" in labels

    # second sign-in uses the stored account
    r = await client.post("/auth/sign-in", json={"email": "admin@example.com", "password": "testpass123"})
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_sign_out_revokes_token(client, player_headers):
    r = await client.post("/auth/sign-out", headers=player_headers)
    assert r.status_code == 200
    assert r.json()["notice"]["redirect"] == "/"

    r = await client.get("/dashboard", headers=player_headers)
    assert r.status_code == 303

    # signing out again is harmless
    r = await client.post("/auth/sign-out", headers=player_headers)
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_news_publish_flow(client, admin_headers):
    r = await client.post(
        "/admin/create",
        json={"title": "Hello", "excerpt": "Short", "content": "Body", "featured": True},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json()["notice"]["message"] == "News successfully created."

    # unpublished: visible in admin, not in public listings
    r = await client.get("/admin/news", headers=admin_headers)
    (article,) = r.json()["page"]["news"]["data"]
    r = await client.get("/")
    assert r.json()["page"]["featured_news"]["data"] == []
    r = await client.get(f"/news/{article['id']}")
    assert r.status_code == 404

    r = await client.post(f"/admin/news/{article['id']}/toggle-published", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["page"]["news"]["data"][0]["published"] is True

    r = await client.get("/")
    assert [n["title"] for n in r.json()["page"]["featured_news"]["data"]] == ["Hello"]
    r = await client.get(f"/news/{article['id']}")
    assert r.status_code == 200
    assert r.json()["page"]["share_text"] == "Short"


@pytest.mark.asyncio
async def test_news_edit_keeps_unsent_fields(client, admin_headers):
    r = await client.post(
        "/admin/create",
        json={"title": "Draft", "excerpt": "Ex", "content": "Body", "published": True},
        headers=admin_headers,
    )
    r = await client.get("/admin/news", headers=admin_headers)
    article_id = r.json()["page"]["news"]["data"][0]["id"]

    r = await client.put(f"/admin/create/{article_id}", json={"title": "Final"}, headers=admin_headers)
    assert r.status_code == 200
    r = await client.get(f"/admin/create/{article_id}", headers=admin_headers)
    values = r.json()["page"]["values"]
    assert values["title"] == "Final"
    assert values["content"] == "Body"
    assert values["published"] is True


@pytest.mark.asyncio
async def test_delete_needs_confirm(client, admin_headers):
    await client.post(
        "/admin/create",
        json={"title": "Bye", "excerpt": "E", "content": "C"},
        headers=admin_headers,
    )
    r = await client.get("/admin/news", headers=admin_headers)
    article_id = r.json()["page"]["news"]["data"][0]["id"]

    r = await client.delete(f"/admin/news/{article_id}", headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["notice"]["level"] == "info"

    r = await client.delete(f"/admin/news/{article_id}?confirm=true", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["page"]["news"]["data"] == []


@pytest.mark.asyncio
async def test_tournament_registration_flow(client, admin_headers, player_headers):
    start = datetime.now(timezone.utc) + timedelta(days=7)
    r = await client.post(
        "/admin/tournaments",
        json={
            "title": "Open Cup",
            "game_type": "chess",
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=1)).isoformat(),
            "registration_deadline": (start - timedelta(days=1)).isoformat(),
            "published": True,
        },
        headers=admin_headers,
    )
    assert r.status_code == 200
    (tournament,) = r.json()["page"]["tournaments"]["data"]
    assert tournament["status"] == "upcoming"

    r = await client.get("/tournaments?status=upcoming")
    assert [t["title"] for t in r.json()["page"]["tournaments"]["data"]] == ["Open Cup"]

    r = await client.post(f"/dashboard/tournaments/{tournament['id']}/register", headers=player_headers)
    assert r.status_code == 200
    assert r.json()["registration"] == "registered"

    r = await client.post(f"/dashboard/tournaments/{tournament['id']}/register", headers=player_headers)
    assert r.status_code == 200
    assert r.json()["notice"]["level"] == "info"

    r = await client.get("/dashboard/tournaments", headers=player_headers)
    (row,) = r.json()["page"]["tournaments"]["data"]
    assert row["registration"] == "registered"
    assert row["can_register"] is False

    r = await client.get(f"/admin/tournaments/{tournament['id']}/registrations", headers=admin_headers)
    (registration,) = r.json()["page"]["registrations"]["data"]
    assert registration["profiles"]["username"] == "p1"


@pytest.mark.asyncio
async def test_tournament_form_requires_dates(client, admin_headers):
    r = await client.post("/admin/tournaments", json={"title": "No dates", "game_type": "go"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["notice"]["message"].startswith("Required:")


@pytest.mark.asyncio
async def test_invalid_status_filter(client):
    r = await client.get("/tournaments?status=cancelled")
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_results_leaderboard(client, admin_headers, player_headers):
    start = datetime.now(timezone.utc) - timedelta(days=3)
    r = await client.post(
        "/admin/tournaments",
        json={
            "title": "Past Cup",
            "game_type": "chess",
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=1)).isoformat(),
            "registration_deadline": (start - timedelta(days=1)).isoformat(),
        },
        headers=admin_headers,
    )
    tournament_id = r.json()["page"]["tournaments"]["data"][0]["id"]
    r = await client.get("/auth/session", headers=player_headers)
    player_id = r.json()["user"]["id"]

    r = await client.post(
        "/admin/results",
        json={"tournament_id": tournament_id, "player_id": player_id, "rank": 1, "points": 25},
        headers=admin_headers,
    )
    assert r.status_code == 200
    (result,) = r.json()["page"]["results"]["data"]
    assert result["player_name"] == "p1"

    r = await client.get("/dashboard/results", headers=player_headers)
    (mine,) = r.json()["page"]["results"]["data"]
    assert mine["tournament_title"] == "Past Cup"
    assert mine["points"] == 25


@pytest.mark.asyncio
async def test_news_pages_concatenate(client, admin_headers):
    for i in range(11):
        await client.post(
            "/admin/create",
            json={"title": f"N{i}", "excerpt": "E", "content": "C", "published": True},
            headers=admin_headers,
        )
    r = await client.get("/news")
    page = r.json()["page"]
    assert len(page["news"]["data"]) == 9
    assert page["has_more"] is True

    r = await client.get("/news?page=2")
    page = r.json()["page"]
    assert len(page["news"]["data"]) == 11
    assert page["has_more"] is False


@pytest.mark.asyncio
async def test_session_adopted_from_url(client):
    r = await client.post(
        "/auth/sign-up",
        json={"email": "url@example.com", "password": "pw123456", "username": "urluser"},
    )
    token = r.json()["access_token"]
    client.cookies.clear()

    r = await client.get(f"/dashboard?access_token={token}")
    assert r.status_code == 200
    assert r.json()["shell"]["header"]["user"]["username"] == "urluser"
    cookies = r.headers.get_list("set-cookie")
    assert any(c.startswith(f"{ACCESS_COOKIE}=") for c in cookies)


@pytest.mark.asyncio
async def test_trailing_slash_goes_to_known_route(client):
    r = await client.get("/news/?page=2")
    assert r.status_code == 307
    assert r.headers["location"] == "/news?page=2"

    r = await client.get("/admin/news/")
    assert r.headers["location"] == "/admin/news"

    r = await client.get("/nowhere/")
    assert r.headers["location"] == "/"


@pytest.mark.asyncio
async def test_profile_rejects_null_game_ids(client, player_headers):
    r = await client.put("/dashboard/profile", json={"game_ids": None}, headers=player_headers)
    assert r.status_code == 422

    r = await client.put("/dashboard/profile", json={"game_ids": ["chess:7"]}, headers=player_headers)
    assert r.status_code == 200
    assert r.json()["page"]["values"]["game_ids"] == ["chess:7"]
