"""Tests for the admin controllers."""
from datetime import datetime, timedelta, timezone

import pytest

from arena.gateway import Query
from arena.pages.admin import (
    AdminHomeController,
    AdminNewsController,
    AdminPlayersController,
    AdminTournamentsController,
    LeaderboardController,
    NewsFormController,
    TournamentFormController,
)


@pytest.mark.asyncio
async def test_admin_home_counts(gateway, seed, admin, player, monkeypatch):
    live = await seed.tournament(admin, "Live", starts_in=timedelta(days=-1))
    await seed.tournament(admin, "Next")
    await seed.tournament(admin, "Over", starts_in=timedelta(days=-30))
    await seed.participant(live, player)
    await seed.news(admin, "Out")
    await seed.news(admin, "Draft", published=False)

    methods = []
    original = gateway.select

    async def recording_select(query):
        methods.append(query.count_method)
        return await original(query)

    monkeypatch.setattr(gateway, "select", recording_select)
    controller = AdminHomeController(gateway)
    await controller.load()

    assert controller.section("stats").data == {
        "total_players": 2,
        "total_news": 2,
        "published_news": 1,
        "total_tournaments": 3,
        "active_tournaments": 2,
        "total_registrations": 1,
    }
    assert methods.count("estimated") == 6


@pytest.mark.asyncio
async def test_admin_recent_activity_merged_and_truncated(gateway, seed, admin):
    for i in range(5):
        await seed.news(admin, f"News {i}")
        await seed.tournament(admin, f"Cup {i}")

    controller = AdminHomeController(gateway)
    await controller.load()
    activity = controller.section("recent_activity").data

    assert len(activity) == 8
    assert [a["title"] for a in activity[:4]] == ["Cup 4", "News 4", "Cup 3", "News 3"]
    assert activity[0]["type"] == "tournament"
    assert activity[0]["status"] == "upcoming"
    assert activity[1]["type"] == "news"


@pytest.mark.asyncio
async def test_admin_news_lists_unpublished_and_searches(gateway, seed, admin):
    await seed.news(admin, "Season recap", published=False, featured=True)
    await seed.news(admin, "Patch notes")

    everything = AdminNewsController(gateway)
    await everything.load()
    assert [n["title"] for n in everything.section("news").data] == ["Patch notes", "Season recap"]

    search = AdminNewsController(gateway, search="  RECAP ")
    await search.load()
    assert [n["title"] for n in search.section("news").data] == ["Season recap"]


@pytest.mark.asyncio
async def test_toggle_published_twice_restores(gateway, seed, admin):
    article = await seed.news(admin, "Toggle me", published=False)
    controller = AdminNewsController(gateway)
    await controller.load()

    first = await controller.toggle_published(article["id"])
    assert first.level == "success"
    assert controller.section("news").data[0]["published"] is True
    stored = (await gateway.select(Query("news").eq("id", article["id"]))).first()
    assert stored["published"] is True

    await controller.toggle_published(article["id"])
    assert controller.section("news").data[0]["published"] is False
    stored = (await gateway.select(Query("news").eq("id", article["id"]))).first()
    assert stored["published"] is False


@pytest.mark.asyncio
async def test_toggle_without_loaded_rows_reads_remote(gateway, seed, admin):
    article = await seed.news(admin, featured=False)
    controller = AdminNewsController(gateway)
    await controller.toggle_featured(article["id"])
    stored = (await gateway.select(Query("news").eq("id", article["id"]))).first()
    assert stored["featured"] is True


@pytest.mark.asyncio
async def test_delete_requires_confirmation(gateway, seed, admin):
    article = await seed.news(admin, "Keep?")
    controller = AdminNewsController(gateway)
    await controller.load()

    pending = await controller.delete(article["id"])
    assert pending.level == "info"
    assert pending.status == 409
    assert len(controller.section("news").data) == 1

    done = await controller.delete(article["id"], confirm=True)
    assert done.level == "success"
    assert controller.section("news").data == []
    assert await gateway.count(Query("news").select("id")) == 0

    missing = await controller.delete(article["id"], confirm=True)
    assert missing.status == 404


@pytest.mark.asyncio
async def test_news_form_create_and_edit(gateway, admin, session_for):
    form = NewsFormController(gateway, session_for(admin))
    created = await form.submit({"title": "Launch", "excerpt": "Short", "content": "Long body", "featured": True})

    assert created.message == "News successfully created."
    assert created.redirect == "/admin/news"
    row = (await gateway.select(Query("news"))).first()
    assert row["author_id"] == admin["id"]
    assert row["featured"] is True
    assert row["published"] is False

    edit = NewsFormController(gateway, session_for(admin), record_id=row["id"])
    await edit.load()
    assert edit.values["title"] == "Launch"
    updated = await edit.submit({"title": "Launch day"})
    assert updated.message == "News successfully updated."

    stored = (await gateway.select(Query("news").eq("id", row["id"]))).first()
    assert stored["title"] == "Launch day"
    assert stored["created_at"] == row["created_at"]
    assert stored["updated_at"] >= row["updated_at"]


@pytest.mark.asyncio
async def test_news_form_required_fields_and_in_flight(gateway, admin, session_for):
    form = NewsFormController(gateway, session_for(admin))
    notice = await form.submit({"title": "Only a title"})
    assert notice.level == "error"
    assert notice.message == "Required: excerpt, content."
    # values preserved for retry
    assert form.values["title"] == "Only a title"

    form.in_flight = True
    busy = await form.submit({"excerpt": "e", "content": "c"})
    assert busy.status == 409
    assert await gateway.count(Query("news").select("id")) == 0


@pytest.mark.asyncio
async def test_news_form_edit_missing_record(gateway, admin, session_for):
    form = NewsFormController(gateway, session_for(admin), record_id="does-not-exist")
    await form.load()
    assert form.view()["not_found"] is True


@pytest.mark.asyncio
async def test_tournament_form_derives_status(gateway, admin, session_for):
    now = datetime.now(timezone.utc)
    form = TournamentFormController(gateway, session_for(admin))
    notice = await form.submit(
        {
            "title": "Already running",
            "game_type": "chess",
            "start_date": (now - timedelta(days=1)).isoformat(),
            "end_date": (now + timedelta(days=1)).isoformat(),
            "registration_deadline": (now - timedelta(days=2)).isoformat(),
            "max_participants": "32",
            "status": "upcoming",
        }
    )
    assert notice.level == "success"
    row = (await gateway.select(Query("tournaments"))).first()
    assert row["status"] == "ongoing"
    assert row["max_participants"] == 32
    assert row["created_by"] == admin["id"]


@pytest.mark.asyncio
async def test_tournament_form_rejects_end_before_start(gateway, admin, session_for):
    now = datetime.now(timezone.utc)
    form = TournamentFormController(gateway, session_for(admin))
    notice = await form.submit(
        {
            "title": "Backwards",
            "game_type": "go",
            "start_date": now + timedelta(days=3),
            "end_date": now + timedelta(days=1),
            "registration_deadline": now,
        }
    )
    assert notice.level == "error"
    assert "end date" in notice.message


@pytest.mark.asyncio
async def test_admin_tournaments_save_delete_and_registrations(gateway, seed, admin, player, session_for):
    controller = AdminTournamentsController(gateway, session_for(admin))
    await controller.load()
    assert controller.view()["tournaments"]["empty"] is True

    start = datetime.now(timezone.utc) + timedelta(days=7)
    saved = await controller.save(
        {
            "title": "Created here",
            "game_type": "chess",
            "start_date": start,
            "end_date": start + timedelta(days=1),
            "registration_deadline": start - timedelta(days=1),
        }
    )
    assert saved.level == "success"
    (row,) = controller.section("tournaments").data
    assert row["title"] == "Created here"
    assert row["published"] is False

    toggled = await controller.toggle_published(row["id"])
    assert toggled.level == "success"
    assert controller.section("tournaments").data[0]["published"] is True

    await seed.participant(row, player)
    await controller.load_registrations(row["id"])
    (registration,) = controller.section("registrations").data
    assert registration["profiles"]["username"] == "player1"

    deleted = await controller.delete(row["id"], confirm=True)
    assert deleted.level == "success"
    assert controller.section("tournaments").data == []


@pytest.mark.asyncio
async def test_admin_tournaments_edit_unknown_id(gateway, admin, session_for):
    controller = AdminTournamentsController(gateway, session_for(admin))
    notice = await controller.save({"title": "x"}, record_id="missing")
    assert notice.status == 404


@pytest.mark.asyncio
async def test_players_search_is_client_side(gateway, seed, admin):
    await seed.profile("zed", full_name="Zed Alpha")
    await seed.profile("amy", full_name="Amy Zimmer")
    await seed.profile("bob")

    controller = AdminPlayersController(gateway, search="ZIM")
    await controller.load()
    view = controller.view()

    assert [p["username"] for p in view["players"]["data"]] == ["amy"]
    assert view["total"] == 4

    controller.search = "nobody"
    view = controller.view()
    assert view["players"]["data"] == []
    assert view["players"]["empty_message"] == "No players found."


@pytest.mark.asyncio
async def test_player_history_and_delete_with_rows(gateway, seed, admin, player):
    t = await seed.tournament(admin, "History Cup")
    await seed.participant(t, player)
    await seed.result(t, player, rank=1, points=9)

    controller = AdminPlayersController(gateway)
    await controller.load()
    await controller.select_player(player["id"])
    view = controller.view()
    assert view["selected"]["username"] == "player1"
    assert [h["tournaments"]["title"] for h in view["history"]["data"]] == ["History Cup"]

    notice = await controller.delete_player(player["id"], confirm=True)

    assert notice.level == "success"
    assert controller.view()["selected"] is None
    assert [p["username"] for p in controller.section("players").data] == ["admin"]
    assert await gateway.count(Query("tournament_results").select("id")) == 0


@pytest.mark.asyncio
async def test_leaderboard_waits_for_selection_and_sorts_by_rank(gateway, seed, admin):
    t = await seed.tournament(admin, "Final")
    ann = await seed.profile("ann")
    ben = await seed.profile("ben")
    cat = await seed.profile("cat")
    await seed.result(t, ben, rank=2, points=50)
    await seed.result(t, cat, rank=3, points=99)
    await seed.result(t, ann, rank=1, points=10)

    controller = LeaderboardController(gateway)
    await controller.load()
    assert controller.section("results").loaded is False

    await controller.select(t["id"])
    results = controller.section("results").data
    # stored rank is authoritative, points are not used for ordering
    assert [(r["player_name"], r["rank"]) for r in results] == [("ann", 1), ("ben", 2), ("cat", 3)]
    assert controller.view()["selected_tournament"]["title"] == "Final"


@pytest.mark.asyncio
async def test_leaderboard_record_and_delete_result(gateway, seed, admin, player):
    t = await seed.tournament(admin, "Cup")
    controller = LeaderboardController(gateway)
    await controller.load()
    await controller.select(t["id"])
    assert controller.view()["results"]["empty_message"] == "No results recorded for this tournament yet."

    recorded = await controller.record_result(t["id"], player["id"], rank=1, points=30)
    assert recorded.level == "success"
    (row,) = controller.section("results").data
    assert row["player_name"] == "player1"

    missing = await controller.record_result(t["id"], "", rank=1)
    assert missing.level == "error"

    deleted = await controller.delete_result(row["id"], confirm=True)
    assert deleted.level == "success"
    assert controller.section("results").data == []
