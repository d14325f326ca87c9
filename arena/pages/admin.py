"""Admin pages: overview, news, tournaments, players and results management."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from arena.errors import GatewayError, public_message
from arena.gateway import Gateway, Query
from arena.pages.base import FormController, Notice, PageController
from arena.session import SessionState
from arena.tournaments import annotate, derive_status, filter_by_status, parse_timestamp

logger = logging.getLogger("arena")

PLAYER_COLUMNS = ("username", "full_name")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class AdminHomeController(PageController):
    sections = {
        "stats": "No statistics available.",
        "recent_activity": "No recent activity.",
    }

    STAT_KEYS = (
        "total_players",
        "total_news",
        "published_news",
        "total_tournaments",
        "active_tournaments",
        "total_registrations",
    )

    async def _stats(self) -> dict:
        now = self.clock()
        counts = await asyncio.gather(
            self.gateway.count(Query("profiles").select("id").count("estimated")),
            self.gateway.count(Query("news").select("id").count("estimated")),
            self.gateway.count(Query("news").select("id").eq("published", True).count("estimated")),
            self.gateway.count(Query("tournaments").select("id").count("estimated")),
            self.gateway.count(filter_by_status(Query("tournaments").select("id"), "active", now).count("estimated")),
            self.gateway.count(Query("tournament_participants").select("id").count("estimated")),
        )
        return dict(zip(self.STAT_KEYS, counts))

    async def _recent_activity(self) -> list[dict]:
        now = self.clock()
        news, tournaments = await asyncio.gather(
            self._rows(
                Query("news").select("id", "title", "created_at", "published").order("created_at", desc=True).limit(5)
            ),
            self._rows(
                Query("tournaments")
                .select("id", "title", "created_at", "start_date", "end_date")
                .order("created_at", desc=True)
                .limit(5)
            ),
        )
        items = [dict(row, type="news") for row in news]
        for row in tournaments:
            items.append(
                {
                    "id": row["id"],
                    "title": row["title"],
                    "created_at": row["created_at"],
                    "status": derive_status(row["start_date"], row["end_date"], now),
                    "type": "tournament",
                }
            )
        items.sort(key=lambda item: parse_timestamp(item["created_at"]) or _EPOCH, reverse=True)
        return items[:8]

    async def load(self) -> None:
        await self._gather(
            self._load("stats", self._stats),
            self._load("recent_activity", self._recent_activity),
        )


class AdminNewsController(PageController):
    sections = {"news": "No news articles found."}

    def __init__(self, gateway: Gateway, session: Optional[SessionState] = None, search: str = "", **kwargs):
        super().__init__(gateway, session, **kwargs)
        self.search = (search or "").strip()

    async def _news(self) -> list[dict]:
        query = Query("news").order("created_at", desc=True)
        if self.search:
            query.ilike("title", f"%{self.search}%")
        return await self._rows(query)

    async def load(self) -> None:
        await self._load("news", self._news)

    async def toggle_published(self, article_id: str) -> Notice:
        return await self._toggle("news", "news", article_id, "published")

    async def toggle_featured(self, article_id: str) -> Notice:
        return await self._toggle("news", "news", article_id, "featured")

    async def delete(self, article_id: str, confirm: bool = False) -> Notice:
        notice = await self._delete_row("news", article_id, confirm, "article")
        if notice.level == "success":
            section = self.section("news")
            section.data = [row for row in section.data if row["id"] != article_id]
        return notice

    def extra_view(self) -> dict:
        return {"search": self.search}


class NewsFormController(FormController):
    table = "news"
    fields = ("title", "excerpt", "content", "published", "featured")
    required = ("title", "excerpt", "content")
    defaults = {"title": "", "excerpt": "", "content": "", "published": False, "featured": False}
    owner_path = "/admin/news"
    noun = "News"
    author_field = "author_id"


class TournamentFormController(FormController):
    """Tournament create/edit. ``status`` is never taken from the form; it follows the dates."""

    table = "tournaments"
    fields = (
        "title",
        "description",
        "game_type",
        "start_date",
        "end_date",
        "registration_deadline",
        "max_participants",
        "published",
    )
    required = ("title", "game_type", "start_date", "end_date", "registration_deadline")
    defaults = {
        "title": "",
        "description": "",
        "game_type": "",
        "start_date": None,
        "end_date": None,
        "registration_deadline": None,
        "max_participants": 0,
        "published": False,
    }
    owner_path = "/admin/tournaments"
    noun = "Tournament"
    author_field = "created_by"

    def validate(self) -> Optional[str]:
        try:
            start = parse_timestamp(self.values["start_date"])
            end = parse_timestamp(self.values["end_date"])
            parse_timestamp(self.values["registration_deadline"])
        except (TypeError, ValueError):
            return "Dates must be valid ISO timestamps."
        if end < start:
            return "The end date must not be before the start date."
        try:
            int(self.values.get("max_participants") or 0)
        except (TypeError, ValueError):
            return "Max participants must be a number."
        return None

    def build_payload(self, now: datetime) -> dict:
        payload = super().build_payload(now)
        payload["max_participants"] = int(payload.get("max_participants") or 0)
        payload["status"] = derive_status(payload["start_date"], payload["end_date"], now)
        return payload

    def extra_view(self) -> dict:
        out = super().extra_view()
        if self.values.get("start_date") and self.values.get("end_date"):
            out["status"] = derive_status(self.values["start_date"], self.values["end_date"], self.clock())
        return out


class AdminTournamentsController(PageController):
    sections = {
        "tournaments": "No tournaments yet. Create the first one.",
        "registrations": "No registrations yet.",
    }

    def __init__(self, gateway: Gateway, session: Optional[SessionState] = None, **kwargs):
        super().__init__(gateway, session, **kwargs)
        self.registrations_for: Optional[str] = None

    async def _tournaments(self) -> list[dict]:
        now = self.clock()
        rows = await self._rows(Query("tournaments").order("created_at", desc=True))
        return [annotate(r, now) for r in rows]

    async def load(self) -> None:
        await self._load("tournaments", self._tournaments)

    async def load_registrations(self, tournament_id: str) -> None:
        self.registrations_for = tournament_id

        async def fetch():
            return await self._rows(
                Query("tournament_participants")
                .select("id", "player_id", "registered_at")
                .embed("profiles", "profiles", "player_id", PLAYER_COLUMNS)
                .eq("tournament_id", tournament_id)
                .order("registered_at")
            )

        await self._load("registrations", fetch)

    async def save(self, values: dict, record_id: Optional[str] = None) -> Notice:
        form = TournamentFormController(
            self.gateway, self.session, record_id=record_id, lifetime=self.lifetime, now=self.now
        )
        if record_id:
            await form.load()
            if form.not_found:
                return self.notify(Notice.error("Tournament not found.", status=404))
        notice = self.notify(await form.submit(values))
        if notice.ok:
            await self.load()
        return notice

    async def toggle_published(self, tournament_id: str) -> Notice:
        return await self._toggle("tournaments", "tournaments", tournament_id, "published")

    async def delete(self, tournament_id: str, confirm: bool = False) -> Notice:
        notice = await self._delete_row("tournaments", tournament_id, confirm, "tournament")
        if notice.level == "success":
            await self.load()
        return notice

    def extra_view(self) -> dict:
        return {"registrations_for": self.registrations_for}


class AdminPlayersController(PageController):
    sections = {
        "players": "No players found.",
        "history": "No tournament participation yet.",
    }

    def __init__(self, gateway: Gateway, session: Optional[SessionState] = None, search: str = "", **kwargs):
        super().__init__(gateway, session, **kwargs)
        self.search = (search or "").strip()
        self.selected: Optional[dict] = None

    async def _players(self) -> list[dict]:
        return await self._rows(Query("profiles").order("created_at", desc=True))

    async def load(self) -> None:
        await self._load("players", self._players)

    def filtered(self) -> list[dict]:
        needle = self.search.lower()
        rows = self.section("players").data
        if not needle:
            return rows
        return [
            row
            for row in rows
            if needle in (row.get("username") or "").lower() or needle in (row.get("full_name") or "").lower()
        ]

    async def select_player(self, player_id: str) -> None:
        self.selected = next((row for row in self.section("players").data if row["id"] == player_id), None)
        if self.selected is None:
            try:
                result = await self.gateway.select(Query("profiles").eq("id", player_id).limit(1))
            except GatewayError:
                logger.exception("Error fetching player %s", player_id)
                self.notify(Notice.error("Could not load this player."))
                return
            self.selected = result.first()
        if self.selected is None:
            self.notify(Notice.error("Player not found.", status=404))
            return

        async def fetch():
            return await self._rows(
                Query("tournament_participants")
                .select("id", "tournament_id", "registered_at")
                .embed("tournaments", "tournaments", "tournament_id", ("title",))
                .eq("player_id", player_id)
                .order("registered_at", desc=True)
            )

        await self._load("history", fetch)

    async def delete_player(self, player_id: str, confirm: bool = False) -> Notice:
        notice = await self._delete_row("profiles", player_id, confirm, "player")
        if notice.level == "success":
            if self.selected and self.selected["id"] == player_id:
                self.selected = None
            await self.load()
        return notice

    def view(self) -> dict:
        out = super().view()
        if out["players"]["data"] is not None:
            rows = self.filtered()
            out["players"]["data"] = rows
            out["players"]["empty"] = self.section("players").loaded and not rows
            if out["players"]["empty"]:
                out["players"]["empty_message"] = self.section("players").empty_message
        out["search"] = self.search
        out["total"] = len(self.section("players").data)
        out["selected"] = self.selected
        return out


class LeaderboardController(PageController):
    """Results per tournament, ordered by rank. Results load only once a tournament is selected."""

    sections = {
        "tournaments": "No tournaments yet.",
        "results": "No results recorded for this tournament yet.",
    }

    def __init__(self, gateway: Gateway, session: Optional[SessionState] = None, **kwargs):
        super().__init__(gateway, session, **kwargs)
        self.selected_id: Optional[str] = None

    async def load(self) -> None:
        await self._load(
            "tournaments",
            lambda: self._rows(Query("tournaments").select("id", "title").order("created_at", desc=True)),
        )

    async def select(self, tournament_id: str) -> None:
        self.selected_id = tournament_id

        async def fetch():
            rows = await self._rows(
                Query("tournament_results")
                .select("id", "player_id", "rank", "points")
                .embed("profiles", "profiles", "player_id", PLAYER_COLUMNS)
                .eq("tournament_id", tournament_id)
                .order("rank")
            )
            return [
                {
                    "id": r["id"],
                    "player_id": r["player_id"],
                    "player_name": (r.get("profiles") or {}).get("username") or "Unknown player",
                    "rank": r["rank"],
                    "points": r["points"],
                }
                for r in rows
            ]

        await self._load("results", fetch)

    async def record_result(self, tournament_id: str, player_id: str, rank, points=0) -> Notice:
        if not tournament_id or not player_id or rank in (None, ""):
            return self.notify(Notice.error("Tournament, player and rank are required."))
        try:
            await self.gateway.insert(
                "tournament_results",
                {
                    "tournament_id": tournament_id,
                    "player_id": player_id,
                    "rank": int(rank),
                    "points": int(points or 0),
                    "created_at": self.clock(),
                },
            )
        except GatewayError as e:
            logger.exception("Error recording result for %s in %s", player_id, tournament_id)
            return self.notify(Notice.error(public_message(e)))
        if self.selected_id == tournament_id:
            await self.select(tournament_id)
        return self.notify(Notice.success("Result recorded."))

    async def delete_result(self, result_id: str, confirm: bool = False) -> Notice:
        notice = await self._delete_row("tournament_results", result_id, confirm, "result")
        if notice.level == "success" and self.selected_id:
            await self.select(self.selected_id)
        return notice

    def extra_view(self) -> dict:
        selected = next(
            (t for t in self.section("tournaments").data if t["id"] == self.selected_id),
            None,
        )
        return {"selected_tournament": selected or ({"id": self.selected_id} if self.selected_id else None)}
