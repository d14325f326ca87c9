"""Signed-in player pages."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from arena.errors import ConflictError, GatewayError, public_message
from arena.gateway import Gateway, Query
from arena.pages.base import FormController, Notice, PageController
from arena.pages.public import published_news, summarize
from arena.session import SessionState
from arena.tournaments import UPCOMING, annotate, derive_status, is_registration_open

logger = logging.getLogger("arena")

UNREGISTERED = "unregistered"
REGISTERING = "registering"
REGISTERED = "registered"

ALREADY_REGISTERED = "You are already registered for this tournament."


class DashboardHomeController(PageController):
    sections = {
        "stats": "No activity yet.",
        "recent_tournaments": "No tournaments available.",
        "recent_news": "No news yet.",
    }

    async def _stats(self) -> dict:
        player_id = self.session.identity.id
        participations, results, news = await asyncio.gather(
            self._rows(
                Query("tournament_participants")
                .select("tournament_id")
                .embed("tournaments", "tournaments", "tournament_id", ("id", "start_date", "end_date"))
                .eq("player_id", player_id)
            ),
            self.gateway.count(Query("tournament_results").select("id").eq("player_id", player_id)),
            self._rows(Query("news").select("id").eq("published", True).order("created_at", desc=True).limit(3)),
        )
        now = self.clock()
        upcoming = sum(
            1
            for p in participations
            if p.get("tournaments")
            and derive_status(p["tournaments"]["start_date"], p["tournaments"]["end_date"], now) == UPCOMING
        )
        return {
            "joined_tournaments": len(participations),
            "upcoming_tournaments": upcoming,
            "total_results": results,
            "recent_news": len(news),
        }

    async def _recent_tournaments(self) -> list[dict]:
        now = self.clock()
        rows = await self._rows(
            Query("tournaments").eq("published", True).order("created_at", desc=True).limit(3)
        )
        return [annotate(r, now) for r in rows]

    async def _recent_news(self) -> list[dict]:
        return [summarize(r) for r in await self._rows(published_news().limit(3))]

    async def load(self) -> None:
        if not self.session.signed_in:
            return
        await self._gather(
            self._load("stats", self._stats),
            self._load("recent_tournaments", self._recent_tournaments),
            self._load("recent_news", self._recent_news),
        )

    def extra_view(self) -> dict:
        return {"welcome_name": self.session.display_name}


class ProfileController(FormController):
    """Edit the signed-in player's own profile."""

    table = "profiles"
    fields = ("username", "full_name", "game_ids")
    required = ("username",)
    defaults = {"username": "", "full_name": "", "game_ids": []}
    owner_path = "/dashboard/profile"
    noun = "Profile"
    conflict_message = "That username is already taken."

    def __init__(self, gateway: Gateway, session: Optional[SessionState] = None, **kwargs):
        session = session or SessionState(loading=False)
        record_id = session.identity.id if session.identity else None
        super().__init__(gateway, session, record_id=record_id, **kwargs)

    async def load(self) -> None:
        if not self.record_id:
            self.not_found = True
            return
        await super().load()

    def extra_view(self) -> dict:
        out = super().extra_view()
        profile = self.session.profile or {}
        out.update(
            email=self.session.identity.email if self.session.identity else None,
            role=profile.get("role"),
            member_since=profile.get("created_at"),
        )
        return out


class UserTournamentsController(PageController):
    """Published tournaments with a per-tournament registration state."""

    sections = {"tournaments": "No tournaments available at the moment. Check back later!"}

    def __init__(self, gateway: Gateway, session: Optional[SessionState] = None, **kwargs):
        super().__init__(gateway, session, **kwargs)
        self.registrations: dict[str, str] = {}

    async def _tournaments(self) -> list[dict]:
        now = self.clock()
        rows = await self._rows(Query("tournaments").eq("published", True).order("start_date"))
        return [annotate(r, now) for r in rows]

    async def _load_registrations(self) -> None:
        if not self.session.signed_in:
            return
        try:
            rows = await self._rows(
                Query("tournament_participants").select("tournament_id").eq("player_id", self.session.identity.id)
            )
        except GatewayError:
            logger.exception("Error fetching registrations for %s", self.session.identity.id)
            return
        if not self.lifetime.alive:
            return
        for row in rows:
            self.registrations[row["tournament_id"]] = REGISTERED

    async def load(self) -> None:
        await self._gather(self._load("tournaments", self._tournaments), self._load_registrations())

    def state_of(self, tournament_id: str) -> str:
        return self.registrations.get(tournament_id, UNREGISTERED)

    async def _find(self, tournament_id: str) -> Optional[dict]:
        for row in self.section("tournaments").data:
            if row["id"] == tournament_id:
                return row
        result = await self.gateway.select(
            Query("tournaments").eq("id", tournament_id).eq("published", True).limit(1)
        )
        return result.first()

    async def register(self, tournament_id: str) -> Notice:
        if not self.session.signed_in:
            return self.notify(Notice.error("Please sign in to register.", status=401))
        state = self.state_of(tournament_id)
        if state == REGISTERED:
            return self.notify(Notice.info(ALREADY_REGISTERED))
        if state == REGISTERING:
            return self.notify(Notice.error("Registration already in progress.", status=409))

        self.registrations[tournament_id] = REGISTERING
        try:
            tournament = await self._find(tournament_id)
            if tournament is None:
                self.registrations.pop(tournament_id, None)
                return self.notify(Notice.error("Tournament not found.", status=404))
            if not is_registration_open(tournament, self.clock()):
                self.registrations.pop(tournament_id, None)
                return self.notify(Notice.error("Registration for this tournament is closed."))
            await self.gateway.insert(
                "tournament_participants",
                {
                    "tournament_id": tournament_id,
                    "player_id": self.session.identity.id,
                    "registered_at": self.clock(),
                },
            )
        except ConflictError:
            self.registrations[tournament_id] = REGISTERED
            return self.notify(Notice.info(ALREADY_REGISTERED))
        except GatewayError as e:
            logger.exception("Error registering %s for %s", self.session.identity.id, tournament_id)
            self.registrations.pop(tournament_id, None)
            return self.notify(Notice.error(public_message(e)))
        self.registrations[tournament_id] = REGISTERED
        logger.info("Player %s registered for %s", self.session.identity.id, tournament_id)
        return self.notify(Notice.success("Successfully registered for the tournament!"))

    def view(self) -> dict:
        out = super().view()
        rows = out["tournaments"]["data"]
        if rows:
            out["tournaments"]["data"] = [
                dict(
                    row,
                    registration=self.state_of(row["id"]),
                    can_register=row["registration_open"] and self.state_of(row["id"]) == UNREGISTERED,
                )
                for row in rows
            ]
        return out


class UserRegistrationsController(PageController):
    sections = {"registrations": "No registrations yet"}

    async def _registrations(self) -> list[dict]:
        now = self.clock()
        rows = await self._rows(
            Query("tournament_participants")
            .select("id", "registered_at")
            .embed("tournaments", "tournaments", "tournament_id", ("id", "title", "start_date", "end_date"))
            .eq("player_id", self.session.identity.id)
            .order("registered_at", desc=True)
        )
        return [
            dict(annotate(r["tournaments"], now), registered_at=r["registered_at"])
            for r in rows
            if r.get("tournaments")
        ]

    async def load(self) -> None:
        if self.session.signed_in:
            await self._load("registrations", self._registrations)


class UserResultsController(PageController):
    sections = {"results": "No results yet"}

    async def _results(self) -> list[dict]:
        rows = await self._rows(
            Query("tournament_results")
            .select("id", "tournament_id", "rank", "points")
            .embed("tournaments", "tournaments", "tournament_id", ("title",))
            .eq("player_id", self.session.identity.id)
            .order("created_at", desc=True)
        )
        return [
            {
                "id": r["id"],
                "tournament_id": r["tournament_id"],
                "tournament_title": (r.get("tournaments") or {}).get("title"),
                "rank": r["rank"],
                "points": r["points"],
            }
            for r in rows
        ]

    async def load(self) -> None:
        if self.session.signed_in:
            await self._load("results", self._results)
