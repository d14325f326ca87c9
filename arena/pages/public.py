"""Public pages: home, news list, news detail, tournament list."""
from __future__ import annotations

import logging
from typing import Optional

import config
from arena.errors import GENERIC_READ_MESSAGE, GatewayError
from arena.gateway import Gateway, Query
from arena.pages.base import Notice, PageController
from arena.session import SessionState
from arena.tournaments import STATUS_FILTERS, UPCOMING, annotate, filter_by_status

logger = logging.getLogger("arena")

AUTHOR_COLUMNS = ("username", "full_name")


def news_query(*columns: str) -> Query:
    """News rows with the author's profile embedded under ``profiles``."""
    return Query("news").select(*columns).embed("profiles", "profiles", "author_id", AUTHOR_COLUMNS)


def published_news() -> Query:
    return news_query().eq("published", True).order("created_at", desc=True)


def summarize(article: dict, length: int = 150) -> dict:
    row = dict(article)
    content = row.get("content") or ""
    row["summary"] = row.get("excerpt") or (content[:length] + "..." if content else "")
    return row


class HomeController(PageController):
    sections = {
        "featured_news": "No featured news available.",
        "upcoming_tournaments": "No upcoming tournaments scheduled.",
    }

    async def _featured(self) -> list[dict]:
        rows = await self._rows(published_news().eq("featured", True).limit(3))
        return [summarize(r) for r in rows]

    async def _upcoming(self) -> list[dict]:
        now = self.clock()
        query = filter_by_status(Query("tournaments").eq("published", True), UPCOMING, now)
        rows = await self._rows(query.order("start_date").limit(3))
        return [annotate(r, now) for r in rows]

    async def load(self) -> None:
        await self._gather(
            self._load("featured_news", self._featured),
            self._load("upcoming_tournaments", self._upcoming),
        )

    def extra_view(self) -> dict:
        return {"show_join": not self.session.signed_in}


class NewsListController(PageController):
    """Published news, newest first, in offset windows of ``page_size``."""

    sections = {"news": "No news articles published yet."}

    def __init__(
        self,
        gateway: Gateway,
        session: Optional[SessionState] = None,
        page_size: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(gateway, session, **kwargs)
        self.page_size = page_size or config.NEWS_PAGE_SIZE
        self.page = 0
        self.has_more = True

    async def load(self) -> None:
        await self.load_page(1)

    async def load_page(self, page: int) -> None:
        if page < 1:
            raise ValueError("page starts at 1")
        start = (page - 1) * self.page_size
        query = published_news().range(start, start + self.page_size - 1)
        section = self.section("news")
        append = page > 1
        before = len(section.data) if append else 0

        async def fetch():
            return [summarize(r) for r in await self._rows(query)]

        if await self._load("news", fetch, append=append):
            self.page = page
            self.has_more = len(section.data) - before == self.page_size

    async def load_more(self) -> None:
        if not self.has_more:
            return
        await self.load_page(self.page + 1)

    def extra_view(self) -> dict:
        return {"page": self.page, "page_size": self.page_size, "has_more": self.has_more}


class NewsDetailController(PageController):
    """One published article. ``state`` is loading, found, not_found or error."""

    def __init__(self, gateway: Gateway, article_id: str, session: Optional[SessionState] = None, **kwargs):
        super().__init__(gateway, session, **kwargs)
        self.article_id = article_id
        self.article: Optional[dict] = None
        self.state = "loading"

    async def load(self) -> None:
        self.state = "loading"
        try:
            result = await self.gateway.select(
                news_query().eq("id", self.article_id).eq("published", True).limit(1)
            )
        except GatewayError:
            logger.exception("Error fetching article %s", self.article_id)
            if self.lifetime.alive:
                self.state = "error"
                self.notify(Notice.error(GENERIC_READ_MESSAGE))
            return
        if not self.lifetime.alive:
            return
        self.article = result.first()
        self.state = "found" if self.article else "not_found"

    def share_text(self) -> str:
        if not self.article:
            return ""
        return self.article.get("excerpt") or (self.article.get("content") or "")[:200]

    def extra_view(self) -> dict:
        return {
            "state": self.state,
            "article": self.article,
            "share_text": self.share_text(),
            "not_found_message": "Article not found." if self.state == "not_found" else None,
        }


class TournamentListController(PageController):
    """Published tournaments, soonest first, filtered by derived status and game type."""

    sections = {"tournaments": "No tournaments match these filters."}

    def __init__(
        self,
        gateway: Gateway,
        session: Optional[SessionState] = None,
        status: str = "all",
        game_type: str = "all",
        **kwargs,
    ):
        super().__init__(gateway, session, **kwargs)
        if status not in STATUS_FILTERS:
            raise ValueError(f"Unknown status filter: {status}")
        self.status = status
        self.game_type = game_type or "all"
        self.game_types: list[str] = []

    async def _tournaments(self) -> list[dict]:
        now = self.clock()
        query = filter_by_status(Query("tournaments").eq("published", True), self.status, now)
        if self.game_type != "all":
            query.eq("game_type", self.game_type)
        rows = await self._rows(query.order("start_date"))
        return [annotate(r, now) for r in rows]

    async def load(self) -> None:
        if await self._load("tournaments", self._tournaments):
            self.game_types = list(dict.fromkeys(r["game_type"] for r in self.section("tournaments").data))

    def extra_view(self) -> dict:
        return {
            "filters": {"status": self.status, "game_type": self.game_type},
            "game_types": self.game_types,
        }
