"""Shared machinery for page controllers.

A controller is created per page view. It reads through the injected gateway,
keeps the results in named sections and renders them with ``view()``.
Sections load independently: a failing section keeps its last rows and
carries a sanitised error, the rest of the page renders normally.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from arena.errors import GENERIC_READ_MESSAGE, ConflictError, GatewayError, public_message
from arena.gateway import Gateway, Query
from arena.session import SessionState
from arena.tournaments import utcnow

logger = logging.getLogger("arena")


class Lifetime:
    """Invalidated when the owning view is torn down; late responses are then dropped."""

    def __init__(self):
        self.alive = True

    def invalidate(self) -> None:
        self.alive = False


@dataclass
class Notice:
    """Single user-facing feedback channel. ``message`` is always safe to display."""

    level: str  # success | info | error
    message: str
    redirect: Optional[str] = None
    status: int = 200

    @classmethod
    def success(cls, message: str, redirect: Optional[str] = None) -> "Notice":
        return cls("success", message, redirect)

    @classmethod
    def info(cls, message: str, status: int = 200) -> "Notice":
        return cls("info", message, status=status)

    @classmethod
    def error(cls, message: str, status: int = 400) -> "Notice":
        return cls("error", message, status=status)

    @property
    def ok(self) -> bool:
        return self.level != "error"

    def to_dict(self) -> dict:
        data = {"level": self.level, "message": self.message}
        if self.redirect:
            data["redirect"] = self.redirect
        return data


@dataclass
class Section:
    name: str
    empty_message: str = "Nothing found."
    data: Any = field(default_factory=list)
    loading: bool = False
    loaded: bool = False
    error: Optional[str] = None

    @property
    def empty(self) -> bool:
        return self.loaded and not self.data

    def to_dict(self) -> dict:
        if self.loading:
            # Placeholder only; never stale rows next to a spinner
            return {"loading": True, "data": None}
        out = {"loading": False, "data": self.data, "empty": self.empty}
        if self.empty:
            out["empty_message"] = self.empty_message
        if self.error:
            out["error"] = self.error
        return out


class PageController:
    """Base for read-only listing and detail pages."""

    # section name -> empty-state message
    sections: dict[str, str] = {}

    def __init__(
        self,
        gateway: Gateway,
        session: Optional[SessionState] = None,
        lifetime: Optional[Lifetime] = None,
        now: Optional[datetime] = None,
    ):
        self.gateway = gateway
        self.session = session or SessionState(loading=False)
        self.lifetime = lifetime or Lifetime()
        self.now = now
        self.notices: list[Notice] = []
        self._sections = {name: Section(name, message) for name, message in self.sections.items()}

    def clock(self) -> datetime:
        return self.now or utcnow()

    def section(self, name: str) -> Section:
        return self._sections[name]

    def notify(self, notice: Notice) -> Notice:
        self.notices.append(notice)
        return notice

    async def _load(
        self,
        name: str,
        fetch: Callable[[], Awaitable[Any]],
        append: bool = False,
    ) -> bool:
        """Run ``fetch`` into section ``name``. Returns True when the data was applied."""
        section = self.section(name)
        section.loading = True
        section.error = None
        try:
            data = await fetch()
        except (GatewayError, ValueError):
            logger.exception("Error loading %s.%s", type(self).__name__, name)
            section.loading = False
            section.error = GENERIC_READ_MESSAGE
            return False
        if not self.lifetime.alive:
            logger.debug("Discarding late response for %s.%s", type(self).__name__, name)
            return False
        section.data = list(section.data) + list(data) if append else data
        section.loading = False
        section.loaded = True
        return True

    async def _rows(self, query: Query) -> list[dict]:
        return (await self.gateway.select(query)).rows

    async def _gather(self, *loads: Awaitable[bool]) -> None:
        """Load independent sections concurrently."""
        await asyncio.gather(*loads)

    async def load(self) -> None:
        """Fetch everything the page shows on mount."""

    def close(self) -> None:
        self.lifetime.invalidate()

    def extra_view(self) -> dict:
        return {}

    def view(self) -> dict:
        out = {name: section.to_dict() for name, section in self._sections.items()}
        out.update(self.extra_view())
        out["notices"] = [n.to_dict() for n in self.notices]
        return out

    async def _delete_row(self, table: str, row_id: str, confirm: bool, noun: str) -> Notice:
        """Delete after an explicit confirmation step."""
        if not confirm:
            return self.notify(Notice.info(f"Confirm to delete this {noun}.", status=409))
        try:
            deleted = await self.gateway.delete(Query(table).eq("id", row_id))
        except GatewayError as e:
            logger.exception("Error deleting %s %s", table, row_id)
            return self.notify(Notice.error(public_message(e)))
        if not deleted:
            return self.notify(Notice.error(f"{noun.capitalize()} not found.", status=404))
        return self.notify(Notice.success(f"{noun.capitalize()} deleted."))

    async def _toggle(self, section_name: str, table: str, row_id: str, flag: str) -> Notice:
        """Write the inverse of the current flag, then patch the local row by id."""
        section = self.section(section_name)
        local = next((row for row in section.data if row.get("id") == row_id), None)
        try:
            if local is None:
                result = await self.gateway.select(Query(table).select("id", flag).eq("id", row_id).limit(1))
                current = result.first()
                if current is None:
                    return self.notify(Notice.error("Record not found.", status=404))
            else:
                current = local
            value = not bool(current.get(flag))
            updated = await self.gateway.update(Query(table).eq("id", row_id), {flag: value})
        except GatewayError as e:
            logger.exception("Error toggling %s.%s for %s", table, flag, row_id)
            return self.notify(Notice.error(public_message(e)))
        if not updated:
            return self.notify(Notice.error("Record not found.", status=404))
        if local is not None:
            section.data = [dict(row, **{flag: value}) if row.get("id") == row_id else row for row in section.data]
        return self.notify(Notice.success(f"{flag.capitalize()} set to {str(value).lower()}."))


class FormController(PageController):
    """Create/edit form bound to one table row."""

    table: str = ""
    fields: tuple[str, ...] = ()
    required: tuple[str, ...] = ()
    defaults: dict = {}
    owner_path: str = "/"
    noun: str = "Record"
    author_field: Optional[str] = None
    conflict_message: Optional[str] = None

    def __init__(self, gateway: Gateway, session: Optional[SessionState] = None, record_id: Optional[str] = None, **kwargs):
        super().__init__(gateway, session, **kwargs)
        self.record_id = record_id
        self.values = dict(self.defaults)
        self.in_flight = False
        self.not_found = False

    async def load(self) -> None:
        if not self.record_id:
            return
        try:
            result = await self.gateway.select(Query(self.table).eq("id", self.record_id).limit(1))
        except GatewayError:
            logger.exception("Error fetching %s %s", self.table, self.record_id)
            self.notify(Notice.error(GENERIC_READ_MESSAGE))
            return
        if not self.lifetime.alive:
            return
        row = result.first()
        if row is None:
            self.not_found = True
            return
        self.values = {name: row.get(name) for name in self.fields}

    def missing(self) -> list[str]:
        missing = []
        for name in self.required:
            value = self.values.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing

    def validate(self) -> Optional[str]:
        """Return a user-facing problem with the complete form, or None."""
        return None

    def build_payload(self, now: datetime) -> dict:
        payload = {name: self.values[name] for name in self.fields if name in self.values}
        payload["updated_at"] = now
        if not self.record_id:
            payload["created_at"] = now
        if self.author_field and self.session.identity:
            payload[self.author_field] = self.session.identity.id
        return payload

    async def submit(self, values: dict) -> Notice:
        if self.in_flight:
            return self.notify(Notice.error("A save is already in progress.", status=409))
        self.values.update({k: v for k, v in values.items() if k in self.fields})
        missing = self.missing()
        if missing:
            return self.notify(Notice.error(f"Required: {', '.join(missing)}."))
        problem = self.validate()
        if problem:
            return self.notify(Notice.error(problem))
        if self.author_field and not self.session.signed_in:
            return self.notify(Notice.error("You must be signed in.", status=401))
        self.in_flight = True
        try:
            payload = self.build_payload(self.clock())
            if self.record_id:
                rows = await self.gateway.update(Query(self.table).eq("id", self.record_id), payload)
                if not rows:
                    return self.notify(Notice.error(f"{self.noun} not found.", status=404))
                verb = "updated"
            else:
                await self.gateway.insert(self.table, payload)
                verb = "created"
        except GatewayError as e:
            logger.exception("Error saving %s", self.table)
            if isinstance(e, ConflictError):
                return self.notify(Notice.error(self.conflict_message or public_message(e), status=409))
            return self.notify(Notice.error(public_message(e)))
        finally:
            self.in_flight = False
        return self.notify(Notice.success(f"{self.noun} successfully {verb}.", redirect=self.owner_path))

    def extra_view(self) -> dict:
        return {
            "values": self.values,
            "editing": bool(self.record_id),
            "in_flight": self.in_flight,
            "not_found": self.not_found,
        }
