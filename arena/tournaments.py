"""Tournament lifecycle derived from the clock rather than an admin-edited flag."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from arena.gateway.query import Query

UPCOMING = "upcoming"
ONGOING = "ongoing"
FINISHED = "finished"
STATUS_FILTERS = ("all", UPCOMING, ONGOING, FINISHED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> Optional[datetime]:
    """Accept datetimes or ISO strings (``Z`` suffix allowed); naive values are UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def derive_status(start, end, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    start = parse_timestamp(start)
    end = parse_timestamp(end)
    if start is not None and now < start:
        return UPCOMING
    if end is not None and now > end:
        return FINISHED
    return ONGOING


def is_registration_open(tournament: dict, now: Optional[datetime] = None) -> bool:
    """The deadline is authoritative: a past deadline closes registration even for upcoming events."""
    now = now or utcnow()
    deadline = parse_timestamp(tournament.get("registration_deadline"))
    if deadline is None or now >= deadline:
        return False
    return derive_status(tournament.get("start_date"), tournament.get("end_date"), now) == UPCOMING


def annotate(tournament: dict, now: Optional[datetime] = None) -> dict:
    """Return a copy with the derived ``status`` and ``registration_open`` fields."""
    now = now or utcnow()
    row = dict(tournament)
    if "start_date" in row or "end_date" in row:
        row["status"] = derive_status(row.get("start_date"), row.get("end_date"), now)
        row["registration_open"] = is_registration_open(row, now)
    return row


def filter_by_status(query: Query, status: str, now: Optional[datetime] = None) -> Query:
    """Add date predicates equivalent to a derived status."""
    now = now or utcnow()
    if status == UPCOMING:
        return query.gt("start_date", now)
    if status == ONGOING:
        return query.lte("start_date", now).gte("end_date", now)
    if status == FINISHED:
        return query.lt("end_date", now)
    if status == "active":
        return query.gte("end_date", now)
    if status == "all":
        return query
    raise ValueError(f"Unknown status filter: {status}")
