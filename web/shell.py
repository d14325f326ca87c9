"""Navigation shell: route table, header and sidebars."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from arena.session import SessionState

PUBLIC = "public"
SIGNED_IN = "signed_in"
ADMIN = "admin"


@dataclass(frozen=True)
class Route:
    path: str
    page: str
    guard: str = PUBLIC

    @property
    def pattern(self) -> re.Pattern:
        return re.compile("^" + re.sub(r"\{[^/]+\}", "[^/]+", self.path) + "/?$")


ROUTES = (
    Route("/", "home"),
    Route("/news", "news"),
    Route("/news/{article_id}", "news_detail"),
    Route("/tournaments", "tournaments"),
    Route("/auth", "auth"),
    Route("/dashboard", "dashboard", SIGNED_IN),
    Route("/dashboard/profile", "profile", SIGNED_IN),
    Route("/dashboard/tournaments", "my_tournaments", SIGNED_IN),
    Route("/dashboard/registrations", "my_registrations", SIGNED_IN),
    Route("/dashboard/results", "my_results", SIGNED_IN),
    Route("/dashboard/news", "dashboard_news", SIGNED_IN),
    Route("/admin", "admin", ADMIN),
    Route("/admin/news", "admin_news", ADMIN),
    Route("/admin/create", "create_news", ADMIN),
    Route("/admin/create/{article_id}", "edit_news", ADMIN),
    Route("/admin/tournaments", "admin_tournaments", ADMIN),
    Route("/admin/players", "admin_players", ADMIN),
    Route("/admin/results", "admin_results", ADMIN),
)

HEADER_LINKS = (
    ("/", "Home"),
    ("/news", "News"),
    ("/tournaments", "Tournaments"),
)

PLAYER_SIDEBAR = (
    ("/dashboard", "Dashboard"),
    ("/dashboard/profile", "My Profile"),
    ("/dashboard/tournaments", "My Tournaments"),
    ("/dashboard/registrations", "My Registrations"),
    ("/dashboard/results", "My Results"),
    ("/dashboard/news", "News"),
)

ADMIN_SIDEBAR = (
    ("/admin", "Dashboard"),
    ("/admin/news", "News Management"),
    ("/admin/tournaments", "Tournament Management"),
    ("/admin/players", "Player Management"),
    ("/admin/results", "Results Management"),
)


def match_route(path: str) -> Optional[Route]:
    for route in ROUTES:
        if route.pattern.match(path):
            return route
    return None


def _active(item_path: str, path: str, root: str) -> bool:
    if item_path == root:
        return path.rstrip("/") == root
    return path == item_path or path.startswith(item_path + "/")


def sidebar(items, path: str) -> list[dict]:
    root = items[0][0]
    return [{"path": p, "label": label, "active": _active(p, path, root)} for p, label in items]


def header(session: SessionState, path: str = "/") -> dict:
    links = [{"path": p, "label": label, "active": path == p} for p, label in HEADER_LINKS]
    if session.signed_in:
        links.append({"path": "/dashboard", "label": "Dashboard", "active": path.startswith("/dashboard")})
        if session.is_admin:
            links.append({"path": "/admin", "label": "Admin Panel", "active": path.startswith("/admin")})
    user = None
    if session.signed_in:
        user = {
            "name": session.display_name,
            "username": (session.profile or {}).get("username"),
            "role": (session.profile or {}).get("role"),
        }
    return {"links": links, "user": user, "loading": session.loading}


def shell(path: str, session: SessionState) -> dict:
    route = match_route(path)
    layout = route.guard if route else PUBLIC
    out = {
        "page": route.page if route else None,
        "layout": layout,
        "header": header(session, path),
        "sidebar": None,
    }
    if layout == SIGNED_IN:
        out["sidebar"] = sidebar(PLAYER_SIDEBAR, path)
    elif layout == ADMIN:
        out["sidebar"] = sidebar(ADMIN_SIDEBAR, path)
    return out
