"""Shared API utilities."""
from __future__ import annotations

from typing import Optional

from fastapi import Request, Response

from arena.pages.base import Notice, PageController
from arena.session import SessionState
from web.shell import shell


def render(request: Request, session: SessionState, controller: PageController) -> dict:
    """Page view model wrapped in the navigation shell. Closes the controller."""
    try:
        page = controller.view()
    finally:
        controller.close()
    return {"shell": shell(request.url.path, session), "page": page}


def respond(response: Response, notice: Notice, controller: Optional[PageController] = None, **extra) -> dict:
    """Result of a write: the notice plus the refreshed page, with the notice's HTTP status."""
    response.status_code = notice.status
    out = {"notice": notice.to_dict()}
    if controller is not None:
        try:
            out["page"] = controller.view()
        finally:
            controller.close()
    out.update(extra)
    return out
