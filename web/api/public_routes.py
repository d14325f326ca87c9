"""Public pages: home, news, tournaments."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from arena.gateway import Gateway
from arena.pages.public import HomeController, NewsDetailController, NewsListController, TournamentListController
from arena.session import SessionState
from web.auth import get_gateway, get_session
from web.api.utils import render

router = APIRouter(tags=["public"])


async def load_news_pages(controller: NewsListController, page: int) -> None:
    """Pages 1..page, concatenated the way "Load more" builds them."""
    await controller.load()
    while controller.page < page and controller.has_more:
        before = controller.page
        await controller.load_more()
        if controller.page == before:
            break


@router.get("/")
async def home(
    request: Request,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(get_session),
):
    controller = HomeController(gateway, session)
    await controller.load()
    return render(request, session, controller)


@router.get("/news")
async def news_list(
    request: Request,
    page: int = Query(1, ge=1),
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(get_session),
):
    controller = NewsListController(gateway, session)
    await load_news_pages(controller, page)
    return render(request, session, controller)


@router.get("/news/{article_id}")
async def news_detail(
    article_id: str,
    request: Request,
    response: Response,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(get_session),
):
    controller = NewsDetailController(gateway, article_id, session)
    await controller.load()
    if controller.state == "not_found":
        response.status_code = 404
    return render(request, session, controller)


@router.get("/tournaments")
async def tournaments(
    request: Request,
    status: str = "all",
    game_type: str = "all",
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(get_session),
):
    try:
        controller = TournamentListController(gateway, session, status=status, game_type=game_type)
    except ValueError as e:
        raise HTTPException(422, str(e)) from None
    await controller.load()
    return render(request, session, controller)


@router.get("/api/health")
async def health():
    return {"status": "ok"}
