"""Admin panel: overview, news, tournaments, players, results."""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from arena.gateway import Gateway
from arena.pages.admin import (
    AdminHomeController,
    AdminNewsController,
    AdminPlayersController,
    AdminTournamentsController,
    LeaderboardController,
    NewsFormController,
    TournamentFormController,
)
from arena.pages.base import Notice
from arena.session import SessionState
from web.auth import get_gateway, require_admin
from web.api.utils import render, respond

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# --- Pydantic schemas ---


class NewsForm(BaseModel):
    title: str = ""
    excerpt: str = ""
    content: str = ""
    published: bool = False
    featured: bool = False


class TournamentForm(BaseModel):
    title: str = ""
    description: str = ""
    game_type: str = ""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    registration_deadline: Optional[datetime] = None
    max_participants: int = 0
    published: bool = False


class ResultCreate(BaseModel):
    tournament_id: str
    player_id: str
    rank: int
    points: int = 0


# --- Overview ---


@router.get("")
async def admin_home(
    request: Request,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = AdminHomeController(gateway, session)
    await controller.load()
    return render(request, session, controller)


# --- News ---


@router.get("/news")
async def admin_news(
    request: Request,
    search: str = "",
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = AdminNewsController(gateway, session, search=search)
    await controller.load()
    return render(request, session, controller)


@router.post("/news/{article_id}/toggle-published")
async def toggle_news_published(
    article_id: str,
    response: Response,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = AdminNewsController(gateway, session)
    await controller.load()
    notice = await controller.toggle_published(article_id)
    return respond(response, notice, controller)


@router.post("/news/{article_id}/toggle-featured")
async def toggle_news_featured(
    article_id: str,
    response: Response,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = AdminNewsController(gateway, session)
    await controller.load()
    notice = await controller.toggle_featured(article_id)
    return respond(response, notice, controller)


@router.delete("/news/{article_id}")
async def delete_news(
    article_id: str,
    response: Response,
    confirm: bool = False,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = AdminNewsController(gateway, session)
    await controller.load()
    notice = await controller.delete(article_id, confirm=confirm)
    return respond(response, notice, controller)


@router.get("/create")
async def create_news_form(
    request: Request,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    return render(request, session, NewsFormController(gateway, session))


@router.get("/create/{article_id}")
async def edit_news_form(
    article_id: str,
    request: Request,
    response: Response,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = NewsFormController(gateway, session, record_id=article_id)
    await controller.load()
    if controller.not_found:
        response.status_code = 404
    return render(request, session, controller)


@router.post("/create")
async def create_news(
    body: NewsForm,
    response: Response,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = NewsFormController(gateway, session)
    notice = await controller.submit(body.model_dump())
    return respond(response, notice, controller)


@router.put("/create/{article_id}")
async def update_news(
    article_id: str,
    body: NewsForm,
    response: Response,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = NewsFormController(gateway, session, record_id=article_id)
    await controller.load()
    if controller.not_found:
        return respond(response, Notice.error("News not found.", status=404), controller)
    notice = await controller.submit(body.model_dump(exclude_unset=True))
    return respond(response, notice, controller)


# --- Tournaments ---


@router.get("/tournaments")
async def admin_tournaments(
    request: Request,
    edit: Optional[str] = None,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = AdminTournamentsController(gateway, session)
    form = TournamentFormController(gateway, session, record_id=edit)
    await asyncio.gather(controller.load(), form.load())
    out = render(request, session, controller)
    out["page"]["form"] = form.view()
    form.close()
    return out


@router.get("/tournaments/{tournament_id}/registrations")
async def tournament_registrations(
    tournament_id: str,
    request: Request,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = AdminTournamentsController(gateway, session)
    await asyncio.gather(controller.load(), controller.load_registrations(tournament_id))
    return render(request, session, controller)


@router.post("/tournaments")
async def create_tournament(
    body: TournamentForm,
    response: Response,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = AdminTournamentsController(gateway, session)
    notice = await controller.save(body.model_dump())
    return respond(response, notice, controller)


@router.put("/tournaments/{tournament_id}")
async def update_tournament(
    tournament_id: str,
    body: TournamentForm,
    response: Response,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = AdminTournamentsController(gateway, session)
    notice = await controller.save(body.model_dump(exclude_unset=True), record_id=tournament_id)
    return respond(response, notice, controller)


@router.post("/tournaments/{tournament_id}/toggle-published")
async def toggle_tournament_published(
    tournament_id: str,
    response: Response,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = AdminTournamentsController(gateway, session)
    await controller.load()
    notice = await controller.toggle_published(tournament_id)
    return respond(response, notice, controller)


@router.delete("/tournaments/{tournament_id}")
async def delete_tournament(
    tournament_id: str,
    response: Response,
    confirm: bool = False,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = AdminTournamentsController(gateway, session)
    notice = await controller.delete(tournament_id, confirm=confirm)
    return respond(response, notice, controller)


# --- Players ---


@router.get("/players")
async def admin_players(
    request: Request,
    search: str = "",
    selected: Optional[str] = None,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = AdminPlayersController(gateway, session, search=search)
    await controller.load()
    if selected:
        await controller.select_player(selected)
    return render(request, session, controller)


@router.delete("/players/{player_id}")
async def delete_player(
    player_id: str,
    response: Response,
    confirm: bool = False,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = AdminPlayersController(gateway, session)
    notice = await controller.delete_player(player_id, confirm=confirm)
    return respond(response, notice, controller)


# --- Results ---


@router.get("/results")
async def admin_results(
    request: Request,
    tournament_id: Optional[str] = None,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = LeaderboardController(gateway, session)
    await controller.load()
    if tournament_id:
        await controller.select(tournament_id)
    return render(request, session, controller)


@router.post("/results")
async def record_result(
    body: ResultCreate,
    response: Response,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = LeaderboardController(gateway, session)
    await controller.load()
    await controller.select(body.tournament_id)
    notice = await controller.record_result(body.tournament_id, body.player_id, body.rank, body.points)
    return respond(response, notice, controller)


@router.delete("/results/{result_id}")
async def delete_result(
    result_id: str,
    response: Response,
    confirm: bool = False,
    tournament_id: Optional[str] = None,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_admin),
):
    controller = LeaderboardController(gateway, session)
    if tournament_id:
        controller.selected_id = tournament_id
    notice = await controller.delete_result(result_id, confirm=confirm)
    return respond(response, notice, controller)
