"""Signed-in player dashboard."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel

from arena.gateway import Gateway
from arena.pages.dashboard import (
    DashboardHomeController,
    ProfileController,
    UserRegistrationsController,
    UserResultsController,
    UserTournamentsController,
)
from arena.pages.public import NewsListController
from arena.session import SessionState
from web.auth import get_gateway, require_user
from web.api.public_routes import load_news_pages
from web.api.utils import render, respond

router = APIRouter(prefix="/dashboard", tags=["dashboard"], dependencies=[Depends(require_user)])


class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    full_name: Optional[str] = None
    game_ids: list[str] = []


@router.get("")
async def dashboard(
    request: Request,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_user),
):
    controller = DashboardHomeController(gateway, session)
    await controller.load()
    return render(request, session, controller)


@router.get("/profile")
async def profile(
    request: Request,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_user),
):
    controller = ProfileController(gateway, session)
    await controller.load()
    return render(request, session, controller)


@router.put("/profile")
async def update_profile(
    body: ProfileUpdate,
    response: Response,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_user),
):
    controller = ProfileController(gateway, session)
    await controller.load()
    notice = await controller.submit(body.model_dump(exclude_unset=True))
    return respond(response, notice, controller)


@router.get("/tournaments")
async def my_tournaments(
    request: Request,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_user),
):
    controller = UserTournamentsController(gateway, session)
    await controller.load()
    return render(request, session, controller)


@router.post("/tournaments/{tournament_id}/register")
async def register(
    tournament_id: str,
    response: Response,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_user),
):
    controller = UserTournamentsController(gateway, session)
    await controller.load()
    notice = await controller.register(tournament_id)
    return respond(response, notice, controller, registration=controller.state_of(tournament_id))


@router.get("/registrations")
async def my_registrations(
    request: Request,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_user),
):
    controller = UserRegistrationsController(gateway, session)
    await controller.load()
    return render(request, session, controller)


@router.get("/results")
async def my_results(
    request: Request,
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_user),
):
    controller = UserResultsController(gateway, session)
    await controller.load()
    return render(request, session, controller)


@router.get("/news")
async def dashboard_news(
    request: Request,
    page: int = Query(1, ge=1),
    gateway: Gateway = Depends(get_gateway),
    session: SessionState = Depends(require_user),
):
    controller = NewsListController(gateway, session)
    await load_news_pages(controller, page)
    return render(request, session, controller)
