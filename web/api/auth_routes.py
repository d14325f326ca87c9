"""Auth routes: sign-in, sign-up, sign-out, current session."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

import config
from arena.errors import AuthError, ConflictError, GatewayError, public_message
from arena.pages.base import Notice
from arena.session import SessionProvider, SessionState
from web.auth import get_provider, get_session
from web.api.utils import respond
from web.shell import shell

logger = logging.getLogger("arena")

router = APIRouter(prefix="/auth", tags=["auth"])


class SignInRequest(BaseModel):
    email: str
    password: str


class SignUpRequest(BaseModel):
    email: str
    password: str
    username: str
    full_name: Optional[str] = None


def _session_payload(provider: SessionProvider, state: SessionState) -> dict:
    access_token, refresh_token = provider.store.load()
    return {
        "session": state.to_dict(),
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
    }


def _is_initial_admin(body: SignInRequest) -> bool:
    return bool(
        config.INITIAL_ADMIN_PASSWORD
        and body.email.strip().lower() == config.INITIAL_ADMIN_EMAIL.lower()
        and body.password == config.INITIAL_ADMIN_PASSWORD
    )


@router.get("")
async def auth_page(request: Request, session: SessionState = Depends(get_session)):
    """Sign-in / sign-up page. Signed-in visitors are pointed at their dashboard."""
    page = {"signed_in": session.signed_in, "redirect": "/dashboard" if session.signed_in else None}
    return {"shell": shell(request.url.path, session), "page": page}


@router.get("/session")
async def current_session(session: SessionState = Depends(get_session)):
    return session.to_dict()


@router.post("/sign-in")
async def sign_in(body: SignInRequest, response: Response, provider: SessionProvider = Depends(get_provider)):
    try:
        state = await provider.sign_in(body.email, body.password)
    except AuthError as e:
        if not _is_initial_admin(body):
            return respond(response, Notice.error(public_message(e), status=401))
        # Bootstrap: first sign-in with the configured admin credentials creates the account
        try:
            state = await provider.sign_up(body.email, body.password, "admin", "Administrator", role="admin")
        except ConflictError:
            return respond(response, Notice.error(public_message(e), status=401))
        except GatewayError as err:
            logger.exception("Admin bootstrap failed")
            return respond(response, Notice.error(public_message(err)))
        logger.info("Initial admin account created for %s", body.email)
    except GatewayError as e:
        logger.exception("Sign-in failed for %s", body.email)
        return respond(response, Notice.error(public_message(e)))
    return respond(
        response,
        Notice.success("Signed in successfully.", redirect="/dashboard"),
        **_session_payload(provider, state),
    )


@router.post("/sign-up")
async def sign_up(body: SignUpRequest, response: Response, provider: SessionProvider = Depends(get_provider)):
    missing = [name for name in ("email", "password", "username") if not getattr(body, name).strip()]
    if missing:
        return respond(response, Notice.error(f"Required: {', '.join(missing)}."))
    try:
        state = await provider.sign_up(body.email, body.password, body.username.strip(), body.full_name)
    except ConflictError as e:
        return respond(response, Notice.error(public_message(e), status=409))
    except GatewayError as e:
        logger.exception("Sign-up failed for %s", body.email)
        return respond(response, Notice.error(public_message(e)))
    if not state.signed_in:
        return respond(response, Notice.info("Check your e-mail to confirm your account."), session=state.to_dict())
    return respond(
        response,
        Notice.success("Account created successfully.", redirect="/dashboard"),
        **_session_payload(provider, state),
    )


@router.post("/sign-out")
async def sign_out(response: Response, provider: SessionProvider = Depends(get_provider)):
    await provider.sign_out()
    return respond(response, Notice.success("Signed out.", redirect="/"))
