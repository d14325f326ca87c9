"""FastAPI app: serves page view models for the public site, player dashboard and admin panel."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

import config
from arena.gateway import create_gateway

from web.api.admin_routes import router as admin_router
from web.api.auth_routes import router as auth_router
from web.api.dashboard_routes import router as dashboard_router
from web.api.public_routes import router as public_router
from web.shell import match_route

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("arena")


@asynccontextmanager
async def lifespan(app: FastAPI):
    gateway = create_gateway()
    await gateway.init()
    app.state.gateway = gateway
    yield
    await gateway.close()


app = FastAPI(title="Arena-Core", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(public_router)
app.include_router(auth_router)
app.include_router(dashboard_router)
app.include_router(admin_router)


@app.get("/{path:path}", include_in_schema=False)
async def fallback(path: str, request: Request):
    """Known routes with a trailing slash lose it; unknown paths go back to the home page."""
    trimmed = "/" + path.rstrip("/")
    if path.endswith("/") and trimmed != "/" and match_route(trimmed):
        query = request.url.query
        return RedirectResponse(f"{trimmed}?{query}" if query else trimmed, status_code=307)
    logger.debug("Unknown path /%s, redirecting home", path)
    return RedirectResponse("/", status_code=307)
