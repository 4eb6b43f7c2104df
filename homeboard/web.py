# ABOUTME: ASGI web entry point serving the dashboard presentation model as JSON.
# ABOUTME: Maps host events (manual refresh, page visibility, calendar sign-in) onto the core.

import logging
import os
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager

from pydantic import BaseModel, ValidationError
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from homeboard.auth import AccountLinker, SignInStatus
from homeboard.config import load_config
from homeboard.deps import DashboardDeps, create_http_client
from homeboard.render import RenderProjector
from homeboard.scheduler import AggregationScheduler, build_scheduler
from homeboard.time_window import TimeWindowResolver

logger = logging.getLogger(__name__)


class VisibilityChange(BaseModel):
    visible: bool


class AccountCallback(BaseModel):
    """What the provider redirect hands back: an account and token, or an error."""

    account: str | None = None
    access_token: str | None = None
    error: str | None = None


def create_app(
    scheduler: AggregationScheduler,
    projector: RenderProjector,
    linker: AccountLinker | None = None,
    on_shutdown: Callable[[], Awaitable[None]] | None = None,
) -> Starlette:
    """Build the Starlette app around an already wired scheduler and projector."""

    def view() -> dict:
        return projector.view().model_dump(mode="json")

    async def dashboard(request: Request) -> JSONResponse:
        return JSONResponse(view())

    async def refresh(request: Request) -> JSONResponse:
        await scheduler.request_refresh()
        return JSONResponse(view())

    async def visibility(request: Request) -> JSONResponse:
        try:
            change = VisibilityChange.model_validate_json(await request.body())
        except ValidationError as e:
            logger.warning("Rejected visibility update: %s", e)
            return JSONResponse({"error": "Expected a JSON body like {\"visible\": true}"}, status_code=400)
        await scheduler.on_visibility_change(change.visible)
        return JSONResponse({"visible": change.visible, "generation": scheduler.generation})

    async def accounts(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "accounts": [{"email": a.email, "color": a.color} for a in linker.tokens.accounts()],
                "pending": linker.pending,
            }
        )

    async def connect(request: Request) -> JSONResponse:
        if not linker.begin():
            return JSONResponse({"error": "A sign-in is already in progress"}, status_code=409)
        return JSONResponse({"pending": True, "timeout": linker.timeout}, status_code=202)

    async def callback(request: Request) -> JSONResponse:
        try:
            body = AccountCallback.model_validate_json(await request.body())
        except ValidationError as e:
            logger.warning("Rejected sign-in callback: %s", e)
            return JSONResponse({"error": "Malformed sign-in callback"}, status_code=400)
        result = await linker.finish(body.account, body.access_token, body.error)
        if result is None:
            return JSONResponse({"error": "No sign-in in progress"}, status_code=409)
        if result.status is SignInStatus.GRANTED:
            await scheduler.request_refresh()
        return JSONResponse(
            {"result": result.model_dump(mode="json", exclude={"access_token"}), "dashboard": view()}
        )

    @asynccontextmanager
    async def lifespan(app: Starlette):
        scheduler.start()
        logger.info("Dashboard scheduler started")
        try:
            yield
        finally:
            if linker is not None:
                linker.cancel()
            await scheduler.aclose()
            if on_shutdown is not None:
                await on_shutdown()
            logger.info("Dashboard scheduler stopped")

    routes = [
        Route("/api/dashboard", dashboard, methods=["GET"]),
        Route("/api/refresh", refresh, methods=["POST"]),
        Route("/api/visibility", visibility, methods=["POST"]),
    ]
    if linker is not None:
        routes += [
            Route("/api/accounts", accounts, methods=["GET"]),
            Route("/api/accounts/connect", connect, methods=["POST"]),
            Route("/api/accounts/callback", callback, methods=["POST"]),
        ]
    return Starlette(routes=routes, lifespan=lifespan)


logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

_deps = DashboardDeps(http_client=create_http_client(), config=load_config())
_settings = _deps.config.settings
_projector = RenderProjector(
    TimeWindowResolver(_settings.timezone, _settings.tomorrow_threshold_hour),
    _deps.clock,
)
_scheduler = build_scheduler(_deps, _projector)

app = create_app(_scheduler, _projector, AccountLinker(_deps.tokens), on_shutdown=_deps.http_client.aclose)
