"""DAO Notifier — FastAPI Application.

Routes HTTP requests to the dispatcher and the Telegram command
handler. Transport concerns only: path parameters, body validation,
the webhook secret header and mapping errors to JSON responses.
"""

from __future__ import annotations

import hmac
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from dao_notifier.api.schemas import NotifyRequest
from dao_notifier.config import AppConfig
from dao_notifier.dao_info.client import DaoInfoClient
from dao_notifier.database import queries
from dao_notifier.database.db import Database
from dao_notifier.notifier.commands import CommandHandler
from dao_notifier.notifier.dispatcher import DispatchError, NotificationDispatcher
from dao_notifier.notifier.telegram_bot import TelegramNotifier
from dao_notifier.utils.health import HealthMonitor
from dao_notifier.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AppComponents:
    """Everything the HTTP layer needs, wired once at startup."""

    config: AppConfig
    db: Database
    telegram: TelegramNotifier
    dao_info: DaoInfoClient
    dispatcher: NotificationDispatcher
    commands: CommandHandler
    health: HealthMonitor

    async def close(self) -> None:
        """Release connections in reverse order of use."""
        await self.dao_info.close()
        await self.telegram.close()
        await self.db.close()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(components: AppComponents) -> FastAPI:
    """Build the FastAPI application around wired components.

    Args:
        components: Database, clients, dispatcher and handlers.

    Returns:
        The FastAPI app. Its lifespan opens the database on startup and
        closes every client on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await components.db.initialize()
        logger.info("DAO Notifier API ready")
        try:
            yield
        finally:
            await components.close()
            logger.info("DAO Notifier API stopped")

    app = FastAPI(title="DAO Notifier", version="1.0.0", lifespan=lifespan)
    app.state.components = components

    @app.exception_handler(DispatchError)
    async def dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ) -> JSONResponse:
        logger.warning("Invalid request body for %s: %s", request.url.path, exc.errors())
        return _error(400, "Invalid request body.")

    async def _notify(
        chain_id: Optional[str], dao: Optional[str], request: Request,
    ) -> JSONResponse:
        # Target and API key are checked before the body schema.
        components.dispatcher.check_target(chain_id, dao)

        try:
            payload = await request.json()
        except ValueError:
            return _error(400, "Invalid request body.")
        if not isinstance(payload, dict):
            return _error(400, "Invalid request body.")

        components.dispatcher.check_request(chain_id, dao, payload.get("apiKey"))

        try:
            body = NotifyRequest.model_validate(payload)
        except ValidationError as e:
            logger.warning("Invalid notify body for %s/%s: %s", chain_id, dao, e.errors())
            return _error(400, "Invalid request body.")

        result = await components.dispatcher.notify(
            chain_id, dao, body.api_key, body.to_event(),
        )
        return JSONResponse(content=result.to_dict())

    @app.post("/notify/{chain_id}/{dao}")
    async def notify(chain_id: str, dao: str, request: Request) -> JSONResponse:
        """Fan a governance event out to every chat tracking the DAO."""
        return await _notify(chain_id, dao, request)

    @app.post("/notify/{chain_id}", include_in_schema=False)
    async def notify_missing_dao(chain_id: str, request: Request) -> JSONResponse:
        return await _notify(chain_id, None, request)

    @app.post("/notify", include_in_schema=False)
    async def notify_missing_chain(request: Request) -> JSONResponse:
        return await _notify(None, None, request)

    @app.post("/telegram")
    async def telegram_webhook(
        request: Request,
        x_telegram_bot_api_secret_token: Optional[str] = Header(default=None),
    ) -> Response:
        """Receive a Telegram update and answer with a webhook reply."""
        expected = components.config.telegram.webhook_secret
        if not hmac.compare_digest(
            (x_telegram_bot_api_secret_token or "").encode("utf-8"),
            expected.encode("utf-8"),
        ):
            return _error(401, "Invalid webhook secret.")

        try:
            data = await request.json()
        except ValueError:
            return _error(400, "Invalid request body.")
        if not isinstance(data, dict):
            return _error(400, "Invalid request body.")

        reply = await components.commands.handle_update(data)
        if reply is None:
            return Response(status_code=200)
        return JSONResponse(content=reply)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Fan-out health status."""
        status = components.health.get_status()
        status["registrations"] = await queries.count_registrations(components.db)
        return status

    return app
