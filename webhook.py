import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException, Request
from linebot import WebhookHandler
from linebot.exceptions import InvalidSignatureError
from starlette.concurrency import run_in_threadpool

from logging_utils import log_struct

logger = logging.getLogger(__name__)


def create_app(handler: WebhookHandler, on_shutdown: Optional[Callable[[], None]] = None) -> FastAPI:
    """
    Builds the FastAPI application serving the LINE webhook.

    :param handler: A WebhookHandler with the bot's event handlers registered.
    :param on_shutdown: Called once when the server stops.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if on_shutdown is not None:
            on_shutdown()

    app = FastAPI(title="linebot-food-enthusiast", lifespan=lifespan)

    @app.post("/callback")
    async def callback(request: Request):
        """
        LINE Messaging API webhook endpoint.
        """
        signature = request.headers.get("X-Line-Signature", "")
        body = await request.body()

        try:
            # SDK dispatch blocks on LINE and Gemini calls; keep it off the event loop
            await run_in_threadpool(handler.handle, body.decode("utf-8"), signature)
        except InvalidSignatureError:
            log_struct("WARNING", "Invalid signature", logger)
            raise HTTPException(
                status_code=400,
                detail="Invalid signature. Check your channel access token/channel secret."
            )
        except Exception as e:
            log_struct("ERROR", "Webhook parse failed", logger, error=str(e))
            raise HTTPException(status_code=500, detail="Could not process webhook events.")
        return "OK"

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
