import logging
import sys

from linebot import LineBotApi, WebhookHandler

from assistant import CalorieAssistant
from bot import FoodBot
from config import Settings, get_settings
from errors import ConfigError
from gemini import GeminiApp
from logging_utils import configure_logging, log_struct
from record_store import build_record_store
from webhook import create_app
from worker import TaskPool

logger = logging.getLogger(__name__)


def build_bot(settings: Settings) -> FoodBot:
    """
    Wires the LINE client, the Gemini client, the record store and the task pool.
    """
    settings.require()

    line_bot_api = LineBotApi(settings.channel_access_token)
    gemini = GeminiApp(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        function_model=settings.gemini_function_model
    )
    store = build_record_store(settings)
    assistant = CalorieAssistant(gemini, store, settings)
    return FoodBot(line_bot_api, assistant, TaskPool(settings.worker_pool_size))


def build_app(settings: Settings):
    food_bot = build_bot(settings)
    handler = food_bot.register(WebhookHandler(settings.channel_secret))
    return create_app(handler, on_shutdown=lambda: food_bot.pool.shutdown(wait=False))


try:
    settings = get_settings()
    configure_logging(settings.log_level)
    app = build_app(settings)
except ConfigError as e:
    configure_logging()
    log_struct("CRITICAL", "Startup failed", logger, error=e.message)
    sys.exit(1)

# ------------------------------------------------------------------------------
# Uvicorn Entry Point (if running locally or Docker without Gunicorn)
# ------------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port,
        log_level="info",
        timeout_keep_alive=0
    )
