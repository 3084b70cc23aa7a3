import base64
import hashlib
import hmac
import io
from datetime import datetime
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from linebot import LineBotApi, WebhookHandler
from PIL import Image

from assistant import CalorieAssistant
from bot import FoodBot
from config import Settings
from gemini import GeminiApp
from record_store import SqlRecordStore
from webhook import create_app
from worker import TaskPool

CHANNEL_SECRET = "test-channel-secret"
TEST_USER = "U1234567890abcdef"
FIXED_NOW = datetime(2024, 5, 1, 12, 30, 0, tzinfo=ZoneInfo("Asia/Taipei"))


def sign(body: str, secret: str = CHANNEL_SECRET) -> str:
    digest = hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def make_png() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(200, 120, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def settings():
    return Settings(
        channel_secret=CHANNEL_SECRET,
        channel_access_token="test-access-token",
        gemini_api_key="test-gemini-key",
        firebase_url="",
        database_url="sqlite://",
        records_root="food_records",
        timezone="Asia/Taipei",
    )


@pytest.fixture
def store():
    return SqlRecordStore("sqlite://")


@pytest.fixture
def gemini():
    return MagicMock(spec=GeminiApp)


@pytest.fixture
def line_bot_api():
    api = MagicMock(spec=LineBotApi)
    content = MagicMock()
    content.iter_content.side_effect = lambda *args, **kwargs: iter([b"fake-", b"image"])
    api.get_message_content.return_value = content
    return api


@pytest.fixture
def assistant(gemini, store, settings):
    return CalorieAssistant(gemini, store, settings, clock=lambda: FIXED_NOW)


@pytest.fixture
def pool():
    task_pool = TaskPool(max_workers=1)
    yield task_pool
    task_pool.shutdown(wait=True)


@pytest.fixture
def food_bot(line_bot_api, assistant, pool):
    return FoodBot(line_bot_api, assistant, pool)


@pytest.fixture
def client(food_bot):
    handler = food_bot.register(WebhookHandler(CHANNEL_SECRET))
    return TestClient(create_app(handler))
