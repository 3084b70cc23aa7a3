import inspect
import json
import logging
from types import SimpleNamespace

import pytest
from linebot.models import (
    Beacon,
    BeaconEvent,
    FollowEvent,
    ImageMessage,
    MessageEvent,
    Postback,
    PostbackEvent,
    SourceGroup,
    SourceRoom,
    SourceUser,
    TextMessage,
    VideoMessage,
)

from bot import ACTION_CALC, ACTION_COOK, ActionToken, push_target, sticker_text
from errors import ModelError
from models import FoodRecord
from prompts import COOK_PROMPT, GREETING_TEXT, IMAGE_ERROR_TEXT, IMAGE_PROMPT
from tests.conftest import TEST_USER

USER_PATH = f"food_records/{TEST_USER}"


def message_event(message, source=None):
    return MessageEvent(
        reply_token="reply-token",
        source=source or SourceUser(user_id=TEST_USER),
        message=message
    )


def postback_event(data, source=None):
    return PostbackEvent(
        reply_token="reply-token",
        source=source or SourceUser(user_id=TEST_USER),
        postback=Postback(data=data)
    )


def replied_message(line_bot_api):
    line_bot_api.reply_message.assert_called_once()
    token, message = line_bot_api.reply_message.call_args.args
    assert token == "reply-token"
    return message


class TestHelpers:
    def test_action_token_round_trip(self):
        token = ActionToken(ACTION_CALC, "123")

        assert token.encode() == "action=calc&m_id=123"
        assert ActionToken.decode(token.encode()) == token

    @pytest.mark.parametrize("data", ["", "action=calc", "m_id=123", "garbage"])
    def test_action_token_rejects_incomplete_data(self, data):
        with pytest.raises(ValueError):
            ActionToken.decode(data)

    def test_push_target_prefers_group_then_room(self):
        assert push_target(SourceGroup(group_id="C1", user_id=TEST_USER)) == "C1"
        assert push_target(SourceRoom(room_id="R1", user_id=TEST_USER)) == "R1"
        assert push_target(SourceUser(user_id=TEST_USER)) == TEST_USER

    def test_sticker_text(self):
        message = SimpleNamespace(
            sticker_id="52002734", package_id="11537", keywords=["happy", "smile"], text="(smile)"
        )

        assert sticker_text(message) == "收到貼圖訊息: 52002734, pkg: 11537 kw: ,happy,smile  text: (smile)"

    def test_sticker_text_without_keywords(self):
        message = SimpleNamespace(sticker_id="1", package_id="2")

        assert sticker_text(message) == "收到貼圖訊息: 1, pkg: 2 kw:   text: "


class TestGuard:
    def test_guarded_handler_takes_only_the_event(self, food_bot):
        handle = food_bot.guard("text", food_bot.handle_text)

        assert list(inspect.signature(handle).parameters) == ["event"]

    def test_guarded_failure_is_logged(self, food_bot, caplog):
        caplog.set_level(logging.ERROR, logger="bot")

        def explode(event):
            raise KeyError("missing")

        food_bot.guard("sticker", explode)(message_event(TextMessage(id="1", text="hi")))

        entries = [json.loads(record.getMessage()) for record in caplog.records if record.name == "bot"]
        assert entries[0]["message"] == "Event handler failed"
        assert entries[0]["handler"] == "sticker"


class TestMessageEvents:
    def test_text_is_answered_once(self, food_bot, line_bot_api, gemini):
        gemini.start_function_call.return_value = (None, None)
        gemini.chat_complete.return_value = "你好！"

        food_bot.handle_text(message_event(TextMessage(id="1", text="你好")))

        assert replied_message(line_bot_api).text == "你好！"

    def test_text_failure_sends_no_reply(self, food_bot, line_bot_api, gemini):
        gemini.start_function_call.side_effect = ModelError("boom")

        food_bot.handle_text(message_event(TextMessage(id="1", text="你好")))

        line_bot_api.reply_message.assert_not_called()

    def test_image_reply_offers_calc_and_cook(self, food_bot, line_bot_api, gemini):
        gemini.describe_image.return_value = "一碗牛肉麵"

        food_bot.handle_image(message_event(ImageMessage(id="123")))

        line_bot_api.get_message_content.assert_called_once_with("123")
        gemini.describe_image.assert_called_once_with(b"fake-image", IMAGE_PROMPT)
        message = replied_message(line_bot_api)
        assert message.text == "一碗牛肉麵"
        actions = [item.action for item in message.quick_reply.items]
        assert [action.data for action in actions] == ["action=calc&m_id=123", "action=cook&m_id=123"]
        assert [action.display_text for action in actions] == ["計算卡路里", "建議食譜"]

    def test_image_fetch_error_sends_no_reply(self, food_bot, line_bot_api, gemini):
        line_bot_api.get_message_content.side_effect = RuntimeError("404 Not Found")

        food_bot.handle_image(message_event(ImageMessage(id="123")))

        gemini.describe_image.assert_not_called()
        line_bot_api.reply_message.assert_not_called()

    def test_image_model_error_is_shown_to_user(self, food_bot, line_bot_api, gemini):
        gemini.describe_image.side_effect = ModelError("safety block")

        food_bot.handle_image(message_event(ImageMessage(id="123")))

        message = replied_message(line_bot_api)
        assert message.text == IMAGE_ERROR_TEXT + "safety block"
        assert message.quick_reply is not None

    def test_video_is_not_answered(self, food_bot, line_bot_api):
        food_bot.handle_video(message_event(VideoMessage(id="456")))

        line_bot_api.reply_message.assert_not_called()
        line_bot_api.get_message_content.assert_not_called()


class TestPostbacks:
    def test_calc_records_and_pushes_summary(self, food_bot, line_bot_api, gemini, store, pool):
        gemini.describe_image.return_value = '```\n{"name":"fries","calories":400}\n```'
        gemini.chat_complete.return_value = "目前共 400 大卡"

        food_bot.handle_postback(postback_event(ActionToken(ACTION_CALC, "123").encode()))
        pool.shutdown(wait=True)

        assert list(store.get_all(USER_PATH).values()) == [
            FoodRecord(name="fries", calories=400, time="2024-05-01 12:30:00")
        ]
        line_bot_api.reply_message.assert_not_called()
        line_bot_api.push_message.assert_called_once()
        target, message = line_bot_api.push_message.call_args.args
        assert target == TEST_USER
        assert message.text == "目前共 400 大卡"

    def test_cook_in_group_pushes_to_group(self, food_bot, line_bot_api, gemini, pool):
        gemini.describe_image.return_value = "番茄炒蛋食譜"
        source = SourceGroup(group_id="C1", user_id=TEST_USER)

        food_bot.handle_postback(postback_event(ActionToken(ACTION_COOK, "123").encode(), source))
        pool.shutdown(wait=True)

        gemini.describe_image.assert_called_once_with(b"fake-image", COOK_PROMPT)
        target, message = line_bot_api.push_message.call_args.args
        assert target == "C1"
        assert message.text == "番茄炒蛋食譜"

    def test_failed_calc_pushes_nothing(self, food_bot, line_bot_api, gemini, store, pool):
        gemini.describe_image.return_value = "看不出來"

        food_bot.handle_postback(postback_event(ActionToken(ACTION_CALC, "123").encode()))
        pool.shutdown(wait=True)

        assert store.get_all(USER_PATH) == {}
        line_bot_api.push_message.assert_not_called()

    @pytest.mark.parametrize("data", ["garbage", "action=delete&m_id=123"])
    def test_bad_postback_does_nothing(self, food_bot, line_bot_api, gemini, pool, data):
        food_bot.handle_postback(postback_event(data))
        pool.shutdown(wait=True)

        line_bot_api.get_message_content.assert_not_called()
        line_bot_api.push_message.assert_not_called()
        line_bot_api.reply_message.assert_not_called()


class TestOtherEvents:
    def test_follow_sends_greeting_with_camera(self, food_bot, line_bot_api):
        food_bot.handle_follow(FollowEvent(reply_token="reply-token", source=SourceUser(user_id=TEST_USER)))

        message = replied_message(line_bot_api)
        assert message.text == GREETING_TEXT
        assert [item.action.type for item in message.quick_reply.items] == ["camera", "cameraRoll"]

    def test_beacon_is_only_logged(self, food_bot, line_bot_api):
        event = BeaconEvent(
            reply_token="reply-token",
            source=SourceUser(user_id=TEST_USER),
            beacon=Beacon(type="enter", hwid="d41d8cd98f")
        )

        food_bot.handle_beacon(event)

        line_bot_api.reply_message.assert_not_called()
