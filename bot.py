import logging
from dataclasses import dataclass
from typing import Callable
from urllib.parse import parse_qs, urlencode

from linebot import LineBotApi, WebhookHandler
from linebot.models import (
    BeaconEvent,
    CameraAction,
    CameraRollAction,
    Event,
    FollowEvent,
    ImageMessage,
    MessageEvent,
    PostbackAction,
    PostbackEvent,
    QuickReply,
    QuickReplyButton,
    StickerMessage,
    TextMessage,
    TextSendMessage,
    VideoMessage,
)

from assistant import CalorieAssistant
from errors import AppError
from logging_utils import log_struct
from media import fetch_content
from prompts import (
    CALC_IMG,
    COOK_IMG,
    GREETING_TEXT,
    IMAGE_ERROR_TEXT,
    STICKER_TEXT,
)
from worker import TaskPool

logger = logging.getLogger(__name__)

ACTION_CALC = "calc"
ACTION_COOK = "cook"


@dataclass(frozen=True)
class ActionToken:
    action: str
    message_id: str

    def encode(self) -> str:
        return urlencode({"action": self.action, "m_id": self.message_id})

    @classmethod
    def decode(cls, data: str) -> "ActionToken":
        values = parse_qs(data, strict_parsing=True)
        if "action" not in values or "m_id" not in values:
            raise ValueError(f"Incomplete action token: {data!r}")
        return cls(action=values["action"][0], message_id=values["m_id"][0])


def push_target(source) -> str:
    """
    Group and room chats are answered in the chat, one-on-one chats to the user.
    """
    return (
        getattr(source, "group_id", None)
        or getattr(source, "room_id", None)
        or source.user_id
    )


def sticker_text(message: StickerMessage) -> str:
    # keywords and text are absent on older sticker payloads
    keywords = "".join("," + keyword for keyword in (getattr(message, "keywords", None) or []))
    return STICKER_TEXT.format(
        sticker_id=message.sticker_id,
        package_id=message.package_id,
        keywords=keywords,
        text=getattr(message, "text", None) or ""
    )


def image_quick_reply(message_id: str) -> QuickReply:
    return QuickReply(items=[
        QuickReplyButton(
            image_url=CALC_IMG,
            action=PostbackAction(
                label=ACTION_CALC,
                data=ActionToken(ACTION_CALC, message_id).encode(),
                display_text="計算卡路里"
            )
        ),
        QuickReplyButton(
            image_url=COOK_IMG,
            action=PostbackAction(
                label=ACTION_COOK,
                data=ActionToken(ACTION_COOK, message_id).encode(),
                display_text="建議食譜"
            )
        ),
    ])


def camera_quick_reply() -> QuickReply:
    return QuickReply(items=[
        QuickReplyButton(action=CameraAction(label="Camera")),
        QuickReplyButton(action=CameraRollAction(label="Camera Roll")),
    ])


class FoodBot:
    """
    Routes LINE webhook events to their reply paths. Each handler logs and
    drops its own failures so one bad event never affects the rest of the batch.
    """

    def __init__(self, line_bot_api: LineBotApi, assistant: CalorieAssistant, pool: TaskPool):
        self.line_bot_api = line_bot_api
        self.assistant = assistant
        self.pool = pool

    def register(self, handler: WebhookHandler) -> WebhookHandler:
        handler.add(MessageEvent, message=TextMessage)(self.guard("text", self.handle_text))
        handler.add(MessageEvent, message=StickerMessage)(self.guard("sticker", self.handle_sticker))
        handler.add(MessageEvent, message=ImageMessage)(self.guard("image", self.handle_image))
        handler.add(MessageEvent, message=VideoMessage)(self.guard("video", self.handle_video))
        handler.add(PostbackEvent)(self.guard("postback", self.handle_postback))
        handler.add(FollowEvent)(self.guard("follow", self.handle_follow))
        handler.add(BeaconEvent)(self.guard("beacon", self.handle_beacon))
        handler.default()(self.guard("default", self.handle_default))
        return handler

    def guard(self, name: str, fn: Callable[[Event], None]) -> Callable[[Event], None]:
        """
        Wraps an event handler so its failure is logged and the rest of the
        batch still runs. The SDK picks call arguments from the function
        signature, so the wrapper takes exactly one: the event.
        """

        def handle(event):
            try:
                fn(event)
            except Exception as e:
                log_struct("ERROR", "Event handler failed", logger, handler=name, error=str(e))

        return handle

    def reply(self, reply_token: str, message):
        try:
            self.line_bot_api.reply_message(reply_token, message)
        except Exception as e:
            logger.error(f"Reply failed: {str(e)}")

    def push(self, target: str, message):
        try:
            self.line_bot_api.push_message(target, message)
        except Exception as e:
            logger.error(f"Push to {target} failed: {str(e)}")

    # --------------------------------------------------------------------------
    # Message events
    # --------------------------------------------------------------------------
    def handle_text(self, event: MessageEvent):
        user_id = event.source.user_id or push_target(event.source)
        try:
            answer = self.assistant.answer(user_id, event.message.text)
        except Exception as e:
            log_struct("ERROR", "Text reply failed", logger, user_id=user_id, error=str(e))
            return
        self.reply(event.reply_token, TextSendMessage(text=answer))

    def handle_sticker(self, event: MessageEvent):
        self.reply(event.reply_token, TextSendMessage(text=sticker_text(event.message)))

    def handle_image(self, event: MessageEvent):
        message_id = event.message.id
        logger.info(f"Got img msg ID: {message_id}")

        try:
            data = fetch_content(self.line_bot_api, message_id)
        except AppError as e:
            log_struct("ERROR", "Image fetch failed", logger, message_id=message_id, error=e.message)
            return

        try:
            description = self.assistant.describe_dish(data)
        except AppError as e:
            log_struct("ERROR", "Image description failed", logger, message_id=message_id, error=e.message)
            description = IMAGE_ERROR_TEXT + e.message

        self.reply(
            event.reply_token,
            TextSendMessage(text=description, quick_reply=image_quick_reply(message_id))
        )

    def handle_video(self, event: MessageEvent):
        logger.info(f"Got video msg ID: {event.message.id}, video replies are disabled")

    # --------------------------------------------------------------------------
    # Other events
    # --------------------------------------------------------------------------
    def handle_postback(self, event: PostbackEvent):
        try:
            token = ActionToken.decode(event.postback.data)
        except ValueError as e:
            logger.error(f"action parse err: {str(e)} dat={event.postback.data}")
            return

        logger.info(f"Action: {token.action} m_id: {token.message_id}")
        user_id = event.source.user_id or push_target(event.source)
        target = push_target(event.source)

        if token.action == ACTION_CALC:
            self.pool.submit(f"calc:{token.message_id}", self.calc_calories, user_id, target, token.message_id)
        elif token.action == ACTION_COOK:
            self.pool.submit(f"cook:{token.message_id}", self.search_cooking, target, token.message_id)
        else:
            logger.warning(f"Unknown postback action: {token.action}")

    def handle_follow(self, event: FollowEvent):
        self.reply(
            event.reply_token,
            TextSendMessage(text=GREETING_TEXT, quick_reply=camera_quick_reply())
        )

    def handle_beacon(self, event: BeaconEvent):
        logger.info(f"Got beacon event: {event.beacon.hwid} {event.beacon.type}")

    def handle_default(self, event):
        logger.info(f"Ignoring event type: {getattr(event, 'type', 'unknown')}")

    # --------------------------------------------------------------------------
    # Postback tasks, run on the task pool
    # --------------------------------------------------------------------------
    def calc_calories(self, user_id: str, target: str, message_id: str) -> str:
        data = fetch_content(self.line_bot_api, message_id)
        summary = self.assistant.calc_calories(user_id, data)
        self.push(target, TextSendMessage(text=summary))
        return summary

    def search_cooking(self, target: str, message_id: str) -> str:
        data = fetch_content(self.line_bot_api, message_id)
        recipe = self.assistant.find_recipe(data)
        self.push(target, TextSendMessage(text=recipe))
        return recipe
