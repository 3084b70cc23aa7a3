import logging
from datetime import datetime
from typing import Any, Callable, Dict
from zoneinfo import ZoneInfo

from config import Settings
from gemini import FunctionName, GeminiApp, RecordCalorieCall, RecordFoodCall
from logging_utils import log_struct
from models import FoodRecord
from parsing import extract_json_object, parse_calories
from prompts import (
    CALC_PROMPT,
    COOK_PROMPT,
    GUESS_CALORIES_PROMPT,
    IMAGE_PROMPT,
    LOCAL_TIME_SUFFIX,
    RECORDS_CONTEXT_PROMPT,
    SUMMARY_PROMPT,
)
from record_store import RecordStore

logger = logging.getLogger(__name__)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class CalorieAssistant:
    """
    Conversation logic on top of the model client and the record store.
    """

    def __init__(self, gemini: GeminiApp, store: RecordStore, settings: Settings,
                 clock: Callable[[], datetime] = None):
        self.gemini = gemini
        self.store = store
        self.settings = settings
        self.clock = clock or (lambda: datetime.now(ZoneInfo(settings.timezone)))

    def records_json(self, user_id: str) -> str:
        return self.store.get_all_json(self.settings.user_path(user_id))

    def chat_with_records(self, user_id: str, question: str) -> str:
        """
        Answers `question` with the user's stored food records as context.
        """
        prompt = RECORDS_CONTEXT_PROMPT.format(
            records=self.records_json(user_id),
            question=question
        )
        return self.gemini.chat_complete(prompt)

    def record(self, user_id: str, record: FoodRecord) -> Dict[str, Any]:
        key = self.store.push(self.settings.user_path(user_id), record)
        log_struct("INFO", "Food record stored", logger, user_id=user_id, key=key, record=record.to_dict())
        return {"status": "recorded", "key": key, **record.to_dict()}

    def guess_calories(self, food_item: str) -> int:
        answer = self.gemini.chat_complete(GUESS_CALORIES_PROMPT.format(food_item=food_item))
        calories = parse_calories(answer)
        logger.info(f"Gemini guess calories for {food_item}: {calories}")
        return calories

    def answer(self, user_id: str, text: str) -> str:
        """
        One function-calling turn for a text message. A recorded intake is
        acknowledged by the model; anything else is answered from the records.
        """
        prompt = text + LOCAL_TIME_SUFFIX.format(now=self.clock().strftime(TIME_FORMAT))
        session, intent = self.gemini.start_function_call(prompt)

        if isinstance(intent, RecordCalorieCall):
            result = self.record(user_id, FoodRecord(
                name=intent.food_item,
                calories=intent.calories,
                time=intent.date or self.clock().strftime(TIME_FORMAT)
            ))
            return session.send_result(FunctionName.RECORD_CALORIE, result)

        if isinstance(intent, RecordFoodCall):
            result = self.record(user_id, FoodRecord(
                name=intent.food_item,
                calories=self.guess_calories(intent.food_item),
                time=intent.date or self.clock().strftime(TIME_FORMAT)
            ))
            return session.send_result(FunctionName.RECORD_FOOD, result)

        return self.chat_with_records(user_id, prompt)

    def calc_calories(self, user_id: str, image_data: bytes) -> str:
        """
        Estimates the dish's calories from the image, stores the estimate and
        returns the model's summary over all of the user's records.
        """
        estimate = self.gemini.describe_image(image_data, CALC_PROMPT)
        data = extract_json_object(estimate)
        record = FoodRecord.from_dict({
            "name": data.get("name"),
            "calories": data.get("calories"),
            "time": self.clock().strftime(TIME_FORMAT),
        })
        self.record(user_id, record)
        return self.chat_with_records(user_id, SUMMARY_PROMPT)

    def describe_dish(self, image_data: bytes) -> str:
        return self.gemini.describe_image(image_data, IMAGE_PROMPT)

    def find_recipe(self, image_data: bytes) -> str:
        return self.gemini.describe_image(image_data, COOK_PROMPT)
