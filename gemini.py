import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from google import genai
from google.genai import types

from errors import ModelError, RecordParseError
from media import detect_mime_type
from parsing import parse_calories

logger = logging.getLogger(__name__)

# Balance between creativity and coherence; not configurable.
TEMPERATURE = 0.8


class FunctionName(str, Enum):
    RECORD_CALORIE = "recordCalorie"
    RECORD_FOOD = "recordFood"


@dataclass(frozen=True)
class RecordCalorieCall:
    food_item: str
    date: str
    calories: int


@dataclass(frozen=True)
class RecordFoodCall:
    food_item: str
    date: str


FunctionCallIntent = Union[RecordCalorieCall, RecordFoodCall]

CALORIE_TRACKING_TOOL = types.Tool(
    function_declarations=[
        types.FunctionDeclaration(
            name=FunctionName.RECORD_CALORIE.value,
            description="Record a calorie intake with date, amount, and food item",
            parameters=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "foodItem": types.Schema(
                        type=types.Type.STRING,
                        description="The name of the food item"
                    ),
                    "date": types.Schema(
                        type=types.Type.STRING,
                        description="The date of the intake in YYYY-MM-DD format"
                    ),
                    "calories": types.Schema(
                        type=types.Type.NUMBER,
                        description="The amount of calories"
                    ),
                },
                required=["foodItem", "date", "calories"]
            )
        ),
        types.FunctionDeclaration(
            name=FunctionName.RECORD_FOOD.value,
            description="Record a eating with date and food item",
            parameters=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "foodItem": types.Schema(
                        type=types.Type.STRING,
                        description="The name of the food item"
                    ),
                    "date": types.Schema(
                        type=types.Type.STRING,
                        description="The date of the intake in YYYY-MM-DD format"
                    ),
                },
                required=["foodItem", "date"]
            )
        ),
    ]
)


def decode_function_call(function_call: types.FunctionCall) -> Optional[FunctionCallIntent]:
    """
    Maps the model's function call onto one of the declared intents.
    Returns None for names that were never declared.
    """
    try:
        name = FunctionName(function_call.name)
    except ValueError:
        logger.warning(f"Model called an undeclared function: {function_call.name}")
        return None

    args: Dict[str, Any] = dict(function_call.args or {})
    food_item = args.get("foodItem")
    if not food_item:
        raise RecordParseError(f"{name.value} called without foodItem: {args}")
    date = str(args.get("date", ""))

    if name is FunctionName.RECORD_CALORIE:
        return RecordCalorieCall(
            food_item=str(food_item),
            date=date,
            calories=parse_calories(args.get("calories"))
        )
    return RecordFoodCall(food_item=str(food_item), date=date)


def response_text(response: types.GenerateContentResponse) -> str:
    return response.text or ""


class FunctionSession:
    """
    The chat that produced a function call; handler results are sent back
    into it so the model can phrase the final answer.
    """

    def __init__(self, chat):
        self.chat = chat

    def send_result(self, name: FunctionName, result: Dict[str, Any]) -> str:
        logger.info(f"Sending API result for {name.value}: {result}")
        try:
            response = self.chat.send_message(
                types.Part.from_function_response(name=name.value, response=result)
            )
        except Exception as e:
            raise ModelError(f"Function response failed: {str(e)}")
        return response_text(response)


class GeminiApp:
    def __init__(self, api_key: str, model: str, function_model: str, client: genai.Client = None):
        self.api_key = api_key
        self.model = model
        self.function_model = function_model
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def _config(self, **kwargs) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(temperature=TEMPERATURE, **kwargs)

    def describe_image(self, image_data: bytes, prompt: str) -> str:
        """
        Sends an image together with a prompt and returns the model's text.
        """
        mime_type = detect_mime_type(image_data)
        logger.info(f"Begin processing image ({mime_type}, {len(image_data)} bytes)...")
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=[
                    types.Part.from_bytes(data=image_data, mime_type=mime_type),
                    prompt
                ],
                config=self._config()
            )
        except Exception as e:
            raise ModelError(f"Image generation failed: {str(e)}")
        logger.info("Finished processing image...")
        return response_text(response)

    def chat_complete(self, prompt: str) -> str:
        """
        Single-turn chat completion; no history is kept between calls.
        """
        chat = self.client.chats.create(model=self.model, config=self._config())
        try:
            response = chat.send_message(prompt)
        except Exception as e:
            raise ModelError(f"Chat completion failed: {str(e)}")
        return response_text(response)

    def start_function_call(self, prompt: str) -> Tuple[FunctionSession, Optional[FunctionCallIntent]]:
        """
        Sends `prompt` with the calorie tracking tool declared.

        :return: The open session and the decoded intent, or None when the
                 model answered with text.
        """
        chat = self.client.chats.create(
            model=self.function_model,
            config=self._config(
                tools=[CALORIE_TRACKING_TOOL],
                automatic_function_calling=types.AutomaticFunctionCallingConfig(disable=True)
            )
        )
        try:
            response = chat.send_message(prompt)
        except Exception as e:
            raise ModelError(f"Function call request failed: {str(e)}")

        function_calls = response.function_calls or []
        if not function_calls:
            return FunctionSession(chat), None

        function_call = function_calls[0]
        logger.info(f"Received function call response: {function_call.name} {function_call.args}")
        return FunctionSession(chat), decode_function_call(function_call)
