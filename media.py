import io
import logging

from linebot import LineBotApi
from linebot.exceptions import LineBotApiError
from PIL import Image, UnidentifiedImageError

from errors import MediaFetchError

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


def fetch_content(line_bot_api: LineBotApi, message_id: str) -> bytes:
    """
    Downloads the binary content of an uploaded image or video from LINE.

    :param line_bot_api: LINE Messaging API client.
    :param message_id: The id of the message holding the content.
    :return: The whole payload, buffered in memory.
    """
    try:
        message_content = line_bot_api.get_message_content(message_id)
        data = b"".join(message_content.iter_content())
    except LineBotApiError as e:
        raise MediaFetchError(f"Got get_message_content err: {e.status_code} {e.error.message}")
    except Exception as e:
        raise MediaFetchError(f"Got get_message_content err: {str(e)}")

    logger.info(f"Fetched {len(data)} bytes for message {message_id}")
    return data


def detect_mime_type(image_data: bytes) -> str:
    try:
        image = Image.open(io.BytesIO(image_data))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        return DEFAULT_MIME_TYPE
    return Image.MIME.get(image.format, DEFAULT_MIME_TYPE)
