import os
from typing import List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from errors import ConfigError


def _env(name: str, default: str = ""):
    return Field(default_factory=lambda: os.getenv(name, default))


class Settings(BaseModel):
    # Environment values arrive as strings; validate them against the field types
    model_config = ConfigDict(validate_default=True)

    # LINE settings
    channel_secret: str = _env("ChannelSecret")
    channel_access_token: str = _env("ChannelAccessToken")

    # Gemini settings
    gemini_api_key: str = _env("GOOGLE_GEMINI_API_KEY")
    gemini_model: str = _env("GEMINI_MODEL", "gemini-2.5-flash")
    gemini_function_model: str = _env("GEMINI_FUNCTION_MODEL", "gemini-2.5-flash")

    # Firebase settings; an empty URL selects the SQL store
    firebase_url: str = _env("FIREBASE_URL")
    google_credentials: str = _env("GOOGLE_APPLICATION_CREDENTIALS")
    firebase_credentials_json: str = _env("FIREBASE_CREDENTIALS_JSON")

    # SQL store settings
    database_url: str = _env("DATABASE_URL", "sqlite:///food_records.db")

    records_root: str = _env("RECORDS_ROOT", "food_records")
    timezone: str = _env("BOT_TIMEZONE", "Asia/Taipei")
    worker_pool_size: int = _env("WORKER_POOL_SIZE", "4")
    port: int = _env("PORT", "8080")
    log_level: str = _env("LOG_LEVEL", "INFO")

    def missing_credentials(self) -> List[str]:
        required = {
            "ChannelSecret": self.channel_secret,
            "ChannelAccessToken": self.channel_access_token,
            "GOOGLE_GEMINI_API_KEY": self.gemini_api_key,
        }
        return [name for name, value in required.items() if not value]

    def require(self) -> "Settings":
        missing = self.missing_credentials()
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")
        return self

    def user_path(self, user_id: str) -> str:
        return f"{self.records_root}/{user_id}"


def get_settings(**overrides) -> Settings:
    try:
        return Settings(**overrides)
    except ValidationError as e:
        fields = ", ".join(str(error["loc"][0]) for error in e.errors())
        raise ConfigError(f"Invalid settings: {fields}")
