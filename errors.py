from typing import Optional


class AppError(Exception):
    def __init__(self, message: str, user_message: Optional[str] = None):
        self.message = message
        self.user_message = user_message or "發生錯誤，請稍後再試。"
        super().__init__(self.message)


class ConfigError(AppError):
    """Missing or invalid credentials; fatal at startup."""


class MediaFetchError(AppError):
    pass


class ModelError(AppError):
    pass


class RecordParseError(AppError):
    """The model's answer could not be turned into a food record."""


class StoreError(AppError):
    pass
