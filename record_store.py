import json
import logging
from abc import ABC, abstractmethod
from typing import Dict

import firebase_admin
from firebase_admin import credentials, db

from config import Settings
from errors import ConfigError, RecordParseError, StoreError
from models import FoodRecord, FoodRecordRow, create_session_factory

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """
    Append-only food records addressed by path. The path is passed on every
    call so one store instance can serve all users concurrently.
    """

    @abstractmethod
    def get_all(self, path: str) -> Dict[str, FoodRecord]:
        ...

    @abstractmethod
    def push(self, path: str, record: FoodRecord) -> str:
        ...

    def get_all_json(self, path: str) -> str:
        records = self.get_all(path)
        return json.dumps(
            {key: record.to_dict() for key, record in records.items()},
            ensure_ascii=False
        )


class FirebaseRecordStore(RecordStore):
    def __init__(self, app: firebase_admin.App = None):
        self.app = app

    def get_all(self, path: str) -> Dict[str, FoodRecord]:
        try:
            data = db.reference(path, app=self.app).get()
        except Exception as e:
            raise StoreError(f"Firebase get failed for {path}: {str(e)}")

        if data is None:
            return {}
        # Firebase returns a list for nodes whose keys are sequential integers
        if isinstance(data, list):
            data = {str(index): value for index, value in enumerate(data) if value is not None}
        if not isinstance(data, dict):
            raise StoreError(f"Unexpected data at {path}: {type(data).__name__}")

        records = {}
        for key, value in data.items():
            try:
                records[key] = FoodRecord.from_dict(value)
            except RecordParseError as e:
                logger.warning(f"Skipping malformed record {path}/{key}: {e.message}")
        return records

    def push(self, path: str, record: FoodRecord) -> str:
        try:
            ref = db.reference(path, app=self.app).push(record.to_dict())
        except Exception as e:
            raise StoreError(f"Firebase push failed for {path}: {str(e)}")
        return ref.key


class SqlRecordStore(RecordStore):
    def __init__(self, database_url: str):
        self.session_factory = create_session_factory(database_url)

    def get_all(self, path: str) -> Dict[str, FoodRecord]:
        session = self.session_factory()
        try:
            rows = session.query(FoodRecordRow).filter(
                FoodRecordRow.path == path
            ).order_by(FoodRecordRow.id).all()
            return {str(row.id): row.to_record() for row in rows}
        except Exception as e:
            raise StoreError(f"SQL get failed for {path}: {str(e)}")
        finally:
            session.close()

    def push(self, path: str, record: FoodRecord) -> str:
        session = self.session_factory()
        try:
            row = FoodRecordRow(
                path=path,
                name=record.name,
                calories=record.calories,
                time=record.time
            )
            session.add(row)
            session.commit()
            return str(row.id)
        except Exception as e:
            session.rollback()
            raise StoreError(f"SQL push failed for {path}: {str(e)}")
        finally:
            session.close()


def init_firebase(settings: Settings) -> firebase_admin.App:
    """
    Initializes the Firebase app from inline JSON or a credentials file path.
    """
    if settings.firebase_credentials_json:
        try:
            cred = credentials.Certificate(json.loads(settings.firebase_credentials_json))
        except ValueError as e:
            raise ConfigError(f"Invalid FIREBASE_CREDENTIALS_JSON: {str(e)}")
    elif settings.google_credentials:
        cred = credentials.Certificate(settings.google_credentials)
    else:
        cred = credentials.ApplicationDefault()

    return firebase_admin.initialize_app(cred, {"databaseURL": settings.firebase_url})


def build_record_store(settings: Settings) -> RecordStore:
    if settings.firebase_url:
        logger.info(f"Using Firebase record store at {settings.firebase_url}")
        return FirebaseRecordStore(init_firebase(settings))
    logger.info("FIREBASE_URL not set, using SQL record store")
    return SqlRecordStore(settings.database_url)
