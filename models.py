from dataclasses import dataclass, asdict
from typing import Any, Dict

from sqlalchemy import create_engine, Column, Integer, String
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from errors import RecordParseError
from parsing import parse_calories

Base = declarative_base()


@dataclass(frozen=True)
class FoodRecord:
    name: str
    calories: int
    time: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FoodRecord":
        """
        Builds a record from a stored or model-produced mapping.

        Older entries use `date` instead of `time`; function-call arguments
        use `foodItem` instead of `name`.
        """
        if not isinstance(data, dict):
            raise RecordParseError(f"Food record must be an object, got {type(data).__name__}")
        name = data.get("name", data.get("foodItem"))
        if not name:
            raise RecordParseError(f"Food record has no name: {data}")
        calories = parse_calories(data.get("calories", 0))
        time = data.get("time", data.get("date", ""))
        return cls(name=str(name), calories=calories, time=str(time or ""))


class FoodRecordRow(Base):
    __tablename__ = "food_records"

    id = Column(Integer, primary_key=True, index=True)
    path = Column(String, index=True)
    name = Column(String)
    calories = Column(Integer)
    time = Column(String)

    def to_record(self) -> FoodRecord:
        return FoodRecord(name=self.name, calories=self.calories, time=self.time)


def create_session_factory(database_url: str):
    """
    Creates the engine and tables for `database_url` and returns a session factory.
    """
    kwargs = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory database
            kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, **kwargs)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
