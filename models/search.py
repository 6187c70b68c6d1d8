"""SQLAlchemy model for the keyword search history."""

from __future__ import annotations

import uuid
from typing import Any, Mapping

from sqlalchemy import Column, DateTime, String

from core.database import Base, utcnow
from utils.timestamps import format_timestamp, parse_timestamp


class Search(Base):
    """A previously used search keyword; ``timestamp`` is the last time it was used."""

    __tablename__ = "searches"

    id = Column(String(36), primary_key=True)
    keyword = Column(String(256), unique=True, nullable=False, index=True)
    timestamp = Column(DateTime, nullable=False, index=True)

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("id", str(uuid.uuid4()))
        kwargs.setdefault("timestamp", utcnow())
        super().__init__(**kwargs)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "keyword": self.keyword,
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "Search":
        kwargs = {"keyword": str(payload.get("keyword", ""))}
        if payload.get("id"):
            kwargs["id"] = str(payload["id"])
        timestamp = parse_timestamp(payload.get("timestamp"))
        if timestamp:
            kwargs["timestamp"] = timestamp
        return cls(**kwargs)
