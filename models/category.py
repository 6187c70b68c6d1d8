"""SQLAlchemy model for article categories."""

from __future__ import annotations

import uuid
from typing import Any, Mapping

from sqlalchemy import Column, DateTime, String, Text

from core.database import Base, utcnow
from utils.timestamps import format_timestamp, parse_timestamp


class Category(Base):
    """Topic an article was ingested under; upserted by name."""

    __tablename__ = "categories"

    id = Column(String(36), primary_key=True)
    name = Column(String(128), unique=True, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    def __init__(self, **kwargs: Any) -> None:
        now = utcnow()
        kwargs.setdefault("id", str(uuid.uuid4()))
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", kwargs["created_at"])
        super().__init__(**kwargs)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "notes": self.notes or "",
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "Category":
        kwargs = {
            "name": str(payload.get("name", "")),
            "notes": payload.get("notes") or None,
        }
        if payload.get("id"):
            kwargs["id"] = str(payload["id"])
        created_at = parse_timestamp(payload.get("created_at"))
        if created_at:
            kwargs["created_at"] = created_at
        updated_at = parse_timestamp(payload.get("updated_at"))
        if updated_at:
            kwargs["updated_at"] = updated_at
        return cls(**kwargs)

    def __repr__(self) -> str:
        return f"<Category {self.name!r}>"
