"""SQLAlchemy model for cached news articles."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from core.database import Base, utcnow
from models.category import Category  # noqa: F401  (relationship target)
from utils.timestamps import format_timestamp, parse_timestamp


class Article(Base):
    """
    A cached article.

    ``url`` is the deduplication key: it is unique when present, and articles
    without one (search results that were never saved) are not deduplicated.
    ``created_at`` is fixed when the object is constructed.
    """

    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    author = Column(String(256), nullable=True)
    url = Column(String(1024), unique=True, nullable=True, index=True)
    url_to_image = Column(String(1024), nullable=True)
    published_at = Column(DateTime, nullable=True)
    category_id = Column(String(36), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)
    is_saved = Column(Boolean, nullable=False, default=False)
    is_saved_from_search = Column(Boolean, nullable=False, default=False)
    country = Column(String(64), nullable=True)
    country_code = Column(String(8), nullable=True)
    popularity = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False)

    category = relationship("Category", lazy="joined")

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("is_saved", False)
        kwargs.setdefault("is_saved_from_search", False)
        kwargs.setdefault("created_at", utcnow())
        super().__init__(**kwargs)

    @property
    def is_fully_saved(self) -> bool:
        return bool(self.is_saved or self.is_saved_from_search)

    @property
    def category_name(self) -> Optional[str]:
        return self.category.name if self.category is not None else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description or "",
            "author": self.author or "",
            "url": self.url,
            "url_to_image": self.url_to_image,
            "published_at": format_timestamp(self.published_at),
            "category": self.category_name,
            "notes": self.notes or "",
            "is_saved": bool(self.is_saved),
            "is_saved_from_search": bool(self.is_saved_from_search),
            "is_fully_saved": self.is_fully_saved,
            "country": self.country,
            "country_code": self.country_code,
            "popularity": self.popularity,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "Article":
        """Rebuild an article from ``to_dict`` output; the category is attached by the caller."""
        kwargs = {
            "title": str(payload.get("title", "")),
            "description": payload.get("description") or None,
            "author": payload.get("author") or None,
            "url": payload.get("url") or None,
            "url_to_image": payload.get("url_to_image") or None,
            "published_at": parse_timestamp(payload.get("published_at")),
            "notes": payload.get("notes") or None,
            "is_saved": bool(payload.get("is_saved", False)),
            "is_saved_from_search": bool(payload.get("is_saved_from_search", False)),
            "country": payload.get("country") or None,
            "country_code": payload.get("country_code") or None,
            "popularity": _optional_int(payload.get("popularity")),
        }
        if payload.get("id") is not None:
            kwargs["id"] = int(payload["id"])
        created_at = parse_timestamp(payload.get("created_at"))
        if created_at:
            kwargs["created_at"] = created_at
        return cls(**kwargs)

    def __repr__(self) -> str:
        return f"<Article {self.url or self.title!r}>"


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
