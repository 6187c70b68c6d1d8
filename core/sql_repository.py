"""SQLAlchemy implementation of the news repository."""

from __future__ import annotations

from typing import Any, Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from core.errors import PersistenceError
from core.repository import Entity, NewsRepository
from models.article import Article
from models.category import Category
from models.search import Search


class SqlNewsRepository(NewsRepository):
    """Repository over one SQLAlchemy session; pending changes live in that session."""

    def __init__(self, session_factory: Callable[[], Any], *, logger=None) -> None:
        self.session = session_factory()
        self.logger = logger

    def find_article_by_url(self, url: str) -> Optional[Article]:
        if not url:
            return None
        return self.session.query(Article).filter(Article.url == url).first()

    def find_category_by_name(self, name: str) -> Optional[Category]:
        return self.session.query(Category).filter(Category.name == name).first()

    def find_search_by_keyword(self, keyword: str) -> Optional[Search]:
        return self.session.query(Search).filter(Search.keyword == keyword).first()

    def list_articles(
        self,
        *,
        category: Optional[str] = None,
        saved: Optional[bool] = None,
    ) -> List[Article]:
        query = self.session.query(Article)
        if category:
            query = query.join(Article.category).filter(
                func.lower(Category.name) == category.lower()
            )
        if saved is not None:
            query = query.filter(Article.is_saved == bool(saved))
        return query.order_by(Article.created_at.desc(), Article.id.desc()).all()

    def list_categories(self) -> List[Category]:
        return self.session.query(Category).order_by(Category.name).all()

    def list_searches(self) -> List[Search]:
        return self.session.query(Search).order_by(Search.timestamp.desc()).all()

    def category_names(self) -> set:
        return {name for (name,) in self.session.query(Category.name).all()}

    def add(self, entity: Entity) -> None:
        self.session.add(entity)

    def delete(self, entity: Entity) -> None:
        self.session.delete(entity)

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            if self.logger:
                self.logger.error("Failed to commit changes to database: %s", exc)
            raise PersistenceError(f"Database commit failed: {exc}") from exc

    def rollback(self) -> None:
        self.session.rollback()

    def close(self) -> None:
        self.session.close()
