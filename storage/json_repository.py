"""File-backed news repository used when no database is configured."""

from __future__ import annotations

import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from core.errors import PersistenceError
from core.repository import Entity, NewsRepository
from models.article import Article
from models.category import Category
from models.search import Search
from storage.file_storage import FileStorage

_STORE_LOCKS: Dict[Path, threading.RLock] = {}
_REGISTRY_LOCK = threading.Lock()


def store_lock(data_dir: Path) -> threading.RLock:
    """Return the process-wide lock guarding the files under ``data_dir``."""
    key = Path(data_dir).resolve()
    with _REGISTRY_LOCK:
        return _STORE_LOCKS.setdefault(key, threading.RLock())


class JsonNewsRepository(NewsRepository):
    """
    Keep articles, categories and searches in three JSON files under ``data_dir``.

    Each unit of work starts on first access: the store lock is taken and the
    files are read. ``commit`` writes all three files as one snapshot and
    ``rollback``/``close`` discard pending changes; both release the lock, so
    the next access reads what other repositories committed meanwhile.
    """

    def __init__(self, data_dir: Path, *, storage: Optional[FileStorage] = None, logger=None) -> None:
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.logger = logger
        self.storage = storage or FileStorage(logger=logger)
        self.lock = store_lock(self.data_dir)

        self.articles_file = self.data_dir / "articles.json"
        self.categories_file = self.data_dir / "categories.json"
        self.searches_file = self.data_dir / "searches.json"

        self._active = False
        self._articles: List[Article] = []
        self._categories: List[Category] = []
        self._searches: List[Search] = []

    def _begin(self) -> None:
        if self._active:
            return
        self.lock.acquire()
        self._active = True
        try:
            self._load()
        except Exception:
            self._end()
            raise

    def _end(self) -> None:
        if not self._active:
            return
        self._active = False
        self._articles, self._categories, self._searches = [], [], []
        self.lock.release()

    def _load(self) -> None:
        self._categories = [
            Category.from_mapping(item) for item in self.storage.load_json(self.categories_file)
        ]
        by_id: Dict[str, Category] = {category.id: category for category in self._categories}

        self._articles = []
        for item in self.storage.load_json(self.articles_file):
            article = Article.from_mapping(item)
            category_id = item.get("category_id")
            if category_id:
                article.category = by_id.get(category_id)
            self._articles.append(article)

        self._searches = [Search.from_mapping(item) for item in self.storage.load_json(self.searches_file)]

    def find_article_by_url(self, url: str) -> Optional[Article]:
        if not url:
            return None
        self._begin()
        return next((a for a in self._articles if a.url == url), None)

    def find_category_by_name(self, name: str) -> Optional[Category]:
        self._begin()
        return next((c for c in self._categories if c.name == name), None)

    def find_search_by_keyword(self, keyword: str) -> Optional[Search]:
        self._begin()
        return next((s for s in self._searches if s.keyword == keyword), None)

    def list_articles(
        self,
        *,
        category: Optional[str] = None,
        saved: Optional[bool] = None,
    ) -> List[Article]:
        self._begin()
        articles = list(self._articles)
        if category:
            wanted = category.lower()
            articles = [a for a in articles if a.category_name and a.category_name.lower() == wanted]
        if saved is not None:
            articles = [a for a in articles if bool(a.is_saved) == bool(saved)]
        articles.sort(key=lambda a: (a.created_at or datetime.min, a.id or 0), reverse=True)
        return articles

    def list_categories(self) -> List[Category]:
        self._begin()
        return sorted(self._categories, key=lambda c: c.name)

    def list_searches(self) -> List[Search]:
        self._begin()
        return sorted(self._searches, key=lambda s: s.timestamp, reverse=True)

    def add(self, entity: Entity) -> None:
        self._begin()
        if isinstance(entity, Article):
            if entity.id is None:
                entity.id = max((a.id or 0 for a in self._articles), default=0) + 1
            if entity.category is not None and entity.category not in self._categories:
                self._categories.append(entity.category)
            self._articles.append(entity)
        elif isinstance(entity, Category):
            self._categories.append(entity)
        elif isinstance(entity, Search):
            self._searches.append(entity)
        else:
            raise TypeError(f"Unsupported entity type: {type(entity).__name__}")

    def delete(self, entity: Entity) -> None:
        self._begin()
        for bucket in (self._articles, self._categories, self._searches):
            if entity in bucket:
                bucket.remove(entity)
                return

    def commit(self) -> None:
        if not self._active:
            return
        snapshot = {
            self.categories_file: [c.to_dict() for c in self._categories],
            self.articles_file: [self._article_record(a) for a in self._articles],
            self.searches_file: [s.to_dict() for s in self._searches],
        }
        if not self.storage.save_snapshot(snapshot):
            raise PersistenceError(f"Failed to write the article store in {self.data_dir}")
        self._end()

    def rollback(self) -> None:
        self._end()

    def close(self) -> None:
        self._end()

    @staticmethod
    def _article_record(article: Article) -> dict:
        record = article.to_dict()
        record["category_id"] = article.category.id if article.category is not None else None
        return record
