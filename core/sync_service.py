"""Fetch articles and categories from the news API and merge them into the local store."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from core.default_config import DEFAULT_CATEGORIES
from core.errors import InvalidRequestError, PersistenceError, RemoteFetchError
from core.news_client import ArticlePayload, NewsApiClient
from core.repository import NewsRepository
from models.article import Article
from models.category import Category
from utils.logger import setup_logger
from utils.timestamps import parse_timestamp

RepositoryFactory = Callable[[], NewsRepository]

SORT_PUBLISHED = "published"
SORT_POPULARITY = "popularity"


@dataclass
class SweepReport:
    """Outcome of one category sweep."""

    inserted: Dict[str, int] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)
    skipped: bool = False

    @property
    def total_inserted(self) -> int:
        return sum(self.inserted.values())

    def to_dict(self) -> dict:
        return {
            "inserted": dict(self.inserted),
            "failed": dict(self.failed),
            "skipped": self.skipped,
            "total_inserted": self.total_inserted,
        }


class ArticleSyncService:
    """
    Bridge between the news API and the local store.

    Ingestion is idempotent: an article whose URL is already stored is never
    inserted again or modified, and categories are created by name only when
    missing. Each sync operation holds its own latch so overlapping calls of
    the same operation are skipped, and every store write runs under
    ``write_lock`` so different operations cannot race on the dedup checks.
    """

    def __init__(
        self,
        client: NewsApiClient,
        repository_factory: RepositoryFactory,
        *,
        categories: Sequence[str] = DEFAULT_CATEGORIES,
        write_lock=None,
        logger=None,
    ) -> None:
        self.client = client
        self.repository_factory = repository_factory
        self.categories = [name.strip().lower() for name in categories if name and name.strip()]
        self.logger = logger or setup_logger(self.__class__.__name__)
        # Shared with every other writer of the same store; category
        # lookups and inserts happen under it.
        self.write_lock = write_lock or threading.RLock()
        self._latches: Dict[str, threading.Lock] = {
            "sweep": threading.Lock(),
            "categories": threading.Lock(),
        }

    def fetch_categories(self) -> List[str]:
        """Return the topic names; static rather than remote-derived."""
        return list(self.categories)

    def sync_all_categories(self) -> SweepReport:
        """Fetch top headlines for every topic and merge them, one topic at a time."""
        report = SweepReport()
        with self._latch("sweep") as acquired:
            if not acquired:
                self.logger.info("Category sweep already running; skipping.")
                report.skipped = True
                return report

            for name in self.fetch_categories():
                self.logger.info("Fetching articles for category: %s", name)
                try:
                    payloads = self.client.top_headlines(category=name)
                except (InvalidRequestError, RemoteFetchError) as exc:
                    self.logger.error("Failed to fetch articles for category %s: %s", name, exc)
                    report.failed[name] = str(exc)
                    continue
                try:
                    report.inserted[name] = self.merge_articles(name, payloads)
                except PersistenceError as exc:
                    self.logger.error("Failed to store articles for category %s: %s", name, exc)
                    report.failed[name] = str(exc)

        self.logger.info(
            "Sweep finished: %d new article(s), %d failed categor%s.",
            report.total_inserted,
            len(report.failed),
            "y" if len(report.failed) == 1 else "ies",
        )
        return report

    def merge_articles(self, category_name: str, payloads: Sequence[ArticlePayload]) -> int:
        """
        Insert the payloads that are not stored yet under ``category_name``.

        Payloads without a URL are dropped. Returns the number of inserted
        articles; raises PersistenceError when the commit fails.
        """
        with self.write_lock:
            repository = self.repository_factory()
            try:
                category = self._resolve_category(repository, category_name)
                seen: set = set()
                inserted = 0
                for payload in payloads:
                    url = payload.url
                    if not url:
                        continue
                    if url in seen or repository.find_article_by_url(url) is not None:
                        continue
                    seen.add(url)
                    repository.add(build_article(payload, category=category))
                    inserted += 1
                repository.commit()
            except Exception:
                repository.rollback()
                raise
            finally:
                repository.close()

        if inserted:
            self.logger.info("Saved %d new article(s) for category %s.", inserted, category_name)
        return inserted

    def fetch_headlines(
        self,
        country: str,
        category: str,
        *,
        limit: Optional[int] = None,
    ) -> List[Article]:
        """
        Return unsaved articles for one country and category.

        Raises RemoteFetchError (DecodeError for a bad body) and
        InvalidRequestError; nothing is written to the store.
        """
        payloads = self.client.top_headlines(country=country, category=category)
        articles = [build_article(p, country=country, country_code=country) for p in payloads]
        if limit is not None and limit > 0:
            articles = articles[:limit]
        return articles

    def sync_categories(self) -> List[str]:
        """Insert the topic names the store does not know yet; returns the inserted names."""
        with self._latch("categories") as acquired:
            if not acquired:
                self.logger.info("Category sync already running; skipping.")
                return []

            with self.write_lock:
                repository = self.repository_factory()
                try:
                    existing = repository.category_names()
                    missing = [name for name in self.fetch_categories() if name not in existing]
                    for name in missing:
                        repository.add(Category(name=name))
                        self.logger.info("Inserted category: %s", name)
                    repository.commit()
                except Exception:
                    repository.rollback()
                    raise
                finally:
                    repository.close()
            return missing

    def search(self, keyword: str, *, sort: Optional[str] = None) -> List[Article]:
        """
        Full-text search; returns unsaved articles.

        Any failure is logged and yields an empty list.
        """
        try:
            payloads = self.client.everything(keyword)
        except (InvalidRequestError, RemoteFetchError) as exc:
            self.logger.error("Error searching articles for %r: %s", keyword, exc)
            return []
        return sort_articles([build_article(p) for p in payloads], sort)

    @staticmethod
    def _resolve_category(repository: NewsRepository, name: str) -> Category:
        category = repository.find_category_by_name(name)
        if category is None:
            category = Category(name=name)
            repository.add(category)
        return category

    @contextmanager
    def _latch(self, operation: str) -> Iterator[bool]:
        lock = self._latches[operation]
        acquired = lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()


def build_article(
    payload: ArticlePayload,
    *,
    category: Optional[Category] = None,
    country: Optional[str] = None,
    country_code: Optional[str] = None,
) -> Article:
    return Article(
        title=payload.title,
        description=payload.description,
        author=payload.author,
        url=payload.url,
        url_to_image=payload.url_to_image,
        published_at=parse_timestamp(payload.published_at),
        category=category,
        country=country,
        country_code=country_code,
    )


def sort_articles(articles: List[Article], sort: Optional[str]) -> List[Article]:
    if sort == SORT_PUBLISHED:
        return sorted(articles, key=lambda a: a.published_at or datetime.min, reverse=True)
    if sort == SORT_POPULARITY:
        return sorted(articles, key=lambda a: a.popularity or 0, reverse=True)
    return articles
