import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from core.database import utcnow
from core.errors import InvalidRequestError
from core.repository import NewsRepository
from models.article import Article
from models.category import Category
from models.search import Search
from utils.logger import setup_logger

SAVED_CATEGORY = "Saved"


class LibraryManager:
    """Query and edit helpers over the local store for presentation code."""

    def __init__(
        self,
        repository_factory: Callable[[], NewsRepository],
        *,
        write_lock=None,
        logger=None,
    ) -> None:
        self.repository_factory = repository_factory
        self.write_lock = write_lock or threading.RLock()
        self.logger = logger or setup_logger(self.__class__.__name__)

    @contextmanager
    def _repository(self) -> Iterator[NewsRepository]:
        repository = self.repository_factory()
        with repository:
            yield repository

    @contextmanager
    def _writing(self) -> Iterator[NewsRepository]:
        with self.write_lock, self._repository() as repository:
            yield repository

    def list_articles(self, category: Optional[str] = None, *, saved_only: bool = False) -> List[Dict[str, Any]]:
        """Return stored articles, either the saved ones or those of one category."""
        with self._repository() as repository:
            if saved_only:
                articles = repository.list_articles(saved=True)
            else:
                articles = repository.list_articles(category=category)
            return [article.to_dict() for article in articles]

    def get_article(self, url: str) -> Optional[Dict[str, Any]]:
        with self._repository() as repository:
            article = repository.find_article_by_url(url)
            return article.to_dict() if article else None

    def toggle_saved(self, url: str) -> Optional[Dict[str, Any]]:
        """
        Flip ``is_saved`` for the article at ``url``.

        Saving files the article under the "Saved" category; unsaving only
        clears that category if it is still the article's category.
        """
        with self._writing() as repository:
            article = repository.find_article_by_url(url)
            if article is None:
                return None
            if article.is_saved:
                if article.category is not None and article.category.name == SAVED_CATEGORY:
                    article.category = None
                article.is_saved = False
            else:
                article.category = self._get_or_create_category(repository, SAVED_CATEGORY)
                article.is_saved = True
            repository.commit()
            self.logger.info("Article %s saved=%s", url, article.is_saved)
            return article.to_dict()

    def save_search_result(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Persist a search result, or flag the stored copy when the URL is known."""
        url = str(payload.get("url") or "").strip()
        if not url:
            raise InvalidRequestError("Cannot save a search result without URL.")
        with self._writing() as repository:
            article = repository.find_article_by_url(url)
            if article is None:
                article = Article.from_mapping({**payload, "id": None, "url": url})
                article.category = None
                repository.add(article)
            article.is_saved_from_search = True
            repository.commit()
            self.logger.info("Saved search result: %s", url)
            return article.to_dict()

    def assign_category(self, url: str, category_name: str) -> Optional[Dict[str, Any]]:
        name = (category_name or "").strip()
        if not name:
            raise InvalidRequestError("Category name must not be empty.")
        with self._writing() as repository:
            article = repository.find_article_by_url(url)
            if article is None:
                return None
            article.category = self._get_or_create_category(repository, name)
            repository.commit()
            return article.to_dict()

    def update_notes(self, url: str, notes: str) -> Optional[Dict[str, Any]]:
        with self._writing() as repository:
            article = repository.find_article_by_url(url)
            if article is None:
                return None
            article.notes = notes or None
            repository.commit()
            return article.to_dict()

    def delete_article(self, url: str) -> bool:
        with self._writing() as repository:
            article = repository.find_article_by_url(url)
            if article is None:
                return False
            repository.delete(article)
            repository.commit()
            self.logger.info("Deleted article %s", url)
            return True

    def list_categories(self) -> List[Dict[str, Any]]:
        with self._repository() as repository:
            return [category.to_dict() for category in repository.list_categories()]

    def record_search(self, keyword: str) -> Optional[Dict[str, Any]]:
        """Remember a keyword; a known keyword only has its timestamp refreshed."""
        keyword = (keyword or "").strip()
        if not keyword:
            return None
        with self._writing() as repository:
            search = repository.find_search_by_keyword(keyword)
            if search is None:
                search = Search(keyword=keyword)
                repository.add(search)
            else:
                search.timestamp = utcnow()
            repository.commit()
            return search.to_dict()

    def list_searches(self) -> List[Dict[str, Any]]:
        with self._repository() as repository:
            return [search.to_dict() for search in repository.list_searches()]

    def delete_search(self, keyword: str) -> bool:
        with self._writing() as repository:
            search = repository.find_search_by_keyword(keyword)
            if search is None:
                return False
            repository.delete(search)
            repository.commit()
            return True

    def get_stats(self) -> Dict[str, int]:
        """Return aggregate counts for the store."""
        with self._repository() as repository:
            articles = repository.list_articles()
            return {
                "total_articles": len(articles),
                "saved_articles": sum(1 for a in articles if a.is_saved),
                "saved_from_search": sum(1 for a in articles if a.is_saved_from_search),
                "total_categories": len(repository.list_categories()),
                "total_searches": len(repository.list_searches()),
            }

    @staticmethod
    def _get_or_create_category(repository: NewsRepository, name: str) -> Category:
        category = repository.find_category_by_name(name)
        if category is None:
            category = Category(name=name)
            repository.add(category)
        return category
