from abc import ABC, abstractmethod
from typing import List, Optional, Union

from models.article import Article
from models.category import Category
from models.search import Search

Entity = Union[Article, Category, Search]


class NewsRepository(ABC):
    """
    Narrow store interface used by the sync service and the library manager.

    Mutations stay pending until ``commit``; lookups after ``add`` but before
    ``commit`` are not guaranteed to see the new entity.
    """

    @abstractmethod
    def find_article_by_url(self, url: str) -> Optional[Article]:
        """Return the stored article with exactly this URL, if any."""

    @abstractmethod
    def find_category_by_name(self, name: str) -> Optional[Category]:
        """Return the stored category with exactly this name, if any."""

    @abstractmethod
    def find_search_by_keyword(self, keyword: str) -> Optional[Search]:
        """Return the stored search history entry for this keyword, if any."""

    @abstractmethod
    def list_articles(
        self,
        *,
        category: Optional[str] = None,
        saved: Optional[bool] = None,
    ) -> List[Article]:
        """
        Return stored articles, newest first.

        Args:
            category: Keep only articles whose category name matches, ignoring case.
            saved: When set, keep only articles whose ``is_saved`` flag equals it.
        """

    @abstractmethod
    def list_categories(self) -> List[Category]:
        """Return all categories ordered by name."""

    @abstractmethod
    def list_searches(self) -> List[Search]:
        """Return the search history, most recently used first."""

    @abstractmethod
    def add(self, entity: Entity) -> None:
        """Stage a new entity for insertion."""

    @abstractmethod
    def delete(self, entity: Entity) -> None:
        """Stage an entity for removal."""

    @abstractmethod
    def commit(self) -> None:
        """Persist pending changes; raises PersistenceError on failure."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard pending changes."""

    def category_names(self) -> set:
        return {category.name for category in self.list_categories()}

    def close(self) -> None:
        """Release resources held by the repository."""

    def __enter__(self) -> "NewsRepository":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.rollback()
        self.close()
