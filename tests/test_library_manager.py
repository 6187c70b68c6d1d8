import logging
import tempfile
import threading
import unittest
from datetime import datetime
from pathlib import Path

from core.database import Database
from core.errors import InvalidRequestError
from core.library_manager import SAVED_CATEGORY, LibraryManager
from core.sql_repository import SqlNewsRepository
from models.article import Article
from models.category import Category
from models.search import Search
from storage.json_repository import JsonNewsRepository

LOGGER = logging.getLogger("tests.library")


class LibraryManagerTest(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.database = Database({"database": {"url": f"sqlite:///{Path(self.tmpdir.name) / 'library.sqlite'}"}})
        self.database.create_tables()
        session_factory = self.database.get_session_factory()
        self.repository_factory = lambda: SqlNewsRepository(session_factory, logger=LOGGER)
        self.library = LibraryManager(self.repository_factory, logger=LOGGER)
        self._seed()

    def tearDown(self) -> None:
        self.database.dispose()
        self.tmpdir.cleanup()

    def _seed(self) -> None:
        with self.repository_factory() as repository:
            tech = Category(name="technology")
            repository.add(Article(title="Chips", url="https://e.com/chips", category=tech))
            repository.add(Article(title="Robots", url="https://e.com/robots", category=tech))
            repository.add(Article(title="Orphan", url="https://e.com/orphan"))
            repository.commit()

    def test_list_articles_by_category(self) -> None:
        titles = sorted(a["title"] for a in self.library.list_articles("technology"))
        self.assertEqual(["Chips", "Robots"], titles)
        self.assertEqual(3, len(self.library.list_articles()))

    def test_toggle_saved_files_article_under_saved_category(self) -> None:
        saved = self.library.toggle_saved("https://e.com/orphan")
        self.assertTrue(saved["is_saved"])
        self.assertEqual(SAVED_CATEGORY, saved["category"])
        self.assertEqual(["Orphan"], [a["title"] for a in self.library.list_articles(saved_only=True)])

        unsaved = self.library.toggle_saved("https://e.com/orphan")
        self.assertFalse(unsaved["is_saved"])
        self.assertFalse(unsaved["is_fully_saved"])
        self.assertIsNone(unsaved["category"])
        self.assertEqual([], self.library.list_articles(saved_only=True))

    def test_unsaving_keeps_a_reassigned_category(self) -> None:
        self.library.toggle_saved("https://e.com/chips")
        self.library.assign_category("https://e.com/chips", "technology")
        result = self.library.toggle_saved("https://e.com/chips")
        self.assertFalse(result["is_saved"])
        self.assertEqual("technology", result["category"])

    def test_toggle_saved_unknown_url(self) -> None:
        self.assertIsNone(self.library.toggle_saved("https://e.com/missing"))

    def test_assign_category_creates_it_once(self) -> None:
        self.library.assign_category("https://e.com/orphan", "science")
        self.library.assign_category("https://e.com/chips", "science")
        names = [c["name"] for c in self.library.list_categories()]
        self.assertEqual(1, names.count("science"))
        self.assertEqual(2, len(self.library.list_articles("science")))

    def test_assign_blank_category_is_rejected(self) -> None:
        with self.assertRaises(InvalidRequestError):
            self.library.assign_category("https://e.com/orphan", "  ")

    def test_update_notes_and_delete(self) -> None:
        updated = self.library.update_notes("https://e.com/robots", "read later")
        self.assertEqual("read later", updated["notes"])
        self.assertEqual("read later", self.library.get_article("https://e.com/robots")["notes"])

        self.assertTrue(self.library.delete_article("https://e.com/robots"))
        self.assertFalse(self.library.delete_article("https://e.com/robots"))
        self.assertIsNone(self.library.get_article("https://e.com/robots"))

    def test_save_search_result_stores_new_article(self) -> None:
        payload = {
            "title": "Markets rally",
            "url": "https://e.com/markets",
            "published_at": "2024-04-02T09:00:00",
            "category": "ignored",
        }
        saved = self.library.save_search_result(payload)
        self.assertTrue(saved["is_saved_from_search"])
        self.assertFalse(saved["is_saved"])
        self.assertTrue(saved["is_fully_saved"])
        self.assertIsNone(saved["category"])
        with self.repository_factory() as repository:
            article = repository.find_article_by_url("https://e.com/markets")
            self.assertEqual(datetime(2024, 4, 2, 9, 0), article.published_at)

    def test_save_search_result_flags_existing_article(self) -> None:
        saved = self.library.save_search_result({"title": "Chips again", "url": "https://e.com/chips"})
        self.assertTrue(saved["is_saved_from_search"])
        self.assertEqual("Chips", saved["title"])
        self.assertEqual(3, self.library.get_stats()["total_articles"])

    def test_save_search_result_requires_url(self) -> None:
        with self.assertRaises(InvalidRequestError):
            self.library.save_search_result({"title": "No link"})

    def test_record_search_refreshes_existing_keyword(self) -> None:
        with self.repository_factory() as repository:
            repository.add(Search(keyword="ai", timestamp=datetime(2020, 1, 1)))
            repository.commit()

        self.library.record_search("ai")
        self.library.record_search("  climate ")
        self.assertIsNone(self.library.record_search("   "))

        searches = self.library.list_searches()
        self.assertEqual(2, len(searches))
        refreshed = next(s for s in searches if s["keyword"] == "ai")
        self.assertNotEqual("2020-01-01T00:00:00", refreshed["timestamp"])
        self.assertIn("climate", [s["keyword"] for s in searches])

        self.assertTrue(self.library.delete_search("ai"))
        self.assertFalse(self.library.delete_search("ai"))

    def test_stats(self) -> None:
        self.library.toggle_saved("https://e.com/chips")
        self.library.save_search_result({"title": "New", "url": "https://e.com/new"})
        self.library.record_search("chips")
        self.assertEqual(
            {
                "total_articles": 4,
                "saved_articles": 1,
                "saved_from_search": 1,
                "total_categories": 2,
                "total_searches": 1,
            },
            self.library.get_stats(),
        )

    def test_writes_wait_for_shared_store_lock(self) -> None:
        lock = threading.RLock()
        library = LibraryManager(self.repository_factory, write_lock=lock, logger=LOGGER)
        done = threading.Event()

        def save():
            library.toggle_saved("https://e.com/orphan")
            done.set()

        lock.acquire()
        try:
            thread = threading.Thread(target=save)
            thread.start()
            self.assertFalse(done.wait(0.2))
        finally:
            lock.release()
        thread.join(timeout=5)

        self.assertTrue(done.is_set())
        self.assertTrue(library.get_article("https://e.com/orphan")["is_saved"])


class LibraryManagerJsonStoreTest(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        data_dir = Path(self.tmpdir.name) / "data"
        self.library = LibraryManager(lambda: JsonNewsRepository(data_dir, logger=LOGGER), logger=LOGGER)

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def test_saved_search_result_survives_new_repository(self) -> None:
        self.library.save_search_result({"title": "Kept", "url": "https://e.com/kept"})
        self.library.toggle_saved("https://e.com/kept")

        article = self.library.get_article("https://e.com/kept")
        self.assertTrue(article["is_saved"])
        self.assertTrue(article["is_saved_from_search"])
        self.assertEqual(SAVED_CATEGORY, article["category"])
        self.assertEqual(1, self.library.get_stats()["total_categories"])


if __name__ == "__main__":
    unittest.main()
