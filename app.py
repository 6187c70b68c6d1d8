"""Flask JSON API and background sync controller for the headline cache."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, MutableMapping, Optional

from flask import Flask, jsonify, request

from core.database import Database
from core.errors import InvalidRequestError, PersistenceError, RemoteFetchError
from core.library_manager import LibraryManager
from core.news_client import NewsApiClient, NewsApiSettings
from core.repository import NewsRepository
from core.scheduler import SchedulerConfig, SweepScheduler
from core.sql_repository import SqlNewsRepository
from core.sync_service import ArticleSyncService, SweepReport
from storage.json_repository import JsonNewsRepository
from utils.config_loader import load_config
from utils.logger import setup_logger

StatusDict = MutableMapping[str, Any]
Executor = Callable[[Callable[[], None]], Any]
RepositoryFactory = Callable[[], NewsRepository]

MAX_HEADLINES = 20


class SyncController:
    """
    Run sync operations in the background and expose their status.

    Each operation has its own status entry; a second start of a running
    operation is rejected, and ``is_running`` is cleared however the run ends.
    """

    def __init__(
        self,
        operations: Mapping[str, Callable[[], Any]],
        *,
        logger=None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.operations = dict(operations)
        self.logger = logger
        self.lock = threading.Lock()
        self.executor = executor or self._default_executor
        self.status: Dict[str, StatusDict] = {
            name: {
                "is_running": False,
                "message": "Idle",
                "last_error": None,
                "report": None,
            }
            for name in self.operations
        }

    def start(self, operation: str = "sweep") -> bool:
        """Start ``operation`` unless it is unknown or already running."""
        if operation not in self.operations:
            raise KeyError(operation)
        with self.lock:
            state = self.status[operation]
            if state["is_running"]:
                return False
            state.update(
                {
                    "is_running": True,
                    "message": f"{operation} started",
                    "last_error": None,
                    "report": None,
                }
            )

        def task():
            try:
                result = self.operations[operation]()
                self._update_status(
                    operation,
                    message=f"{operation} finished",
                    report=_serialize_result(result),
                )
            except Exception as exc:
                if self.logger:
                    self.logger.error("Sync task %s crashed: %s", operation, exc, exc_info=True)
                self._update_status(operation, message=f"{operation} failed", last_error=str(exc))
            finally:
                self._update_status(operation, is_running=False)

        self.executor(task)
        return True

    def is_running(self, operation: str) -> bool:
        with self.lock:
            return bool(self.status[operation]["is_running"])

    def get_status(self) -> Dict[str, Dict[str, Any]]:
        with self.lock:
            return {name: dict(state) for name, state in self.status.items()}

    def _update_status(self, operation: str, **kwargs):
        with self.lock:
            self.status[operation].update(kwargs)

    @staticmethod
    def _default_executor(func: Callable[[], None]):
        thread = threading.Thread(target=func, daemon=True)
        thread.start()
        return thread


def _serialize_result(result: Any) -> Any:
    if isinstance(result, SweepReport):
        return result.to_dict()
    if isinstance(result, list):
        return {"inserted": list(result)}
    return result


def build_repository_factory(
    config: Mapping[str, Any],
    *,
    base_dir: Path,
    logger,
) -> RepositoryFactory:
    """Use the SQL database when enabled, otherwise JSON files under paths.data_dir."""
    db_cfg = config.get("database", {})
    if db_cfg.get("enabled", True):
        database = Database(dict(config))
        database.create_tables()
        session_factory = database.get_session_factory()
        logger.info("Using database store at %s", database.get_engine().url)
        return lambda: SqlNewsRepository(session_factory, logger=logger)

    data_dir = Path(config.get("paths", {}).get("data_dir", "data"))
    if not data_dir.is_absolute():
        data_dir = (base_dir / data_dir).resolve()
    logger.info("Using JSON file store in %s", data_dir)
    return lambda: JsonNewsRepository(data_dir, logger=logger)


def create_app(
    *,
    config_path: str | Path = "config.yml",
    config: Optional[Mapping[str, Any]] = None,
    repository_factory: Optional[RepositoryFactory] = None,
    sync_service: Optional[ArticleSyncService] = None,
    library: Optional[LibraryManager] = None,
    controller_executor: Optional[Executor] = None,
) -> Flask:
    """Application factory so tests can inject fake dependencies."""
    config_path = Path(config_path)
    config_data = dict(config) if config else load_config(config_path)
    log_dir = Path(config_data.get("paths", {}).get("log_dir", "data/logs"))
    logger = setup_logger("WebApp", config=config_data, log_dir=log_dir)

    repository_factory = repository_factory or build_repository_factory(
        config_data, base_dir=config_path.parent, logger=logger
    )
    if sync_service is None:
        client = NewsApiClient(NewsApiSettings.from_config(config_data), logger=logger)
        categories = config_data.get("newsapi", {}).get("categories") or None
        kwargs = {"categories": categories} if categories else {}
        sync_service = ArticleSyncService(client, repository_factory, logger=logger, **kwargs)
    library = library or LibraryManager(
        repository_factory, write_lock=sync_service.write_lock, logger=logger
    )

    controller = SyncController(
        {
            "sweep": sync_service.sync_all_categories,
            "categories": sync_service.sync_categories,
        },
        logger=logger,
        executor=controller_executor,
    )
    scheduler = SweepScheduler(
        controller, SchedulerConfig.from_mapping(config_data.get("scheduler")), logger=logger
    )
    scheduler.start()

    ticker_cfg = config_data.get("ticker", {})

    app = Flask(__name__)
    app.config.update(
        {
            "SYNC_CONTROLLER": controller,
            "SYNC_SERVICE": sync_service,
            "LIBRARY": library,
            "LOGGER": logger,
            "SWEEP_SCHEDULER": scheduler,
        }
    )

    @app.errorhandler(InvalidRequestError)
    def handle_invalid_request(exc):
        return jsonify({"success": False, "message": str(exc)}), 400

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(exc):
        logger.error("Store failure: %s", exc)
        return jsonify({"success": False, "message": str(exc)}), 500

    @app.post("/api/sync/<operation>")
    def start_sync(operation):
        if operation not in controller.operations:
            return jsonify({"success": False, "message": f"Unknown operation: {operation}"}), 404
        if not controller.start(operation):
            return jsonify({"success": False, "message": f"{operation} already running"}), 409
        return jsonify({"success": True, "message": f"{operation} started"})

    @app.get("/api/sync/status")
    def sync_status():
        return jsonify({"success": True, "data": controller.get_status()})

    @app.get("/api/articles")
    def list_articles():
        saved_only = request.args.get("saved", "").lower() in {"1", "true", "yes"}
        category = request.args.get("category") or None
        articles = library.list_articles(category, saved_only=saved_only)
        return jsonify({"success": True, "data": articles, "count": len(articles)})

    @app.delete("/api/articles")
    def delete_article():
        url = request.args.get("url", "")
        if not library.delete_article(url):
            return _not_found(url)
        return jsonify({"success": True})

    @app.post("/api/articles/saved")
    def toggle_saved():
        url = _json_body().get("url", "")
        article = library.toggle_saved(url)
        if article is None:
            return _not_found(url)
        return jsonify({"success": True, "data": article})

    @app.post("/api/articles/notes")
    def update_notes():
        body = _json_body()
        article = library.update_notes(body.get("url", ""), body.get("notes", ""))
        if article is None:
            return _not_found(body.get("url"))
        return jsonify({"success": True, "data": article})

    @app.post("/api/articles/category")
    def assign_category():
        body = _json_body()
        article = library.assign_category(body.get("url", ""), body.get("category", ""))
        if article is None:
            return _not_found(body.get("url"))
        return jsonify({"success": True, "data": article})

    @app.get("/api/categories")
    def list_categories():
        return jsonify({"success": True, "data": library.list_categories()})

    @app.get("/api/headlines")
    def headlines():
        country = request.args.get("country") or ticker_cfg.get("country", "us")
        category = request.args.get("category") or ticker_cfg.get("category", "general")
        try:
            limit = int(request.args.get("limit") or ticker_cfg.get("headline_count", 5))
        except ValueError:
            return jsonify({"success": False, "message": "limit must be an integer"}), 400
        limit = max(1, min(limit, MAX_HEADLINES))
        try:
            articles = sync_service.fetch_headlines(country, category, limit=limit)
        except RemoteFetchError as exc:
            logger.error("Failed to fetch headlines for %s/%s: %s", country, category, exc)
            return jsonify({"success": False, "message": str(exc), "status_code": exc.status_code}), 502
        return jsonify({"success": True, "data": [a.to_dict() for a in articles]})

    @app.get("/api/search")
    def search():
        keyword = (request.args.get("q") or "").strip()
        if not keyword:
            return jsonify({"success": True, "data": [], "count": 0})
        articles = sync_service.search(keyword, sort=request.args.get("sort") or None)
        try:
            library.record_search(keyword)
        except PersistenceError as exc:
            logger.error("Failed to record search %r: %s", keyword, exc)
        data = [a.to_dict() for a in articles]
        return jsonify({"success": True, "data": data, "count": len(data)})

    @app.post("/api/search/save")
    def save_search_result():
        article = library.save_search_result(_json_body())
        return jsonify({"success": True, "data": article})

    @app.get("/api/searches")
    def list_searches():
        return jsonify({"success": True, "data": library.list_searches()})

    @app.delete("/api/searches")
    def delete_search():
        keyword = request.args.get("keyword", "")
        if not library.delete_search(keyword):
            return _not_found(keyword)
        return jsonify({"success": True})

    @app.get("/api/stats")
    def stats():
        return jsonify({"success": True, "data": library.get_stats()})

    return app


def _json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _not_found(key: Any):
    return jsonify({"success": False, "message": f"Not found: {key}"}), 404


if __name__ == "__main__":  # pragma: no cover
    application = create_app()
    application.run(host="0.0.0.0", port=5000, debug=False, use_reloader=False)
