"""HTTP client for the NewsAPI ``top-headlines`` and ``everything`` endpoints."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import requests

from core.errors import DecodeError, InvalidRequestError, RemoteFetchError
from utils.logger import setup_logger


@dataclass
class ArticlePayload:
    """One decoded entry of the ``articles`` array."""

    title: str
    description: Optional[str] = None
    author: Optional[str] = None
    url: Optional[str] = None
    url_to_image: Optional[str] = None
    published_at: Optional[str] = None


@dataclass
class NewsApiSettings:
    api_key: str
    base_url: str = "https://newsapi.org/v2"
    user_agent: str = "headline-sync/0.1"
    request_timeout: float = 10
    retry_count: int = 1
    retry_delay: float = 2

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "NewsApiSettings":
        """Build settings from the ``newsapi`` section; a user key overrides the built-in one."""
        api_cfg = config.get("newsapi", {})
        user_key = str(api_cfg.get("user_api_key") or "").strip()
        default_key = str(api_cfg.get("api_key") or "").strip()
        return cls(
            api_key=user_key or default_key,
            base_url=str(api_cfg.get("base_url") or cls.base_url).rstrip("/"),
            user_agent=str(api_cfg.get("user_agent") or cls.user_agent),
            request_timeout=float(api_cfg.get("request_timeout", 10) or 10),
            retry_count=max(1, int(api_cfg.get("retry_count", 1) or 1)),
            retry_delay=max(0.0, float(api_cfg.get("retry_delay", 2) or 0)),
        )


class NewsApiClient:
    """
    Thin wrapper around the news API.

    Every call either returns decoded payloads or raises one of
    InvalidRequestError, RemoteFetchError or DecodeError; callers decide
    whether a failure is fatal.
    """

    def __init__(
        self,
        settings: NewsApiSettings,
        *,
        session: Optional[requests.Session] = None,
        logger=None,
    ) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.logger = logger or setup_logger(self.__class__.__name__)

    @property
    def top_headlines_url(self) -> str:
        return f"{self.settings.base_url}/top-headlines"

    @property
    def everything_url(self) -> str:
        return f"{self.settings.base_url}/everything"

    def top_headlines(
        self,
        *,
        category: Optional[str] = None,
        country: Optional[str] = None,
    ) -> List[ArticlePayload]:
        params: Dict[str, Any] = {}
        if country is not None:
            params["country"] = country
        if category is not None:
            params["category"] = category
        if not params:
            raise InvalidRequestError("top-headlines needs a category or a country.")
        return self._get(self.top_headlines_url, params)

    def everything(self, query: str) -> List[ArticlePayload]:
        return self._get(self.everything_url, {"q": query})

    def _get(self, url: str, params: Mapping[str, Any]) -> List[ArticlePayload]:
        request = self._prepare(url, params)
        for attempt in range(1, self.settings.retry_count + 1):
            try:
                return self._send(request)
            except DecodeError:
                raise
            except RemoteFetchError as exc:
                retryable = exc.status_code is None or exc.status_code >= 500
                if not retryable or attempt >= self.settings.retry_count:
                    raise
                self.logger.info(
                    "Retrying %s in %.1fs (attempt %d/%d): %s",
                    url,
                    self.settings.retry_delay,
                    attempt + 1,
                    self.settings.retry_count,
                    exc,
                )
                if self.settings.retry_delay:
                    time.sleep(self.settings.retry_delay)
        raise RemoteFetchError(f"No attempt was made for {url}")

    def _prepare(self, url: str, params: Mapping[str, Any]) -> requests.PreparedRequest:
        for name, value in params.items():
            if not isinstance(value, str) or not value.strip():
                raise InvalidRequestError(f"Invalid value for parameter {name!r}: {value!r}")
        query = dict(params)
        query["apiKey"] = self.settings.api_key
        headers = {"User-Agent": self.settings.user_agent, "Accept": "application/json"}
        try:
            return self.session.prepare_request(
                requests.Request("GET", url, params=query, headers=headers)
            )
        except (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema, ValueError) as exc:
            raise InvalidRequestError(f"Cannot build request for {url}: {exc}") from exc

    def _send(self, request: requests.PreparedRequest) -> List[ArticlePayload]:
        self.logger.debug("GET %s", _redact(request.url, self.settings.api_key))
        try:
            response = self.session.send(request, timeout=self.settings.request_timeout)
        except requests.RequestException as exc:
            raise RemoteFetchError(f"Request to news API failed: {exc}", cause=exc) from exc

        if response.status_code != 200:
            raise RemoteFetchError(
                f"News API returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise DecodeError(
                f"Invalid JSON payload from news API: {exc}",
                status_code=response.status_code,
                cause=exc,
            ) from exc
        return decode_articles(payload)


def decode_articles(payload: Any) -> List[ArticlePayload]:
    """Validate the response shape and return its article records."""
    if not isinstance(payload, Mapping):
        raise DecodeError("News API response is not a JSON object.")
    items = payload.get("articles")
    if not isinstance(items, list):
        raise DecodeError("News API response has no 'articles' list.")

    records: List[ArticlePayload] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise DecodeError(f"Article #{index} is not a JSON object.")
        title = item.get("title")
        if not isinstance(title, str):
            raise DecodeError(f"Article #{index} has no title.")
        records.append(
            ArticlePayload(
                title=title,
                description=_optional_str(item.get("description")),
                author=_optional_str(item.get("author")),
                url=_optional_str(item.get("url")),
                url_to_image=_optional_str(item.get("urlToImage")),
                published_at=_optional_str(item.get("publishedAt")),
            )
        )
    return records


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _redact(url: Optional[str], secret: str) -> str:
    if not url:
        return ""
    return url.replace(secret, "***") if secret else url
