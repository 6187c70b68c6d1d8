import json
import logging
import unittest
from urllib.parse import parse_qs, urlparse

import requests

from core.errors import DecodeError, InvalidRequestError, RemoteFetchError
from core.news_client import NewsApiClient, NewsApiSettings, decode_articles


def make_response(status_code=200, payload=None, body=None):
    response = requests.Response()
    response.status_code = status_code
    if payload is not None:
        body = json.dumps(payload)
    response._content = (body or "").encode("utf-8")
    response.headers["Content-Type"] = "application/json"
    response.encoding = "utf-8"
    return response


class FakeSession(requests.Session):
    """Session that answers from a queue of responses/exceptions instead of the network."""

    def __init__(self, *results):
        super().__init__()
        self.results = list(results)
        self.sent = []

    def send(self, request, **kwargs):
        self.sent.append((request, kwargs))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def sent_params(self, index=-1):
        query = urlparse(self.sent[index][0].url).query
        return {key: values[0] for key, values in parse_qs(query).items()}


ARTICLES = {
    "status": "ok",
    "articles": [
        {
            "title": "Rates hold steady",
            "description": "Central bank pauses.",
            "author": "Desk",
            "url": "https://news.example.com/rates",
            "urlToImage": "https://img.example.com/rates.png",
            "publishedAt": "2024-05-01T12:30:00Z",
        },
        {"title": "No link here", "url": None},
    ],
}


class NewsApiSettingsTest(unittest.TestCase):
    def test_user_key_overrides_builtin_key(self) -> None:
        settings = NewsApiSettings.from_config(
            {"newsapi": {"api_key": "builtin", "user_api_key": "mine"}}
        )
        self.assertEqual("mine", settings.api_key)

    def test_blank_user_key_falls_back_to_builtin(self) -> None:
        settings = NewsApiSettings.from_config(
            {"newsapi": {"api_key": "builtin", "user_api_key": "  ", "base_url": "https://x.test/v2/"}}
        )
        self.assertEqual("builtin", settings.api_key)
        self.assertEqual("https://x.test/v2", settings.base_url)


class NewsApiClientTest(unittest.TestCase):
    def make_client(self, *results, retry_count=1):
        self.session = FakeSession(*results)
        settings = NewsApiSettings(api_key="KEY", retry_count=retry_count, retry_delay=0)
        return NewsApiClient(settings, session=self.session, logger=logging.getLogger("tests.client"))

    def test_top_headlines_decodes_articles(self) -> None:
        client = self.make_client(make_response(200, ARTICLES))
        records = client.top_headlines(category="business")

        self.assertEqual(2, len(records))
        self.assertEqual("Rates hold steady", records[0].title)
        self.assertEqual("https://img.example.com/rates.png", records[0].url_to_image)
        self.assertEqual("2024-05-01T12:30:00Z", records[0].published_at)
        self.assertIsNone(records[1].url)

        params = self.session.sent_params()
        self.assertEqual("business", params["category"])
        self.assertEqual("KEY", params["apiKey"])
        self.assertTrue(self.session.sent[0][0].url.startswith("https://newsapi.org/v2/top-headlines"))
        self.assertEqual(10, self.session.sent[0][1]["timeout"])

    def test_country_and_category_are_both_sent(self) -> None:
        client = self.make_client(make_response(200, {"articles": []}))
        self.assertEqual([], client.top_headlines(country="us", category="general"))
        params = self.session.sent_params()
        self.assertEqual("us", params["country"])
        self.assertEqual("general", params["category"])

    def test_search_keyword_is_encoded(self) -> None:
        client = self.make_client(make_response(200, {"articles": []}))
        client.everything("climate & energy")
        self.assertIn("/everything?", self.session.sent[0][0].url)
        self.assertEqual("climate & energy", self.session.sent_params()["q"])

    def test_non_200_status_raises_with_status_code(self) -> None:
        client = self.make_client(make_response(500, {"status": "error"}))
        with self.assertRaises(RemoteFetchError) as ctx:
            client.top_headlines(country="us", category="general")
        self.assertEqual(500, ctx.exception.status_code)
        self.assertNotIsInstance(ctx.exception, DecodeError)

    def test_transport_failure_carries_cause(self) -> None:
        error = requests.ConnectionError("offline")
        client = self.make_client(error)
        with self.assertRaises(RemoteFetchError) as ctx:
            client.everything("economy")
        self.assertIs(error, ctx.exception.cause)
        self.assertIsNone(ctx.exception.status_code)

    def test_invalid_json_raises_decode_error(self) -> None:
        client = self.make_client(make_response(200, body="<html>oops</html>"))
        with self.assertRaises(DecodeError):
            client.top_headlines(category="health")

    def test_blank_parameters_are_rejected_before_sending(self) -> None:
        client = self.make_client()
        with self.assertRaises(InvalidRequestError):
            client.everything("   ")
        with self.assertRaises(InvalidRequestError):
            client.top_headlines()
        self.assertEqual([], self.session.sent)

    def test_server_errors_are_retried(self) -> None:
        client = self.make_client(
            make_response(503, {}),
            make_response(200, {"articles": [{"title": "Back", "url": "https://e.com/b"}]}),
            retry_count=2,
        )
        records = client.top_headlines(category="sports")
        self.assertEqual(["Back"], [r.title for r in records])
        self.assertEqual(2, len(self.session.sent))

    def test_client_errors_are_not_retried(self) -> None:
        client = self.make_client(make_response(401, {}), make_response(200, ARTICLES), retry_count=3)
        with self.assertRaises(RemoteFetchError):
            client.top_headlines(category="sports")
        self.assertEqual(1, len(self.session.sent))


class DecodeArticlesTest(unittest.TestCase):
    def test_missing_articles_list(self) -> None:
        with self.assertRaises(DecodeError):
            decode_articles({"status": "ok"})

    def test_record_without_title(self) -> None:
        with self.assertRaises(DecodeError):
            decode_articles({"articles": [{"url": "https://e.com/a"}]})

    def test_optional_fields_are_normalized(self) -> None:
        records = decode_articles({"articles": [{"title": "T", "url": "  ", "description": ""}]})
        self.assertIsNone(records[0].url)
        self.assertIsNone(records[0].description)


if __name__ == "__main__":
    unittest.main()
