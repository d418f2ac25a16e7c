"""
Unit tests for source connectors
"""

import httpx
import logging
import pytest
from core.exceptions import (
    AuthenticationError,
    ConnectorError,
    ConnectorTimeoutError,
    MalformedResponseError,
    NetworkError,
    RateLimitError,
)
from ingestion.connectors.base import Connector, SourceDocument
from ingestion.connectors.google_news import GoogleNewsConnector
from ingestion.connectors.indonesia_news import IndonesiaNewsConnector, outlet_request
from ingestion.connectors.instagram import InstagramConnector, hashtag_for
from ingestion.connectors.news_rss import NewsRSSConnector
from ingestion.connectors.registry import available_sources, build_connectors
from ingestion.connectors.youtube import YouTubeConnector


RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>covid19 - Google News</title>
    <item>
      <title>Vaccination drive expands in Jakarta</title>
      <link>https://news.example.com/a1</link>
      <guid>https://news.example.com/a1</guid>
      <description>Health officials report progress</description>
      <pubDate>Mon, 15 Jan 2024 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Lockdown lifted</title>
      <link>https://news.example.com/a2</link>
      <guid>https://news.example.com/a2</guid>
      <description>Shops reopen</description>
    </item>
  </channel>
</rss>
"""


async def collect(connector, query="covid19"):
    return [document async for document in connector.fetch(query)]


def status_transport(status_code, headers=None, content=b"{}"):
    def handler(request):
        return httpx.Response(status_code, headers=headers, content=content)
    return httpx.MockTransport(handler)


class TestYouTubeConnector:
    """Test video search + comment extraction"""

    @pytest.mark.asyncio
    async def test_fetch_yields_comments_with_video_metadata(self, test_settings):
        requests = []

        def handler(request):
            requests.append(request)
            if request.url.path == "/search/":
                return httpx.Response(200, json={"data": [
                    {"type": "video", "videoId": "v1", "title": "COVID vaccine facts", "viewCount": "1000"},
                    {"type": "channel", "channelId": "ch1"},
                ]})
            if request.url.path == "/video/comments/":
                return httpx.Response(200, json={"data": [
                    {"commentId": "c1", "content": "Great explanation"},
                    {"commentId": "c2", "content": "Very helpful"},
                    {"content": "no id, skipped"},
                ]})
            return httpx.Response(404)

        connector = YouTubeConnector(test_settings, transport=httpx.MockTransport(handler))
        documents = await collect(connector)

        assert [d.external_id for d in documents] == ["c1", "c2"]
        assert documents[0].payload["video"]["videoId"] == "v1"
        assert documents[0].payload["video"]["url"] == "https://www.youtube.com/watch?v=v1"
        assert documents[0].payload["comment"]["content"] == "Great explanation"

        search_request = requests[0]
        assert search_request.url.params["q"] == "covid19"
        assert search_request.headers["x-rapidapi-key"] == "test-key"
        assert search_request.headers["x-rapidapi-host"] == test_settings.YOUTUBE_API_HOST
        assert requests[1].url.params["id"] == "v1"

    @pytest.mark.asyncio
    async def test_respects_max_videos(self, test_settings):
        comment_requests = []

        def handler(request):
            if request.url.path == "/search/":
                return httpx.Response(200, json={"data": [
                    {"type": "video", "videoId": f"v{i}", "title": f"Video {i}"} for i in range(5)
                ]})
            comment_requests.append(request.url.params["id"])
            return httpx.Response(200, json={"data": []})

        connector = YouTubeConnector(test_settings, transport=httpx.MockTransport(handler))
        assert await collect(connector) == []
        assert comment_requests == ["v0", "v1"]

    def test_satisfies_connector_protocol(self, test_settings):
        assert isinstance(YouTubeConnector(test_settings), Connector)


class TestHttpErrorMapping:
    """Provider failures map onto the connector error taxonomy"""

    @pytest.mark.asyncio
    async def test_unauthorized_is_not_retryable(self, test_settings):
        connector = GoogleNewsConnector(test_settings, transport=status_transport(401))

        with pytest.raises(AuthenticationError) as exc_info:
            await collect(connector)

        assert exc_info.value.retryable is False
        assert exc_info.value.context["status_code"] == 401

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self, test_settings):
        connector = GoogleNewsConnector(
            test_settings, transport=status_transport(429, headers={"Retry-After": "30"})
        )

        with pytest.raises(RateLimitError) as exc_info:
            await collect(connector)

        assert exc_info.value.retry_after == 30
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_server_error_is_retryable_connector_error(self, test_settings):
        connector = GoogleNewsConnector(test_settings, transport=status_transport(503))

        with pytest.raises(ConnectorError) as exc_info:
            await collect(connector)

        assert exc_info.value.retryable is True
        assert exc_info.value.context["status_code"] == 503

    @pytest.mark.asyncio
    async def test_transport_failure_becomes_network_error(self, test_settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        connector = GoogleNewsConnector(test_settings, transport=httpx.MockTransport(handler))

        with pytest.raises(NetworkError):
            await collect(connector)

    @pytest.mark.asyncio
    async def test_read_timeout_becomes_connector_timeout(self, test_settings):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        connector = GoogleNewsConnector(test_settings, transport=httpx.MockTransport(handler))

        with pytest.raises(ConnectorTimeoutError):
            await collect(connector)

    @pytest.mark.asyncio
    async def test_invalid_json_is_malformed(self, test_settings):
        connector = GoogleNewsConnector(test_settings, transport=status_transport(200, content=b"<html>"))

        with pytest.raises(MalformedResponseError) as exc_info:
            await collect(connector)

        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_non_list_items_are_malformed(self, test_settings):
        connector = GoogleNewsConnector(
            test_settings, transport=status_transport(200, content=b'{"items": "oops"}')
        )

        with pytest.raises(MalformedResponseError):
            await collect(connector)


class TestNewsRSSConnector:
    """Test RSS feed extraction"""

    @pytest.mark.asyncio
    async def test_fetch_parses_feed_entries(self, test_settings):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, text=RSS_FEED)

        connector = NewsRSSConnector(test_settings, transport=httpx.MockTransport(handler))
        documents = await collect(connector, "covid19 indonesia")

        assert len(documents) == 2
        assert documents[0].external_id == "https://news.example.com/a1"
        assert documents[0].payload["title"] == "Vaccination drive expands in Jakarta"
        assert documents[0].payload["summary"] == "Health officials report progress"
        assert documents[0].payload["published"] == "2024-01-15T10:00:00"
        assert documents[1].payload["published"] is None
        assert seen["params"]["q"] == "covid19 indonesia"


class TestGoogleNewsConnector:

    @pytest.mark.asyncio
    async def test_articles_keyed_by_url(self, test_settings, caplog):
        transport = status_transport(200, content=b'''{"items": [
            {"title": "Vaccine news", "newsUrl": "https://a.example/1"},
            {"title": "No url"}
        ]}''')
        documents = await collect(GoogleNewsConnector(test_settings, transport=transport))

        assert documents == [
            SourceDocument(
                external_id="https://a.example/1",
                payload={"title": "Vaccine news", "newsUrl": "https://a.example/1"}
            )
        ]
        assert "Skipped 1 Google News articles without a url" in caplog.text


class TestInstagramConnector:

    def test_hashtag_for_query(self):
        assert hashtag_for("COVID-19 vaccine") == "covid19vaccine"
        assert hashtag_for("covid19") == "covid19"

    @pytest.mark.asyncio
    async def test_unwraps_posts_and_cursor_response(self, test_settings):
        seen = {}

        def handler(request):
            seen["name"] = request.url.params["name"]
            return httpx.Response(200, json=[
                [{"code": "Cx1", "caption_text": "Vaksin"}, {"pk": 42, "caption_text": "Masker"}],
                "next-cursor"
            ])

        connector = InstagramConnector(test_settings, transport=httpx.MockTransport(handler))
        documents = await collect(connector, "COVID 19")

        assert [d.external_id for d in documents] == ["Cx1", "42"]
        assert seen["name"] == "covid19"


class TestIndonesiaNewsConnector:

    def test_outlet_request_parameters(self):
        assert outlet_request("kompas", "covid") == ("/search/kompas", {"command": "covid", "page": 1, "limit": 10})
        path, params = outlet_request("detik", "covid")
        assert path == "/search/detik"
        assert params["keyword"] == "covid"

    def test_unknown_outlet_rejected(self):
        with pytest.raises(ConnectorError):
            outlet_request("unknown", "covid")

    @pytest.mark.asyncio
    async def test_fetch_tags_documents_with_outlet(self, test_settings):
        def handler(request):
            outlet = request.url.path.rsplit("/", 1)[-1]
            return httpx.Response(200, json={"data": [
                {"idberita": f"{outlet}-1", "title": "Kasus covid menurun"}
            ]})

        connector = IndonesiaNewsConnector(test_settings, transport=httpx.MockTransport(handler))
        documents = await collect(connector)

        assert [d.external_id for d in documents] == ["kompas:kompas-1", "detik:detik-1"]
        assert documents[0].payload["outlet"] == "kompas"

    @pytest.mark.asyncio
    async def test_items_without_id_skipped_and_logged(self, test_settings, caplog):
        transport = status_transport(200, content=b'''{"data": [
            {"idberita": "k-1", "title": "Kasus covid menurun"},
            {"title": "Tanpa id"}
        ]}''')
        connector = IndonesiaNewsConnector(test_settings, transport=transport)

        with caplog.at_level(logging.WARNING, logger="ingestion.connectors.indonesia_news"):
            documents = await collect(connector)

        assert [d.external_id for d in documents] == ["kompas:k-1", "detik:k-1"]
        assert "Skipped 2 Indonesian news items without an id or url" in caplog.text


class TestRegistry:

    def test_all_sources_registered(self):
        assert available_sources() == ["google_news", "indonesia_news", "instagram", "news", "youtube"]

    def test_build_connectors_preserves_order(self, test_settings):
        connectors = build_connectors(["news", "youtube"], test_settings)
        assert [c.source for c in connectors] == ["news", "youtube"]

    def test_unknown_source_rejected(self, test_settings):
        with pytest.raises(ValueError):
            build_connectors(["youtube", "tiktok"], test_settings)
