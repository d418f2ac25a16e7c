"""
News connector backed by the Google News RSS search feed.

The feed is fetched with httpx and parsed with feedparser in a worker
thread.
"""

import asyncio
import feedparser
import httpx
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Optional
from core.config import Settings
from core.exceptions import MalformedResponseError
from ingestion.connectors.base import SourceDocument, register_connector
from ingestion.connectors.http_client import get_response, USER_AGENT
import logging

logger = logging.getLogger(__name__)


@register_connector("news")
class NewsRSSConnector:
    """Fetch entries from an RSS search feed"""

    source = "news"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.feed_url = settings.NEWS_RSS_URL
        self.timeout = settings.ETL_TIMEOUT_SECONDS
        self.transport = transport

    @staticmethod
    def _entry_to_dict(entry) -> Dict[str, Any]:
        published = None
        if entry.get("published_parsed"):
            published = datetime(*entry.published_parsed[:6])
        elif entry.get("updated_parsed"):
            published = datetime(*entry.updated_parsed[:6])

        return {
            "id": entry.get("id", entry.get("link", "")),
            "title": entry.get("title", ""),
            "summary": entry.get("summary", entry.get("description", "")),
            "link": entry.get("link", ""),
            "author": entry.get("author", ""),
            "publisher": entry.get("source", {}).get("title", "") if entry.get("source") else "",
            "published": published.isoformat() if published else None,
            "categories": [tag.get("term", "") for tag in entry.get("tags", [])],
        }

    async def fetch(self, query: str) -> AsyncIterator[SourceDocument]:
        params = {"q": query, "hl": "en-US", "gl": "US", "ceid": "US:en"}

        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": USER_AGENT},
            transport=self.transport
        ) as client:
            response = await get_response(client, self.feed_url, self.source, params=params)
            rss_content = response.text

        # Parse RSS in thread pool
        feed = await asyncio.to_thread(feedparser.parse, rss_content)

        if feed.bozo and not feed.entries:
            raise MalformedResponseError(
                "Failed to parse RSS feed",
                context={"source": self.source, "url": self.feed_url},
                original_exception=feed.get("bozo_exception")
            )

        logger.info(f"RSS feed returned {len(feed.entries)} entries for '{query}'")

        skipped = 0
        for entry in feed.entries:
            data = self._entry_to_dict(entry)
            if not data["id"]:
                skipped += 1
                continue
            yield SourceDocument(external_id=data["id"], payload=data)

        if skipped:
            logger.warning(f"Skipped {skipped} RSS entries without an id or link")
