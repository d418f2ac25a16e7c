"""
Google News connector (RapidAPI google-news13).
"""

import httpx
from typing import AsyncIterator, Optional
from core.config import Settings
from ingestion.connectors.base import SourceDocument, register_connector
from ingestion.connectors.http_client import rapidapi_client, get_json, expect_list
import logging

logger = logging.getLogger(__name__)


@register_connector("google_news")
class GoogleNewsConnector:
    """Keyword search via google-news13.p.rapidapi.com"""

    source = "google_news"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.RAPIDAPI_KEY
        self.host = settings.GOOGLE_NEWS_API_HOST
        self.timeout = settings.ETL_TIMEOUT_SECONDS
        self.region = "en-US"
        self.transport = transport

    async def fetch(self, query: str) -> AsyncIterator[SourceDocument]:
        async with rapidapi_client(self.host, self.api_key, self.timeout, self.transport) as client:
            data = await get_json(
                client,
                "/search",
                self.source,
                params={"keyword": query, "lr": self.region}
            )

        items = expect_list(data, self.source, "items", "data", "articles")
        logger.info(f"Google News returned {len(items)} articles for '{query}'")

        skipped = 0
        for article in items:
            if not isinstance(article, dict):
                continue
            external_id = article.get("newsUrl") or article.get("url") or article.get("link")
            if not external_id:
                skipped += 1
                continue
            yield SourceDocument(external_id=str(external_id), payload=article)

        if skipped:
            logger.warning(f"Skipped {skipped} Google News articles without a url")
