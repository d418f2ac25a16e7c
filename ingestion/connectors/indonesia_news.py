"""
Indonesian news connector (RapidAPI indonesia-news).

Each configured outlet has its own search endpoint and parameter names.
"""

import httpx
from typing import Any, AsyncIterator, Dict, Optional
from core.config import Settings
from core.exceptions import ConnectorError
from ingestion.connectors.base import SourceDocument, register_connector
from ingestion.connectors.http_client import rapidapi_client, get_json, expect_list
import logging

logger = logging.getLogger(__name__)


def outlet_request(outlet: str, query: str) -> tuple:
    """Return (path, params) for an outlet search."""
    if outlet == "kompas":
        return "/search/kompas", {"command": query, "page": 1, "limit": 10}
    if outlet == "detik":
        return "/search/detik", {"keyword": query, "limit": 10, "page": 1}
    if outlet == "cnn":
        return "/search/cnn", {"query": query, "page": 1, "limit": 100}
    if outlet == "tempo":
        return "/search/tempo", {"query": query}
    raise ConnectorError(
        f"Unsupported Indonesian news outlet: {outlet}",
        context={"source": "indonesia_news", "outlet": outlet}
    )


@register_connector("indonesia_news")
class IndonesiaNewsConnector:
    """Outlet search via indonesia-news.p.rapidapi.com"""

    source = "indonesia_news"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.RAPIDAPI_KEY
        self.host = settings.INDONESIA_NEWS_API_HOST
        self.outlets = list(settings.INDONESIA_NEWS_OUTLETS)
        self.timeout = settings.ETL_TIMEOUT_SECONDS
        self.transport = transport

    @staticmethod
    def _external_id(outlet: str, item: Dict[str, Any]) -> Optional[str]:
        value = item.get("idberita") or item.get("guid") or item.get("url") or item.get("link")
        return f"{outlet}:{value}" if value else None

    async def fetch(self, query: str) -> AsyncIterator[SourceDocument]:
        async with rapidapi_client(self.host, self.api_key, self.timeout, self.transport) as client:
            skipped = 0
            for outlet in self.outlets:
                path, params = outlet_request(outlet, query)
                data = await get_json(client, path, self.source, params=params)
                items = expect_list(data, self.source, "data", "items", "result")
                logger.info(f"Indonesia news '{outlet}' returned {len(items)} items")

                for item in items:
                    if not isinstance(item, dict):
                        continue
                    external_id = self._external_id(outlet, item)
                    if not external_id:
                        skipped += 1
                        continue
                    yield SourceDocument(external_id=external_id, payload={**item, "outlet": outlet})

            if skipped:
                logger.warning(f"Skipped {skipped} Indonesian news items without an id or url")
