"""
Instagram connector (RapidAPI instagram-premium-api-2023).

Reads the recent top posts for a hashtag derived from the query.
"""

import re
import httpx
from typing import AsyncIterator, Optional
from core.config import Settings
from ingestion.connectors.base import SourceDocument, register_connector
from ingestion.connectors.http_client import rapidapi_client, get_json, expect_list
import logging

logger = logging.getLogger(__name__)


def hashtag_for(query: str) -> str:
    """'COVID-19 vaccine' -> 'covid19vaccine'"""
    return re.sub(r"[^0-9a-z_]", "", query.lower())


@register_connector("instagram")
class InstagramConnector:
    """Hashtag feed via instagram-premium-api-2023.p.rapidapi.com"""

    source = "instagram"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.RAPIDAPI_KEY
        self.host = settings.INSTAGRAM_API_HOST
        self.timeout = settings.ETL_TIMEOUT_SECONDS
        self.transport = transport

    async def fetch(self, query: str) -> AsyncIterator[SourceDocument]:
        async with rapidapi_client(self.host, self.api_key, self.timeout, self.transport) as client:
            data = await get_json(
                client,
                "/v1/hashtag/medias/top/recent/chunk",
                self.source,
                params={"name": hashtag_for(query)}
            )

        # The endpoint answers [posts, next_max_id]
        if isinstance(data, list) and len(data) == 2 and isinstance(data[0], list):
            data = data[0]

        posts = expect_list(data, self.source, "data", "items", "posts")
        logger.info(f"Instagram returned {len(posts)} posts for #{hashtag_for(query)}")

        skipped = 0
        for post in posts:
            if not isinstance(post, dict):
                continue
            external_id = post.get("code") or post.get("pk") or post.get("id")
            if not external_id:
                skipped += 1
                continue
            yield SourceDocument(external_id=str(external_id), payload=post)

        if skipped:
            logger.warning(f"Skipped {skipped} Instagram posts without a code or id")
