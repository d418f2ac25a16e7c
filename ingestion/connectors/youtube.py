"""
YouTube connector (RapidAPI yt-api).

Searches videos for the query, then pulls the comment threads of the top
results. Each comment becomes one document carrying its video metadata.
"""

import httpx
from typing import Any, AsyncIterator, Dict, Optional
from core.config import Settings
from ingestion.connectors.base import SourceDocument, register_connector
from ingestion.connectors.http_client import rapidapi_client, get_json, expect_list
import logging

logger = logging.getLogger(__name__)


@register_connector("youtube")
class YouTubeConnector:
    """Video search + comments via yt-api.p.rapidapi.com"""

    source = "youtube"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.RAPIDAPI_KEY
        self.host = settings.YOUTUBE_API_HOST
        self.max_videos = settings.YOUTUBE_MAX_VIDEOS
        self.timeout = settings.ETL_TIMEOUT_SECONDS
        self.language = "en"
        self.geo = "ID"
        self.transport = transport

    @staticmethod
    def _video_info(item: Dict[str, Any]) -> Dict[str, Any]:
        video_id = item.get("videoId")
        return {
            "title": item.get("title"),
            "videoId": video_id,
            "url": f"https://www.youtube.com/watch?v={video_id}",
            "views": item.get("viewCount"),
            "duration": item.get("lengthText"),
            "author": item.get("channelTitle"),
            "published": item.get("publishedTimeText") or item.get("publishDate"),
        }

    async def fetch(self, query: str) -> AsyncIterator[SourceDocument]:
        async with rapidapi_client(self.host, self.api_key, self.timeout, self.transport) as client:
            search = await get_json(
                client,
                "/search/",
                self.source,
                params={"q": query, "hl": self.language, "gl": self.geo}
            )
            items = expect_list(search, self.source, "data", "contents")
            videos = [
                item for item in items
                if isinstance(item, dict) and item.get("type", "video") == "video" and item.get("videoId")
            ][: self.max_videos]

            logger.info(f"YouTube search '{query}' returned {len(videos)} videos")

            skipped = 0

            for item in videos:
                video = self._video_info(item)
                comments = await get_json(
                    client,
                    "/video/comments/",
                    self.source,
                    params={"id": video["videoId"]}
                )
                for comment in expect_list(comments, self.source, "data", "comments"):
                    if not isinstance(comment, dict):
                        continue
                    comment_id = comment.get("commentId")
                    if not comment_id:
                        skipped += 1
                        continue
                    yield SourceDocument(
                        external_id=str(comment_id),
                        payload={"comment": comment, "video": video}
                    )

            if skipped:
                logger.warning(f"Skipped {skipped} YouTube comments without a commentId")
