"""
Derive processed fields from raw documents.

The ``Deriver`` protocol is the pluggable seam: anything with
``derive(raw) -> ProcessedFields`` that raises ``TransformError`` on bad
input can replace the default rule-based ``KeywordDeriver``.
"""

from typing import Any, Dict, Optional, Protocol, Sequence
from pydantic import ValidationError
from core.exceptions import TransformError
from ingestion.transformers.sentiment import SentimentAnalyzer
from ingestion.transformers.text import (
    COVID_KEYWORDS,
    clean_text,
    detect_language,
    relevance_score,
    word_count,
)
from models.raw_data import RawData
from schemas.processed import ProcessedFields
import logging

logger = logging.getLogger(__name__)


class Deriver(Protocol):
    def derive(self, raw: RawData) -> ProcessedFields:
        ...


def _first(record: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_int(value: Any) -> Optional[int]:
    """Safely parse counts like 12, "12", "1,250,000" """
    if value is None or value == "":
        return None
    try:
        return int(float(str(value).replace(",", "")))
    except (ValueError, TypeError):
        return None


class KeywordDeriver:
    """
    Rule-based deriver.

    Handles:
    - Per-source field mapping
    - Text cleaning
    - COVID keyword relevance
    - Lexicon sentiment and language detection
    """

    def __init__(
        self,
        analyzer: Optional[SentimentAnalyzer] = None,
        keywords: Sequence[str] = COVID_KEYWORDS
    ):
        self.analyzer = analyzer or SentimentAnalyzer()
        self.keywords = keywords
        self._mappers = {
            "youtube": self._map_youtube,
            "news": self._map_rss,
            "google_news": self._map_article,
            "indonesia_news": self._map_article,
            "instagram": self._map_instagram,
        }

    def derive(self, raw: RawData) -> ProcessedFields:
        """
        Derive title, content, scores and metadata for one raw record.

        Raises:
            TransformError: Payload is not a document, yields no text, or
                fails validation
        """
        context = {"raw_data_id": raw.id, "source": raw.source}

        if not isinstance(raw.payload, dict):
            raise TransformError("Raw payload is not a JSON object", context=context)

        mapper = self._mappers.get(raw.source, self._map_article)
        try:
            title, content, scored_text, payload = mapper(raw.payload)
        except (AttributeError, TypeError, KeyError) as e:
            raise TransformError("Unexpected document shape", context=context, original_exception=e)

        if not title and not content:
            raise TransformError("Document has neither title nor content", context=context)

        sentiment = self.analyzer.analyze(scored_text)

        try:
            return ProcessedFields(
                source=raw.source,
                raw_data_id=raw.id,
                external_id=raw.source_id,
                title=title,
                content=content,
                language=detect_language(scored_text),
                word_count=word_count(scored_text),
                relevance_score=relevance_score(scored_text, self.keywords),
                sentiment=sentiment.category,
                sentiment_score=sentiment.score,
                sentiment_confidence=sentiment.confidence,
                payload={**payload, "sentiment_keywords": sentiment.keywords},
            )
        except ValidationError as e:
            raise TransformError("Derived fields failed validation", context=context, original_exception=e)

    # ------------------------------------------------------------------
    # Per-source mapping: returns (title, content, scored_text, payload)
    # ------------------------------------------------------------------

    def _map_youtube(self, record: Dict[str, Any]):
        comment = record.get("comment") or {}
        video = record.get("video") or {}
        stats = comment.get("stats") or {}

        title = clean_text(video.get("title"))
        content = clean_text(comment.get("content"))
        payload = {
            "url": video.get("url"),
            "author": comment.get("author"),
            "published": comment.get("publishedTimeText"),
            "video": {
                "videoId": video.get("videoId"),
                "title": video.get("title"),
                "author": video.get("author"),
                "views": video.get("views"),
                "duration": video.get("duration"),
                "published": video.get("published"),
            },
            "engagement": {
                "replies": _as_int(stats.get("replies")) or 0,
                "votes": _as_int(stats.get("votes")) or 0,
            },
        }
        # Comments are scored on their own text; the video title is shared
        return title, content, content or title, payload

    def _map_rss(self, record: Dict[str, Any]):
        title = clean_text(record.get("title"))
        content = clean_text(_first(record, "summary", "description", "content"))
        payload = {
            "url": record.get("link"),
            "author": record.get("author"),
            "publisher": record.get("publisher"),
            "published": record.get("published"),
            "categories": record.get("categories") or [],
        }
        return title, content, f"{title} {content}", payload

    def _map_article(self, record: Dict[str, Any]):
        title = clean_text(record.get("title"))
        description = clean_text(_first(record, "summary", "description", "snippet"))
        content = clean_text(record.get("content")) or description

        date = record.get("date")
        published = date.get("publish") if isinstance(date, dict) else date
        publisher = record.get("publisher")
        if isinstance(publisher, dict):
            publisher = publisher.get("name")

        payload = {
            "url": _first(record, "url", "link", "newsUrl"),
            "author": _first(record, "author", "penulis", "editor"),
            "publisher": publisher or _first(record, "namakanal", "outlet"),
            "published": published or _first(record, "timestamp", "published_datetime_utc"),
            "description": description,
        }
        return title, content, f"{title} {description} {content}", payload

    def _map_instagram(self, record: Dict[str, Any]):
        caption = clean_text(record.get("caption_text"))
        username = (record.get("user") or {}).get("username") or "unknown"
        likes = _as_int(record.get("like_count")) or 0
        comments = _as_int(record.get("comment_count")) or 0

        content = caption
        if likes or comments:
            content = f"{caption} (Likes: {likes}, Comments: {comments})".strip()

        payload = {
            "url": f"https://instagram.com/p/{record.get('code')}" if record.get("code") else None,
            "author": username,
            "published": record.get("taken_at"),
            "engagement": {"likes": likes, "comments": comments},
        }
        return f"Instagram Post by @{username}", content, caption, payload
