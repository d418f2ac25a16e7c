"""
Re-score sentiment for stored processed records.

Used after the lexicon changes: walks processed_data in id order, in
batches, and rewrites sentiment, sentiment_score and sentiment_confidence.
Relevance, text and payload are left untouched.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Optional
from ingestion.transformers.sentiment import SentimentAnalyzer
import logging

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    scanned: int = 0
    updated: int = 0
    unchanged: int = 0
    batches: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SentimentCleanupService:
    def __init__(self, store, analyzer: Optional[SentimentAnalyzer] = None, batch_size: int = 500):
        self.store = store
        self.analyzer = analyzer or SentimentAnalyzer()
        self.batch_size = max(1, batch_size)

    @staticmethod
    def _text(record) -> str:
        return " ".join(part for part in (record.title, record.content) if part)

    async def run(
        self,
        source: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> CleanupResult:
        result = CleanupResult()
        last_id = 0

        logger.info(f"Sentiment cleanup started (source={source or 'all'})")

        while True:
            batch = await self.store.list_processed_batch(
                last_id, self.batch_size, source=source, since=since, until=until
            )
            if not batch:
                break

            result.batches += 1
            for record in batch:
                result.scanned += 1
                last_id = max(last_id, record.id)
                analysis = self.analyzer.analyze(self._text(record))

                if (
                    record.sentiment == analysis.category
                    and record.sentiment_score == analysis.score
                    and record.sentiment_confidence == analysis.confidence
                ):
                    result.unchanged += 1
                    continue

                await self.store.update_sentiment(
                    record.id, analysis.category, analysis.score, analysis.confidence
                )
                result.updated += 1

            if len(batch) < self.batch_size:
                break

        logger.info(
            f"Sentiment cleanup finished: {result.scanned} scanned, "
            f"{result.updated} updated in {result.batches} batches"
        )
        return result
