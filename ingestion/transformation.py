"""
Transformation stage: raw_data rows -> processed_data rows.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from core.exceptions import TransformError
from ingestion.transformers.deriver import Deriver, KeywordDeriver
from models.processed_data import ProcessedData
from models.raw_data import RawData
from schemas.processed import ProcessedFields
import logging

logger = logging.getLogger(__name__)


@dataclass
class TransformationResult:
    source: str
    succeeded: int = 0
    failed: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    relevance_total: float = 0.0

    @property
    def average_relevance(self) -> Optional[float]:
        if not self.succeeded:
            return None
        return min(1.0, self.relevance_total / self.succeeded)


def to_processed_model(fields: ProcessedFields, job_id: Optional[str], processed_at: datetime) -> ProcessedData:
    return ProcessedData(
        source=fields.source,
        raw_data_id=fields.raw_data_id,
        external_id=fields.external_id,
        title=fields.title,
        content=fields.content,
        language=fields.language,
        word_count=fields.word_count,
        relevance_score=fields.relevance_score,
        sentiment=fields.sentiment,
        sentiment_score=fields.sentiment_score,
        sentiment_confidence=fields.sentiment_confidence,
        payload=fields.payload,
        etl_job_id=job_id,
        processed_at=processed_at,
        created_at=processed_at,
        updated_at=processed_at,
    )


class TransformationStage:
    """
    Derive and persist processed records for a batch of raw records.

    A record that fails derivation is logged and skipped; persistence
    failures propagate as LoadError. Every attempted raw record is marked
    processed so a deterministic derivation failure is not retried forever.
    """

    def __init__(self, store, deriver: Optional[Deriver] = None):
        self.store = store
        self.deriver = deriver or KeywordDeriver()

    def _derive(self, raw: RawData) -> ProcessedFields:
        try:
            return self.deriver.derive(raw)
        except TransformError:
            raise
        except Exception as e:
            raise TransformError(
                "Deriver raised an unexpected error",
                context={"raw_data_id": raw.id, "source": raw.source},
                original_exception=e
            )

    async def run(
        self,
        source: str,
        records: List[RawData],
        job_id: Optional[str] = None
    ) -> TransformationResult:
        result = TransformationResult(source=source)
        attempted_ids = []

        logger.info(f"Starting transformation for {len(records)} {source} records")

        try:
            for raw in records:
                try:
                    fields = self._derive(raw)
                except TransformError as e:
                    result.failed += 1
                    result.errors.append(e.to_dict())
                    attempted_ids.append(raw.id)
                    logger.warning(
                        f"Transform failed for raw_data_id={raw.id}: {e.message}",
                        extra={"error_context": e.to_dict()}
                    )
                    continue

                processed = to_processed_model(fields, job_id, datetime.utcnow())
                await self.store.insert_processed(processed)
                attempted_ids.append(raw.id)
                result.succeeded += 1
                result.relevance_total += fields.relevance_score
        finally:
            # Rows already written stay marked even if a later insert fails
            if attempted_ids:
                await self.store.mark_raw_processed(attempted_ids, datetime.utcnow())

        logger.info(
            f"Transformation complete for {source}: {result.succeeded} succeeded, "
            f"{result.failed} failed"
        )
        return result
