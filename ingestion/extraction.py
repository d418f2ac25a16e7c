"""
Extraction stage: connector documents -> raw_data rows.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from core.exceptions import ConnectorTimeoutError, ExtractionError
from ingestion.connectors.base import Connector
from models.raw_data import RawData
import logging

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    source: str
    records: List[RawData] = field(default_factory=list)
    duplicates: int = 0

    @property
    def records_persisted(self) -> int:
        return len(self.records)

    @property
    def raw_ids(self) -> List[int]:
        return [record.id for record in self.records]


class ExtractionStage:
    """
    Persist every document a connector yields, stamped with source, query
    and extraction time.

    With ``deduplicate`` on, a document whose (source, external id) is
    already stored is counted as a duplicate instead of written again.
    With it off, every document becomes a new row.
    """

    def __init__(self, store, timeout_seconds: float, deduplicate: bool = False):
        self.store = store
        self.timeout_seconds = timeout_seconds
        self.deduplicate = deduplicate

    async def _next_document(self, documents, source: str):
        try:
            return await asyncio.wait_for(documents.__anext__(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise ConnectorTimeoutError(
                f"No document from {source} within {self.timeout_seconds}s",
                context={"source": source},
                original_exception=e
            )

    async def run(
        self,
        connector: Connector,
        query: str,
        job_id: Optional[str] = None
    ) -> ExtractionResult:
        """
        Returns:
            ExtractionResult with the persisted records

        Raises:
            ExtractionError: Wrapping the first connector or persistence failure
        """
        source = connector.source
        result = ExtractionResult(source=source)
        documents = connector.fetch(query).__aiter__()

        logger.info(f"Starting extraction for {source} (query='{query}')")

        try:
            while True:
                try:
                    document = await self._next_document(documents, source)
                except StopAsyncIteration:
                    break

                if self.deduplicate and await self.store.raw_exists(source, document.external_id):
                    result.duplicates += 1
                    logger.debug(f"Duplicate {source}:{document.external_id} skipped")
                    continue

                now = datetime.utcnow()
                record = RawData(
                    source=source,
                    source_id=document.external_id,
                    query=query,
                    payload=document.payload,
                    processed=False,
                    etl_job_id=job_id,
                    extracted_at=now,
                    created_at=now,
                    updated_at=now,
                )
                await self.store.insert_raw(record)
                result.records.append(record)

        except Exception as e:
            raise ExtractionError(
                f"Extraction failed for {source}",
                context={
                    "source": source,
                    "records_persisted": result.records_persisted,
                    "duplicates": result.duplicates,
                },
                original_exception=e
            )
        finally:
            aclose = getattr(documents, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except Exception as e:
                    logger.warning(f"Closing the {source} document stream failed: {e}")

        logger.info(
            f"Extracted {result.records_persisted} records from {source}"
            + (f" ({result.duplicates} duplicates skipped)" if result.duplicates else "")
        )
        return result
