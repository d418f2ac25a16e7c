"""
Pydantic schemas for data validation and serialization.

This package defines Pydantic models used by the pipeline and the API:

Schemas:
    processed: ProcessedFields produced by derivers
    etl: SourceRunResult and RunResult returned by the orchestrator
    api: API endpoint request/response schemas

Features:
    - Bounds on scores (relevance in [0, 1], sentiment in [-1, 1])
    - JSON serialization of run results
    - OpenAPI schema generation for FastAPI

Usage:
    from schemas.processed import ProcessedFields
    from schemas.etl import RunResult
    from schemas.api import DataResponse, HealthCheckResponse

Example:
    fields = ProcessedFields(
        source="news",
        title="Vaccine rollout expands",
        relevance_score=0.14
    )

    # Out-of-range scores are rejected
    ProcessedFields(source="news", relevance_score=1.5)  # ValidationError
"""

__all__ = [
    "ProcessedFields",
    "SourceRunResult",
    "RunResult",
    "DataResponse",
    "HealthCheckResponse",
    "StatsResponse",
]
