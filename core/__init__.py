"""
Core utilities and configuration for the COVID-19 KMS ETL backend.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Async engine and session factory
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import ConnectorError, AlreadyRunningError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Open a session
    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "async_session_maker",
    "setup_logging",
    # Exceptions
    "ETLException",
    "ConnectorError",
    "NetworkError",
    "ConnectorTimeoutError",
    "RateLimitError",
    "AuthenticationError",
    "MalformedResponseError",
    "ExtractionError",
    "TransformError",
    "LoadError",
    "DatabaseError",
    "DatabaseConnectionError",
    "JobLogError",
    "AlreadyRunningError",
    "OrchestrationFatalError",
    "RunCancelledError",
    "RetryableError",
    "NonRetryableError",
]
