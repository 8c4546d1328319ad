"""
Core utilities and configuration for the disclosure sync service.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Database engine and session factory management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import NetworkError, RecordError
    from core.logging import setup_logging

Example:
    setup_logging()

    async with async_session_maker() as session:
        ...
"""

__all__ = [
    "settings",
    "async_session_maker",
    "setup_logging",
    # Exceptions
    "SyncException",
    "ConfigurationError",
    "ExtractionError",
    "APIExtractionError",
    "NetworkError",
    "RateLimitError",
    "AuthenticationError",
    "ServerError",
    "ResourceNotFoundError",
    "RequestCancelledError",
    "TransformationError",
    "RecordError",
    "NormalizationError",
    "LoadError",
    "DatabaseError",
    "DatabaseConnectionError",
    "PersistenceConflictError",
    "CheckpointError",
    "SyncInProgressError",
    "RetryableError",
    "NonRetryableError",
]
