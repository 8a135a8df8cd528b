"""
Core utilities and configuration for the facility data sync service.

This package provides foundational components used throughout the sync pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Engine (bounded connection pool) and session factory
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import create_engine_from_settings, create_session_maker
    from core.exceptions import PMSRequestError, NetworkError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Build the connection pool once per process
    engine = create_engine_from_settings(settings)
    session_maker = create_session_maker(engine)
"""

__all__ = [
    "settings",
    "create_engine_from_settings",
    "create_session_maker",
    "setup_logging",
    # Exceptions
    "SyncException",
    "ConfigurationError",
    "ExtractionError",
    "WarehouseQueryError",
    "PMSRequestError",
    "TransformationError",
    "ValidationError",
    "NormalizationError",
    "LoadError",
    "UpsertError",
    "SchemaMismatchError",
    "RetryableError",
    "NonRetryableError",
    "NetworkError",
    "ServerError",
    "RateLimitError",
    "BadRequestError",
    "AuthenticationError",
    "RetryExhaustedError",
    "WebhookSignatureError",
]
