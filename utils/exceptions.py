"""
Custom Exception Classes for the Blog Backend

This module defines the error taxonomy used across the data-access layer.
Every error carries a human-readable message naming its cause so callers
can surface it directly.
"""

from typing import Optional


class BlogError(Exception):
    """Base exception for all blog backend errors."""
    pass


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(BlogError):
    """Raised when configuration validation fails or required settings are missing."""
    pass


# =============================================================================
# Input and Access Errors
# =============================================================================

class ValidationError(BlogError):
    """Raised when a required field is missing or blank. Never retried."""
    pass


class AuthError(BlogError):
    """Raised for rejected credentials or writes denied by row-level security."""
    pass


# =============================================================================
# Remote Call Errors
# =============================================================================

class TransientError(BlogError):
    """Raised for network failures, timeouts and 5xx responses. Retried."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CompensationError(BlogError):
    """Raised (and logged) when a cleanup step fails after a primary failure."""
    pass


# =============================================================================
# Database Errors
# =============================================================================

class DatabaseError(BlogError):
    """Base exception for table operation errors."""
    pass


class QueryError(DatabaseError):
    """Raised when a table query is rejected by the remote store."""
    pass


class NotFoundError(QueryError):
    """Raised when a row addressed by id does not exist."""
    pass


class DuplicateError(QueryError):
    """Raised when an insert violates a unique constraint."""
    pass


# =============================================================================
# Storage Errors
# =============================================================================

class StorageError(BlogError):
    """Raised when a blob store operation fails."""
    pass


# =============================================================================
# Newsletter Errors
# =============================================================================

class NewsletterError(BlogError):
    """Base exception for newsletter subscription and dispatch errors."""
    pass


class AlreadySubscribedError(NewsletterError):
    """Raised when an address already has an active subscription."""
    pass


class EmailDeliveryError(NewsletterError):
    """Raised when the transactional email provider rejects a message."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
