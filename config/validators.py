"""
Configuration Validation for the Blog Backend

This module contains configuration validation logic.
Extracted from settings.py for better separation of concerns.
"""

from urllib.parse import urlparse

from utils.exceptions import ConfigurationError
from utils.helpers import is_hex_color


def validate_settings():
    """
    Validate that all required settings are properly configured.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    # Import settings here to avoid circular imports
    from config import settings

    errors = []

    # The hosted store is only required when not running in-memory
    if not settings.USE_IN_MEMORY_BACKEND:
        required_vars = [
            ("SUPABASE_URL", settings.SUPABASE_URL),
            ("SUPABASE_ANON_KEY", settings.SUPABASE_ANON_KEY),
        ]

        for var_name, var_value in required_vars:
            if not var_value:
                errors.append(f"Missing required environment variable: {var_name}")

        if settings.SUPABASE_URL:
            parsed = urlparse(settings.SUPABASE_URL)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append(f"SUPABASE_URL must be an http(s) URL, got {settings.SUPABASE_URL!r}")

    if not settings.STORAGE_BUCKET:
        errors.append("STORAGE_BUCKET must not be empty")

    # Validate numeric settings are within reasonable bounds
    numeric_validations = [
        ("RETRY_MAX_RETRIES", settings.RETRY_MAX_RETRIES, 0, 10),
        ("RETRY_BACKOFF_MULTIPLIER", settings.RETRY_BACKOFF_MULTIPLIER, 1, 10),
        ("POSTS_CACHE_DURATION", settings.POSTS_CACHE_DURATION, 0, 24 * 60 * 60),
        ("DEFAULT_PAGE_SIZE", settings.DEFAULT_PAGE_SIZE, 1, settings.MAX_PAGE_SIZE),
        ("EMAIL_SUBJECT_MAX_LENGTH", settings.EMAIL_SUBJECT_MAX_LENGTH, 10, 200),
        ("EMAIL_EXCERPT_MAX_LENGTH", settings.EMAIL_EXCERPT_MAX_LENGTH, 20, 2000),
    ]

    for name, value, min_val, max_val in numeric_validations:
        if value < min_val or value > max_val:
            errors.append(f"{name} must be between {min_val} and {max_val}, got {value}")

    # Validate timeout and delay values are positive
    positive_settings = [
        ("RETRY_INITIAL_DELAY", settings.RETRY_INITIAL_DELAY),
        ("RETRY_MAX_DELAY", settings.RETRY_MAX_DELAY),
        ("EMAIL_REQUEST_TIMEOUT", settings.EMAIL_REQUEST_TIMEOUT),
    ]

    for name, value in positive_settings:
        if value <= 0:
            errors.append(f"{name} must be positive, got {value}")

    if settings.RETRY_MAX_DELAY < settings.RETRY_INITIAL_DELAY:
        errors.append("RETRY_MAX_DELAY must be greater than or equal to RETRY_INITIAL_DELAY")

    if not is_hex_color(settings.DEFAULT_CATEGORY_COLOR):
        errors.append(f"DEFAULT_CATEGORY_COLOR must be a hex colour, got {settings.DEFAULT_CATEGORY_COLOR!r}")

    # Raise all errors at once
    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)

    return True


def get_config_summary() -> dict:
    """
    Returns a summary of current configuration (without sensitive values).
    Useful for logging startup state.
    """
    # Import settings here to avoid circular imports
    from config import settings

    return {
        "backend": {
            "in_memory": settings.USE_IN_MEMORY_BACKEND,
            "supabase_url": settings.SUPABASE_URL,
            "anon_key": "configured" if settings.SUPABASE_ANON_KEY else "not configured",
            "service_role_key": "configured" if settings.SUPABASE_SERVICE_ROLE_KEY else "not configured",
            "storage_bucket": settings.STORAGE_BUCKET,
        },
        "resilience": {
            "max_retries": settings.RETRY_MAX_RETRIES,
            "initial_delay": settings.RETRY_INITIAL_DELAY,
            "max_delay": settings.RETRY_MAX_DELAY,
        },
        "feed": {
            "cache_duration_seconds": settings.POSTS_CACHE_DURATION,
            "page_size": settings.DEFAULT_PAGE_SIZE,
        },
        "newsletter": {
            "site_title": settings.SITE_TITLE,
            "site_url": settings.SITE_URL,
            "brevo": "configured" if settings.BREVO_API_KEY else "not configured",
        },
    }
