"""
Helper Utility Module

This module provides the retry-with-backoff wrapper used around every remote
call, plus small validation and text helpers shared by the services.
"""

import re
import time
from typing import Any, Callable, Optional, TypeVar

import httpx

from config import settings
from utils.exceptions import BlogError, TransientError
from utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
HEX_COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def status_code_of(error: BaseException) -> Optional[int]:
    """
    Extract a numeric HTTP-style status code from an exception, if it carries one.

    Looks at ``status_code``, ``status`` and ``code`` in that order and accepts
    ints or numeric strings (PostgREST reports gateway failures as ``code="502"``).

    Args:
        error: The exception to inspect

    Returns:
        The status code, or None if the error has no numeric code
    """
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None


def is_retryable_error(error: BaseException) -> bool:
    """
    Decide whether a failed remote call is worth retrying.

    Taxonomy errors are already classified: only TransientError is retryable.
    Raw client errors are retryable when they are transport failures, timeouts,
    or carry a 5xx status code.

    Args:
        error: The exception raised by the remote call

    Returns:
        bool: True if the call should be retried
    """
    if isinstance(error, TransientError):
        return True
    if isinstance(error, BlogError):
        return False
    if isinstance(error, (httpx.TimeoutException, httpx.TransportError)):
        return True
    status = status_code_of(error)
    return status is not None and 500 <= status < 600


def backoff_delay(attempt: int, initial_delay: float, max_delay: float, backoff: float) -> float:
    """Delay in seconds before retrying after the given zero-based attempt."""
    return min(initial_delay * (backoff ** attempt), max_delay)


def retry_with_backoff(func: Callable[[], T], operation_name: str, max_retries: int = 3,
                       initial_delay: float = 1.0, max_delay: float = 5.0,
                       backoff: float = 2) -> T:
    """
    Call a function, retrying retryable failures with exponential backoff.

    Non-retryable errors propagate immediately. After ``max_retries`` retries
    (``max_retries + 1`` attempts in total) the last error propagates unchanged.

    Args:
        func: The remote call to execute
        operation_name: Name used in log messages
        max_retries: Number of retries after the first attempt
        initial_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay, in seconds
        backoff: Multiplier applied to the delay after each attempt

    Returns:
        The result of the function call

    Raises:
        The last exception raised by the function
    """
    attempt = 0
    while True:
        try:
            return func()
        except Exception as e:
            if not is_retryable_error(e) or attempt >= max_retries:
                raise

            wait_time = backoff_delay(attempt, initial_delay, max_delay, backoff)
            logger.warning(
                f"{operation_name} failed (attempt {attempt + 1}/{max_retries + 1}). "
                f"Retrying in {wait_time:.1f}s: {e}"
            )
            time.sleep(wait_time)
            attempt += 1


def call_with_retry(func: Callable[[], T], operation_name: str) -> T:
    """Run a single remote call through retry_with_backoff using the configured policy."""
    return retry_with_backoff(
        func,
        operation_name,
        max_retries=settings.RETRY_MAX_RETRIES,
        initial_delay=settings.RETRY_INITIAL_DELAY,
        max_delay=settings.RETRY_MAX_DELAY,
        backoff=settings.RETRY_BACKOFF_MULTIPLIER,
    )


def is_blank(value: Optional[str]) -> bool:
    """Return True for None, empty, or whitespace-only strings."""
    return value is None or not str(value).strip()


def is_valid_email(email: Optional[str]) -> bool:
    """
    Check if an email address is well formed.

    Args:
        email: The address to validate (surrounding whitespace is ignored)

    Returns:
        bool: True if the address is valid, False otherwise
    """
    if is_blank(email):
        return False

    trimmed = email.strip()
    if not EMAIL_PATTERN.match(trimmed):
        return False

    if ('..' in trimmed or trimmed.startswith('.') or trimmed.endswith('.')
            or '@.' in trimmed or '.@' in trimmed):
        return False

    return True


def is_hex_color(value: Optional[str]) -> bool:
    """Check for a #RGB or #RRGGBB colour string."""
    return bool(value) and bool(HEX_COLOR_PATTERN.match(value))


def slugify(name: str) -> str:
    """
    Build a URL-safe slug from a display name.

    Args:
        name: The display name

    Returns:
        str: Lower-case slug with runs of whitespace replaced by single hyphens
    """
    slug = (name or "").lower().strip()
    slug = re.sub(r'[^\w\s-]', '', slug)
    slug = re.sub(r'\s+', '-', slug)
    return re.sub(r'-+', '-', slug)


def strip_html_tags(text: str) -> str:
    """
    Remove HTML tags from text.

    Args:
        text: The text to clean

    Returns:
        str: Text with HTML tags removed
    """
    clean = re.compile('<[^>]*>')
    return re.sub(clean, '', text)


def truncate_text(text: str, max_length: int = 100, add_ellipsis: bool = True) -> str:
    """
    Truncate text to a maximum length.

    Args:
        text: The text to truncate
        max_length: Maximum length
        add_ellipsis: Whether to add an ellipsis if text is truncated

    Returns:
        str: Truncated text
    """
    if not text or len(text) <= max_length:
        return text

    truncated = text[:max_length]
    if add_ellipsis:
        truncated += "..."

    return truncated


def safe_get(data: Any, *keys, default: Any = None) -> Any:
    """
    Safely get a value from a nested dictionary or object attributes.

    Args:
        data: The dictionary or object to search
        *keys: The keys to follow
        default: Default value if key doesn't exist

    Returns:
        The value at the specified keys or the default value
    """
    for key in keys:
        if data is None:
            return default
        if isinstance(data, dict):
            if key not in data:
                return default
            data = data[key]
        else:
            data = getattr(data, key, default)
    return default if data is None else data
