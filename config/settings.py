"""
Configuration Settings for the Blog Backend

This module centralizes all configuration settings for the blog backend,
including the hosted store credentials, email provider keys, and the
constants that govern retries, caching and pagination.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Determine the application root directory
APP_ROOT = Path(__file__).resolve().parent.parent

# Load environment variables from .env file
load_dotenv(dotenv_path=os.path.join(APP_ROOT, '.env'))


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# Hosted Store (Supabase)
# =============================================================================

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

# Run against the in-process store instead of the hosted one (local development)
USE_IN_MEMORY_BACKEND = _env_flag("BLOG_USE_IN_MEMORY_BACKEND")

# Table and bucket names
POSTS_TABLE = "posts"
CATEGORIES_TABLE = "categories"
COMMENTS_TABLE = "comments"
SUBSCRIBERS_TABLE = "newsletter_subscribers"
STORAGE_BUCKET = os.getenv("BLOG_STORAGE_BUCKET", "blog-photos")

# Hosted functions that send email
NEWSLETTER_FUNCTION = "send-newsletter"
CONFIRMATION_FUNCTION = "send-subscription-confirmation"

POST_COLUMNS = (
    "id, title, story, photo_urls, cover_image_url, cover_image_position, "
    "category_ids, created_at, updated_at"
)

# =============================================================================
# Resilience Settings
# =============================================================================

RETRY_MAX_RETRIES = 3                # Retries after the first attempt (4 attempts total)
RETRY_INITIAL_DELAY = 1.0            # Seconds before the first retry
RETRY_MAX_DELAY = 5.0                # Cap for any single delay
RETRY_BACKOFF_MULTIPLIER = 2

# =============================================================================
# Feed Settings
# =============================================================================

POSTS_CACHE_DURATION = 5 * 60        # Seconds the unfiltered feed stays cached
DEFAULT_PAGE_SIZE = 9
MAX_PAGE_SIZE = 100
DEFAULT_COVER_POSITION = {"x": 50, "y": 50, "zoom": 100}
DEFAULT_CATEGORY_COLOR = "#3B82F6"

# =============================================================================
# Site and Newsletter Settings
# =============================================================================

SITE_TITLE = os.getenv("BLOG_SITE_TITLE", "Personal Blog")
SITE_URL = os.getenv("BLOG_SITE_URL", "").rstrip("/")

# Brevo transactional email API
BREVO_API_KEY = os.getenv("BREVO_API_KEY", "")
BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"
NEWSLETTER_SENDER_EMAIL = os.getenv("NEWSLETTER_SENDER_EMAIL", "")
NEWSLETTER_SENDER_NAME = os.getenv("NEWSLETTER_SENDER_NAME", SITE_TITLE)
EMAIL_REQUEST_TIMEOUT = 10           # Seconds timeout per email request
EMAIL_SUBJECT_MAX_LENGTH = 50        # Newsletter subject length before "..."
EMAIL_EXCERPT_MAX_LENGTH = 200       # Newsletter excerpt length before "..."
