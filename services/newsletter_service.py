"""
Newsletter Service Module

This module manages newsletter subscriptions and triggers the hosted email
functions: the post announcement broadcast and the subscription confirmation.

Subscriber rows are keyed by lower-cased address. The table is not publicly
readable, so only the administrator can list subscribers or count them.
"""

from typing import Any, Dict, List, Optional

from config import settings
from data.database import get_store
from data.models import BlogPost, NewsletterEmailData, NewsletterSubscriber
from data.protocols import BlogStore
from utils.exceptions import (
    AlreadySubscribedError,
    BlogError,
    DuplicateError,
    NewsletterError,
    NotFoundError,
    ValidationError,
)
from utils.helpers import call_with_retry, is_valid_email
from utils.logger import get_logger

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    """
    Validate an address and return it trimmed and lower-cased.

    Raises:
        ValidationError: If the address is not well formed
    """
    if not is_valid_email(email):
        raise ValidationError("Invalid email format")
    return email.strip().lower()


class NewsletterService:
    """Service for newsletter subscriptions and dispatch."""

    def __init__(self, store: Optional[BlogStore] = None):
        self.store = store if store is not None else get_store()

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, email: str) -> None:
        """
        Subscribe an address, re-activating it if it unsubscribed before.

        A confirmation email is requested afterwards; if that fails the
        subscription still stands and the failure is only logged.

        Raises:
            ValidationError: If the address is not well formed
            AlreadySubscribedError: If the address is already active
        """
        address = normalize_email(email)

        existing = call_with_retry(lambda: self.store.find_subscriber(address), "checkSubscription")
        if existing and existing.get("is_active"):
            raise AlreadySubscribedError("Email already subscribed")

        if existing:
            call_with_retry(lambda: self.store.update_subscriber(address, {"is_active": True}), "resubscribe")
            logger.info(f"Re-activated newsletter subscription for {address}")
        else:
            try:
                call_with_retry(lambda: self.store.insert_subscriber({"email": address, "is_active": True}),
                                "subscribe")
            except DuplicateError as e:
                raise AlreadySubscribedError("Email already subscribed") from e
            logger.info(f"New newsletter subscription for {address}")

        try:
            self.send_subscription_confirmation(address)
        except NewsletterError as e:
            logger.error(f"Subscription saved but confirmation email failed for {address}: {e}")

    def unsubscribe(self, email: str) -> None:
        """
        Deactivate an address. Unsubscribing an inactive address is a no-op.

        Raises:
            NotFoundError: If the address never subscribed
        """
        address = normalize_email(email)

        existing = call_with_retry(lambda: self.store.find_subscriber(address), "checkSubscription")
        if not existing:
            raise NotFoundError("Email not found in subscriber list")
        if not existing.get("is_active"):
            logger.info(f"{address} is already unsubscribed")
            return

        call_with_retry(lambda: self.store.update_subscriber(address, {"is_active": False}), "unsubscribe")
        logger.info(f"Unsubscribed {address}")

    def get_active_subscribers(self) -> List[NewsletterSubscriber]:
        """Active subscribers, most recent first. Requires an administrator session."""
        rows = call_with_retry(lambda: self.store.list_active_subscribers(), "fetchSubscribers")
        return [NewsletterSubscriber.from_row(row) for row in rows]

    def get_subscriber_count(self) -> int:
        return call_with_retry(lambda: self.store.count_active_subscribers(), "countSubscribers")

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    @staticmethod
    def build_newsletter_payload(post: BlogPost) -> NewsletterEmailData:
        """Describe a post for the newsletter, linking to its page on the site."""
        return NewsletterEmailData(
            post_id=post.id,
            post_title=post.title,
            post_content=post.story,
            post_url=f"{settings.SITE_URL}/post/{post.id}",
            site_title=settings.SITE_TITLE,
        )

    def send_newsletter(self, email_data: NewsletterEmailData) -> Dict[str, Any]:
        """
        Ask the send-newsletter function to mail a post to every active subscriber.

        The function is invoked exactly once, without retries.

        Returns:
            Dict[str, Any]: The function's response

        Raises:
            ValidationError: If any payload field is missing
            NewsletterError: If the function could not be invoked or reported an error
        """
        missing = email_data.missing_fields()
        if missing:
            raise ValidationError(f"Missing required newsletter fields: {', '.join(missing)}")

        try:
            response = self.store.invoke_function(settings.NEWSLETTER_FUNCTION, email_data.to_payload())
        except BlogError as e:
            raise NewsletterError(f"Failed to send newsletter: {e}") from e

        if response.get("error"):
            raise NewsletterError(f"Newsletter sending failed: {response['error']}")

        logger.info(f"Newsletter sent for post {email_data.post_id}: {response.get('message', 'ok')}")
        return response

    def send_subscription_confirmation(self, email: str) -> Dict[str, Any]:
        """Ask the confirmation function to welcome a new subscriber."""
        body = {"email": email, "siteTitle": settings.SITE_TITLE, "siteUrl": settings.SITE_URL}

        try:
            response = self.store.invoke_function(settings.CONFIRMATION_FUNCTION, body)
        except BlogError as e:
            raise NewsletterError(f"Failed to send confirmation email: {e}") from e

        if response.get("error"):
            raise NewsletterError(f"Confirmation email sending failed: {response['error']}")

        logger.info(f"Confirmation email sent to {email}")
        return response
