"""
Email Service Module

This module composes the newsletter and subscription confirmation emails and
delivers them through the Brevo transactional email API. It is the
server-side counterpart of the hosted email functions, used by the CLI to
broadcast a post without going through the function endpoint.
"""

from dataclasses import dataclass, field
from html import escape
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests

from config import settings
from data.models import NewsletterEmailData
from utils.exceptions import ConfigurationError, EmailDeliveryError, ValidationError
from utils.helpers import strip_html_tags, truncate_text
from utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_EXCERPT = "New blog post available"


@dataclass
class ComposedEmail:
    """A rendered email ready to send."""
    subject: str
    html: str
    text: str
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class BroadcastResult:
    """Outcome of sending one email to many recipients."""
    total: int
    successful: int
    failed: int
    details: List[Dict[str, Any]] = field(default_factory=list)


def newsletter_subject(post_title: str) -> str:
    """Use the post title as the subject, shortened when long."""
    return truncate_text(post_title, settings.EMAIL_SUBJECT_MAX_LENGTH)


def extract_first_paragraph(html_content: str) -> str:
    """
    Return the first non-blank line of a post's text as an excerpt.

    Args:
        html_content: The post story as HTML

    Returns:
        str: Plain-text excerpt, shortened when long
    """
    text = strip_html_tags(html_content or "")
    paragraphs = [line for line in text.split("\n") if line.strip()]
    first = paragraphs[0] if paragraphs else text.strip()
    if not first.strip():
        return DEFAULT_EXCERPT
    return truncate_text(first, settings.EMAIL_EXCERPT_MAX_LENGTH)


def unsubscribe_url(url: str) -> str:
    """Build the unsubscribe link from the origin of a site or post URL."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValidationError(f"Expected an absolute URL, got {url!r}")
    return f"{parsed.scheme}://{parsed.netloc}/unsubscribe"


class EmailService:
    """Service for composing and delivering blog emails via Brevo."""

    def __init__(self, api_key: Optional[str] = None, sender_email: Optional[str] = None,
                 sender_name: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.BREVO_API_KEY
        self.sender_email = sender_email if sender_email is not None else settings.NEWSLETTER_SENDER_EMAIL
        self.sender_name = sender_name if sender_name is not None else settings.NEWSLETTER_SENDER_NAME

    # -------------------------------------------------------------------------
    # Composition
    # -------------------------------------------------------------------------

    def compose_newsletter(self, data: NewsletterEmailData) -> ComposedEmail:
        """
        Render the announcement email for a post.

        Raises:
            ValidationError: If any payload field is missing
        """
        missing = data.missing_fields()
        if missing:
            raise ValidationError(f"Missing required newsletter fields: {', '.join(missing)}")

        excerpt = extract_first_paragraph(data.post_content)
        unsubscribe = unsubscribe_url(data.post_url)

        html = f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{escape(data.post_title)}</title></head>
<body style="font-family: Georgia, serif; line-height: 1.7; color: #304b35;">
  <p style="color: #507c58; font-size: 20px;">{escape(data.site_title)}</p>
  <h1 style="font-size: 24px;">{escape(data.post_title)}</h1>
  <p>{escape(excerpt)}</p>
  <p><em>You can read the complete post here:</em><br>
     <a href="{escape(data.post_url)}">{escape(data.post_title)}</a></p>
  <p>Thanks for reading,<br>{escape(data.site_title)}</p>
  <a href="{escape(unsubscribe)}" style="font-size: 12px;">Unsubscribe</a>
</body>
</html>"""

        text = (
            f"{data.site_title}\n\n"
            f"{data.post_title}\n\n"
            f"{excerpt}\n\n"
            f"You can read the complete post here:\n{data.post_url}\n\n"
            f"Thanks for reading,\n{data.site_title}\n\n"
            f"If you'd prefer not to receive these updates, you can unsubscribe here: {unsubscribe}"
        )

        return ComposedEmail(
            subject=newsletter_subject(data.post_title),
            html=html,
            text=text,
            headers={"List-Unsubscribe": f"<{unsubscribe}>"},
        )

    def compose_confirmation(self, email: str, site_title: Optional[str] = None,
                             site_url: Optional[str] = None) -> ComposedEmail:
        """Render the welcome email sent after subscribing."""
        site_title = site_title or settings.SITE_TITLE
        site_url = site_url or settings.SITE_URL
        if not email or not site_title or not site_url:
            raise ValidationError("Missing required fields: email, siteTitle, siteUrl")

        unsubscribe = f"{site_url.rstrip('/')}/unsubscribe"

        html = f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{escape(site_title)}</title></head>
<body style="font-family: Georgia, serif; line-height: 1.7; color: #304b35;">
  <h1 style="color: #507c58;">{escape(site_title)}</h1>
  <h2>You're subscribed!</h2>
  <p>Thank you for subscribing to the newsletter. You will get an email whenever a new post is published.</p>
  <p>Confirmed address: <strong>{escape(email)}</strong></p>
  <p><a href="{escape(site_url)}">Visit the blog</a></p>
  <a href="{escape(unsubscribe)}" style="font-size: 12px;">Unsubscribe from the newsletter</a>
</body>
</html>"""

        text = (
            f"{site_title} - Newsletter confirmation\n\n"
            f"You're subscribed!\n\n"
            f"Confirmed address: {email}\n\n"
            f"Visit the blog: {site_url}\n\n"
            f"This is an automatic confirmation message. Please do not reply.\n\n"
            f"To unsubscribe: {unsubscribe}"
        )

        return ComposedEmail(
            subject=f"Welcome to the {site_title} newsletter!",
            html=html,
            text=text,
            headers={
                "List-Unsubscribe": f"<{unsubscribe}>",
                "List-Unsubscribe-Post": "List-Unsubscribe=One-Click",
            },
        )

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    def _require_credentials(self) -> None:
        if not self.api_key:
            raise ConfigurationError("BREVO_API_KEY environment variable is required")
        if not self.sender_email:
            raise ConfigurationError("NEWSLETTER_SENDER_EMAIL environment variable is required")

    def send_email(self, to: str, composed: ComposedEmail) -> Optional[str]:
        """
        Send one email through Brevo.

        Args:
            to: Recipient address
            composed: The rendered email

        Returns:
            Optional[str]: The provider's message id

        Raises:
            ConfigurationError: If the API key or sender is not configured
            EmailDeliveryError: If the request fails or Brevo rejects it
        """
        self._require_credentials()

        payload = {
            "sender": {"name": self.sender_name, "email": self.sender_email},
            "to": [{"email": to}],
            "subject": composed.subject,
            "htmlContent": composed.html,
            "textContent": composed.text,
            "headers": dict(composed.headers),
        }
        headers = {"api-key": self.api_key, "Content-Type": "application/json", "Accept": "application/json"}

        try:
            response = requests.post(settings.BREVO_API_URL, json=payload, headers=headers,
                                     timeout=settings.EMAIL_REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise EmailDeliveryError(f"Failed to send email to {to}: {e}") from e

        if not response.ok:
            raise EmailDeliveryError(
                f"Failed to send email to {to}: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        try:
            message_id = response.json().get("messageId")
        except ValueError:
            message_id = None
        logger.info(f"Sent email to {to} ({message_id})")
        return message_id

    def send_confirmation(self, email: str) -> Optional[str]:
        return self.send_email(email, self.compose_confirmation(email))

    def broadcast_newsletter(self, data: NewsletterEmailData, recipients: List[str]) -> BroadcastResult:
        """
        Send the newsletter for a post to each recipient.

        Each recipient is sent to independently; a failure is recorded in the
        result and the remaining recipients are still attempted.

        Args:
            data: The post being announced
            recipients: Recipient addresses

        Returns:
            BroadcastResult: Totals and per-recipient details
        """
        composed = self.compose_newsletter(data)
        if not recipients:
            logger.info("No active subscribers found")
            return BroadcastResult(total=0, successful=0, failed=0)

        self._require_credentials()
        logger.info(f"Sending newsletter for post {data.post_id} to {len(recipients)} subscribers")

        details = []
        for email in recipients:
            try:
                message_id = self.send_email(email, composed)
                details.append({"email": email, "success": True, "message_id": message_id})
            except EmailDeliveryError as e:
                logger.error(str(e))
                details.append({"email": email, "success": False, "error": str(e)})

        successful = sum(1 for d in details if d["success"])
        result = BroadcastResult(
            total=len(recipients),
            successful=successful,
            failed=len(recipients) - successful,
            details=details,
        )
        logger.info(f"Email sending complete: {result.successful} successful, {result.failed} failed")
        return result
