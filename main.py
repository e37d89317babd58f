"""
Blog Admin Command Line

This is the command line entry point for the blog backend. It verifies a
project's setup, prints the feed and categories, and sends newsletter and
confirmation emails directly through the email provider.
"""

import sys
import argparse
import logging
from typing import List, Optional

from config import settings
from config.validators import validate_settings, get_config_summary
from utils.logger import get_logger, setup_file_logging
from utils.exceptions import BlogError, DatabaseError, NewsletterError, ValidationError
from data.database import get_store, get_service_store
from services.post_service import PostService
from services.category_service import CategoryService
from services.newsletter_service import NewsletterService, normalize_email
from services.email_service import EmailService
from services.setup_verifier import SetupVerifier

# Set up logging
logger = get_logger(__name__)


class BlogAdmin:
    """
    Command runner for the blog backend.

    Services can be injected for testing; otherwise they are built on the
    shared store.
    """

    def __init__(self, store=None, service_store=None, email_service: Optional[EmailService] = None,
                 validate: bool = True):
        """Initialize the runner, validating settings unless told not to."""
        if validate:
            validate_settings()
            logger.debug(f"Configuration: {get_config_summary()}")

        self.store = store if store is not None else get_store()
        self._service_store = service_store
        self.email_service = email_service if email_service is not None else EmailService()
        self.post_service = PostService(self.store)
        self.category_service = CategoryService(self.store)

    @property
    def service_store(self):
        # Listing subscribers needs the service-role key
        if self._service_store is None:
            self._service_store = get_service_store()
        return self._service_store

    def run_command(self, args: argparse.Namespace) -> bool:
        """Dispatch a parsed command. Returns True on success."""
        if args.command == "verify":
            return self.verify()
        if args.command == "posts":
            return self.show_posts(category_id=args.category, page=args.page, page_size=args.page_size)
        if args.command == "categories":
            return self.show_categories()
        if args.command == "send-newsletter":
            return self.send_newsletter(args.post_id)
        if args.command == "send-confirmation":
            return self.send_confirmation(args.email)
        raise ValidationError(f"Unknown command: {args.command}")

    def verify(self) -> bool:
        report = SetupVerifier(self.store).run()
        for check in report.checks:
            status = "WARN" if check.warning else ("PASS" if check.passed else "FAIL")
            print(f"[{status}] {check.name}: {check.detail}")
        return report.all_passed

    def show_posts(self, category_id: Optional[str] = None, page: Optional[int] = None,
                   page_size: Optional[int] = None) -> bool:
        """Print the feed, one category's posts, or one page of the feed."""
        if category_id:
            posts = self.post_service.list_posts_by_category(category_id)
        elif page is not None:
            result = self.post_service.list_posts_page(page, page_size or settings.DEFAULT_PAGE_SIZE)
            posts = result.posts
            print(f"Page {page}: {len(posts)} of {result.total} posts (more: {'yes' if result.has_more else 'no'})")
        else:
            posts = self.post_service.list_posts()

        for post in posts:
            print(f"{post.created_at}  {post.id}  {post.title} ({len(post.photo_urls)} photos)")
        logger.info(f"Listed {len(posts)} posts")
        return True

    def show_categories(self) -> bool:
        categories = self.category_service.list_categories()
        for category in categories:
            print(f"{category.id}  {category.name} [{category.slug}] {category.color}")
        logger.info(f"Listed {len(categories)} categories")
        return True

    def send_newsletter(self, post_id: str) -> bool:
        """
        Email a post to every active subscriber.

        Returns:
            bool: True if every recipient was sent to
        """
        post = PostService(self.service_store).get_post(post_id)
        newsletter = NewsletterService(self.service_store)
        subscribers = newsletter.get_active_subscribers()
        email_data = NewsletterService.build_newsletter_payload(post)

        result = self.email_service.broadcast_newsletter(email_data, [s.email for s in subscribers])
        print(f"Newsletter for {post.title!r}: {result.successful} sent, {result.failed} failed "
              f"of {result.total} subscribers")
        return result.failed == 0

    def send_confirmation(self, email: str) -> bool:
        address = normalize_email(email)
        message_id = self.email_service.send_confirmation(address)
        print(f"Confirmation email sent to {address} ({message_id})")
        return True


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Blog backend administration')
    parser.add_argument('--log-file', type=str, default='blog_admin.log', help='Log file path')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO', help='Logging level')

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('verify', help='Check tables, storage bucket and write protection')

    posts_parser = subparsers.add_parser('posts', help='List posts')
    posts_parser.add_argument('--category', type=str, default=None, help='Only posts in this category id')
    posts_parser.add_argument('--page', type=int, default=None, help='Page number (0-based)')
    posts_parser.add_argument('--page-size', type=int, default=None, help='Posts per page')

    subparsers.add_parser('categories', help='List categories')

    newsletter_parser = subparsers.add_parser('send-newsletter', help='Email a post to all active subscribers')
    newsletter_parser.add_argument('--post-id', type=str, required=True, help='Id of the post to send')

    confirmation_parser = subparsers.add_parser('send-confirmation', help='Send a subscription confirmation email')
    confirmation_parser.add_argument('--email', type=str, required=True, help='Recipient address')

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    # Parse command line arguments
    args = parse_arguments(argv)

    # Set up logging
    log_level = getattr(logging, args.log_level)
    setup_file_logging(args.log_file, log_level)

    logger.info(f"Running command: {args.command}")

    try:
        admin = BlogAdmin()
        success = admin.run_command(args)

        if success:
            logger.info(f"Command {args.command} completed successfully")
            exit_code = 0
        else:
            logger.warning(f"Command {args.command} completed with errors")
            exit_code = 1

    except ValidationError as e:
        logger.error(f"Invalid input: {e}")
        exit_code = 1
    except NewsletterError as e:
        logger.error(f"Newsletter error: {e}", exc_info=True)
        exit_code = 1
    except DatabaseError as e:
        logger.error(f"Database error: {e}", exc_info=True)
        exit_code = 1
    except BlogError as e:
        logger.error(f"Blog backend error: {e}", exc_info=True)
        exit_code = 1
    except Exception as e:
        logger.error(f"Unhandled exception in blog admin: {e}", exc_info=True)
        exit_code = 2

    logger.info(f"Blog admin finished with exit code {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
