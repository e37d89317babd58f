"""
Setup Verification Module

Checks that a freshly configured project is usable by this backend: the posts
table is reachable and publicly readable, the photo bucket is accessible, and
an anonymous client is refused when it tries to write a post.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from config import settings
from data.database import get_store
from data.protocols import BlogStore
from utils.logger import get_logger

logger = get_logger(__name__)

POLICY_MARKERS = ("row-level security", "policy")


@dataclass
class CheckResult:
    """Outcome of one verification step."""
    name: str
    passed: bool
    detail: str
    warning: bool = False


@dataclass
class VerificationReport:
    """All verification steps, in the order they ran."""
    checks: List[CheckResult] = field(default_factory=list)

    @property
    def all_passed(self) -> bool:
        return all(check.passed for check in self.checks)


class SetupVerifier:
    """Runs the setup checks against an anonymous store."""

    def __init__(self, store: Optional[BlogStore] = None):
        self.store = store if store is not None else get_store()

    def run(self) -> VerificationReport:
        """Run every check; failures are recorded in the report, never raised."""
        report = VerificationReport()
        steps: List[Callable[[], CheckResult]] = [
            self.check_posts_table,
            self.check_public_read,
            self.check_storage_bucket,
            self.check_write_protection,
        ]
        for step in steps:
            result = step()
            log = logger.warning if result.warning else (logger.info if result.passed else logger.error)
            log(f"{result.name}: {result.detail}")
            report.checks.append(result)

        if report.all_passed:
            logger.info("All checks passed! The project is configured correctly.")
        else:
            logger.error("Some checks failed. Review the errors above.")
        return report

    def check_posts_table(self) -> CheckResult:
        name = "Posts table"
        try:
            self.store.list_posts(start=0, end=0)
        except Exception as e:
            return CheckResult(name, False, f"Error accessing posts table: {e}")
        return CheckResult(name, True, "Posts table is accessible")

    def check_public_read(self) -> CheckResult:
        name = "Public read"
        try:
            total = self.store.count_posts()
        except Exception as e:
            return CheckResult(name, False, f"Public read policy not working: {e}")
        return CheckResult(name, True, f"Public read access is working ({total} posts)")

    def check_storage_bucket(self) -> CheckResult:
        name = "Storage bucket"
        try:
            self.store.list_files("", limit=1)
        except Exception as e:
            return CheckResult(
                name, False,
                f"Storage bucket not accessible: {e}. Make sure the {settings.STORAGE_BUCKET!r} bucket exists and is public",
            )
        return CheckResult(name, True, "Storage bucket is accessible")

    def check_write_protection(self) -> CheckResult:
        name = "Write protection"
        try:
            row = self.store.insert_post({"title": "Test Post", "story": "This should fail", "photo_urls": []})
        except Exception as e:
            message = str(e)
            if any(marker in message.lower() for marker in POLICY_MARKERS):
                return CheckResult(name, True, "Row-level security blocks unauthenticated writes")
            return CheckResult(name, True, f"Write failed with an unexpected error: {message}", warning=True)

        try:
            self.store.delete_post(str(row["id"]))
        except Exception as e:
            logger.error(f"Could not remove verification post {row.get('id')}: {e}")
        return CheckResult(name, False, "Unauthenticated write succeeded; row-level security may not be configured")
