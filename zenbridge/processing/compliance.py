"""
Compliance Classifier
=====================

Content rules of the target platform, evaluated as a pure function of an
article.
"""

from dataclasses import dataclass
from typing import Optional

from ..database.models import Article


MIN_TITLE_LENGTH = 10
MIN_CONTENT_LENGTH = 80
MAX_CONTENT_LENGTH = 50_000

COMPLIANCE_FAILURE_MESSAGE = "Content does not meet Zen requirements"


@dataclass(frozen=True)
class ComplianceResult:
    compliant: bool
    reason: Optional[str] = None

    @property
    def error_message(self) -> Optional[str]:
        """Message stored on the article; None when compliant."""
        return None if self.compliant else COMPLIANCE_FAILURE_MESSAGE


def evaluate_compliance(article: Article) -> ComplianceResult:
    """Check title and sanitized content length limits.

    ``reason`` names the first failed rule for logs; the stored message is
    always ``COMPLIANCE_FAILURE_MESSAGE``.
    """
    title_length = len(article.title or "")
    content_length = len(article.content or "")

    if title_length < MIN_TITLE_LENGTH:
        return ComplianceResult(False, f"title shorter than {MIN_TITLE_LENGTH} characters")
    if content_length < MIN_CONTENT_LENGTH:
        return ComplianceResult(False, f"content shorter than {MIN_CONTENT_LENGTH} characters")
    if content_length > MAX_CONTENT_LENGTH:
        return ComplianceResult(False, f"content longer than {MAX_CONTENT_LENGTH} characters")

    return ComplianceResult(True)
