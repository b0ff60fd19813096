"""Similarity re-check of a student's submitted pages against the canonical fingerprints"""
import logging
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional, Sequence

from models.submission_models import ExpectedPage, Submission, SubmittedPage
from services.hash_comparator import calculate_similarity
from services.submission_ledger import count_passed
from utils.config import HASH_BITS, SIMILARITY_THRESHOLD

logger = logging.getLogger(__name__)


class RecheckOutcome(NamedTuple):
    submission: Submission
    changed: bool


def _recheck_page(
    page: SubmittedPage,
    expected_fingerprint: Optional[str],
    threshold: float,
    hash_bits: int,
) -> SubmittedPage:
    if page.manuallyReviewed:
        return page
    if not expected_fingerprint or not page.fingerprint:
        # Nothing to compare against; keep the previous verdict
        return page

    similarity = calculate_similarity(page.fingerprint, expected_fingerprint, hash_bits)
    passed = similarity >= threshold
    if similarity == page.similarity and passed == page.passed:
        return page
    return page.model_copy(update={"similarity": similarity, "passed": passed})


def recheck_pages(
    submission: Submission,
    expected_pages: Sequence[ExpectedPage],
    threshold: float = SIMILARITY_THRESHOLD,
    hash_bits: int = HASH_BITS,
    now: Optional[datetime] = None,
) -> RecheckOutcome:
    """
    Recompute the automatic verdict of every page a reviewer has not locked.

    Manually reviewed pages keep their passed/similarity values. The returned
    submission is the input object itself when nothing changed, so running
    the check twice in a row is a no-op the second time.
    """
    expected = {p.pageNumber: p.fingerprint for p in expected_pages}
    pages: List[SubmittedPage] = [
        _recheck_page(page, expected.get(page.pageNumber), threshold, hash_bits)
        for page in submission.submittedPages
    ]

    changed = any(new is not old for new, old in zip(pages, submission.submittedPages))
    if not changed:
        return RecheckOutcome(submission, False)

    now = now or datetime.now(timezone.utc)
    updated = submission.model_copy(update={
        "submittedPages": pages,
        "passedCount": count_passed(pages),
        "updatedAt": now
    })
    logger.info(
        f"Re-check updated {updated.assignmentId}/{updated.studentId}: "
        f"passed {submission.passedCount} -> {updated.passedCount}"
    )
    return RecheckOutcome(updated, True)
