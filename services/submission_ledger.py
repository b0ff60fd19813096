"""
Submission Ledger

Pure transitions over a student's Submission record. Every function returns a
new Submission with passedCount recomputed from the page set; nothing here
touches the database.
"""
import logging
from datetime import datetime, timezone
from functools import reduce
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from models.submission_models import (
    ImageSubmission, PageMatch, PageStatus, Submission, SubmittedPage
)
from services.exceptions import NotFoundError
from services.hash_comparator import normalize_fingerprint

logger = logging.getLogger(__name__)


def build_image_key(assignment_id: str, student_id: str, page_number: int) -> str:
    """Default object-storage key for a submitted page photo"""
    return f"assignments/{assignment_id}/submissions/{student_id}/page-{page_number:03d}.jpg"


def new_submission(assignment_id: str, student_id: str, total_pages: int = 0) -> Submission:
    return Submission(assignmentId=assignment_id, studentId=student_id, totalPages=total_pages)


def count_passed(pages: Iterable[SubmittedPage]) -> int:
    return sum(1 for p in pages if p.passed)


def merge_pages(
    existing: Sequence[SubmittedPage],
    incoming: Sequence[SubmittedPage],
    respect_manual_review: bool = False,
) -> List[SubmittedPage]:
    """
    Fold incoming pages into the existing set, keyed by page number.

    Incoming entries replace existing ones unless `respect_manual_review` is
    set and the existing entry carries a reviewer decision.

    Returns:
        Pages sorted by page number, one per page number
    """
    def _merge_one(merged: Dict[int, SubmittedPage], page: SubmittedPage) -> Dict[int, SubmittedPage]:
        current = merged.get(page.pageNumber)
        if respect_manual_review and current is not None and current.manuallyReviewed:
            return merged
        return {**merged, page.pageNumber: page}

    merged = reduce(_merge_one, incoming, {p.pageNumber: p for p in existing})
    return [merged[number] for number in sorted(merged)]


def _with_pages(submission: Submission, pages: List[SubmittedPage], **updates) -> Submission:
    return submission.model_copy(update={
        "submittedPages": pages,
        "passedCount": count_passed(pages),
        **updates
    })


def apply_single_page(
    submission: Submission,
    page_number: int,
    fingerprint: Optional[str],
    image_key: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Submission:
    """
    Record one page submitted on its own.

    Always supersedes a prior entry for the page, including one a reviewer
    already decided on: this is the retry path for rejected pages. The page
    goes back to pending review.
    """
    now = now or datetime.now(timezone.utc)
    page = SubmittedPage(
        pageNumber=page_number,
        fingerprint=normalize_fingerprint(fingerprint),
        imageKey=image_key or build_image_key(submission.assignmentId, submission.studentId, page_number),
        similarity=None,
        passed=False,
        manuallyReviewed=False,
        submittedAt=now
    )
    pages = merge_pages(submission.submittedPages, [page])
    return _with_pages(submission, pages, lastSubmittedAt=now, updatedAt=now)


def apply_batch(
    submission: Submission,
    matches: Sequence[PageMatch],
    images: Sequence[ImageSubmission],
    now: Optional[datetime] = None,
) -> Tuple[Submission, List[SubmittedPage]]:
    """
    Merge matcher results for a batch upload (legacy path).

    Matched images are accepted with their computed similarity. The merge
    overwrites unconditionally, manual review decisions included.

    Returns:
        (updated submission, pages created from this batch)
    """
    now = now or datetime.now(timezone.utc)
    new_pages = []
    for match in matches:
        if not match.passed or match.pageNumber is None:
            continue
        image = images[match.originalIndex]
        new_pages.append(SubmittedPage(
            pageNumber=match.pageNumber,
            fingerprint=normalize_fingerprint(image.fingerprint),
            imageKey=image.imageKey or build_image_key(
                submission.assignmentId, submission.studentId, match.pageNumber
            ),
            similarity=match.similarity,
            passed=True,
            submittedAt=now
        ))

    existing = submission.pages_by_number()
    overwritten = [
        p.pageNumber for p in new_pages
        if p.pageNumber in existing and existing[p.pageNumber].manuallyReviewed
    ]
    if overwritten:
        logger.warning(
            f"Batch submission for {submission.assignmentId}/{submission.studentId} "
            f"replaced manually reviewed pages {overwritten}"
        )

    pages = merge_pages(submission.submittedPages, new_pages)
    return _with_pages(submission, pages, lastSubmittedAt=now, updatedAt=now), new_pages


def apply_verdict(
    submission: Submission,
    page_number: int,
    passed: bool,
    reviewer_id: Optional[str],
    now: Optional[datetime] = None,
) -> Submission:
    """Reviewer decision; the only transition that sets manuallyReviewed"""
    now = now or datetime.now(timezone.utc)
    current = submission.pages_by_number().get(page_number)
    if current is None:
        raise NotFoundError(f"Page {page_number} not found in submission")

    reviewed = current.model_copy(update={
        "passed": passed,
        "manuallyReviewed": True,
        "reviewedAt": now,
        "reviewedBy": reviewer_id
    })
    pages = merge_pages(submission.submittedPages, [reviewed])
    return _with_pages(submission, pages, updatedAt=now)


def apply_comment(
    submission: Submission,
    comment: Optional[str],
    reviewer_id: Optional[str],
    now: Optional[datetime] = None,
) -> Submission:
    """Set or clear the reviewer comment; page state is untouched"""
    now = now or datetime.now(timezone.utc)
    comment = comment.strip() if comment else None
    return submission.model_copy(update={
        "teacherComment": comment or None,
        "commentedAt": now if comment else None,
        "commentedBy": reviewer_id if comment else None,
        "updatedAt": now
    })


def derive_page_status(page: Optional[SubmittedPage]) -> PageStatus:
    """Reviewable status of a page, computed on read and never stored"""
    if page is None:
        return PageStatus.NOT_SUBMITTED
    if page.passed:
        return PageStatus.PASSED
    if page.similarity is not None or page.manuallyReviewed:
        return PageStatus.REJECTED
    return PageStatus.PENDING_REVIEW
