"""Submission Reconciliation Service - read, reconcile and store one student's ledger per request"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from models.submission_models import (
    Assignment, ExpectedPage, ExpectedPageCreate, ImageSubmission,
    PageStatus, Submission, SubmittedPage
)
from services.exceptions import AssignmentInactiveError, InvalidInputError, NotFoundError
from services.hash_comparator import normalize_fingerprint
from services.page_matcher import SubmittedImage, determine_start_page, match_images_to_pages
from services.similarity_recheck import recheck_pages
from services.submission_ledger import (
    apply_batch, apply_comment, apply_single_page, apply_verdict,
    derive_page_status, new_submission
)
from services.submission_store import SubmissionStore
from utils.config import MAX_BATCH_IMAGES

logger = logging.getLogger(__name__)


def _round(value: Optional[float], digits: int = 4) -> Optional[float]:
    return round(value, digits) if value is not None else None


def _total_pages(assignment: Assignment, expected_pages: Sequence[ExpectedPage]) -> int:
    return assignment.totalPages or len(expected_pages)


async def _load_assignment(store: SubmissionStore, assignment_id: str, require_active: bool = False) -> Assignment:
    assignment = await store.get_assignment(assignment_id)
    if not assignment:
        raise NotFoundError("Assignment not found")
    if require_active and assignment.status != "active":
        raise AssignmentInactiveError("This assignment is not active")
    return assignment


async def _load_submission(store: SubmissionStore, assignment_id: str, student_id: str) -> Submission:
    submission = await store.get_submission(assignment_id, student_id)
    if not submission:
        raise NotFoundError("No submission found for this student")
    return submission


def _page_view(page_number: int, page: Optional[SubmittedPage]) -> Dict[str, Any]:
    return {
        "pageNumber": page_number,
        "status": derive_page_status(page).value,
        "submitted": page is not None,
        "passed": page.passed if page else False,
        "manuallyReviewed": page.manuallyReviewed if page else False,
        "similarity": _round(page.similarity) if page else None,
        "submittedAt": page.submittedAt if page else None,
        "reviewedAt": page.reviewedAt if page else None,
        "reviewedBy": page.reviewedBy if page else None,
        "imageKey": page.imageKey if page else None,
    }


# ==================== STUDENT OPERATIONS ====================

async def submit_single_page(
    store: SubmissionStore,
    assignment_id: str,
    student_id: str,
    page_number: int,
    fingerprint: Optional[str],
    image_key: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Store one page photo for an explicitly chosen page.

    The page is saved pending review (no similarity yet) and replaces any
    earlier entry for that page number.
    """
    assignment = await _load_assignment(store, assignment_id, require_active=True)
    expected_pages = await store.get_expected_pages(assignment_id)
    total_pages = _total_pages(assignment, expected_pages)

    if page_number is None or page_number < 1:
        raise InvalidInputError("Page number must be a positive integer")
    if expected_pages:
        if page_number not in {p.pageNumber for p in expected_pages}:
            raise InvalidInputError(f"Page {page_number} does not exist in this assignment")
    elif page_number > total_pages:
        raise InvalidInputError(f"Page {page_number} is out of range (total pages: {total_pages})")

    submission = await store.get_submission(assignment_id, student_id) or new_submission(assignment_id, student_id)
    updated = apply_single_page(submission, page_number, fingerprint, image_key)
    saved = await store.save_submission(updated.model_copy(update={"totalPages": total_pages}))

    logger.info(
        f"Saved page {page_number} for assignment {assignment_id}, student {student_id} "
        f"({len(saved.submittedPages)} submitted, {saved.passedCount} passed)"
    )

    return {
        "savedPageNumber": page_number,
        "totalSubmitted": len(saved.submittedPages),
        "passedCount": saved.passedCount,
        "totalPages": total_pages
    }


async def submit_batch(
    store: SubmissionStore,
    assignment_id: str,
    student_id: str,
    images: Sequence[ImageSubmission],
) -> Dict[str, Any]:
    """
    Match a batch of page photos to the workbook and merge accepted pages.

    Legacy path: accepted pages overwrite existing entries even when a
    reviewer already decided on them.
    """
    if not images:
        raise InvalidInputError("At least one image is required")
    if len(images) > MAX_BATCH_IMAGES:
        raise InvalidInputError(f"At most {MAX_BATCH_IMAGES} images can be submitted at once")

    assignment = await _load_assignment(store, assignment_id, require_active=True)
    expected_pages = await store.get_expected_pages(assignment_id)
    total_pages = _total_pages(assignment, expected_pages)

    submission = await store.get_submission(assignment_id, student_id) or new_submission(assignment_id, student_id)
    start_page = determine_start_page(submission.submittedPages, total_pages)

    matches = match_images_to_pages(
        [SubmittedImage(idx, normalize_fingerprint(img.fingerprint)) for idx, img in enumerate(images)],
        expected_pages,
        start_page=start_page
    )

    updated, new_pages = apply_batch(submission, matches, images)
    saved = await store.save_submission(updated.model_copy(update={"totalPages": total_pages}))

    not_matched = len(images) - len(new_pages)
    if not_matched:
        logger.warning(
            f"{not_matched} of {len(images)} images unmatched for assignment {assignment_id}, "
            f"student {student_id} (start page {start_page})"
        )
    logger.info(
        f"Batch merged for assignment {assignment_id}, student {student_id}: "
        f"{len(new_pages)} matched, {saved.passedCount}/{total_pages} passed"
    )

    return {
        "results": [
            {
                "originalIndex": m.originalIndex,
                "pageNumber": m.pageNumber,
                "similarity": _round(m.similarity, 2),
                "passed": m.passed
            }
            for m in matches
        ],
        "summary": {
            "submitted": len(new_pages),
            "matched": len(new_pages),
            "notMatched": not_matched,
            "totalPassedCount": saved.passedCount,
            "totalPages": total_pages,
            "isComplete": total_pages > 0 and saved.passedCount >= total_pages
        }
    }


async def get_student_view(store: SubmissionStore, assignment_id: str, student_id: str) -> Dict[str, Any]:
    """Per-page status of one student's workbook, unsubmitted pages included"""
    assignment = await _load_assignment(store, assignment_id)
    expected_pages = await store.get_expected_pages(assignment_id)
    submission = await store.get_submission(assignment_id, student_id) or new_submission(assignment_id, student_id)

    submitted = submission.pages_by_number()
    thumbnails = {p.pageNumber: p.thumbnailKey for p in expected_pages}
    page_numbers = sorted(set(thumbnails) | set(submitted))

    pages = []
    for number in page_numbers:
        view = _page_view(number, submitted.get(number))
        view["thumbnailKey"] = thumbnails.get(number)
        pages.append(view)

    return {
        "id": assignment.id,
        "name": assignment.name,
        "totalPages": _total_pages(assignment, expected_pages),
        "passedCount": submission.passedCount,
        "teacherComment": submission.teacherComment,
        "commentedAt": submission.commentedAt,
        "lastSubmittedAt": submission.lastSubmittedAt,
        "pages": pages
    }


# ==================== REVIEWER OPERATIONS ====================

async def recheck_similarity(store: SubmissionStore, assignment_id: str, student_id: str) -> Dict[str, Any]:
    """Re-evaluate every page not locked by a reviewer against the canonical fingerprints"""
    assignment = await _load_assignment(store, assignment_id)
    submission = await _load_submission(store, assignment_id, student_id)
    if not submission.submittedPages:
        raise NotFoundError("No submission found for this student")

    expected_pages = await store.get_expected_pages(assignment_id)
    outcome = recheck_pages(submission, expected_pages)
    submission = outcome.submission
    if outcome.changed:
        submission = await store.save_submission(submission)

    return {
        "studentId": student_id,
        "assignmentId": assignment_id,
        "results": [
            {
                "pageNumber": p.pageNumber,
                "similarity": _round(p.similarity),
                "passed": p.passed,
                "manuallyReviewed": p.manuallyReviewed
            }
            for p in submission.submittedPages
        ],
        "passedCount": submission.passedCount,
        "totalSubmitted": len(submission.submittedPages),
        "totalPages": _total_pages(assignment, expected_pages)
    }


async def set_page_verdict(
    store: SubmissionStore,
    assignment_id: str,
    student_id: str,
    page_number: int,
    passed: bool,
    reviewer_id: Optional[str],
) -> Dict[str, Any]:
    """Approve or reject one page; locks it against automated re-checks"""
    if not isinstance(passed, bool):
        raise InvalidInputError("passed field is required and must be boolean")

    assignment = await _load_assignment(store, assignment_id)
    expected_pages = await store.get_expected_pages(assignment_id)
    submission = await _load_submission(store, assignment_id, student_id)
    saved = await store.save_submission(apply_verdict(submission, page_number, passed, reviewer_id))

    logger.info(
        f"Submission status updated: assignment={assignment_id}, student={student_id}, "
        f"page={page_number}, passed={passed} by {reviewer_id}"
    )

    return {
        "assignmentId": assignment_id,
        "studentId": student_id,
        "pageNumber": page_number,
        "passed": passed,
        "passedCount": saved.passedCount,
        "totalPages": _total_pages(assignment, expected_pages)
    }


async def add_comment(
    store: SubmissionStore,
    assignment_id: str,
    student_id: str,
    comment: Optional[str],
    reviewer_id: Optional[str],
) -> Dict[str, Any]:
    """Set or clear the reviewer comment, creating an empty ledger if needed"""
    assignment = await _load_assignment(store, assignment_id)
    submission = await store.get_submission(assignment_id, student_id) or new_submission(
        assignment_id, student_id, assignment.totalPages
    )
    saved = await store.save_submission(apply_comment(submission, comment, reviewer_id))

    return {
        "comment": saved.teacherComment,
        "commentedAt": saved.commentedAt,
        "commentedBy": saved.commentedBy
    }


async def list_submissions(store: SubmissionStore, assignment_id: str) -> Dict[str, Any]:
    """All ledgers of an assignment with derived per-page statuses"""
    assignment = await _load_assignment(store, assignment_id)
    submissions = await store.list_submissions(assignment_id)
    total_pages = _total_pages(assignment, await store.get_expected_pages(assignment_id))

    results = []
    for submission in submissions:
        pages = [_page_view(p.pageNumber, p) for p in submission.submittedPages]
        status_counts = {status.value: 0 for status in PageStatus if status != PageStatus.NOT_SUBMITTED}
        for page in pages:
            status_counts[page["status"]] += 1

        results.append({
            "studentId": submission.studentId,
            "passedCount": submission.passedCount,
            "totalSubmitted": len(submission.submittedPages),
            "totalPages": total_pages,
            "isComplete": total_pages > 0 and submission.passedCount >= total_pages,
            "statusCounts": status_counts,
            "teacherComment": submission.teacherComment,
            "lastSubmittedAt": submission.lastSubmittedAt,
            "pages": pages
        })

    return {"assignmentId": assignment_id, "totalPages": total_pages, "submissions": results}


async def register_expected_pages(
    store: SubmissionStore,
    assignment_id: str,
    pages: Sequence[ExpectedPageCreate],
) -> Dict[str, Any]:
    """Replace the assignment's canonical page set (workbook re-upload)"""
    if not pages:
        raise InvalidInputError("Pages data is required")

    numbers = [p.pageNumber for p in pages]
    if len(set(numbers)) != len(numbers):
        raise InvalidInputError("Page numbers must be unique")

    await _load_assignment(store, assignment_id)

    now = datetime.now(timezone.utc)
    expected: List[ExpectedPage] = [
        ExpectedPage(
            pageNumber=p.pageNumber,
            fingerprint=normalize_fingerprint(p.fingerprint),
            thumbnailKey=p.thumbnailKey,
            createdAt=now
        )
        for p in sorted(pages, key=lambda p: p.pageNumber)
    ]
    total_pages = await store.replace_expected_pages(assignment_id, expected)

    missing = sum(1 for p in expected if not p.fingerprint)
    if missing:
        logger.warning(f"Assignment {assignment_id}: {missing} pages registered without fingerprint")
    logger.info(f"Registered {total_pages} pages for assignment {assignment_id}")

    return {"assignmentId": assignment_id, "totalPages": total_pages}
