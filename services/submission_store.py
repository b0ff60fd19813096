"""MongoDB persistence for assignments, expected pages and submission ledgers"""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from models.submission_models import Assignment, ExpectedPage, Submission
from services.exceptions import ConcurrentUpdateError

logger = logging.getLogger(__name__)


class SubmissionStore:
    """
    Whole-document access to the submission ledger.

    Ledgers are written with a conditional replace on their `version`, so a
    write based on a stale read fails with ConcurrentUpdateError instead of
    silently clobbering a concurrent update.
    """

    def __init__(self, db):
        self.db = db

    async def ensure_indexes(self):
        await self.db.assignment_submissions.create_index(
            [("assignmentId", ASCENDING), ("studentId", ASCENDING)], unique=True
        )
        await self.db.assignment_pages.create_index(
            [("assignmentId", ASCENDING), ("pageNumber", ASCENDING)], unique=True
        )
        await self.db.assignments.create_index("id", unique=True)

    # ==================== ASSIGNMENTS ====================

    async def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        doc = await self.db.assignments.find_one({"id": assignment_id}, {"_id": 0})
        return Assignment(**doc) if doc else None

    async def get_expected_pages(self, assignment_id: str) -> List[ExpectedPage]:
        docs = await self.db.assignment_pages.find(
            {"assignmentId": assignment_id},
            {"_id": 0}
        ).sort("pageNumber", 1).to_list(None)
        return [ExpectedPage(**doc) for doc in docs]

    async def replace_expected_pages(self, assignment_id: str, pages: Sequence[ExpectedPage]) -> int:
        """Swap in a new page set and update the assignment's page count"""
        await self.db.assignment_pages.delete_many({"assignmentId": assignment_id})
        if pages:
            await self.db.assignment_pages.insert_many([
                {"assignmentId": assignment_id, **page.model_dump()} for page in pages
            ])
        await self.db.assignments.update_one(
            {"id": assignment_id},
            {"$set": {"totalPages": len(pages), "updatedAt": datetime.now(timezone.utc)}}
        )
        return len(pages)

    # ==================== SUBMISSIONS ====================

    async def get_submission(self, assignment_id: str, student_id: str) -> Optional[Submission]:
        doc = await self.db.assignment_submissions.find_one(
            {"assignmentId": assignment_id, "studentId": student_id},
            {"_id": 0}
        )
        return Submission(**doc) if doc else None

    async def list_submissions(self, assignment_id: str) -> List[Submission]:
        docs = await self.db.assignment_submissions.find(
            {"assignmentId": assignment_id},
            {"_id": 0}
        ).sort("studentId", 1).to_list(None)
        return [Submission(**doc) for doc in docs]

    async def save_submission(self, submission: Submission) -> Submission:
        """
        Insert a new ledger or replace the stored one if it is still at the
        version that was read.

        Returns:
            The submission as stored, with its version bumped
        """
        stored = submission.model_copy(update={"version": submission.version + 1})
        doc = stored.model_dump(mode="python")
        key = {"assignmentId": submission.assignmentId, "studentId": submission.studentId}

        if submission.version == 0:
            try:
                await self.db.assignment_submissions.insert_one(doc)
            except DuplicateKeyError:
                logger.warning(f"Ledger {key} created concurrently, rejecting write")
                raise ConcurrentUpdateError("Submission was created by another request")
            return stored

        result = await self.db.assignment_submissions.replace_one(
            {**key, "version": submission.version},
            doc
        )
        if result.matched_count == 0:
            logger.warning(f"Ledger {key} changed since version {submission.version}, rejecting write")
            raise ConcurrentUpdateError("Submission was modified by another request")
        return stored
