"""Shared fixtures: fingerprints and an in-memory stand-in for the Mongo store"""
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from models.submission_models import Assignment, ExpectedPage, Submission
from services.exceptions import ConcurrentUpdateError

# Pairwise similarity of F1/F2/F3 stays below the sequential threshold (0.5)
F1 = "0000000000000000"
F2 = "fffffffffff00000"
F3 = "00000fffffffffff"
F3_NOISY = "00000ffffffffffc"  # 2 bits away from F3


class InMemorySubmissionStore:
    """Same contract as SubmissionStore, including versioned writes"""

    def __init__(self):
        self.assignments: Dict[str, dict] = {}
        self.pages: Dict[str, List[dict]] = {}
        self.submissions: Dict[Tuple[str, str], dict] = {}
        self.fail_saves = False
        self.save_count = 0

    def add_assignment(
        self,
        assignment_id: str,
        fingerprints: Sequence[Optional[str]] = (),
        organization: str = "org-1",
        status: str = "active",
    ):
        self.assignments[assignment_id] = Assignment(
            id=assignment_id,
            name=f"Workbook {assignment_id}",
            organization=organization,
            status=status,
            totalPages=len(fingerprints)
        ).model_dump()
        self.pages[assignment_id] = [
            ExpectedPage(pageNumber=idx + 1, fingerprint=fp).model_dump()
            for idx, fp in enumerate(fingerprints)
        ]

    def stored(self, assignment_id: str, student_id: str) -> Optional[Submission]:
        doc = self.submissions.get((assignment_id, student_id))
        return Submission(**doc) if doc else None

    async def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        doc = self.assignments.get(assignment_id)
        return Assignment(**doc) if doc else None

    async def get_expected_pages(self, assignment_id: str) -> List[ExpectedPage]:
        docs = sorted(self.pages.get(assignment_id, []), key=lambda d: d["pageNumber"])
        return [ExpectedPage(**doc) for doc in docs]

    async def replace_expected_pages(self, assignment_id: str, pages: Sequence[ExpectedPage]) -> int:
        self.pages[assignment_id] = [p.model_dump() for p in pages]
        self.assignments[assignment_id]["totalPages"] = len(pages)
        return len(pages)

    async def get_submission(self, assignment_id: str, student_id: str) -> Optional[Submission]:
        return self.stored(assignment_id, student_id)

    async def list_submissions(self, assignment_id: str) -> List[Submission]:
        return [
            Submission(**doc)
            for (a_id, _), doc in sorted(self.submissions.items())
            if a_id == assignment_id
        ]

    async def save_submission(self, submission: Submission) -> Submission:
        if self.fail_saves:
            raise RuntimeError("write failed")
        key = (submission.assignmentId, submission.studentId)
        current = self.submissions.get(key)
        current_version = current["version"] if current else 0
        if submission.version != current_version:
            raise ConcurrentUpdateError("Submission was modified by another request")
        stored = submission.model_copy(update={"version": submission.version + 1})
        self.submissions[key] = stored.model_dump()
        self.save_count += 1
        return stored


@pytest.fixture
def store():
    store = InMemorySubmissionStore()
    store.add_assignment("hw-1", [F1, F2, F3])
    return store
