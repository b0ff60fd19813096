"""
Tests for versioned ledger writes in SubmissionStore (motor collections mocked)
"""
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import DuplicateKeyError

from models.submission_models import Submission
from services.exceptions import ConcurrentUpdateError
from services.submission_store import SubmissionStore

pytestmark = pytest.mark.asyncio


def _store():
    db = MagicMock()
    db.assignment_submissions.insert_one = AsyncMock()
    db.assignment_submissions.replace_one = AsyncMock(return_value=MagicMock(matched_count=1))
    db.assignment_submissions.find_one = AsyncMock(return_value=None)
    return SubmissionStore(db), db


async def test_new_ledger_is_inserted_at_version_one():
    store, db = _store()

    saved = await store.save_submission(Submission(assignmentId="hw-1", studentId="stu-1"))

    assert saved.version == 1
    doc = db.assignment_submissions.insert_one.await_args.args[0]
    assert doc["version"] == 1
    assert doc["assignmentId"] == "hw-1"
    db.assignment_submissions.replace_one.assert_not_awaited()


async def test_existing_ledger_replaced_on_read_version():
    store, db = _store()

    saved = await store.save_submission(Submission(assignmentId="hw-1", studentId="stu-1", version=4))

    assert saved.version == 5
    query, doc = db.assignment_submissions.replace_one.await_args.args
    assert query == {"assignmentId": "hw-1", "studentId": "stu-1", "version": 4}
    assert doc["version"] == 5


async def test_stale_version_raises():
    store, db = _store()
    db.assignment_submissions.replace_one.return_value = MagicMock(matched_count=0)

    with pytest.raises(ConcurrentUpdateError):
        await store.save_submission(Submission(assignmentId="hw-1", studentId="stu-1", version=2))


async def test_duplicate_creation_raises():
    store, db = _store()
    db.assignment_submissions.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

    with pytest.raises(ConcurrentUpdateError):
        await store.save_submission(Submission(assignmentId="hw-1", studentId="stu-1"))


async def test_missing_submission_returns_none():
    store, _ = _store()
    assert await store.get_submission("hw-1", "stu-1") is None
