"""Reviewer routes for workbook pages and student submissions"""
from fastapi import APIRouter, HTTPException, Depends

from models.submission_models import CommentUpdate, ExpectedPagesRegister, PageVerdict
from models.user_models import User
from services.exceptions import SubmissionError, to_http_exception
from services import submission_service
from services.submission_store import SubmissionStore
from utils.dependencies import get_store, require_reviewer

router = APIRouter(prefix="/assignments", tags=["assignments"])


async def _check_organization(store: SubmissionStore, assignment_id: str, user: User):
    assignment = await store.get_assignment(assignment_id)
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    if not user.can_access_organization(assignment.organization):
        raise HTTPException(status_code=403, detail="Access denied")


@router.put("/{assignment_id}/pages")
async def register_pages(
    assignment_id: str,
    body: ExpectedPagesRegister,
    user: User = Depends(require_reviewer),
    store: SubmissionStore = Depends(get_store)
):
    """Register (or replace) the canonical pages of a workbook"""
    await _check_organization(store, assignment_id, user)
    try:
        result = await submission_service.register_expected_pages(store, assignment_id, body.pages)
    except SubmissionError as e:
        raise to_http_exception(e)
    return {"message": "Pages registered", **result}


@router.get("/{assignment_id}/submissions")
async def get_submissions(
    assignment_id: str,
    user: User = Depends(require_reviewer),
    store: SubmissionStore = Depends(get_store)
):
    await _check_organization(store, assignment_id, user)
    try:
        return await submission_service.list_submissions(store, assignment_id)
    except SubmissionError as e:
        raise to_http_exception(e)


@router.post("/{assignment_id}/submissions/{student_id}/check-similarity")
async def check_similarity(
    assignment_id: str,
    student_id: str,
    user: User = Depends(require_reviewer),
    store: SubmissionStore = Depends(get_store)
):
    """Compare submitted pages with the originals; manually reviewed pages are left alone"""
    await _check_organization(store, assignment_id, user)
    try:
        return await submission_service.recheck_similarity(store, assignment_id, student_id)
    except SubmissionError as e:
        raise to_http_exception(e)


@router.put("/{assignment_id}/submissions/{student_id}/pages/{page_number}")
async def update_page_status(
    assignment_id: str,
    student_id: str,
    page_number: int,
    body: PageVerdict,
    user: User = Depends(require_reviewer),
    store: SubmissionStore = Depends(get_store)
):
    """Approve or reject a submitted page"""
    await _check_organization(store, assignment_id, user)
    try:
        result = await submission_service.set_page_verdict(
            store, assignment_id, student_id, page_number, body.passed, user.email
        )
    except SubmissionError as e:
        raise to_http_exception(e)
    return {"message": "Page approved" if body.passed else "Page rejected", **result}


@router.put("/{assignment_id}/submissions/{student_id}/comment")
async def update_comment(
    assignment_id: str,
    student_id: str,
    body: CommentUpdate,
    user: User = Depends(require_reviewer),
    store: SubmissionStore = Depends(get_store)
):
    await _check_organization(store, assignment_id, user)
    try:
        result = await submission_service.add_comment(
            store, assignment_id, student_id, body.comment, user.email
        )
    except SubmissionError as e:
        raise to_http_exception(e)
    return {"message": "Comment added successfully" if result["comment"] else "Comment removed", **result}
