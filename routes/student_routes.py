"""Student routes for viewing and submitting workbook pages"""
from fastapi import APIRouter, HTTPException, Depends

from models.submission_models import BatchSubmit, SinglePageSubmit
from models.user_models import User
from services.exceptions import SubmissionError, to_http_exception
from services import submission_service
from services.submission_store import SubmissionStore
from utils.dependencies import get_store, require_student

router = APIRouter(prefix="/student/assignments", tags=["student"])


async def _check_organization(store: SubmissionStore, assignment_id: str, user: User):
    assignment = await store.get_assignment(assignment_id)
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    if assignment.organization != user.organization:
        raise HTTPException(status_code=403, detail="Access denied")


@router.get("/{assignment_id}")
async def get_assignment_detail(
    assignment_id: str,
    user: User = Depends(require_student),
    store: SubmissionStore = Depends(get_store)
):
    await _check_organization(store, assignment_id, user)
    try:
        return await submission_service.get_student_view(store, assignment_id, user.student_id)
    except SubmissionError as e:
        raise to_http_exception(e)


@router.post("/{assignment_id}/pages/{page_number}")
async def submit_page(
    assignment_id: str,
    page_number: int,
    body: SinglePageSubmit,
    user: User = Depends(require_student),
    store: SubmissionStore = Depends(get_store)
):
    """Submit a photo for one specific page; it waits for review"""
    await _check_organization(store, assignment_id, user)
    try:
        result = await submission_service.submit_single_page(
            store, assignment_id, user.student_id, page_number, body.fingerprint, body.imageKey
        )
    except SubmissionError as e:
        raise to_http_exception(e)
    return {"message": "Page submitted successfully", **result}


@router.post("/{assignment_id}/submit")
async def submit_pages(
    assignment_id: str,
    body: BatchSubmit,
    user: User = Depends(require_student),
    store: SubmissionStore = Depends(get_store)
):
    """Submit several page photos; each is matched to a workbook page by fingerprint"""
    await _check_organization(store, assignment_id, user)
    try:
        result = await submission_service.submit_batch(store, assignment_id, user.student_id, body.images)
    except SubmissionError as e:
        raise to_http_exception(e)
    return {"message": "Submission processed successfully", **result}
