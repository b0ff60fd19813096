"""Domain errors raised by the reconciliation services"""
from fastapi import HTTPException


class SubmissionError(Exception):
    """Base class for reconciliation errors"""


class NotFoundError(SubmissionError, LookupError):
    """Assignment, submission or submitted page does not exist"""


class InvalidInputError(SubmissionError, ValueError):
    """Request data that cannot be reconciled (bad page number, empty batch)"""


class AssignmentInactiveError(InvalidInputError):
    """Student tried to submit to an assignment that is not accepting work"""


class ConcurrentUpdateError(SubmissionError):
    """The ledger changed between read and write; nothing was saved"""


def to_http_exception(exc: SubmissionError) -> HTTPException:
    """Map a domain error onto the HTTP status the routes report"""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, AssignmentInactiveError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, InvalidInputError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, ConcurrentUpdateError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=500, detail="Failed to process submission")
