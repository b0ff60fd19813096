"""
Workbook Submission Models
Expected pages, student page submissions and the per-student submission ledger
"""

from enum import Enum
from pydantic import BaseModel, Field, ConfigDict, AliasChoices, StrictBool
from typing import List, Optional, Dict
from datetime import datetime, timezone


# ==================== ASSIGNMENT / EXPECTED PAGES ====================

class Assignment(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str
    name: str = ""
    organization: Optional[str] = None
    status: str = "active"  # draft, active, closed
    totalPages: int = 0


class ExpectedPage(BaseModel):
    """One canonical page of a workbook"""
    model_config = ConfigDict(extra="ignore")
    pageNumber: int = Field(ge=1)
    fingerprint: Optional[str] = None  # Perceptual hash (hex); None means no ground truth
    thumbnailKey: Optional[str] = None
    createdAt: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ExpectedPageCreate(BaseModel):
    pageNumber: int = Field(ge=1)
    fingerprint: Optional[str] = Field(default=None, validation_alias=AliasChoices("fingerprint", "pHash"))
    thumbnailKey: Optional[str] = None


class ExpectedPagesRegister(BaseModel):
    pages: List[ExpectedPageCreate] = Field(min_length=1)


# ==================== SUBMISSION LEDGER ====================

class PageStatus(str, Enum):
    NOT_SUBMITTED = "not_submitted"
    PENDING_REVIEW = "pending_review"
    REJECTED = "rejected"
    PASSED = "passed"


class SubmittedPage(BaseModel):
    """A student's claimed instance of one page"""
    model_config = ConfigDict(extra="ignore")
    pageNumber: int
    fingerprint: Optional[str] = None
    imageKey: Optional[str] = None  # Opaque object-storage reference
    similarity: Optional[float] = None  # Last computed similarity, None until checked
    passed: bool = False
    manuallyReviewed: bool = False  # Locks `passed` against automated re-checks
    submittedAt: Optional[datetime] = None
    reviewedAt: Optional[datetime] = None
    reviewedBy: Optional[str] = None


class Submission(BaseModel):
    """
    Ledger for one (assignment, student) pair.

    `passedCount` is always derived from `submittedPages`; the ledger functions
    in services.submission_ledger are the only writers.
    """
    model_config = ConfigDict(extra="ignore")
    assignmentId: str
    studentId: str
    submittedPages: List[SubmittedPage] = []
    passedCount: int = 0
    totalPages: int = 0
    teacherComment: Optional[str] = None
    commentedAt: Optional[datetime] = None
    commentedBy: Optional[str] = None
    lastSubmittedAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    version: int = 0  # Optimistic concurrency token, 0 = never stored

    def pages_by_number(self) -> Dict[int, SubmittedPage]:
        return {p.pageNumber: p for p in self.submittedPages}


# ==================== MATCHING ====================

class PageMatch(BaseModel):
    """Matcher verdict for one submitted image"""
    model_config = ConfigDict(frozen=True)
    originalIndex: int
    pageNumber: Optional[int] = None
    similarity: Optional[float] = 0.0  # None when the page had no fingerprint to compare
    passed: bool = False


# ==================== REQUEST MODELS ====================

class ImageSubmission(BaseModel):
    fingerprint: Optional[str] = Field(default=None, validation_alias=AliasChoices("fingerprint", "pHash"))
    imageKey: Optional[str] = None


class SinglePageSubmit(BaseModel):
    fingerprint: Optional[str] = Field(default=None, validation_alias=AliasChoices("fingerprint", "pHash"))
    imageKey: Optional[str] = None


class BatchSubmit(BaseModel):
    images: List[ImageSubmission] = Field(min_length=1)


class PageVerdict(BaseModel):
    passed: StrictBool


class CommentUpdate(BaseModel):
    comment: Optional[str]  # Required key; null or "" removes the comment
