"""Request-scoped dependencies: caller identity and the persistence boundary"""
from datetime import datetime, timezone

from fastapi import Depends, HTTPException, Request

from models.user_models import User
from services.submission_store import SubmissionStore
from utils.database import db


def get_store() -> SubmissionStore:
    return SubmissionStore(db)


async def get_current_user(request: Request) -> User:
    session_token = request.cookies.get("session_token")
    if not session_token:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            session_token = auth_header.replace("Bearer ", "")

    if not session_token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    session = await db.user_sessions.find_one({"session_token": session_token}, {"_id": 0})
    if not session:
        raise HTTPException(status_code=401, detail="Invalid session")

    expires_at = session["expires_at"]
    if isinstance(expires_at, str):
        expires_at = datetime.fromisoformat(expires_at)
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at < datetime.now(timezone.utc):
        raise HTTPException(status_code=401, detail="Session expired")

    user_doc = await db.users.find_one({"user_id": session["user_id"]}, {"_id": 0})
    if not user_doc:
        raise HTTPException(status_code=404, detail="User not found")

    if isinstance(user_doc.get('created_at'), str):
        user_doc['created_at'] = datetime.fromisoformat(user_doc['created_at'])

    return User(**user_doc)


async def require_reviewer(user: User = Depends(get_current_user)):
    if not user.is_reviewer:
        raise HTTPException(status_code=403, detail="Reviewer access required")
    return user


async def require_student(user: User = Depends(get_current_user)):
    if user.role != "student":
        raise HTTPException(status_code=403, detail="This API is for students only")
    if not user.student_id:
        raise HTTPException(status_code=400, detail="Student ID not found in user profile")
    return user
