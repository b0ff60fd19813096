from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

REVIEWER_ROLES = ["admin", "org_admin", "teacher"]


class User(BaseModel):
    model_config = ConfigDict(extra="ignore")
    user_id: str
    email: str
    name: str
    role: str  # student, teacher, org_admin or admin
    organization: Optional[str] = None
    student_id: Optional[str] = None  # Set for student accounts only
    created_at: Optional[datetime] = None

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES

    def can_access_organization(self, organization: Optional[str]) -> bool:
        """Global admins see every organization; everyone else only their own"""
        if self.role == "admin":
            return True
        return self.organization is not None and self.organization == organization
