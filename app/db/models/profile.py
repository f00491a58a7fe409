"""
User Profile Model
"""
from datetime import datetime

from pydantic import ConfigDict, Field

from app.db.models.base import StoredModel, utcnow

# fields an update payload can never change
PROTECTED_PROFILE_FIELDS = frozenset({"id", "email", "createdAt", "created_at", "updatedAt", "updated_at"})


class UserProfile(StoredModel):
    """Stored at user:{id}:profile; unknown fields written by clients are kept"""

    model_config = ConfigDict(extra="allow")

    id: str
    email: str
    name: str
    phone: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = None
