from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from .site import SiteSummary
from .user import UserResponse


class LogoutResponse(BaseModel):
    success: bool = Field(..., description="True when the session cookie is cleared.")


class MeResponse(UserResponse):
    sites: List[SiteSummary] = Field(
        default_factory=list, description="Sites the signed-in user is a member of."
    )
