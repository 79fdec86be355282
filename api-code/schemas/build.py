from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from domain import BuildState
from models import Build, BuildLog, Site, User
from services.build_links import build_view_link

from .site import SiteSummary
from .user import UserSummary


class BuildCreateRequest(BaseModel):
    site_id: str = Field(..., min_length=1, description="Site to build.")
    build_id: Optional[str] = Field(default=None, description="Rebuild this earlier build.")
    branch: Optional[str] = Field(default=None, description="Branch to build.")
    sha: Optional[str] = Field(default=None, description="Commit to build on the branch.")

    @model_validator(mode="after")
    def _require_target(self) -> "BuildCreateRequest":
        if not self.build_id and not self.branch:
            raise ValueError("Either build_id or branch is required")
        return self


class BuildStatusRequest(BaseModel):
    status: str = Field(..., description="processing, skipped, error or success.")
    message: Optional[str] = Field(default=None, description="Base64 encoded status message.")


class BuildLogRequest(BaseModel):
    output: Optional[str] = Field(default=None, description="Base64 encoded log output.")
    source: Optional[str] = Field(default=None, description="Build step producing the output.")


class BuildSourceResponse(BaseModel):
    """What the build container checks out, read when the build starts."""

    id: str
    owner: str
    repository: str
    branch: Optional[str] = None
    commit_sha: Optional[str] = Field(default=None, description="Empty means the branch head.")
    github_token: Optional[str] = Field(default=None, description="Token of the user the build runs for.")

    @classmethod
    def from_build(cls, build: Build, site: Site, user: Optional[User] = None) -> "BuildSourceResponse":
        return cls(
            id=build.build_id,
            owner=site.owner,
            repository=site.repository,
            branch=build.branch,
            commit_sha=build.commit_sha,
            github_token=user.github_access_token if user else None,
        )


class BuildResponse(BaseModel):
    id: str = Field(..., description="Build identifier.")
    branch: Optional[str] = None
    commit_sha: Optional[str] = None
    state: BuildState
    error: Optional[str] = None
    url: Optional[str] = None
    view_link: Optional[str] = Field(default=None, description="Where this build is viewable.")
    site: SiteSummary
    user: Optional[UserSummary] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_build(cls, build: Build, site: Site, user: Optional[User] = None) -> "BuildResponse":
        return cls(
            id=build.build_id,
            branch=build.branch,
            commit_sha=build.commit_sha,
            state=build.state,
            error=build.error,
            url=build.url,
            view_link=build_view_link(build, site) if build.branch else None,
            site=SiteSummary.from_site(site),
            user=UserSummary.from_user(user) if user else None,
            created_at=build.created_at,
            updated_at=build.updated_at,
            completed_at=build.completed_at,
        )


class BuildLogResponse(BaseModel):
    id: str
    build_id: str
    output: Optional[str] = None
    source: str
    created_at: datetime

    @classmethod
    def from_log(cls, log: BuildLog) -> "BuildLogResponse":
        return cls(
            id=log.log_id,
            build_id=log.build_id,
            output=log.output,
            source=log.source,
            created_at=log.created_at,
        )
