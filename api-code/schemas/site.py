from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from domain import SiteBuildStatus, SiteEngine
from models import Site, User

from .user import UserSummary


class SiteCreateRequest(BaseModel):
    owner: str = Field(..., min_length=1, description="GitHub user or organization.")
    repository: str = Field(..., min_length=1, description="Repository name.")
    engine: Optional[SiteEngine] = Field(default=None, description="Static site generator.")
    default_branch: Optional[str] = Field(
        default=None, description="Branch published as the live site. Defaults to GitHub's."
    )


class SiteUpdateRequest(BaseModel):
    default_branch: Optional[str] = None
    demo_branch: Optional[str] = None
    domain: Optional[str] = None
    demo_domain: Optional[str] = None
    engine: Optional[SiteEngine] = None
    config: Optional[Dict[str, Any]] = None
    default_config: Optional[Dict[str, Any]] = None
    demo_config: Optional[Dict[str, Any]] = None
    preview_config: Optional[Dict[str, Any]] = None


class SiteUserAddRequest(BaseModel):
    owner: str = Field(..., min_length=1)
    repository: str = Field(..., min_length=1)


class SiteSummary(BaseModel):
    id: str
    owner: str
    repository: str

    @classmethod
    def from_site(cls, site: Site) -> "SiteSummary":
        return cls(id=site.site_id, owner=site.owner, repository=site.repository)


class SiteResponse(SiteSummary):
    default_branch: str
    demo_branch: Optional[str] = None
    domain: Optional[str] = None
    demo_domain: Optional[str] = None
    engine: SiteEngine
    config: Dict[str, Any] = Field(default_factory=dict)
    default_config: Dict[str, Any] = Field(default_factory=dict)
    demo_config: Dict[str, Any] = Field(default_factory=dict)
    preview_config: Dict[str, Any] = Field(default_factory=dict)
    build_status: SiteBuildStatus
    published_at: Optional[datetime] = None
    repo_last_verified: Optional[datetime] = None
    s3_service_name: str
    aws_bucket_name: str
    aws_bucket_region: str
    subdomain: Optional[str] = None
    site_url: str = Field(..., description="Where the default branch is published.")
    demo_url: Optional[str] = Field(default=None, description="Where the demo branch is published.")
    users: List[UserSummary] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_site(cls, site: Site, members: Optional[List[User]] = None) -> "SiteResponse":
        return cls(
            id=site.site_id,
            owner=site.owner,
            repository=site.repository,
            default_branch=site.default_branch,
            demo_branch=site.demo_branch,
            domain=site.domain,
            demo_domain=site.demo_domain,
            engine=site.engine,
            config=site.config,
            default_config=site.default_config,
            demo_config=site.demo_config,
            preview_config=site.preview_config,
            build_status=site.build_status,
            published_at=site.published_at,
            repo_last_verified=site.repo_last_verified,
            s3_service_name=site.s3_service_name,
            aws_bucket_name=site.aws_bucket_name,
            aws_bucket_region=site.aws_bucket_region,
            subdomain=site.subdomain,
            site_url=site.site_url(),
            demo_url=site.demo_url() if site.demo_branch else None,
            users=[UserSummary.from_user(member) for member in members or []],
            created_at=site.created_at,
            updated_at=site.updated_at,
        )
