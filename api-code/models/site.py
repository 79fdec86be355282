from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from domain.build_states import SiteBuildStatus, SiteEngine
from domain.validators import (
    INVALID_BRANCH_MESSAGE,
    INVALID_URL_MESSAGE,
    is_https_url,
    is_valid_branch,
    with_trailing_slash,
)

from .base import DocumentUpdate, MongoModel, Timestamped


def generate_s3_service_name(owner: str, repository: str) -> str:
    return f"o-{owner}-r-{repository}".lower()


class Site(MongoModel, Timestamped):
    id_field: ClassVar[str] = "site_id"

    site_id: str = Field(..., alias="_id", description="Primary identifier (UUID).")
    owner: str = Field(..., min_length=1)
    repository: str = Field(..., min_length=1)
    default_branch: str = Field(default="main")
    demo_branch: Optional[str] = Field(default=None)
    domain: Optional[str] = Field(default=None)
    demo_domain: Optional[str] = Field(default=None)
    engine: SiteEngine = Field(default=SiteEngine.STATIC)
    config: Dict[str, Any] = Field(default_factory=dict)
    default_config: Dict[str, Any] = Field(default_factory=dict)
    demo_config: Dict[str, Any] = Field(default_factory=dict)
    preview_config: Dict[str, Any] = Field(default_factory=dict)
    published_at: Optional[datetime] = Field(default=None)
    repo_last_verified: Optional[datetime] = Field(default=None)
    build_status: SiteBuildStatus = Field(default=SiteBuildStatus.ACTIVE)
    s3_service_name: str = Field(..., min_length=1)
    aws_bucket_name: str = Field(..., min_length=1)
    aws_bucket_region: str = Field(..., min_length=1)
    subdomain: Optional[str] = Field(default=None)
    users: List[str] = Field(default_factory=list, description="Member user ids.")
    deleted_at: Optional[datetime] = Field(default=None)

    @field_validator("owner", "repository")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("default_branch")
    @classmethod
    def _check_default_branch(cls, value: str) -> str:
        if not is_valid_branch(value):
            raise ValueError(INVALID_BRANCH_MESSAGE)
        return value

    @field_validator("demo_branch")
    @classmethod
    def _check_demo_branch(cls, value: Optional[str]) -> Optional[str]:
        if value and not is_valid_branch(value):
            raise ValueError(INVALID_BRANCH_MESSAGE)
        return value or None

    @field_validator("domain", "demo_domain")
    @classmethod
    def _check_domain(cls, value: Optional[str]) -> Optional[str]:
        if value and not is_https_url(value):
            raise ValueError(INVALID_URL_MESSAGE)
        return value or None

    @model_validator(mode="after")
    def _check_distinct_targets(self) -> "Site":
        if self.demo_branch and self.default_branch == self.demo_branch:
            raise ValueError("Default branch and demo branch cannot be the same")
        if self.domain and self.domain == self.demo_domain:
            raise ValueError("Domain and demo domain cannot be the same")
        return self

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repository}"

    @property
    def is_active(self) -> bool:
        return self.build_status == SiteBuildStatus.ACTIVE

    @property
    def bucket_host(self) -> str:
        return f"https://{self.aws_bucket_name}.app.cloud.gov"

    def site_url(self) -> str:
        if self.domain:
            return with_trailing_slash(self.domain)
        return f"{self.bucket_host}/site/{self.owner}/{self.repository}/"

    def demo_url(self) -> str:
        if self.demo_domain:
            return with_trailing_slash(self.demo_domain)
        return f"{self.bucket_host}/demo/{self.owner}/{self.repository}/"

    def branch_preview_url(self, branch: Optional[str] = None) -> str:
        url = f"{self.bucket_host}/preview/{self.owner}/{self.repository}/"
        if branch:
            url = f"{url}{branch}/"
        return url

    def view_link_for_branch(self, branch: str) -> str:
        if branch == self.default_branch:
            return self.site_url()
        if self.demo_branch and branch == self.demo_branch:
            return self.demo_url()
        return self.branch_preview_url(branch)

    def is_s3_bucket_dedicated(self) -> bool:
        return self.s3_service_name == generate_s3_service_name(self.owner, self.repository)

    def config_for_branch(self, branch: str) -> Dict[str, Any]:
        if branch == self.default_branch:
            return self.default_config
        if self.demo_branch and branch == self.demo_branch:
            return self.demo_config
        return self.preview_config

    def has_member(self, user_id: str) -> bool:
        return user_id in self.users


class SiteUpdate(DocumentUpdate):
    default_branch: Optional[str] = None
    demo_branch: Optional[str] = None
    domain: Optional[str] = None
    demo_domain: Optional[str] = None
    engine: Optional[SiteEngine] = None
    config: Optional[Dict[str, Any]] = None
    default_config: Optional[Dict[str, Any]] = None
    demo_config: Optional[Dict[str, Any]] = None
    preview_config: Optional[Dict[str, Any]] = None
    published_at: Optional[datetime] = None
    repo_last_verified: Optional[datetime] = None
    build_status: Optional[SiteBuildStatus] = None
    subdomain: Optional[str] = None
    deleted_at: Optional[datetime] = None
