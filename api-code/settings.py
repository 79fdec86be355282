from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Runtime configuration resolved from environment variables."""

    app_env: str = Field(
        default="development", alias="APP_ENV", description="Deployment environment name."
    )
    app_hostname: str = Field(
        default="http://localhost:1337",
        alias="APP_HOSTNAME",
        description="Public base URL of this API, used for callbacks and status links.",
    )
    mongodb_uri: str = Field(
        default="mongodb://127.0.0.1:27017",
        alias="MONGODB_URI",
        description="MongoDB connection string",
    )
    mongodb_db_name: str = Field(
        default="federalist",
        alias="MONGODB_DB_NAME",
        description="MongoDB database name",
    )
    github_client_id: Optional[str] = Field(
        default=None, alias="GITHUB_CLIENT_ID", description="GitHub OAuth application id."
    )
    github_client_secret: Optional[str] = Field(
        default=None,
        alias="GITHUB_CLIENT_SECRET",
        description="GitHub OAuth application secret.",
    )
    github_callback_url: str = Field(
        default="http://localhost:1337/auth/github/callback",
        alias="GITHUB_CLIENT_CALLBACK_URL",
        description="Redirect URL registered with the GitHub OAuth application.",
    )
    github_organizations: str = Field(
        default="",
        alias="GITHUB_ORGANIZATIONS",
        description="Comma-separated GitHub organization ids whose members may sign in.",
    )
    github_api_url: str = Field(
        default="https://api.github.com",
        alias="GITHUB_API_URL",
        description="GitHub REST API base URL.",
    )
    github_status_context: str = Field(
        default="federalist/build",
        alias="GITHUB_STATUS_CONTEXT",
        description="Context label attached to commit statuses.",
    )
    webhook_secret: str = Field(
        default="change-me",
        alias="GITHUB_WEBHOOK_SECRET",
        description="Shared secret used to sign GitHub webhook payloads.",
    )
    webhook_endpoint: str = Field(
        default="http://localhost:1337/webhook/github",
        alias="GITHUB_WEBHOOK_URL",
        description="URL registered as the repository webhook target.",
    )
    session_secret: str = Field(
        default="change-me",
        alias="FEDERALIST_SESSION_SECRET",
        description="Secret used to sign session cookies.",
    )
    session_cookie_name: str = Field(
        default="federalist.sid",
        alias="SESSION_COOKIE_NAME",
        description="Name of the session cookie.",
    )
    session_cookie_secure: bool = Field(
        default=False,
        alias="SESSION_COOKIE_SECURE",
        description="Only send the session cookie over HTTPS.",
    )
    session_expire_minutes: int = Field(
        default=24 * 60,
        alias="SESSION_EXPIRE_MINUTES",
        description="Lifetime of an issued session.",
    )
    aws_region: str = Field(
        default="us-gov-west-1", alias="AWS_DEFAULT_REGION", description="AWS region."
    )
    sqs_queue_url: Optional[str] = Field(
        default=None, alias="SQS_QUEUE_URL", description="Queue receiving build messages."
    )
    s3_bucket: str = Field(
        default="federalist-shared-bucket",
        alias="S3_BUCKET",
        description="Shared bucket that non-dedicated sites publish into.",
    )
    s3_service_name: str = Field(
        default="federalist-dev-s3",
        alias="S3_SERVICE_NAME",
        description="Cloud Foundry service instance backing the shared bucket.",
    )
    s3_delete_batch_size: int = Field(
        default=1000,
        alias="S3_DELETE_BATCH_SIZE",
        description="Maximum number of keys removed per DeleteObjects request.",
    )
    proxy_site_table: str = Field(
        default="federalist-proxy-dev",
        alias="PROXY_SITE_TABLE",
        description="DynamoDB table read by the site routing proxy.",
    )
    proxy_domain: str = Field(
        default="sites.localhost",
        alias="PROXY_DOMAIN",
        description="Domain under which site subdomains are served by the proxy.",
    )
    cf_api_host: Optional[str] = Field(
        default=None, alias="CLOUD_FOUNDRY_API_HOST", description="Cloud Foundry API URL."
    )
    cf_oauth_token_url: Optional[str] = Field(
        default=None,
        alias="CLOUD_FOUNDRY_OAUTH_TOKEN_URL",
        description="UAA token endpoint for the Cloud Foundry deploy user.",
    )
    deploy_user_username: Optional[str] = Field(
        default=None, alias="DEPLOY_USER_USERNAME", description="Cloud Foundry deploy user."
    )
    deploy_user_password: Optional[str] = Field(
        default=None,
        alias="DEPLOY_USER_PASSWORD",
        description="Cloud Foundry deploy user password.",
    )
    federalist_users_org: str = Field(
        default="federalist-users",
        alias="FEDERALIST_USERS_ORG",
        description="GitHub organization holding every Federalist user.",
    )
    federalist_users_parent_org: str = Field(
        default="18F",
        alias="FEDERALIST_USERS_PARENT_ORG",
        description="Organization whose membership is required to stay in the audited teams.",
    )
    federalist_users_admin: Optional[str] = Field(
        default=None,
        alias="FEDERALIST_USERS_ADMIN",
        description="Username whose GitHub token runs the federalist-users audit.",
    )
    federalist_users_teams: str = Field(
        default="",
        alias="FEDERALIST_USERS_TEAMS",
        description="Comma-separated team ids audited against the parent organization.",
    )
    status_report_attempts: int = Field(
        default=5,
        alias="GITHUB_STATUS_ATTEMPTS",
        description="Attempts made when creating a commit status.",
    )
    queue_send_attempts: int = Field(
        default=3,
        alias="SQS_SEND_ATTEMPTS",
        description="Attempts made when sending a build message.",
    )
    scheduler_enabled: bool = Field(
        default=False,
        alias="SCHEDULER_ENABLED",
        description="Run housekeeping jobs in this process.",
    )
    cf_instance_index: Optional[str] = Field(
        default=None,
        alias="CF_INSTANCE_INDEX",
        description="Cloud Foundry instance index; jobs only run on instance 0.",
    )

    model_config = {"populate_by_name": True}

    @classmethod
    def from_env(cls) -> "Settings":
        return cls.model_validate(os.environ)

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def approved_organization_ids(self) -> list[int]:
        return [int(value) for value in _split_csv(self.github_organizations)]

    @property
    def audited_team_ids(self) -> list[int]:
        return [int(value) for value in _split_csv(self.federalist_users_teams)]

    @property
    def runs_scheduled_jobs(self) -> bool:
        return self.scheduler_enabled and (self.cf_instance_index in (None, "0"))


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance built from environment variables."""
    return Settings.from_env()
