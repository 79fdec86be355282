from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Dict, Optional

from pydantic import Field, field_validator

from domain.build_states import COMPLETION_STATES, BuildState
from domain.validators import SHA_PATTERN, is_valid_branch, sanitize_error_message

from .base import DocumentUpdate, MongoModel, Timestamped, generate_token, new_id, utc_now


class Build(MongoModel, Timestamped):
    id_field: ClassVar[str] = "build_id"

    build_id: str = Field(default_factory=new_id, alias="_id")
    site_id: str = Field(..., description="Foreign key to sites._id.")
    user_id: str = Field(..., description="User the build runs on behalf of.")
    branch: Optional[str] = Field(default=None)
    commit_sha: Optional[str] = Field(default=None)
    state: BuildState = Field(default=BuildState.QUEUED)
    token: str = Field(default_factory=generate_token)
    error: Optional[str] = Field(default=None)
    source: Optional[Dict[str, Any]] = Field(default=None)
    url: Optional[str] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)

    @field_validator("branch")
    @classmethod
    def _check_branch(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_valid_branch(value):
            raise ValueError(f"branch: invalid branch name {value!r}")
        return value

    @field_validator("commit_sha")
    @classmethod
    def _check_sha(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not SHA_PATTERN.match(value):
            raise ValueError(f"commit_sha: invalid commit sha {value!r}")
        return value

    @property
    def is_pending(self) -> bool:
        return BuildState(self.state).awaits_dispatch

    def to_mongo(self) -> dict[str, Any]:
        payload = super().to_mongo()
        payload["awaiting_dispatch"] = self.is_pending
        return payload

    @classmethod
    def from_mongo(cls, document: dict[str, Any]) -> "Build":
        data = {key: value for key, value in document.items() if key != "awaiting_dispatch"}
        return super().from_mongo(data)

    def to_public(self) -> dict[str, Any]:
        payload = self.model_dump(exclude={"token"})
        payload["id"] = payload.pop("build_id")
        return payload


class BuildUpdate(DocumentUpdate):
    user_id: Optional[str] = None
    commit_sha: Optional[str] = None
    state: Optional[BuildState] = None
    error: Optional[str] = None
    url: Optional[str] = None
    completed_at: Optional[datetime] = None

    def changes(self) -> Dict[str, Any]:
        values = super().changes()
        if "state" in values and values["state"] is not None:
            values["awaiting_dispatch"] = BuildState(values["state"]).awaits_dispatch
        return values

    def apply_to(self, model: Build) -> Build:  # type: ignore[override]
        values = self.changes()
        values.pop("awaiting_dispatch", None)
        return model.model_copy(update=values)


def job_state_update(status: BuildState | str, message: Optional[str] = None) -> BuildUpdate:
    """Translate a build container status callback into a row update."""
    state = BuildState(status)
    update = BuildUpdate(
        state=state,
        error=sanitize_error_message(message) if state == BuildState.ERROR else None,
        completed_at=utc_now() if state in COMPLETION_STATES else None,
    )
    return update
