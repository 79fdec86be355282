from __future__ import annotations

from typing import Any, ClassVar, Dict, Optional

from pydantic import Field, field_validator

from domain.events import EVENT_MODELS, EventLabel, EventType

from .base import MongoModel, Timestamped, new_id


class BuildLog(MongoModel, Timestamped):
    id_field: ClassVar[str] = "log_id"

    log_id: str = Field(default_factory=new_id, alias="_id")
    build_id: str = Field(..., description="Foreign key to builds._id.")
    output: Optional[str] = Field(default=None)
    source: str = Field(default="ALL")


class UserAction(MongoModel, Timestamped):
    id_field: ClassVar[str] = "action_id"

    action_id: str = Field(default_factory=new_id, alias="_id")
    user_id: str = Field(..., description="User who performed the action.")
    target_id: str = Field(..., description="Identifier of the affected record.")
    target_type: str = Field(default="user")
    action: str = Field(default="remove")
    site_id: str = Field(..., description="Site the action was performed on.")

    @field_validator("action")
    @classmethod
    def _check_action(cls, value: str) -> str:
        if value not in ("add", "remove", "update"):
            raise ValueError(f"Invalid user action: {value}")
        return value


class Event(MongoModel, Timestamped):
    id_field: ClassVar[str] = "event_id"

    model_config = {**MongoModel.model_config, "protected_namespaces": ()}

    event_id: str = Field(default_factory=new_id, alias="_id")
    type: EventType
    label: EventLabel
    model: Optional[str] = Field(default=None)
    model_id: Optional[str] = Field(default=None)
    body: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("model")
    @classmethod
    def _check_model(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in EVENT_MODELS:
            raise ValueError(f"Invalid event model: {value}")
        return value
