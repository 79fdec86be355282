from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, TypeVar
from uuid import uuid4

from pydantic import BaseModel, Field


ModelT = TypeVar("ModelT", bound="MongoModel")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


def generate_token() -> str:
    return secrets.token_urlsafe(32)


class MongoModel(BaseModel):
    """Base Pydantic model with sensible defaults for MongoDB documents."""

    id_field: ClassVar[str] = "id"

    model_config = {
        "populate_by_name": True,
        "use_enum_values": True,
        "validate_assignment": False,
    }

    @property
    def id(self) -> str:
        return getattr(self, self.id_field)

    def to_mongo(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_mongo(cls: type[ModelT], document: dict[str, Any]) -> ModelT:
        if not document:
            raise ValueError(f"Mongo document is empty; cannot build {cls.__name__}.")
        data = {**document}
        if "_id" in data and cls.id_field not in data:
            data[cls.id_field] = data.pop("_id")
        return cls.model_validate(data)


class DocumentUpdate(BaseModel):
    """Partial update; only explicitly assigned fields are written."""

    touch: ClassVar[bool] = True

    def changes(self) -> Dict[str, Any]:
        values = self.model_dump(exclude_unset=True)
        if values and self.touch:
            values["updated_at"] = utc_now()
        return values

    def to_update_query(self) -> dict[str, Any]:
        set_fields: dict[str, Any] = {}
        unset_fields: dict[str, Any] = {}
        for key, value in self.changes().items():
            if value is None:
                unset_fields[key] = ""
            else:
                set_fields[key] = value.value if hasattr(value, "value") else value
        update: dict[str, Any] = {}
        if set_fields:
            update["$set"] = set_fields
        if unset_fields:
            update["$unset"] = unset_fields
        return update

    def apply_to(self, model: ModelT) -> ModelT:
        return model.model_copy(update=self.changes())


class Timestamped(BaseModel):
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
