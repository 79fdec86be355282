from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from domain.events import EventLabel, EventType
from models import Event


logger = logging.getLogger("federalist.events")


class EventService:
    """Records audit and error events; recording never breaks the caller."""

    def __init__(self, repository):
        self.repository = repository

    async def audit(
        self,
        label: EventLabel,
        *,
        model: Optional[str] = None,
        model_id: Optional[str] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Optional[Event]:
        return await self._record(EventType.AUDIT, label, model, model_id, body)

    async def error(
        self,
        label: EventLabel,
        *,
        error: Exception | str,
        model: Optional[str] = None,
        model_id: Optional[str] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Optional[Event]:
        payload = {"message": str(error), **(body or {})}
        return await self._record(EventType.ERROR, label, model, model_id, payload)

    async def _record(
        self,
        event_type: EventType,
        label: EventLabel,
        model: Optional[str],
        model_id: Optional[str],
        body: Optional[Dict[str, Any]],
    ) -> Optional[Event]:
        try:
            event = Event(
                type=event_type,
                label=label,
                model=model,
                model_id=model_id,
                body=body or {},
            )
            return await self.repository.create_event(event)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Unable to record %s event %s: %s", event_type.value, label.value, exc)
            return None
