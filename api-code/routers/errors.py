from __future__ import annotations

import logging

from fastapi import HTTPException

from domain.errors import FederalistError, GitHubError


logger = logging.getLogger("federalist.api")


def http_error(exc: Exception) -> HTTPException:
    """Map a domain or GitHub failure onto the HTTP error returned to clients."""
    if isinstance(exc, FederalistError):
        return HTTPException(status_code=exc.status_code, detail=exc.message)
    if isinstance(exc, GitHubError):
        status_code = exc.status if exc.status in (400, 403, 404, 422) else 502
        return HTTPException(status_code=status_code, detail=exc.message)
    logger.exception("Unhandled error", exc_info=exc)
    return HTTPException(status_code=500, detail=f"An unexpected error occurred: {exc}")
