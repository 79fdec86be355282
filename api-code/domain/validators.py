from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlparse


BRANCH_PATTERN = re.compile(r"^[\w._]+(?:[/-]*[\w._])*$")
SHA_PATTERN = re.compile(r"^[a-f0-9]{40}$")
TOKEN_IN_URL_PATTERN = re.compile(r"//(.*)@github")

INVALID_BRANCH_MESSAGE = (
    "Invalid branch name: branches can only contain alphanumeric characters, "
    "underscores, and hyphens."
)
INVALID_URL_MESSAGE = "URL must start with https://"


def is_valid_branch(value: Optional[str]) -> bool:
    return bool(value and BRANCH_PATTERN.match(value))


def is_https_url(value: Optional[str]) -> bool:
    if not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme == "https" and bool(parsed.netloc) and "." in parsed.netloc


def sanitize_error_message(message: Optional[str]) -> str:
    """Strip credentials embedded in clone URLs from build container errors."""
    return TOKEN_IN_URL_PATTERN.sub("//[token_redacted]@github", message or "An unknown error occurred")


def with_trailing_slash(url: Optional[str]) -> Optional[str]:
    if url and not url.endswith("/"):
        return f"{url}/"
    return url
