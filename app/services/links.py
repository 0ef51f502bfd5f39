from __future__ import annotations

import re
from urllib.parse import urlparse


CANONICAL_POST_HOST = "www.threads.net"
ALLOWED_POST_HOSTS = frozenset(
    {
        "threads.net",
        "www.threads.net",
        "threads.com",
        "www.threads.com",
    }
)

_POST_URL_IN_TEXT = re.compile(r"https?://(?:www\.)?threads\.(?:net|com)/[^\s]+")
_USERNAME_IN_PATH = re.compile(r"^/@([^/]+)")


def _parse(raw: str):
    try:
        parsed = urlparse((raw or "").strip())
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return parsed


def canonicalize_post_url(raw: str, canonical_host: str = CANONICAL_POST_HOST) -> str:
    parsed = _parse(raw)
    if parsed is None:
        return raw
    path = parsed.path.rstrip("/")
    return f"https://{canonical_host}{path}"


def is_valid_post_url(raw: str, allowed_hosts=ALLOWED_POST_HOSTS) -> bool:
    parsed = _parse(raw)
    if parsed is None:
        return False
    return (parsed.hostname or "") in allowed_hosts


def extract_post_url(text: str) -> str | None:
    match = _POST_URL_IN_TEXT.search(text or "")
    return match.group(0) if match else None


def username_from_post_url(url: str) -> str | None:
    parsed = _parse(url)
    if parsed is None:
        return None
    match = _USERNAME_IN_PATH.match(parsed.path)
    return match.group(1) if match else None
