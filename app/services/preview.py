from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from bs4 import BeautifulSoup

from app.models import AUTHOR_MAX_LENGTH
from app.services.errors import InvalidLink
from app.services.links import username_from_post_url


logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://www.threads.com/api/oembed"
DEFAULT_USER_AGENT = "ThreadClip/1.0"
DEFAULT_TIMEOUT = 5.0
SNIPPET_MAX_LENGTH = 300


@dataclass(frozen=True)
class Preview:
    author_name: str | None
    author_username: str | None
    content_snippet: str | None
    image_url: str | None


class PreviewUnavailable(Exception):
    pass


def extract_snippet(html: str, max_length: int = SNIPPET_MAX_LENGTH) -> str:
    soup = BeautifulSoup(html, "lxml")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    text = soup.get_text().replace("\xa0", " ").strip()
    return text[:max_length]


def username_from_author_url(author_url: str | None) -> str | None:
    if not author_url:
        return None
    segment = author_url.rstrip("/").split("/")[-1].removeprefix("@")
    return segment or None


def _embed_target(url: str) -> str:
    # The embed endpoint only resolves posts under its own domain.
    return url.replace("threads.net", "threads.com", 1)


def _request_preview(
    url: str, endpoint: str, user_agent: str, timeout: float
) -> dict:
    try:
        with httpx.Client(
            follow_redirects=True,
            timeout=timeout,
            headers={"User-Agent": user_agent},
        ) as client:
            response = client.get(endpoint, params={"url": _embed_target(url)})
    except httpx.HTTPError as exc:
        raise PreviewUnavailable(str(exc) or exc.__class__.__name__) from exc

    if not response.is_success:
        raise PreviewUnavailable(f"embed endpoint returned {response.status_code}")

    try:
        body = response.json()
    except ValueError as exc:
        raise PreviewUnavailable("embed endpoint returned malformed JSON") from exc
    if not isinstance(body, dict):
        raise PreviewUnavailable("embed endpoint returned an unexpected body")
    return body


def _text_field(body: dict, key: str) -> str | None:
    # Anything but a non-blank string counts as missing.
    value = body.get(key)
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


def _clip(value: str | None, max_length: int = AUTHOR_MAX_LENGTH) -> str | None:
    return value[:max_length] if value else value


def build_preview(url: str, body: dict) -> Preview:
    url_username = username_from_post_url(url)
    html = _text_field(body, "html")
    author_name = _text_field(body, "author_name") or (
        f"@{url_username}" if url_username else None
    )
    author_username = (
        username_from_author_url(_text_field(body, "author_url")) or url_username
    )
    return Preview(
        author_name=_clip(author_name),
        author_username=_clip(author_username),
        content_snippet=extract_snippet(html) if html else None,
        image_url=_text_field(body, "thumbnail_url"),
    )


def fetch_preview(
    url: str,
    endpoint: str = DEFAULT_ENDPOINT,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout: float = DEFAULT_TIMEOUT,
) -> Preview | None:
    """Best-effort preview lookup. Any failure yields ``None``."""
    try:
        body = _request_preview(url, endpoint, user_agent, timeout)
    except PreviewUnavailable as exc:
        logger.warning("Preview unavailable for %s: %s", url, exc)
        return None
    return build_preview(url, body)


def require_preview(
    url: str,
    endpoint: str = DEFAULT_ENDPOINT,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout: float = DEFAULT_TIMEOUT,
) -> Preview:
    """Like :func:`fetch_preview`, but an unresolvable link is an error."""
    try:
        body = _request_preview(url, endpoint, user_agent, timeout)
    except PreviewUnavailable as exc:
        logger.warning("Rejecting %s, preview unavailable: %s", url, exc)
        raise InvalidLink(details=str(exc)) from exc
    return build_preview(url, body)
