"""Fetch web pages as plain text for the agent to learn from."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING
from urllib.parse import urlsplit
from urllib.robotparser import RobotFileParser

import httpx
import trafilatura
from bs4 import BeautifulSoup

from mily.errors import FetchError, PolicyViolation
from mily.security import PolicyGuard

if TYPE_CHECKING:
    from mily.config import Settings

logger = logging.getLogger(__name__)

FETCH_TIMEOUT_SECONDS = 20


def _is_html(content_type: str, body: str) -> bool:
    ct = content_type.lower().split(";")[0].strip()
    return ct in ("text/html", "application/xhtml+xml") or "<html" in body


def html_to_text(html: str) -> str:
    """Extract readable text from an HTML document.

    Uses trafilatura's main-content extraction, falling back to every
    non-empty text node of ``<body>`` (one per line) when it finds nothing.
    """
    content = trafilatura.extract(html)
    if content:
        return content

    soup = BeautifulSoup(html, "html.parser")
    body = soup.find("body") or soup
    lines = [s.strip() for s in body.find_all(string=True) if s.strip()]
    return "\n".join(lines)


async def _blocked_by_robots(client: httpx.AsyncClient, url: str, user_agent: str) -> bool:
    """Return True when the site's robots.txt disallows *url* for *user_agent*.

    An unreachable or missing robots.txt allows everything.
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return False

    robots_url = f"{parts.scheme}://{parts.netloc}/robots.txt"
    text = ""
    try:
        resp = await client.get(robots_url)
        if resp.is_success:
            text = resp.text
    except (httpx.HTTPError, httpx.InvalidURL):
        logger.debug("robots.txt unavailable for %s", parts.netloc)

    parser = RobotFileParser()
    parser.parse(text.splitlines())
    return not parser.can_fetch(user_agent, url)


async def fetch_text(
    settings: Settings,
    url: str,
    *,
    guard: PolicyGuard | None = None,
) -> str:
    """Download *url* and return its text content.

    Raises ``PolicyViolation`` if the domain policy or robots.txt forbids
    the fetch, and ``FetchError`` on transport errors or non-2xx status.
    """
    guard = guard or PolicyGuard.from_settings(settings)
    guard.require_url(url)

    user_agent = settings.web_user_agent
    try:
        async with httpx.AsyncClient(
            timeout=FETCH_TIMEOUT_SECONDS,
            follow_redirects=True,
            headers={"User-Agent": user_agent},
            max_redirects=5,
        ) as client:
            if settings.respect_robots and await _blocked_by_robots(client, url, user_agent):
                raise PolicyViolation(f"Blocked by robots.txt: {url}")
            resp = await client.get(url)
    except httpx.TimeoutException as exc:
        raise FetchError(f"Timeout fetching {url}") from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(f"Failed to fetch {url}: {exc}") from exc

    if not resp.is_success:
        raise FetchError(f"Fetch failed: HTTP {resp.status_code} for {url}")

    body = resp.text
    if _is_html(resp.headers.get("content-type", ""), body):
        # trafilatura is CPU-bound and synchronous
        return await asyncio.to_thread(html_to_text, body)
    return body
