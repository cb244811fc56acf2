"""Discovery of category page URLs from the subject headings index page."""
import asyncio
from typing import Awaitable, Callable, Optional
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from bisac_tools.logger import get_logger

logger = get_logger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

TRANSIENT_STATUSES = (429, 500, 502, 503, 504)


def extract_category_urls(
    html: str,
    base_url: str,
    link_selector: str = "table a",
    host: Optional[str] = "bisg.org",
) -> list[str]:
    """
    Return absolute category page URLs linked from the index page.

    Relative links are resolved against ``base_url``. When ``host`` is given,
    only links whose host ends with it are kept. Order of first appearance is
    preserved and duplicates (ignoring fragments) are removed.
    """
    soup = BeautifulSoup(html, "html.parser")
    urls: list[str] = []
    seen: set[str] = set()

    for a in soup.select(link_selector):
        href = (a.get("href") or "").strip()
        if not href or href.startswith(("#", "mailto:", "javascript:")):
            continue
        absolute = urljoin(base_url, href).split("#", 1)[0]
        parsed = urlparse(absolute)
        if parsed.scheme not in ("http", "https"):
            continue
        if host and not (parsed.hostname or "").endswith(host):
            continue
        if absolute in seen:
            continue
        seen.add(absolute)
        urls.append(absolute)

    logger.debug("Found %d category link(s) on %s", len(urls), base_url)
    return urls


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in TRANSIENT_STATUSES
    return isinstance(exc, httpx.TransportError)


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        "Index fetch failed: %s (attempt %s), retrying in %s s",
        retry_state.outcome.exception(), retry_state.attempt_number, retry_state.next_action.sleep,
    )


async def fetch_index_html(
    url: str,
    timeout: float = 30.0,
    max_retries: int = 3,
    headers: Optional[dict] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> str:
    """Fetch the index page with httpx, retrying transient failures with exponential backoff (1 s, 2 s, ...)."""
    if max_retries < 1:
        raise ValueError("max_retries must be >= 1")
    merged_headers = {**DEFAULT_HEADERS, **(headers or {})}

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=1, exp_base=2),
        retry=retry_if_exception(_is_transient),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )

    async with httpx.AsyncClient(
        timeout=timeout, headers=merged_headers, follow_redirects=True, transport=transport
    ) as client:
        async for attempt in retrying:
            with attempt:
                resp = await client.get(url)
                resp.raise_for_status()
                return resp.text
