"""
Headless-browser page driver.

Loads a category page with crawl4ai and reduces the rendered HTML to what the
segmenter needs: the title element text and the ordered paragraph texts of the
content container. One crawler (and so one browser context) is reused for all
pages of a batch.
"""
from typing import Optional, Protocol

from bs4 import BeautifulSoup

from bisac_tools.data_models import PageContent
from bisac_tools.logger import get_logger

logger = get_logger(__name__)

DEFAULT_HEADING_SELECTOR = "h2.subtitle"
DEFAULT_CONTENT_SELECTOR = ".well.box.inner-content"
DEFAULT_BLOCK_SELECTOR = "p"


class PageLoadError(Exception):
    """Raised when the browser could not load a page."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None) -> None:
        """Initialize the exception."""
        self.url = url
        self.status_code = status_code
        suffix = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"Failed to load {url}{suffix}: {message}")


class PageDriver(Protocol):
    """Anything that can navigate to a URL and return its text blocks."""

    async def navigate(self, url: str, *, timeout: float, wait_until: str) -> PageContent:
        """Load ``url`` and return its heading and text blocks."""
        ...


def parse_page_html(
    html: str,
    url: str,
    heading_selector: str = DEFAULT_HEADING_SELECTOR,
    content_selector: str = DEFAULT_CONTENT_SELECTOR,
    block_selector: str = DEFAULT_BLOCK_SELECTOR,
) -> PageContent:
    """
    Extract the heading and the ordered text blocks from a category page.

    A missing heading element gives an empty heading; a missing content
    container gives no blocks. Block texts are returned untrimmed.
    """
    soup = BeautifulSoup(html, "html.parser")

    heading_el = soup.select_one(heading_selector)
    heading = heading_el.get_text().strip() if heading_el is not None else ""

    container = soup.select_one(content_selector)
    if container is None:
        logger.debug("Content container '%s' not found on %s", content_selector, url)
        return PageContent(url=url, heading=heading)

    blocks = tuple(el.get_text() for el in container.select(block_selector))
    return PageContent(url=url, heading=heading, blocks=blocks)


class CrawlerPageDriver:
    """
    Page driver backed by a crawl4ai ``AsyncWebCrawler``.

    Use as an async context manager so the browser is started once and closed
    when the batch is over::

        async with CrawlerPageDriver(headless=True) as driver:
            page = await driver.navigate(url, timeout=30, wait_until="networkidle")
    """

    def __init__(
        self,
        headless: bool = True,
        user_agent: Optional[str] = None,
        viewport_width: int = 1280,
        viewport_height: int = 800,
        extra_args: Optional[list[str]] = None,
        heading_selector: str = DEFAULT_HEADING_SELECTOR,
        content_selector: str = DEFAULT_CONTENT_SELECTOR,
        block_selector: str = DEFAULT_BLOCK_SELECTOR,
    ) -> None:
        """Initialize the driver; the browser is started on context entry."""
        self.headless = headless
        self.user_agent = user_agent
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height
        self.extra_args = list(extra_args or [])
        self.heading_selector = heading_selector
        self.content_selector = content_selector
        self.block_selector = block_selector
        self._crawler = None

    async def __aenter__(self) -> "CrawlerPageDriver":
        from crawl4ai import AsyncWebCrawler, BrowserConfig

        browser_kwargs = {
            "headless": self.headless,
            "viewport_width": self.viewport_width,
            "viewport_height": self.viewport_height,
            "extra_args": self.extra_args,
        }
        if self.user_agent:
            browser_kwargs["user_agent"] = self.user_agent

        self._crawler = AsyncWebCrawler(config=BrowserConfig(**browser_kwargs))
        await self._crawler.__aenter__()
        logger.info("Started headless browser (headless=%s)", self.headless)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._crawler is None:
            return
        try:
            await self._crawler.__aexit__(exc_type, exc, tb)
        except Exception as e:
            logger.warning(f"Error while closing browser: {e}")
        finally:
            self._crawler = None

    async def navigate(self, url: str, *, timeout: float, wait_until: str) -> PageContent:
        """Load one page and parse it; raises :class:`PageLoadError` on a failed crawl."""
        if self._crawler is None:
            raise RuntimeError("CrawlerPageDriver must be entered with 'async with' before use")

        from crawl4ai import CacheMode, CrawlerRunConfig
        from crawl4ai.content_scraping_strategy import LXMLWebScrapingStrategy

        config = CrawlerRunConfig(
            scraping_strategy=LXMLWebScrapingStrategy(),
            cache_mode=CacheMode.BYPASS,
            wait_until=wait_until,
            page_timeout=int(timeout * 1000),
            verbose=False,
        )
        result = await self._crawler.arun(url=url, config=config)
        if not result.success:
            raise PageLoadError(url, result.error_message or "unknown error", result.status_code)

        return parse_page_html(
            result.html or "",
            url,
            heading_selector=self.heading_selector,
            content_selector=self.content_selector,
            block_selector=self.block_selector,
        )
