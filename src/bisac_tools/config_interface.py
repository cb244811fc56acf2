"""
Configuration interface for the BISAC tools.

Pydantic models for loading and validating ``config/config.yaml``. All models
forbid unknown keys so typos in the YAML fail at load time instead of being
silently ignored.

Usage:
    from bisac_tools.config_interface import load_config

    config = load_config("config/config.yaml")

    batch_options = config.scraper.to_batch_options()
    phrases = config.segmentation.excluded_phrases
"""
import hashlib
from pathlib import Path
from typing import Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from bisac_tools.scraping.batch_runner import BatchOptions
from bisac_tools.scraping.fetch_controller import FetchOptions
from bisac_tools.scraping.segmenter import BOILERPLATE_PHRASES

DEFAULT_CONFIG_PATH = Path("config/config.yaml")

# Playwright navigation lifecycle events understood by the crawler
WaitUntil = Literal["load", "domcontentloaded", "networkidle", "commit"]


class StrictModel(BaseModel):
    """Base model with strict validation - forbids unknown keys."""

    model_config = ConfigDict(extra="forbid", validate_default=True)


class FetchSettings(StrictModel):
    """Per-page navigation and retry settings."""

    max_attempts: int = Field(default=3, ge=1)
    timeout: float = Field(default=30.0, gt=0)
    retry_delay: float = Field(default=2.0, ge=0)
    wait_until: WaitUntil = "networkidle"

    def to_options(self) -> FetchOptions:
        return FetchOptions(
            max_attempts=self.max_attempts,
            timeout=self.timeout,
            retry_delay=self.retry_delay,
            wait_until=self.wait_until,
        )


class BrowserSettings(StrictModel):
    """Headless browser launch settings."""

    headless: bool = True
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )
    viewport_width: int = 1280
    viewport_height: int = 800
    extra_args: list[str] = Field(default_factory=lambda: ["--no-sandbox", "--disable-setuid-sandbox"])


class Selectors(StrictModel):
    """CSS selectors for the index page and the category pages."""

    category_links: str = "table a"
    heading: str = "h2.subtitle"
    content: str = ".well.box.inner-content"
    block: str = "p"


class ScraperSettings(StrictModel):
    """Where to scrape from and how fast."""

    index_url: str
    category_urls: list[str] = Field(default_factory=list)
    link_host: str = "bisg.org"
    min_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=2.0, ge=0)
    max_categories: Optional[int] = Field(default=None, ge=1)
    selectors: Selectors = Field(default_factory=Selectors)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)

    @model_validator(mode="after")
    def check_delays(self) -> "ScraperSettings":
        """Reject an inverted delay window."""
        if self.min_delay > self.max_delay:
            raise ValueError(f"min_delay ({self.min_delay}) must not exceed max_delay ({self.max_delay})")
        return self

    def to_batch_options(self) -> BatchOptions:
        return BatchOptions(
            min_delay=self.min_delay,
            max_delay=self.max_delay,
            fetch=self.fetch.to_options(),
            max_categories=self.max_categories,
        )


class SegmentationSettings(StrictModel):
    """Boilerplate paragraphs that are never notes or entries."""

    excluded_phrases: list[str] = Field(default_factory=lambda: list(BOILERPLATE_PHRASES))


class StorageSettings(StrictModel):
    """Snapshot file locations."""

    data_dir: Path = Path("data")
    snapshot_filename: str = "bisac-data.json"

    @property
    def snapshot_path(self) -> Path:
        return self.data_dir / self.snapshot_filename


class BookMetadataSettings(StrictModel):
    """Google Books API access."""

    api_url: str = "https://www.googleapis.com/books/v1/volumes"
    timeout: float = Field(default=10.0, gt=0)


class Config(BaseModel):
    """Root configuration loaded from config.yaml."""

    model_config = ConfigDict(extra="forbid", validate_default=True)

    scraper: ScraperSettings
    segmentation: SegmentationSettings = Field(default_factory=SegmentationSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    book_metadata: BookMetadataSettings = Field(default_factory=BookMetadataSettings)


def load_config(config_path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> Config:
    """Load and validate configuration from a YAML file."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    return Config.model_validate(raw_config)


def get_config_version(config: Config) -> str:
    """Generate a hash-based version string for the configuration."""
    config_json = config.model_dump_json(exclude_none=True)
    return hashlib.sha256(config_json.encode()).hexdigest()[:16]
