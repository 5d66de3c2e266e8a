"""Region launch dates and announcement links from the AWS regions RSS feed."""

import re
from datetime import datetime
from typing import Dict, Optional

import feedparser
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..core.logging import get_logger

DEFAULT_FEED_URL = (
    "https://docs.aws.amazon.com/global-infrastructure/latest/regions/regions.rss"
)

# Region code is wrapped in <code class="code"> inside the entry description
CODE_TAG_PATTERN = re.compile(r'<code class="code">([a-z0-9-]+)</code>')
REGION_TOKEN_PATTERN = re.compile(r"\b([a-z]{2}(?:-[a-z]+)+-\d{1,2})\b")


class LaunchDataSource:
    """Fetches ``region_code -> {launch_date, announcement_url}`` from the RSS feed.

    Failures never propagate: an unreachable or unparsable feed yields an empty
    mapping, which callers treat as "no enrichment".
    """

    def __init__(
        self,
        url: str = DEFAULT_FEED_URL,
        timeout: int = 30,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        session: Optional[requests.Session] = None,
    ):
        """Initialize launch data source.

        Args:
            url: RSS feed URL
            timeout: HTTP request timeout in seconds
            max_retries: Retry attempts for failed HTTP requests
            backoff_factor: Backoff factor between HTTP retries
            session: Pre-configured requests session, mainly for tests
        """
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self._session = session
        self.logger = get_logger("launch_data")

    def _feed_adapter(self) -> HTTPAdapter:
        # Only idempotent reads are retried, on throttling and 5xx answers
        return HTTPAdapter(
            max_retries=Retry(
                total=self.max_retries,
                backoff_factor=self.backoff_factor,
                status_forcelist=(429, 500, 502, 503, 504),
                allowed_methods=frozenset({"GET", "HEAD"}),
            )
        )

    def _get_session(self) -> requests.Session:
        """Lazily build the feed session; reused across calls."""
        if self._session is not None:
            return self._session

        session = requests.Session()
        adapter = self._feed_adapter()
        for scheme in ("https://", "http://"):
            session.mount(scheme, adapter)
        # CloudFront rejects requests without a browser-like agent
        session.headers["User-Agent"] = "aws-infra-catalog/1.0 (python-requests)"
        session.headers["Accept"] = "application/rss+xml, application/xml, */*"
        self._session = session
        return session

    def fetch_launch_data(self) -> Dict[str, Dict[str, Optional[str]]]:
        """Fetch and parse the regions feed.

        Returns:
            Mapping of region code to ``launch_date`` (YYYY-MM-DD or None) and
            ``announcement_url`` (or None); empty on any failure
        """
        try:
            response = self._get_session().get(self.url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            self.logger.warning(f"Failed to fetch regions RSS feed: {e}")
            return {}

        return self.parse_feed(response.content)

    def parse_feed(self, content) -> Dict[str, Dict[str, Optional[str]]]:
        """Parse RSS content into launch data keyed by region code."""
        feed = feedparser.parse(content)
        if feed.bozo and not feed.entries:
            self.logger.warning(
                f"Failed to parse regions RSS feed: {feed.bozo_exception}"
            )
            return {}

        launch_data: Dict[str, Dict[str, Optional[str]]] = {}
        for entry in feed.entries:
            region_code = self._extract_region_code(entry)
            if not region_code:
                continue

            link = (entry.get("link") or "").strip() or None
            launch_data[region_code] = {
                "launch_date": self._parse_launch_date(entry),
                "announcement_url": link,
            }

        self.logger.info(
            f"Found launch data for {len(launch_data)} regions in RSS feed"
        )
        return launch_data

    def _extract_region_code(self, entry) -> Optional[str]:
        description = entry.get("description", "") or entry.get("summary", "")
        match = CODE_TAG_PATTERN.search(description)
        if match:
            return match.group(1)

        text = f"{entry.get('title', '')} {description}"
        match = REGION_TOKEN_PATTERN.search(text)
        return match.group(1) if match else None

    def _parse_launch_date(self, entry) -> Optional[str]:
        """Launch date in YYYY-MM-DD format, or None if it cannot be parsed."""
        parsed = entry.get("published_parsed") or entry.get("updated_parsed")
        if parsed:
            return datetime(*parsed[:3]).strftime("%Y-%m-%d")

        published = entry.get("published", "")
        for date_format in ("%a, %d %b %Y %H:%M:%S %z", "%Y-%m-%d"):
            try:
                return datetime.strptime(published, date_format).strftime("%Y-%m-%d")
            except ValueError:
                continue

        self.logger.debug(f"Could not parse launch date from: {published!r}")
        return None
