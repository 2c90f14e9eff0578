"""
Liveness and title probing for guessed domains.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

import requests
from bs4 import BeautifulSoup


logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

_WHITESPACE = re.compile(r'\s+')


class TitleProber:
    """
    Fetch a candidate URL and report its page title.

    A None result means "not live" (network failure, timeout, non-2xx, or a
    page with no title or heading). Callers must drop such candidates rather
    than score them as zero.
    """

    def __init__(self, timeout: float = 3.0, max_title_length: int = 200,
                 max_workers: int = 15, user_agent: str = BROWSER_USER_AGENT):
        """
        Args:
            timeout: Per-request timeout in seconds
            max_title_length: Titles are truncated to this many characters
            max_workers: Upper bound on concurrent probes
            user_agent: Identification string sent with each request
        """
        self.timeout = timeout
        self.max_title_length = max_title_length
        self.max_workers = max_workers
        self.headers = {"User-Agent": user_agent, "Accept": "text/html,*/*;q=0.8"}

    def probe(self, url: str) -> Optional[str]:
        """Return the page title (or first <h1>) of a live URL, else None."""
        try:
            response = requests.get(url, headers=self.headers, timeout=self.timeout,
                                    allow_redirects=True)
        except requests.RequestException as e:
            logger.debug(f"Probe failed for {url}: {e}")
            return None

        if not 200 <= response.status_code < 300:
            logger.debug(f"Probe of {url} returned status {response.status_code}")
            return None

        return self.extract_title(response.text)

    def extract_title(self, html: Optional[str]) -> Optional[str]:
        """Extract <title>, falling back to the first <h1>."""
        if not html:
            return None

        soup = BeautifulSoup(html, "html.parser")
        for tag in (soup.title, soup.find("h1")):
            if tag is None:
                continue
            text = _WHITESPACE.sub(' ', tag.get_text(" ")).strip()
            if text:
                return text[:self.max_title_length]
        return None

    def probe_all(self, urls: Sequence[str]) -> List[Tuple[str, Optional[str]]]:
        """Probe every URL concurrently; results keep the input order."""
        if not urls:
            return []

        workers = min(self.max_workers, len(urls))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="probe") as pool:
            titles = list(pool.map(self.probe, urls))

        live = sum(1 for title in titles if title)
        logger.debug(f"Probed {len(urls)} URLs, {live} live")
        return list(zip(urls, titles))
