"""
DuckDuckGo RapidAPI backend for the external search stages.
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

import requests

from sitefinder.core.exceptions import AuthenticationError, RateLimitError, SearchAPIError
from sitefinder.search.client import ConnectionMonitor, SearchBackend, SearchRequest
from sitefinder.search.rate_limiter import RateLimiter


logger = logging.getLogger(__name__)


@dataclass
class SearchResult:
    """Represents a single search result."""
    url: str
    title: str
    snippet: str
    position: int


class DuckDuckGoClient(SearchBackend):
    """
    Plain web search through DuckDuckGo on RapidAPI.

    It cannot follow instructions, so ``ask`` runs only the request's query
    and answers with the result URLs, one per line, in ranking order.
    """

    def __init__(self, api_key: str, timeout: float = 25, max_results: int = 10,
                 max_retries: int = 5, initial_backoff: float = 8, max_backoff: float = 60,
                 rate_limiter: Optional[RateLimiter] = None,
                 monitor: Optional[ConnectionMonitor] = None):
        """
        Initialize the DuckDuckGo API client.

        Args:
            api_key: RapidAPI key for DuckDuckGo service
            timeout: Request timeout in seconds
            max_results: Maximum results requested per query
            max_retries: Retries on 429 and 5xx before giving up
            initial_backoff: First backoff delay in seconds
            max_backoff: Backoff cap in seconds
            rate_limiter: Shared limiter spacing out outgoing calls
            monitor: Shared counter of consecutive connection failures

        Raises:
            ValueError: If API key is not provided or invalid
        """
        if not api_key or len(api_key.strip()) < 10:
            raise ValueError(
                "DuckDuckGo API key is required and must be at least 10 characters. "
                "Please set the DUCKDUCKGO_API_KEY environment variable. "
                "Get your API key from: https://rapidapi.com/duckduckgo/api/duckduckgo8"
            )

        self.api_key = api_key.strip()
        self.timeout = timeout
        self.max_results = max_results
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.rate_limiter = rate_limiter or RateLimiter(0.0)
        self.monitor = monitor or ConnectionMonitor()
        self.base_url = "https://duckduckgo8.p.rapidapi.com"

    def ask(self, request: SearchRequest, retry_on_rate_limit: bool = True) -> str:
        results = self.search(request.query, retry_on_rate_limit=retry_on_rate_limit)
        if not results:
            return "NOTFOUND"
        return "\n".join(result.url for result in results)

    def search(self, query: str, retry_on_rate_limit: bool = True) -> List[SearchResult]:
        """
        Run one web search.

        Args:
            query: Search phrase

        Returns:
            List of SearchResult objects

        Raises:
            SearchAPIError: For API errors, network issues, or invalid responses
            RateLimitError: When rate limit is still exceeded after retries
        """
        headers = {
            "X-RapidAPI-Key": self.api_key,
            "X-RapidAPI-Host": "duckduckgo8.p.rapidapi.com"
        }
        params = {
            "q": query,
            "max_results": self.max_results
        }

        response = self._make_api_request_with_retry(headers, params, retry_on_rate_limit)

        try:
            data = response.json()
        except ValueError as e:
            raise SearchAPIError(f"Invalid JSON response: {e}")

        results = []
        for position, result in enumerate(data.get("results", []), 1):
            # Skip malformed results
            if not isinstance(result, dict) or not result.get("url"):
                continue
            results.append(SearchResult(
                url=result["url"],
                title=result.get("title", ""),
                snippet=result.get("description", ""),
                position=position
            ))

        logger.debug(f"DuckDuckGo returned {len(results)} results for '{query}'")
        return results

    def _make_api_request_with_retry(self, headers: Dict[str, str], params: Dict[str, object],
                                     retry_on_rate_limit: bool) -> requests.Response:
        """
        Make API request with exponential backoff retry logic.

        Raises:
            SearchAPIError: After all retries exhausted
        """
        attempt = 0
        backoff = self.initial_backoff

        while True:
            self.rate_limiter.wait_if_needed()
            try:
                response = requests.get(self.base_url, headers=headers, params=params,
                                        timeout=self.timeout)
            except requests.ConnectionError as e:
                self.monitor.record_failure(e)
                raise SearchAPIError(f"Network error during search: {e}")
            except requests.RequestException as e:
                raise SearchAPIError(f"Network error during search: {e}")
            self.monitor.record_success()

            if response.status_code in (401, 403):
                raise AuthenticationError(
                    f"DuckDuckGo API rejected credentials (status {response.status_code})"
                )

            if response.status_code == 429:
                if not retry_on_rate_limit or attempt >= self.max_retries:
                    raise RateLimitError("Rate limit exceeded. Please wait before retrying.")
                logger.warning(f"Rate limited. Retrying in {backoff}s...")
            elif response.status_code >= 500:
                if attempt >= self.max_retries:
                    raise SearchAPIError(f"Server error {response.status_code} after retries")
                logger.warning(f"Server error {response.status_code}. Retrying in {backoff}s...")
            elif response.status_code != 200:
                raise SearchAPIError(
                    f"API request failed with status {response.status_code}: {response.text}"
                )
            else:
                return response

            time.sleep(backoff)
            backoff = min(backoff * 2, self.max_backoff)
            attempt += 1
