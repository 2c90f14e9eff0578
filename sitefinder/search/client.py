"""
Web-search-enabled model client used by every external search stage.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from sitefinder.core.exceptions import (
    AuthenticationError, ProviderUnavailableError, RateLimitError, SearchAPIError
)
from sitefinder.search.rate_limiter import RateLimiter


logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a company research assistant. You ALWAYS use web search before "
    "answering. Never give up without first performing at least two different "
    "web searches. Be persistent in finding company websites."
)

FINAL_ANSWER_PROMPT = (
    "Based on the search results above, give your final answer now. "
    "Reply with only the website URL, or NOTFOUND."
)

# Content block types that show the model actually ran a search
_SEARCH_BLOCK_TYPES = frozenset({'server_tool_use', 'web_search_tool_result', 'tool_use'})


@dataclass(frozen=True)
class SearchRequest:
    """One natural-language question for the search capability.

    ``query`` is the plain search phrase, ``instruction`` the full prompt.
    Backends that cannot follow instructions only use the query.
    """
    query: str
    instruction: str
    use_web_search: bool = True


class SearchBackend(ABC):
    """Anything that can answer a SearchRequest with free text."""

    @abstractmethod
    def ask(self, request: SearchRequest, retry_on_rate_limit: bool = True) -> str:
        """Return the answer text for a request.

        Raises:
            SearchAPIError: Transient failure, including exhausted rate-limit retries
            AuthenticationError: Credentials rejected
            ProviderUnavailableError: Provider unreachable for several calls in a row
        """


class ConnectionMonitor:
    """
    Count consecutive connection failures across every worker.

    A provider that cannot be reached at all fails every company the same
    way; after ``max_failures`` in a row with no response in between the
    failure is raised as ProviderUnavailableError. Zero disables the check.
    """

    def __init__(self, max_failures: int = 5):
        self.max_failures = max_failures
        self._failures = 0
        self._lock = threading.Lock()

    @property
    def failures(self) -> int:
        return self._failures

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0

    def record_failure(self, error: Exception) -> None:
        with self._lock:
            self._failures += 1
            failures = self._failures
        if self.max_failures and failures >= self.max_failures:
            raise ProviderUnavailableError(
                f"Search provider unreachable after {failures} consecutive "
                f"connection failures: {error}"
            )


class WebSearchClient(SearchBackend):
    """
    Client for the Anthropic Messages API with the server-side web search tool.

    Search is exposed as a tool call, so an answer may take two rounds: in the
    first the model decides to search; if it did, the round-1 transcript is
    sent back and the second round carries the final answer.
    """

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-20250514",
                 max_tokens: int = 300, max_searches: int = 3, timeout: float = 25,
                 max_retries: int = 5, initial_backoff: float = 8, max_backoff: float = 60,
                 rate_limiter: Optional[RateLimiter] = None,
                 system_prompt: str = DEFAULT_SYSTEM_PROMPT,
                 monitor: Optional[ConnectionMonitor] = None):
        """
        Initialize the search client.

        Args:
            api_key: Anthropic API key
            model: Model name
            max_tokens: Token cap per response
            max_searches: Max web searches the model may run per round
            timeout: Per-round request timeout in seconds
            max_retries: Retries on 429 and 5xx before giving up
            initial_backoff: First backoff delay when no retry-after is sent
            max_backoff: Backoff cap in seconds
            rate_limiter: Shared limiter spacing out outgoing calls
            system_prompt: System prompt sent with every request
            monitor: Shared counter of consecutive connection failures

        Raises:
            ValueError: If API key is not provided or invalid
        """
        if not api_key or len(api_key.strip()) < 10:
            raise ValueError(
                "Anthropic API key is required and must be at least 10 characters. "
                "Please set the ANTHROPIC_API_KEY environment variable."
            )

        self.api_key = api_key.strip()
        self.model = model
        self.max_tokens = max_tokens
        self.max_searches = max_searches
        self.timeout = timeout
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.rate_limiter = rate_limiter or RateLimiter(0.0)
        self.system_prompt = system_prompt
        self.monitor = monitor or ConnectionMonitor()
        self.base_url = "https://api.anthropic.com/v1/messages"

    def ask(self, request: SearchRequest, retry_on_rate_limit: bool = True) -> str:
        messages: List[Dict[str, Any]] = [{"role": "user", "content": request.instruction}]

        first = self._send(messages, request.use_web_search, retry_on_rate_limit)
        content = first.get("content") or []
        if not self._used_search(content):
            return self._text(content)

        logger.debug(f"Search used for '{request.query}', requesting final answer")
        messages = messages + [
            {"role": "assistant", "content": content},
            {"role": "user", "content": FINAL_ANSWER_PROMPT},
        ]
        second = self._send(messages, request.use_web_search, retry_on_rate_limit)
        return self._text(second.get("content") or [])

    def _payload(self, messages: List[Dict[str, Any]], use_web_search: bool) -> Dict[str, Any]:
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": self.system_prompt,
            "messages": messages,
        }
        if use_web_search:
            payload["tools"] = [{
                "type": "web_search_20250305",
                "name": "web_search",
                "max_uses": self.max_searches,
            }]
            payload["tool_choice"] = {"type": "auto"}
        return payload

    def _send(self, messages: List[Dict[str, Any]], use_web_search: bool,
              retry_on_rate_limit: bool) -> Dict[str, Any]:
        """Post one round, applying the backoff policy."""
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
        }
        payload = self._payload(messages, use_web_search)
        backoff = self.initial_backoff
        attempt = 0

        while True:
            self.rate_limiter.wait_if_needed()
            try:
                response = requests.post(self.base_url, headers=headers, json=payload,
                                         timeout=self.timeout)
            except requests.ConnectionError as e:
                self.monitor.record_failure(e)
                raise SearchAPIError(f"Network error during search: {e}")
            except requests.Timeout as e:
                raise SearchAPIError(f"Search request timed out after {self.timeout}s: {e}")
            except requests.RequestException as e:
                raise SearchAPIError(f"Network error during search: {e}")
            self.monitor.record_success()

            if response.status_code in (401, 403):
                raise AuthenticationError(
                    f"Search provider rejected credentials (status {response.status_code})"
                )

            if response.status_code == 429:
                if not retry_on_rate_limit or attempt >= self.max_retries:
                    raise RateLimitError(f"Rate limit exceeded after {attempt} retries")
                delay = self._retry_after(response) or backoff
                logger.warning(f"Rate limited. Retrying in {delay}s "
                               f"(attempt {attempt + 1}/{self.max_retries})")
                time.sleep(delay)
                backoff = min(backoff * 2, self.max_backoff)
                attempt += 1
                continue

            if response.status_code >= 500:
                if attempt >= self.max_retries:
                    raise SearchAPIError(
                        f"Server error {response.status_code} after {attempt} retries"
                    )
                logger.warning(f"Server error {response.status_code}. Retrying in {backoff}s...")
                time.sleep(backoff)
                backoff = min(backoff * 2, self.max_backoff)
                attempt += 1
                continue

            if response.status_code != 200:
                raise SearchAPIError(
                    f"API request failed with status {response.status_code}: {response.text}"
                )

            try:
                data = response.json()
            except ValueError as e:
                raise SearchAPIError(f"Invalid JSON response: {e}")
            if not isinstance(data, dict):
                raise SearchAPIError("Unexpected response shape")
            return data

    @staticmethod
    def _retry_after(response: requests.Response) -> Optional[float]:
        value = response.headers.get("retry-after")
        if not value:
            return None
        try:
            return max(0.0, float(value))
        except ValueError:
            return None

    @staticmethod
    def _used_search(content: List[Dict[str, Any]]) -> bool:
        return any(isinstance(block, dict) and block.get("type") in _SEARCH_BLOCK_TYPES
                   for block in content)

    @staticmethod
    def _text(content: List[Dict[str, Any]]) -> str:
        parts = [block.get("text", "") for block in content
                 if isinstance(block, dict) and block.get("type") == "text"]
        return "".join(parts).strip()
