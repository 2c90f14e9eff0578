"""
Candidate extraction from free-form text.

Search providers answer with prose, markdown or raw result listings. This
module pulls the first usable website origin out of such text.
"""

import logging
import re
from typing import Iterator, Optional
from urllib.parse import urlparse

from sitefinder.filtering.blocklist import BlocklistFilter
from sitefinder.filtering.tlds import TLDAllowlist


logger = logging.getLogger(__name__)

NOT_FOUND_SENTINEL = "NOTFOUND"

_URL_PATTERN = re.compile(r'https?://[^\s<>"\'`()\[\]{}|\\^]+', re.IGNORECASE)
_BARE_DOMAIN_PATTERN = re.compile(
    r'(?<![@\w./-])((?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,24})(?![\w-])',
    re.IGNORECASE
)
_HOST_PATTERN = re.compile(r'^[a-z0-9.-]+$')
_TRAILING_PUNCTUATION = '.,;:!?\'"*_>'


class CandidateExtractor:
    """
    Extract the first qualifying website origin from arbitrary text.

    Absolute URLs are preferred over bare domains. A candidate qualifies when
    its host is not blocklisted and ends in an allowlisted TLD. First match
    wins; candidates are not ranked.
    """

    def __init__(self, blocklist: Optional[BlocklistFilter] = None,
                 tld_allowlist: Optional[TLDAllowlist] = None,
                 sentinel: str = NOT_FOUND_SENTINEL):
        """
        Args:
            blocklist: Filter for hosts that are never company sites
            tld_allowlist: Allowlist of top-level domains
            sentinel: Token that marks an explicit "no answer"
        """
        self.blocklist = blocklist or BlocklistFilter()
        self.tld_allowlist = tld_allowlist or TLDAllowlist()
        self.sentinel = sentinel

    def extract(self, text: Optional[str]) -> Optional[str]:
        """Return the first qualifying origin (scheme + host) in ``text``.

        Returns None for empty text, for text containing the not-found
        sentinel, or when nothing qualifies.
        """
        if not text or not text.strip():
            return None
        if self.sentinel and self.sentinel in text:
            logger.debug("Answer contains not-found sentinel")
            return None

        return next(self._iter_candidates(text), None)

    def is_acceptable(self, url: Optional[str]) -> bool:
        """Whether a URL may be returned as a resolution result."""
        return self._to_origin(url) is not None

    def _iter_candidates(self, text: str) -> Iterator[str]:
        for match in _URL_PATTERN.finditer(text):
            origin = self._to_origin(match.group(0).rstrip(_TRAILING_PUNCTUATION))
            if origin:
                yield origin

        # Bare domains only from text outside absolute URLs, never from a path
        remainder = _URL_PATTERN.sub(' ', text)
        for match in _BARE_DOMAIN_PATTERN.finditer(remainder):
            origin = self._to_origin("https://" + match.group(1))
            if origin:
                yield origin

    def _to_origin(self, url: Optional[str]) -> Optional[str]:
        if not url:
            return None
        try:
            parsed = urlparse(url.strip())
            scheme = parsed.scheme.lower()
            host = parsed.hostname
        except ValueError:
            return None

        if scheme not in ('http', 'https') or not host:
            return None
        host = host.rstrip('.')
        if not _HOST_PATTERN.match(host):
            return None
        if self.blocklist.is_blocked_host(host):
            logger.debug(f"Rejected blocklisted host: {host}")
            return None
        if not self.tld_allowlist.is_valid_host(host):
            logger.debug(f"Rejected host with unknown TLD: {host}")
            return None

        return f"{scheme}://{host}"


def registrable_domain(url: str) -> str:
    """Host of a URL without scheme, ``www.``, port or path.

    This is the unit compared when deciding whether two stages agree.
    """
    value = url.strip()
    if '://' not in value:
        value = 'https://' + value
    try:
        host = urlparse(value).hostname or ''
    except ValueError:
        host = ''
    host = host.lower().rstrip('.')
    if host.startswith('www.'):
        host = host[4:]
    return host
