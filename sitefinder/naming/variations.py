"""
Domain variation generation.

Guesses plausible website URLs from a company name so they can be probed
directly, without paying for an external search.
"""

import re
from typing import List, Optional, Sequence

from sitefinder.filtering.blocklist import BlocklistFilter
from sitefinder.filtering.tlds import split_tld
from sitefinder.naming.normalizer import keywords, raw_tokens


DEFAULT_TLDS = [
    'com', 'net', 'io', 'co', 'org', 'ai', 'app', 'tech', 'biz', 'us',
    'digital', 'media', 'online', 'site',
]

_EMBEDDED_DOMAIN_PATTERNS = [
    re.compile(r'^[a-zA-Z0-9][\w.-]+\.(com|io|net|org|co)$', re.IGNORECASE),
    re.compile(r'^[a-zA-Z0-9][\w-]*\.co\.[a-z]{2}$', re.IGNORECASE),
]

# Looser form for a domain anywhere in the name. Legal-suffix TLDs such as
# .ltd or .inc are left out because "Foo Co.Ltd" is not a domain.
_DOMAIN_HINT_PATTERN = re.compile(
    r'(?<![\w.@-])((?:[a-z0-9][a-z0-9-]*\.)+'
    r'(?:com|net|org|io|co|ai|app|tech|biz|us|digital|media|online|site|[a-z]{2}))(?![\w-])',
    re.IGNORECASE
)


class DomainVariationGenerator:
    """
    Build an ordered list of candidate URLs from a company name.

    More specific bases (full name) come before shorter ones so that ties
    later resolve toward the most complete match.
    """

    def __init__(self, tlds: Optional[Sequence[str]] = None, max_variations: int = 15,
                 tlds_per_base: int = 3, blocklist: Optional[BlocklistFilter] = None):
        """
        Args:
            tlds: Ordered top-level domains to try
            max_variations: Cap on the number of URLs produced
            tlds_per_base: How many TLDs from the front of the list each base is crossed with
            blocklist: Hosts that must never be proposed
        """
        self.tlds = [tld.lstrip('.').lower() for tld in (tlds or DEFAULT_TLDS)]
        self.max_variations = max_variations
        self.tlds_per_base = max(1, tlds_per_base)
        self.blocklist = blocklist or BlocklistFilter()

    def embedded_domain(self, name: str) -> Optional[str]:
        """Return the name itself as a URL when the name already is a domain."""
        candidate = (name or '').strip()
        if not any(pattern.match(candidate) for pattern in _EMBEDDED_DOMAIN_PATTERNS):
            return None

        host = candidate.lower()
        if host.startswith('www.'):
            host = host[4:]
        return f"https://www.{host}"

    def domain_hint(self, name: str) -> Optional[str]:
        """Return ``https://<domain>`` for a domain written inside a longer name."""
        for match in _DOMAIN_HINT_PATTERN.finditer(name or ''):
            host = match.group(1).lower()
            labels, tld = split_tld(host)
            # "Mr.Li" or "Jr.Co" are abbreviations, not domains
            if len(tld) == 2 and (not labels or len(labels[-1]) < 3):
                continue
            return f"https://{host}"
        return None

    def bases(self, name: str) -> List[str]:
        """Deduplicated base strings, most specific first."""
        words = keywords(name)
        tokens = raw_tokens(name)

        ordered = [
            ''.join(words),
            ''.join(words[:3]),
            ''.join(words[:2]),
            words[0] if words else '',
        ]
        if 2 <= len(words) <= 5:
            ordered.append(''.join(word[0] for word in words))
        if 2 <= len(tokens) <= 5:
            ordered.append(''.join(token[0] for token in tokens))
        # Unfiltered fallbacks keep words such as "the" or "group"
        ordered.append(''.join(tokens))
        ordered.append(''.join(tokens[:2]))

        seen = set()
        result = []
        for base in ordered:
            if len(base) >= 2 and base not in seen:
                seen.add(base)
                result.append(base)
        return result

    def generate(self, name: str) -> List[str]:
        """Cross each base with the leading TLDs, capped at max_variations."""
        urls = []
        for base in self.bases(name):
            for tld in self.tlds[:self.tlds_per_base]:
                url = f"https://www.{base}.{tld}"
                if self.blocklist.is_blocked(url):
                    continue
                urls.append(url)
                if len(urls) >= self.max_variations:
                    return urls
        return urls
