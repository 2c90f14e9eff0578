"""
Blocklist filtering for hosts that are never a company's own website.
"""

from typing import Iterable, Optional
from urllib.parse import urlparse

from sitefinder.filtering.tlds import split_tld


# Social networks, search engines, video platforms, encyclopedias,
# financial/news media and business/people directories.
DEFAULT_BLOCKED_DOMAINS = [
    # social
    "linkedin.com", "facebook.com", "fb.com", "twitter.com", "x.com",
    "instagram.com", "tiktok.com", "pinterest.com", "reddit.com",
    "threads.net", "snapchat.com", "tumblr.com", "medium.com",
    # search engines
    "google.com", "bing.com", "yahoo.com", "duckduckgo.com", "baidu.com",
    "yandex.com", "yandex.ru", "ask.com", "ecosia.org", "brave.com",
    # video
    "youtube.com", "youtu.be", "vimeo.com", "dailymotion.com",
    # encyclopedias
    "wikipedia.org", "wikimedia.org", "wikidata.org", "britannica.com",
    # financial / news media
    "bloomberg.com", "reuters.com", "forbes.com", "wsj.com", "ft.com",
    "nytimes.com", "cnbc.com", "cnn.com", "bbc.co.uk", "bbc.com",
    "theguardian.com", "businessinsider.com", "techcrunch.com",
    "prnewswire.com", "businesswire.com", "globenewswire.com",
    "marketwatch.com", "seekingalpha.com",
    # business / people directories
    "crunchbase.com", "zoominfo.com", "dnb.com", "owler.com", "pitchbook.com",
    "cbinsights.com", "tracxn.com", "craft.co", "rocketreach.co", "apollo.io",
    "lusha.com", "signalhire.com", "glassdoor.com", "indeed.com", "yelp.com",
    "bbb.org", "yellowpages.com", "manta.com", "opencorporates.com",
    "angel.co", "wellfound.com", "companieshouse.gov.uk",
    "find-and-update.company-information.service.gov.uk", "kompass.com",
    "trustpilot.com", "g2.com", "capterra.com", "clutch.co", "builtwith.com",
    "similarweb.com", "golden.com", "leadiq.com", "contactout.com",
    "theorg.com", "datanyze.com", "growjo.com", "companycheck.co.uk",
    "endole.co.uk", "globaldatabase.com",
]

# Brands blocked under every suffix (google.de, bing.co.uk, linkedin.cn).
BLOCKED_BRANDS = frozenset({
    "google", "bing", "yahoo", "duckduckgo", "baidu", "yandex", "ecosia",
    "startpage", "qwant", "naver", "linkedin", "facebook", "youtube",
    "instagram", "wikipedia",
})


class BlocklistFilter:
    """
    Reject hosts belonging to platforms that list companies rather than
    being the company (social networks, directories, media, search engines).
    """

    def __init__(self, blocklist: Optional[Iterable[str]] = None,
                 brands: Optional[Iterable[str]] = None):
        """
        Initialize the blocklist filter.

        Args:
            blocklist: Domains to block; defaults to DEFAULT_BLOCKED_DOMAINS
            brands: Names blocked under any TLD; defaults to BLOCKED_BRANDS
        """
        if blocklist is None:
            blocklist = DEFAULT_BLOCKED_DOMAINS
        if brands is None:
            brands = BLOCKED_BRANDS
        self.blocklist = [domain.lower().strip() for domain in blocklist if domain.strip()]
        self.brands = frozenset(brand.lower().strip() for brand in brands if brand.strip())

    def is_blocked_host(self, host: Optional[str]) -> bool:
        """
        Check if a bare host is blocklisted.

        A host matches a listed domain exactly or as a subdomain, or carries a
        blocked brand as its name under any TLD.

        Args:
            host: Hostname such as 'www.linkedin.com'

        Returns:
            True if the host or any parent suffix is blocklisted
        """
        if not host:
            return False

        host = host.lower().rstrip('.')
        if host.startswith("www."):
            host = host[4:]

        for blocked_domain in self.blocklist:
            if host == blocked_domain or host.endswith("." + blocked_domain):
                return True

        labels, _ = split_tld(host)
        if labels and labels[-1] in self.brands:
            return True

        return False

    def is_blocked(self, url: Optional[str]) -> bool:
        """
        Check if a URL is blocklisted.

        Args:
            url: URL to check

        Returns:
            True if the URL is blocklisted, False otherwise
        """
        if not url:
            return False

        try:
            return self.is_blocked_host(urlparse(url).hostname)
        except ValueError:
            # Invalid URL format - don't block
            return False

    def extend(self, domains: Iterable[str]) -> None:
        """Add domains to the blocklist."""
        for domain in domains:
            domain = domain.lower().strip()
            if domain and domain not in self.blocklist:
                self.blocklist.append(domain)
