"""
Confidence scoring for website candidates.

Two heuristics are provided and they are not numerically comparable:
title-keyword overlap (for probed pages) and domain-string similarity (for
search answers). Cross-validation sits beside them and accepts a domain that
several independent stages agree on.
"""

import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence
from urllib.parse import urlparse

from sitefinder.core.models import ResolutionResult, ScoredCandidate, ScoreMethod, StageId
from sitefinder.filtering.extractor import registrable_domain
from sitefinder.filtering.tlds import split_tld
from sitefinder.naming.normalizer import scoring_keywords


logger = logging.getLogger(__name__)

# TLDs too common to count as part of a brand ("acme.com" says nothing about "communications")
_PLAIN_TLDS = frozenset({'com', 'net', 'org'})


class ConfidenceScorer:
    """
    Score candidates against a company name and decide acceptance.
    """

    def __init__(self, acceptance_threshold: float = 0.5, early_exit_similarity: float = 0.8,
                 neutral_score: float = 0.5):
        """
        Initialize the confidence scorer.

        Args:
            acceptance_threshold: Minimum score to stop at a candidate
            early_exit_similarity: Domain similarity that ends the pipeline at once
            neutral_score: Similarity returned when a name has no scorable keywords
        """
        self.acceptance_threshold = acceptance_threshold
        self.early_exit_similarity = early_exit_similarity
        self.neutral_score = neutral_score

    def title_keyword_score(self, company_name: str, title: Optional[str]) -> float:
        """Fraction of name keywords found in a page title (0-1.0)."""
        words = scoring_keywords(company_name)
        if not title or not words:
            return 0.0

        title_lower = title.lower()
        matches = sum(1 for word in words if word in title_lower)
        return matches / len(words)

    def domain_similarity_score(self, company_name: str, url: str) -> float:
        """Similarity between name keywords and a candidate's domain (0-1.0)."""
        words = scoring_keywords(company_name)
        if not words:
            return self.neutral_score

        domain, tld_word = self._domain_parts(url)
        if not domain:
            return 0.0
        combined = domain + tld_word

        total = 0.0
        for word in words:
            total += self._keyword_match(word, domain, tld_word, combined)

        return min(1.0, total / len(words))

    def _keyword_match(self, word: str, domain: str, tld_word: str, combined: str) -> float:
        if word in combined:
            return 1.0
        if len(word) >= 4 and len(domain) >= 4 and word[:4] == domain[:4]:
            return 0.8
        if tld_word and tld_word not in _PLAIN_TLDS:
            size = min(3, len(tld_word))
            if len(tld_word) >= 2 and word[:size] == tld_word[:size]:
                return 0.7
        if len(word) >= 4 and word[:4] in combined:
            return 0.4
        return 0.0

    def _domain_parts(self, url: str) -> tuple:
        """Return (bare domain string, TLD word) for a URL."""
        value = url if '://' in url else 'https://' + url
        try:
            host = (urlparse(value).hostname or '').lower()
        except ValueError:
            return '', ''
        if host.startswith('www.'):
            host = host[4:]
        if '.' not in host:
            return '', ''

        labels, tld = split_tld(host)
        domain = ''.join(labels).replace('-', '')
        return domain, tld.replace('.', '')

    def is_acceptable(self, candidate: ScoredCandidate) -> bool:
        """Whether a candidate is strong enough to stop at."""
        return candidate.confidence >= self.acceptance_threshold

    def is_early_exit(self, candidate: ScoredCandidate) -> bool:
        """Whether a search candidate is strong enough to skip every later stage."""
        return (candidate.score_method == ScoreMethod.DOMAIN_SIMILARITY
                and candidate.confidence >= self.early_exit_similarity)

    def best(self, candidates: Sequence[ScoredCandidate]) -> Optional[ScoredCandidate]:
        """Highest-confidence candidate; earlier candidates win ties."""
        best = None
        for candidate in candidates:
            if best is None or candidate.confidence > best.confidence:
                best = candidate
        return best


class CrossValidator:
    """
    Accept a domain when enough distinct stages produced it independently.
    """

    def __init__(self, min_stages: int = 2, confidence: float = 0.95):
        """
        Args:
            min_stages: Number of distinct agreeing stages required
            confidence: Confidence reported for a cross-validated result
        """
        self.min_stages = min_stages
        self.confidence = confidence

    def group(self, candidates: Sequence[ScoredCandidate]) -> Dict[str, List[ScoredCandidate]]:
        """Candidates grouped by registrable domain, in first-seen order."""
        groups: Dict[str, List[ScoredCandidate]] = OrderedDict()
        for candidate in candidates:
            domain = registrable_domain(candidate.url)
            if domain:
                groups.setdefault(domain, []).append(candidate)
        return groups

    def check(self, candidates: Sequence[ScoredCandidate]) -> Optional[ResolutionResult]:
        """Return a cross-validated result, or None if no domain has enough support."""
        winner = None
        winner_stages = 0
        for domain, group in self.group(candidates).items():
            stages = {candidate.source_stage for candidate in group}
            if len(stages) >= self.min_stages and len(stages) > winner_stages:
                winner = group[0]
                winner_stages = len(stages)

        if winner is None:
            return None

        logger.info(f"Cross-validated {winner.url} across {winner_stages} stages")
        return ResolutionResult(url=winner.url, method=StageId.CROSS_VALIDATED.value,
                                confidence=self.confidence)
