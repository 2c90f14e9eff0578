"""
Model judgment among low-confidence candidates.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from sitefinder.core.models import CompanyQuery
from sitefinder.filtering.extractor import CandidateExtractor, registrable_domain
from sitefinder.pipeline import prompts
from sitefinder.search.client import SearchBackend


logger = logging.getLogger(__name__)


class CandidateJudge(ABC):
    """Pick the official site from a short list of already-extracted URLs."""

    @abstractmethod
    def choose(self, query: CompanyQuery, candidates: Sequence[str]) -> Optional[str]:
        """Return one of ``candidates`` or None when none is acceptable."""


class ModelJudge(CandidateJudge):
    """
    Ask the search model to choose. The answer is only trusted when it names
    one of the listed candidates; a fresh URL is discarded.
    """

    def __init__(self, backend: SearchBackend, extractor: CandidateExtractor):
        self.backend = backend
        self.extractor = extractor

    def choose(self, query: CompanyQuery, candidates: Sequence[str]) -> Optional[str]:
        if not candidates:
            return None

        answer = self.backend.ask(prompts.judgment(query, candidates))
        picked = self.extractor.extract(answer)
        if picked is None:
            logger.info(f"Judge accepted none of {len(candidates)} candidates for '{query.name}'")
            return None

        picked_domain = registrable_domain(picked)
        for url in candidates:
            if registrable_domain(url) == picked_domain:
                return url

        logger.warning(f"Judge answered with unlisted URL {picked}; ignoring")
        return None
