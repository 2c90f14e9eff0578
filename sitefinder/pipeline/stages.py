"""
Resolution stages.

Each stage either returns a terminal ResolutionResult or records what it found
on the PipelineState and returns None so the next stage runs.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from sitefinder.core.exceptions import SearchAPIError
from sitefinder.core.models import (
    Candidate, CompanyQuery, PipelineState, ResolutionResult, ScoredCandidate, ScoreMethod, StageId
)
from sitefinder.filtering.extractor import CandidateExtractor, registrable_domain
from sitefinder.naming.variations import DomainVariationGenerator
from sitefinder.pipeline.judge import CandidateJudge
from sitefinder.probe.prober import TitleProber
from sitefinder.scoring.confidence import ConfidenceScorer, CrossValidator
from sitefinder.search.client import SearchBackend, SearchRequest


logger = logging.getLogger(__name__)

_EVIDENCE_LIMIT = 500


@dataclass
class StageContext:
    """Collaborators shared by every stage of one pipeline."""
    extractor: CandidateExtractor
    scorer: ConfidenceScorer
    cross_validator: CrossValidator
    generator: DomainVariationGenerator
    prober: Optional[TitleProber] = None
    backend: Optional[SearchBackend] = None
    judge: Optional[CandidateJudge] = None
    rate_limit_policy: Dict[str, str] = field(default_factory=dict)

    def ask(self, stage_name: str, request: SearchRequest) -> Optional[str]:
        """Send a request through the backend using the stage's rate-limit policy."""
        if self.backend is None:
            logger.debug(f"No search backend configured, skipping {stage_name}")
            return None
        retry = self.rate_limit_policy.get(stage_name, 'backoff') == 'backoff'
        return self.backend.ask(request, retry_on_rate_limit=retry)


class Stage:
    """One strategy in the resolution cascade."""

    name = ''
    # Network stages are skipped once the time budget is spent
    network = False

    def run(self, state: PipelineState, ctx: StageContext) -> Optional[ResolutionResult]:
        raise NotImplementedError

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"


class NameIsDomainStage(Stage):
    """The company name already is a domain such as ``acme.io``."""

    name = 'name_is_domain'

    def run(self, state, ctx):
        url = ctx.generator.embedded_domain(state.query.name)
        if url is None or not ctx.extractor.is_acceptable(url):
            return None
        return ResolutionResult(url=url, method=StageId.NAME_EMBEDDED_DOMAIN.value, confidence=1.0)


class DomainVariationStage(Stage):
    """Probe guessed domains and score the live ones by their page titles."""

    name = 'domain_variation'
    network = True

    def run(self, state, ctx):
        if ctx.prober is None:
            return None

        urls = ctx.generator.generate(state.query.name)
        scored = []
        for url, title in ctx.prober.probe_all(urls):
            if title is None:
                continue
            score = ctx.scorer.title_keyword_score(state.query.name, title)
            scored.append(ScoredCandidate(
                url=url,
                source_stage=StageId.DOMAIN_VARIATION,
                confidence=score,
                score_method=ScoreMethod.TITLE_KEYWORD,
                raw_evidence_text=title
            ))

        best = ctx.scorer.best(scored)
        if best is None:
            return None
        if ctx.scorer.is_acceptable(best):
            logger.info(f"Domain variation {best.url} matched title '{best.raw_evidence_text}'")
            return ResolutionResult(url=best.url, method=StageId.DOMAIN_VARIATION.value,
                                    confidence=best.confidence)
        if best.confidence > 0:
            state.fallback = best
        return None


class SearchStage(Stage):
    """Ask the search backend, extract a URL and keep it as a candidate.

    With ``early_exit`` set, a candidate whose domain similarity clears the
    early-exit bar ends the pipeline immediately.
    """

    network = True

    def __init__(self, name: str, stage_id: StageId,
                 build_request: Callable[[CompanyQuery, int], SearchRequest],
                 early_exit: bool = False):
        self.name = name
        self.stage_id = stage_id
        self.build_request = build_request
        self.early_exit = early_exit

    def run(self, state, ctx):
        request = self.build_request(state.query, state.attempt)
        answer = ctx.ask(self.name, request)
        url = ctx.extractor.extract(answer)
        if url is None:
            logger.debug(f"{self.name}: no candidate for '{state.query.name}'")
            return None

        proposed = Candidate(url=url, source_stage=self.stage_id,
                             raw_evidence_text=(answer or '')[:_EVIDENCE_LIMIT])
        candidate = ScoredCandidate.from_candidate(
            proposed,
            confidence=ctx.scorer.domain_similarity_score(state.query.name, url),
            score_method=ScoreMethod.DOMAIN_SIMILARITY
        )
        logger.debug(f"{self.name}: {url} (similarity {candidate.confidence:.2f})")

        if self.early_exit and ctx.scorer.is_early_exit(candidate):
            return ResolutionResult(url=url, method=self.stage_id.value,
                                    confidence=candidate.confidence)

        state.add(candidate)
        return None


class CrossValidationStage(Stage):
    """Accept a domain several search stages agree on."""

    name = 'cross_validation'

    def run(self, state, ctx):
        return ctx.cross_validator.check(state.candidates)


class DomainHintStage(Stage):
    """A domain written inside the name, e.g. "Acme (acme-tools.de)"."""

    name = 'domain_hint'

    def run(self, state, ctx):
        url = ctx.generator.domain_hint(state.query.name)
        if url is None or not ctx.extractor.is_acceptable(url):
            return None
        logger.info(f"Found domain {url} inside name '{state.query.name}'")
        return ResolutionResult(url=url, method=StageId.DOMAIN_HINT.value, confidence=1.0)


class FinalArbitrationStage(Stage):
    """Decide among everything retained once the searches are exhausted."""

    name = 'final_arbitration'

    def run(self, state, ctx):
        result = ctx.cross_validator.check(state.candidates)
        if result is not None:
            return result

        if ctx.judge is not None:
            result = self._judge(state, ctx)
            if result is not None:
                return result

        best = ctx.scorer.best(state.candidates)
        if best is not None:
            return ResolutionResult(url=best.url, method=best.source_stage.value,
                                    confidence=best.confidence)

        if state.fallback is not None:
            return ResolutionResult(url=state.fallback.url,
                                    method=state.fallback.source_stage.value,
                                    confidence=state.fallback.confidence)

        return ResolutionResult.not_available()

    def _judge(self, state, ctx) -> Optional[ResolutionResult]:
        urls = []
        seen = set()
        for candidate in state.candidates:
            if ctx.scorer.is_acceptable(candidate):
                # A candidate above the threshold needs no judgment
                return None
            domain = registrable_domain(candidate.url)
            if domain not in seen:
                seen.add(domain)
                urls.append(candidate.url)

        if len(urls) < 2:
            return None

        try:
            picked = ctx.judge.choose(state.query, urls)
        except SearchAPIError as e:
            logger.warning(f"Model judgment failed for '{state.query.name}': {e}")
            return None
        if picked is None:
            return None
        return ResolutionResult(url=picked, method=StageId.MODEL_JUDGMENT.value)
