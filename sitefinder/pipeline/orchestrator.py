"""
Resolution orchestrator.

Runs an ordered list of stages for one company until a stage produces a
terminal result. Stage failures never abort a resolution; only a systemic
outage (rejected credentials, an unreachable provider) propagates.
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

from sitefinder.core.config import Config
from sitefinder.core.exceptions import ConfigurationError, SearchAPIError, SystemicError
from sitefinder.core.models import CompanyQuery, PipelineState, ResolutionResult, StageId
from sitefinder.filtering.blocklist import BlocklistFilter
from sitefinder.filtering.extractor import CandidateExtractor
from sitefinder.naming.variations import DomainVariationGenerator
from sitefinder.pipeline import prompts
from sitefinder.pipeline.judge import CandidateJudge, ModelJudge
from sitefinder.pipeline.stages import (
    CrossValidationStage, DomainHintStage, DomainVariationStage, FinalArbitrationStage,
    NameIsDomainStage, SearchStage, Stage, StageContext
)
from sitefinder.probe.prober import TitleProber
from sitefinder.scoring.confidence import ConfidenceScorer, CrossValidator
from sitefinder.search.client import ConnectionMonitor, SearchBackend, WebSearchClient
from sitefinder.search.duckduckgo import DuckDuckGoClient
from sitefinder.search.rate_limiter import RateLimiter


logger = logging.getLogger(__name__)

DEFAULT_STAGES = [
    'name_is_domain', 'domain_variation', 'official_site_search', 'name_search',
    'linkedin_search', 'cross_validation', 'domain_hint', 'directory_search',
    'last_resort_search', 'final_arbitration',
]

STAGE_FACTORIES: Dict[str, Callable[[], Stage]] = {
    'name_is_domain': NameIsDomainStage,
    'domain_variation': DomainVariationStage,
    'official_site_search': lambda: SearchStage(
        'official_site_search', StageId.EXTERNAL_SEARCH, prompts.official_site, early_exit=True),
    'name_search': lambda: SearchStage('name_search', StageId.NAME_SEARCH, prompts.name_search),
    'linkedin_search': lambda: SearchStage(
        'linkedin_search', StageId.LINKEDIN_PROFILE, prompts.linkedin_profile),
    'cross_validation': CrossValidationStage,
    'domain_hint': DomainHintStage,
    'directory_search': lambda: SearchStage(
        'directory_search', StageId.DIRECTORY_LOOKUP, prompts.directory_lookup),
    'last_resort_search': lambda: SearchStage(
        'last_resort_search', StageId.LAST_RESORT, prompts.last_resort),
    'final_arbitration': FinalArbitrationStage,
}


def build_stages(names: Sequence[str]) -> List[Stage]:
    """Instantiate stages by name, in order."""
    unknown = [name for name in names if name not in STAGE_FACTORIES]
    if unknown:
        raise ConfigurationError(f"Unknown pipeline stages: {unknown}")
    return [STAGE_FACTORIES[name]() for name in names]


class ResolutionOrchestrator:
    """
    Resolve one company at a time through a configurable stage cascade.
    """

    def __init__(self, stages: Sequence[Stage], context: StageContext, time_budget: float = 180):
        """
        Args:
            stages: Ordered stages; the first terminal result wins
            context: Collaborators shared by the stages
            time_budget: Seconds per company after which network stages are skipped
        """
        self.stages = list(stages)
        self.context = context
        self.time_budget = time_budget

    def resolve(self, query: CompanyQuery, attempt: int = 0) -> ResolutionResult:
        """Resolve a company's website.

        Always returns a validated origin URL or "Not Available".

        Raises:
            SystemicError: Rejected credentials or an unreachable provider
        """
        state = PipelineState(query=query, deadline=time.monotonic() + self.time_budget,
                              attempt=attempt)
        logger.info(f"Resolving '{query.name}' (attempt {attempt + 1})")

        for index, stage in enumerate(self.stages):
            state.stage_index = index
            if stage.network and state.expired:
                logger.info(f"Time budget spent, skipping {stage.name} for '{query.name}'")
                continue

            result = self._run_stage(stage, state)
            if result is None:
                continue

            if result.found and not self.context.extractor.is_acceptable(result.url):
                logger.warning(f"{stage.name} produced unacceptable URL {result.url}; continuing")
                continue

            logger.info(f"Resolved '{query.name}' -> {result.url} via {result.method}")
            return result

        logger.info(f"No website found for '{query.name}'")
        return ResolutionResult.not_available()

    def _run_stage(self, stage: Stage, state: PipelineState) -> Optional[ResolutionResult]:
        try:
            return stage.run(state, self.context)
        except SystemicError:
            raise
        except SearchAPIError as e:
            logger.warning(f"{stage.name} failed for '{state.query.name}': {e}")
        except Exception as e:
            logger.error(f"Unexpected error in {stage.name} for '{state.query.name}': {e}",
                         exc_info=True)
        return None


def create_search_backend(search_config: Dict) -> SearchBackend:
    """Build the configured search backend."""
    limiter = RateLimiter(search_config.get('min_interval', 0.4))
    monitor = ConnectionMonitor(search_config.get('max_connection_failures', 5))
    provider = search_config.get('provider', 'anthropic')
    common = dict(
        timeout=search_config.get('timeout', 25),
        max_retries=search_config.get('max_retries', 5),
        initial_backoff=search_config.get('initial_backoff', 8),
        max_backoff=search_config.get('max_backoff', 60),
        rate_limiter=limiter,
        monitor=monitor,
    )

    if provider == 'duckduckgo':
        return DuckDuckGoClient(search_config.get('api_key', ''), **common)
    if provider == 'anthropic':
        return WebSearchClient(
            search_config.get('api_key', ''),
            model=search_config.get('model', 'claude-sonnet-4-20250514'),
            max_tokens=search_config.get('max_tokens', 300),
            max_searches=search_config.get('max_searches', 3),
            **common
        )
    raise ConfigurationError(f"Unknown search provider: {provider}")


def build_pipeline(config: Config, backend: Optional[SearchBackend] = None,
                   prober: Optional[TitleProber] = None,
                   judge: Optional[CandidateJudge] = None) -> ResolutionOrchestrator:
    """Assemble an orchestrator from configuration.

    Any collaborator passed in replaces the one the configuration would build.
    """
    probe = config.probe_config
    scoring = config.scoring_config
    pipeline = config.pipeline_config

    blocklist = BlocklistFilter()
    blocklist.extend(config.filtering_config.get('blocklist') or [])
    extractor = CandidateExtractor(blocklist=blocklist)

    if backend is None:
        backend = create_search_backend(config.search_config)
    if prober is None:
        prober = TitleProber(
            timeout=probe.get('timeout', 3),
            max_title_length=probe.get('max_title_length', 200),
            max_workers=probe.get('max_workers', 15),
        )
    if judge is None and pipeline.get('model_judgment', False):
        judge = ModelJudge(backend, extractor)

    context = StageContext(
        extractor=extractor,
        scorer=ConfidenceScorer(
            acceptance_threshold=scoring.get('acceptance_threshold', 0.5),
            early_exit_similarity=scoring.get('early_exit_similarity', 0.8),
        ),
        cross_validator=CrossValidator(
            min_stages=scoring.get('cross_validation_min_stages', 2),
            confidence=scoring.get('cross_validation_confidence', 0.95),
        ),
        generator=DomainVariationGenerator(
            max_variations=probe.get('max_variations', 15),
            tlds_per_base=probe.get('tlds_per_base', 3),
            blocklist=blocklist,
        ),
        prober=prober,
        backend=backend,
        judge=judge,
        rate_limit_policy=dict(pipeline.get('rate_limit_policy') or {}),
    )

    stages = build_stages(pipeline.get('stages') or DEFAULT_STAGES)
    logger.debug(f"Pipeline stages: {[stage.name for stage in stages]}")
    return ResolutionOrchestrator(stages, context, time_budget=pipeline.get('time_budget', 180))
