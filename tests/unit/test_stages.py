import time
from unittest.mock import Mock

import pytest

from sitefinder.core.exceptions import SearchAPIError
from sitefinder.core.models import (
    CompanyQuery, PipelineState, ScoredCandidate, ScoreMethod, StageId
)
from sitefinder.filtering.blocklist import BlocklistFilter
from sitefinder.filtering.extractor import CandidateExtractor
from sitefinder.naming.variations import DomainVariationGenerator
from sitefinder.pipeline import prompts
from sitefinder.pipeline.stages import (
    CrossValidationStage, DomainHintStage, DomainVariationStage, FinalArbitrationStage,
    NameIsDomainStage, SearchStage, StageContext
)
from sitefinder.scoring.confidence import ConfidenceScorer, CrossValidator


def make_context(backend=None, prober=None, judge=None, policy=None):
    blocklist = BlocklistFilter()
    return StageContext(
        extractor=CandidateExtractor(blocklist=blocklist),
        scorer=ConfidenceScorer(),
        cross_validator=CrossValidator(),
        generator=DomainVariationGenerator(blocklist=blocklist),
        prober=prober,
        backend=backend,
        judge=judge,
        rate_limit_policy=policy or {},
    )


def make_state(name, attempt=0):
    return PipelineState(query=CompanyQuery(name=name), deadline=time.monotonic() + 60,
                         attempt=attempt)


def similarity_candidate(url, stage, confidence):
    return ScoredCandidate(url=url, source_stage=stage, confidence=confidence,
                           score_method=ScoreMethod.DOMAIN_SIMILARITY)


def make_prober(results):
    prober = Mock()
    prober.probe_all.return_value = results
    return prober


class TestNameIsDomainStage:
    """Test suite for names that already are domains."""

    def test_name_is_domain(self):
        """Test that the name is returned as a URL."""
        result = NameIsDomainStage().run(make_state("acme.io"), make_context())

        assert result.url == "https://www.acme.io"
        assert result.method == "name_embedded_domain"
        assert result.confidence == 1.0

    def test_regular_name(self):
        """Test that ordinary names pass through."""
        assert NameIsDomainStage().run(make_state("Acme Robotics Inc"), make_context()) is None

    def test_blocked_domain_name(self):
        """Test that a blocklisted domain is never returned."""
        assert NameIsDomainStage().run(make_state("linkedin.com"), make_context()) is None

    def test_not_a_network_stage(self):
        """Test that the stage survives an exhausted time budget."""
        assert NameIsDomainStage.network is False


class TestDomainVariationStage:
    """Test suite for probing guessed domains."""

    def test_title_match_is_terminal(self):
        """Test that a live page whose title matches ends the pipeline."""
        prober = make_prober([
            ("https://www.acmerobotics.com", "Acme Robotics – Home"),
            ("https://www.acme.com", "Acme Tools"),
        ])
        state = make_state("Acme Robotics Inc")

        result = DomainVariationStage().run(state, make_context(prober=prober))

        assert result.url == "https://www.acmerobotics.com"
        assert result.method == "domain_variation"
        assert result.confidence == 1.0

    def test_probes_generated_urls(self):
        """Test that the generator's URLs are what gets probed."""
        prober = make_prober([])

        DomainVariationStage().run(make_state("Acme Robotics Inc"), make_context(prober=prober))

        urls = prober.probe_all.call_args[0][0]
        assert urls[0] == "https://www.acmerobotics.com"
        assert len(urls) <= 15

    def test_weak_match_becomes_fallback(self):
        """Test that a partial title match is kept for arbitration."""
        prober = make_prober([
            ("https://www.acmeroboticssystems.com", None),
            ("https://www.acme.com", "Acme Tools"),
        ])
        state = make_state("Acme Robotics Systems")

        result = DomainVariationStage().run(state, make_context(prober=prober))

        assert result is None
        assert state.fallback.url == "https://www.acme.com"
        assert state.fallback.confidence == pytest.approx(1 / 3)
        assert state.fallback.score_method == ScoreMethod.TITLE_KEYWORD
        assert state.candidates == []

    def test_zero_score_not_kept(self):
        """Test that live pages with unrelated titles are discarded."""
        prober = make_prober([("https://www.acme.com", "Domain for sale")])
        state = make_state("Acme Robotics Inc")

        assert DomainVariationStage().run(state, make_context(prober=prober)) is None
        assert state.fallback is None

    def test_nothing_live(self):
        """Test that dead variations yield nothing."""
        prober = make_prober([("https://www.acme.com", None)])
        state = make_state("Acme Robotics Inc")

        assert DomainVariationStage().run(state, make_context(prober=prober)) is None
        assert state.fallback is None

    def test_tie_prefers_earlier_variation(self):
        """Test that more specific variations win ties."""
        prober = make_prober([
            ("https://www.acmerobotics.com", "Acme Robotics"),
            ("https://www.acmerobotics.net", "Acme Robotics"),
        ])

        result = DomainVariationStage().run(make_state("Acme Robotics"), make_context(prober=prober))
        assert result.url == "https://www.acmerobotics.com"

    def test_without_prober(self):
        """Test that the stage is a no-op without a prober."""
        assert DomainVariationStage().run(make_state("Acme"), make_context()) is None


class TestSearchStage:
    """Test suite for search-backed stages."""

    def make_backend(self, answer):
        backend = Mock()
        backend.ask.return_value = answer
        return backend

    def test_candidate_retained(self):
        """Test that a found URL is scored and kept."""
        backend = self.make_backend("The website is https://www.acmerobotics.com/about")
        state = make_state("Acme Robotics Inc")
        stage = SearchStage('name_search', StageId.NAME_SEARCH, prompts.name_search)

        assert stage.run(state, make_context(backend=backend)) is None

        assert len(state.candidates) == 1
        candidate = state.candidates[0]
        assert candidate.url == "https://www.acmerobotics.com"
        assert candidate.source_stage == StageId.NAME_SEARCH
        assert candidate.confidence == 1.0
        assert candidate.score_method == ScoreMethod.DOMAIN_SIMILARITY

    def test_early_exit(self):
        """Test that a strong match ends the pipeline when early exit is on."""
        backend = self.make_backend("https://www.acmerobotics.com")
        stage = SearchStage('official_site_search', StageId.EXTERNAL_SEARCH,
                            prompts.official_site, early_exit=True)

        result = stage.run(make_state("Acme Robotics Inc"), make_context(backend=backend))

        assert result.url == "https://www.acmerobotics.com"
        assert result.method == "external_search"
        assert result.confidence == 1.0

    def test_weak_match_does_not_exit(self):
        """Test that a dissimilar domain is retained instead of returned."""
        backend = self.make_backend("https://www.widgetco.com")
        state = make_state("Gizmo Manufacturing")
        stage = SearchStage('official_site_search', StageId.EXTERNAL_SEARCH,
                            prompts.official_site, early_exit=True)

        assert stage.run(state, make_context(backend=backend)) is None
        assert state.candidates[0].confidence == 0.0

    def test_not_found(self):
        """Test the not-found sentinel."""
        state = make_state("Acme Robotics Inc")
        stage = SearchStage('name_search', StageId.NAME_SEARCH, prompts.name_search)

        assert stage.run(state, make_context(backend=self.make_backend("NOTFOUND"))) is None
        assert state.candidates == []

    def test_blocked_answer_ignored(self):
        """Test that a directory URL answer is not a candidate."""
        state = make_state("Acme Robotics Inc")
        stage = SearchStage('linkedin_search', StageId.LINKEDIN_PROFILE, prompts.linkedin_profile)
        backend = self.make_backend("https://www.linkedin.com/company/acme-robotics")

        stage.run(state, make_context(backend=backend))
        assert state.candidates == []

    def test_evidence_truncated(self):
        """Test that only a bounded excerpt of the answer is kept."""
        state = make_state("Acme Robotics Inc")
        stage = SearchStage('name_search', StageId.NAME_SEARCH, prompts.name_search)
        backend = self.make_backend("https://acme.com " + "x" * 1000)

        stage.run(state, make_context(backend=backend))
        assert len(state.candidates[0].raw_evidence_text) == 500

    def test_rate_limit_policy(self):
        """Test that the configured policy reaches the backend."""
        backend = self.make_backend("NOTFOUND")
        ctx = make_context(backend=backend, policy={'last_resort_search': 'skip'})

        SearchStage('last_resort_search', StageId.LAST_RESORT, prompts.last_resort).run(
            make_state("Acme"), ctx)
        assert backend.ask.call_args[1]['retry_on_rate_limit'] is False

        SearchStage('name_search', StageId.NAME_SEARCH, prompts.name_search).run(
            make_state("Acme"), ctx)
        assert backend.ask.call_args[1]['retry_on_rate_limit'] is True

    def test_retry_attempt_wording(self):
        """Test that a retried company gets the more persistent prompt."""
        backend = self.make_backend("NOTFOUND")
        stage = SearchStage('name_search', StageId.NAME_SEARCH, prompts.name_search)

        stage.run(make_state("Acme", attempt=0), make_context(backend=backend))
        assert "very likely to exist" not in backend.ask.call_args[0][0].instruction

        stage.run(make_state("Acme", attempt=1), make_context(backend=backend))
        assert "very likely to exist" in backend.ask.call_args[0][0].instruction

    def test_errors_propagate_to_orchestrator(self):
        """Test that the stage itself does not swallow search errors."""
        backend = Mock()
        backend.ask.side_effect = SearchAPIError("boom")
        stage = SearchStage('name_search', StageId.NAME_SEARCH, prompts.name_search)

        with pytest.raises(SearchAPIError):
            stage.run(make_state("Acme"), make_context(backend=backend))

    def test_without_backend(self):
        """Test that search stages are no-ops without a backend."""
        state = make_state("Acme")
        stage = SearchStage('name_search', StageId.NAME_SEARCH, prompts.name_search)

        assert stage.run(state, make_context()) is None
        assert state.candidates == []


class TestCrossValidationStage:
    """Test suite for the mid-pipeline agreement check."""

    def test_agreement(self):
        """Test two stages agreeing on a low-similarity domain."""
        state = make_state("Northwind Traders")
        state.add(similarity_candidate("https://www.nwt-global.com", StageId.EXTERNAL_SEARCH, 0.0))
        state.add(similarity_candidate("https://nwt-global.com", StageId.NAME_SEARCH, 0.0))

        result = CrossValidationStage().run(state, make_context())

        assert result.url == "https://www.nwt-global.com"
        assert result.method == "cross_validated"
        assert result.confidence == 0.95

    def test_no_agreement(self):
        """Test distinct domains."""
        state = make_state("Northwind Traders")
        state.add(similarity_candidate("https://a.com", StageId.EXTERNAL_SEARCH, 0.0))
        state.add(similarity_candidate("https://b.com", StageId.NAME_SEARCH, 0.0))

        assert CrossValidationStage().run(state, make_context()) is None


class TestDomainHintStage:
    """Test suite for domains written inside names."""

    def test_domain_in_name(self):
        """Test a domain in parentheses."""
        result = DomainHintStage().run(make_state("Acme Tools (acme-tools.de)"), make_context())

        assert result.url == "https://acme-tools.de"
        assert result.method == "domain_hint"
        assert result.confidence == 1.0

    @pytest.mark.parametrize("name", ["Acme Robotics Inc", "Foo Co.Ltd", "Acme (facebook.com)"])
    def test_no_usable_hint(self, name):
        """Test names without a usable domain."""
        assert DomainHintStage().run(make_state(name), make_context()) is None


class TestFinalArbitrationStage:
    """Test suite for the last decision."""

    def test_cross_validation_first(self):
        """Test that agreement beats a higher single score."""
        state = make_state("Gizmo Manufacturing")
        state.add(similarity_candidate("https://gizmo.net", StageId.NAME_SEARCH, 0.5))
        state.add(similarity_candidate("https://widgetco.com", StageId.LINKEDIN_PROFILE, 0.0))
        state.add(similarity_candidate("https://www.widgetco.com", StageId.DIRECTORY_LOOKUP, 0.0))

        result = FinalArbitrationStage().run(state, make_context())

        assert result.url == "https://widgetco.com"
        assert result.method == "cross_validated"

    def test_best_candidate(self):
        """Test falling back to the highest similarity."""
        state = make_state("Acme Robotics")
        state.add(similarity_candidate("https://a.com", StageId.NAME_SEARCH, 0.3))
        state.add(similarity_candidate("https://b.com", StageId.LINKEDIN_PROFILE, 0.6))

        result = FinalArbitrationStage().run(state, make_context())

        assert result.url == "https://b.com"
        assert result.method == "linkedin_profile"
        assert result.confidence == 0.6

    def test_search_candidates_before_variation_fallback(self):
        """Test that retained search candidates outrank the title fallback."""
        state = make_state("Acme Robotics")
        state.fallback = ScoredCandidate(url="https://www.acme.com",
                                         source_stage=StageId.DOMAIN_VARIATION,
                                         confidence=0.4, score_method=ScoreMethod.TITLE_KEYWORD)
        state.add(similarity_candidate("https://b.com", StageId.LAST_RESORT, 0.1))

        assert FinalArbitrationStage().run(state, make_context()).url == "https://b.com"

    def test_variation_fallback(self):
        """Test the domain-variation fallback when search found nothing."""
        state = make_state("Acme Robotics Systems")
        state.fallback = ScoredCandidate(url="https://www.acme.com",
                                         source_stage=StageId.DOMAIN_VARIATION,
                                         confidence=1 / 3, score_method=ScoreMethod.TITLE_KEYWORD)

        result = FinalArbitrationStage().run(state, make_context())

        assert result.url == "https://www.acme.com"
        assert result.method == "domain_variation"
        assert result.confidence == pytest.approx(1 / 3)

    def test_exhausted(self):
        """Test that nothing retained means Not Available."""
        result = FinalArbitrationStage().run(make_state("Nobody"), make_context())

        assert result.url == "Not Available"
        assert result.method == "exhausted"

    def low_confidence_state(self):
        state = make_state("Acme Robotics")
        state.add(similarity_candidate("https://alpha.com", StageId.NAME_SEARCH, 0.2))
        state.add(similarity_candidate("https://beta.com", StageId.LINKEDIN_PROFILE, 0.3))
        return state

    def test_judge_picks(self):
        """Test that the judge decides among low-confidence candidates."""
        judge = Mock()
        judge.choose.return_value = "https://alpha.com"
        state = self.low_confidence_state()

        result = FinalArbitrationStage().run(state, make_context(judge=judge))

        assert result.url == "https://alpha.com"
        assert result.method == "model_judgment"
        assert result.confidence is None
        judge.choose.assert_called_once_with(state.query, ["https://alpha.com", "https://beta.com"])

    def test_judge_declines(self):
        """Test falling back to the best candidate when the judge declines."""
        judge = Mock()
        judge.choose.return_value = None

        result = FinalArbitrationStage().run(self.low_confidence_state(), make_context(judge=judge))
        assert result.url == "https://beta.com"

    def test_judge_failure(self):
        """Test that a failing judge does not lose the candidates."""
        judge = Mock()
        judge.choose.side_effect = SearchAPIError("rate limited")

        result = FinalArbitrationStage().run(self.low_confidence_state(), make_context(judge=judge))
        assert result.url == "https://beta.com"

    def test_judge_skipped_with_acceptable_candidate(self):
        """Test that a candidate above the threshold needs no judgment."""
        judge = Mock()
        state = make_state("Acme Robotics")
        state.add(similarity_candidate("https://alpha.com", StageId.NAME_SEARCH, 0.6))
        state.add(similarity_candidate("https://beta.com", StageId.LINKEDIN_PROFILE, 0.2))

        assert FinalArbitrationStage().run(state, make_context(judge=judge)).url == "https://alpha.com"
        judge.choose.assert_not_called()

    def test_judge_needs_two_domains(self):
        """Test that a single domain is not put to the judge."""
        judge = Mock()
        state = make_state("Acme Robotics")
        state.add(similarity_candidate("https://alpha.com", StageId.NAME_SEARCH, 0.2))

        FinalArbitrationStage().run(state, make_context(judge=judge))
        judge.choose.assert_not_called()
