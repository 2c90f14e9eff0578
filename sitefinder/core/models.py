"""Data models for the Company Website Resolver."""

import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict


NOT_AVAILABLE = "Not Available"


class StageId(str, Enum):
    """Tag identifying which pipeline stage produced a candidate or result."""
    NAME_EMBEDDED_DOMAIN = "name_embedded_domain"
    DOMAIN_VARIATION = "domain_variation"
    EXTERNAL_SEARCH = "external_search"
    NAME_SEARCH = "name_search"
    LINKEDIN_PROFILE = "linkedin_profile"
    DOMAIN_HINT = "domain_hint"
    DIRECTORY_LOOKUP = "directory_lookup"
    LAST_RESORT = "last_resort"
    MODEL_JUDGMENT = "model_judgment"
    # Result-only methods
    CROSS_VALIDATED = "cross_validated"
    EXHAUSTED = "exhausted"


class ScoreMethod(str, Enum):
    """Which heuristic produced a confidence value."""
    TITLE_KEYWORD = "title_keyword"
    DOMAIN_SIMILARITY = "domain_similarity"


@dataclass(frozen=True)
class CompanyQuery:
    """Immutable input to one resolution."""
    name: str
    employee_count_hint: Optional[str] = None

    def __post_init__(self):
        """Reject empty names before they reach the pipeline."""
        if not self.name or not self.name.strip():
            raise ValueError("Company name must be a non-empty string")


@dataclass(frozen=True)
class Candidate:
    """A URL proposed by one pipeline stage."""
    url: str  # origin form: scheme + host
    source_stage: StageId
    raw_evidence_text: Optional[str] = None


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate with a stage-local confidence in [0, 1]."""
    url: str
    source_stage: StageId
    confidence: float
    score_method: ScoreMethod
    raw_evidence_text: Optional[str] = None

    def __post_init__(self):
        """Validate confidence range."""
        if not (0.0 <= self.confidence <= 1.0):
            raise ValueError("Confidence must be between 0 and 1")

    @classmethod
    def from_candidate(cls, candidate: Candidate, confidence: float,
                       score_method: ScoreMethod) -> 'ScoredCandidate':
        return cls(
            url=candidate.url,
            source_stage=candidate.source_stage,
            confidence=confidence,
            score_method=score_method,
            raw_evidence_text=candidate.raw_evidence_text
        )


@dataclass(frozen=True)
class ResolutionResult:
    """Terminal output of one resolution."""
    url: str
    method: str
    confidence: Optional[float] = None

    @classmethod
    def not_available(cls) -> 'ResolutionResult':
        return cls(url=NOT_AVAILABLE, method=StageId.EXHAUSTED.value)

    @property
    def found(self) -> bool:
        return self.url != NOT_AVAILABLE


@dataclass
class PipelineState:
    """Transient per-company state owned by one in-flight resolution."""
    query: CompanyQuery
    deadline: float
    attempt: int = 0
    stage_index: int = 0
    candidates: List[ScoredCandidate] = field(default_factory=list)
    fallback: Optional[ScoredCandidate] = None

    def add(self, candidate: ScoredCandidate) -> None:
        self.candidates.append(candidate)

    @property
    def remaining(self) -> float:
        """Seconds left in the time budget."""
        return max(0.0, self.deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining <= 0


@dataclass
class CompanyRecord:
    """One company row as loaded from and written back to the spreadsheet."""
    id: str
    name: str
    employees: str = ""
    website: str = ""
    status: str = "pending"  # 'pending', 'searching', 'found', 'not_available'
    retries: int = 0
    method: Optional[str] = None
    confidence: Optional[float] = None

    def to_query(self) -> CompanyQuery:
        return CompanyQuery(name=self.name.strip(),
                            employee_count_hint=self.employees.strip() or None)

    def apply(self, result: ResolutionResult) -> None:
        """Copy a resolution outcome onto this record."""
        self.website = result.url
        self.method = result.method
        self.confidence = result.confidence
        self.status = "found" if result.found else "not_available"

    def reset(self) -> None:
        """Return the record to the pending state for a re-run."""
        self.website = ""
        self.status = "pending"
        self.retries = 0
        self.method = None
        self.confidence = None


@dataclass
class BatchStats:
    """Aggregate outcome of a batch run."""
    total: int = 0
    processed: int = 0
    found: int = 0
    not_available: int = 0
    retried: int = 0
    by_method: Dict[str, int] = field(default_factory=Counter)
    stopped: bool = False

    def fold(self, result: ResolutionResult) -> None:
        """Fold one completed resolution into the totals."""
        self.processed += 1
        if result.found:
            self.found += 1
        else:
            self.not_available += 1
        self.by_method[result.method] += 1

    @property
    def success_rate(self) -> float:
        if self.processed == 0:
            return 0.0
        return self.found / self.processed
