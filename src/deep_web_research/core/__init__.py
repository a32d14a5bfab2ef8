from .state import (
    DispatchBatch,
    FindingTopic,
    KeyInsight,
    ParallelSearchReport,
    QueryOutcome,
    ResearchFindings,
    ResearchStatus,
    SearchResult,
    SessionProgress,
    SessionState,
    Source,
    StepResult,
)
from .interfaces import PageFetcher, SearchProvider
from .errors import (
    BotChallengeError,
    BrowserLaunchError,
    BudgetExceededError,
    DeepResearchError,
    InputValidationError,
    PageFetchError,
    SearchQueryError,
    StateError,
)

__all__ = [
    "DispatchBatch",
    "FindingTopic",
    "KeyInsight",
    "ParallelSearchReport",
    "QueryOutcome",
    "ResearchFindings",
    "ResearchStatus",
    "SearchResult",
    "SessionProgress",
    "SessionState",
    "Source",
    "StepResult",
    "PageFetcher",
    "SearchProvider",
    "BotChallengeError",
    "BrowserLaunchError",
    "BudgetExceededError",
    "DeepResearchError",
    "InputValidationError",
    "PageFetchError",
    "SearchQueryError",
    "StateError",
]
