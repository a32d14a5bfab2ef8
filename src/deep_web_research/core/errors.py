"""Custom exceptions for the deep web research engine."""

class DeepResearchError(Exception):
    """Base exception for all engine errors."""
    pass

class InputValidationError(DeepResearchError):
    """Raised for rejected input (bad URL scheme, disallowed extension, empty query)."""
    pass

class SearchQueryError(DeepResearchError):
    """Raised when a search query fails or yields no results."""
    pass

class PageFetchError(DeepResearchError):
    """Raised when a page cannot be navigated to or read."""
    pass

class BotChallengeError(PageFetchError):
    """Raised when a page shows a bot-defence challenge; never retried."""
    pass

class BudgetExceededError(DeepResearchError):
    """Raised when a session has used up its wall-clock budget."""
    pass

class BrowserLaunchError(DeepResearchError):
    """Raised when the browser process cannot be started."""
    pass

class StateError(DeepResearchError):
    """Raised on an illegal session state transition."""
    pass
