"""Exceptions raised by the generation pipeline and its collaborators."""


class TrendsBoxError(Exception):
    """Base class for Trends Box errors."""
    pass


class QuotaExceededError(TrendsBoxError):
    """The caller already used today's generations."""

    def __init__(self, user_id: str, used: int, limit: int):
        self.user_id = user_id
        self.used = used
        self.limit = limit
        super().__init__(f"Daily generation limit reached ({used}/{limit})")


class GenerationError(TrendsBoxError):
    """The completion step failed; nothing was persisted."""
    pass


class PersistenceError(TrendsBoxError):
    """The record could not be stored; usage was not incremented."""
    pass


class SearchError(TrendsBoxError):
    """Search collaborator failure."""
    pass


class CompletionError(TrendsBoxError):
    """LLM collaborator failure."""
    pass


class ImageGenerationError(TrendsBoxError):
    """Image collaborator failure."""
    pass
