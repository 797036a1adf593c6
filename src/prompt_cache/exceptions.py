"""Domain exceptions for the prompt cache.

Services and repositories raise these; the handler layer maps them to
HTTP status codes. Nothing in here knows about HTTP.
"""


class PromptCacheError(Exception):
    """Base exception for all prompt cache errors."""


class EntryValidationError(PromptCacheError):
    """A cache entry field is outside its documented range.

    Maps to: 422 Unprocessable Entity
    Raised before persistence. Values are never truncated to fit.
    """


class DuplicateKeyConflict(PromptCacheError):
    """An insert collided with a live entry for the same exact key.

    Raised by stores only. The write path converts it into a fold against
    the existing entry, so it never reaches callers.
    """

    def __init__(self, key: object) -> None:
        super().__init__(f"Entry already exists for {key}")
        self.key = key


class ConcurrentUpdateError(PromptCacheError):
    """Optimistic retries were exhausted while updating an entry.

    Maps to: 409 Conflict
    """


class StoreUnavailable(PromptCacheError):
    """The persistent store could not be reached.

    Maps to: 503 Service Unavailable
    Callers in the chat layer should regenerate without the cache.
    """


class GeneratorError(PromptCacheError):
    """The external prompt generator failed or returned garbage.

    Maps to: 502 Bad Gateway
    """
