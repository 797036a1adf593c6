"""Protocol interfaces for swappable implementations.

Protocols enable:
- Easy swapping of implementations (Redis -> in-memory, HTTP generator -> local)
- Unit testing with fake implementations
- Clear separation of concerns

Usage:
    ```python
    from prompt_cache.protocols import PromptCacheStore

    repo: PromptCacheStore = RedisPromptCacheRepository.create()
    repo: PromptCacheStore = MemoryPromptCacheRepository()
    ```
"""

from .cache_store import PromptCacheStore
from .prompt_generator import PromptGenerator

__all__ = [
    "PromptCacheStore",
    "PromptGenerator",
]
