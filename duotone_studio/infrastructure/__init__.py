"""Infrastructure helpers for caching, fetching and render sessions."""

from .cache import CACHE, ResultCache, result_key
from .network import FETCHER, SourceFetcher
from .responses import error_response, send_png
from .sessions import (
    SESSIONS,
    Debouncer,
    GenerationCounter,
    RenderResult,
    RenderSession,
    SessionStore,
)

__all__ = [
    "CACHE",
    "ResultCache",
    "result_key",
    "FETCHER",
    "SourceFetcher",
    "error_response",
    "send_png",
    "SESSIONS",
    "Debouncer",
    "GenerationCounter",
    "RenderResult",
    "RenderSession",
    "SessionStore",
]
