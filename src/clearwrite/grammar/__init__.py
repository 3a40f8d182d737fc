"""Grammar service access: chunking, HTTP client and finding fetcher."""

from .chunker import DEFAULT_MAX_FRAGMENT_CHARS, split_text
from .client import GrammarChecker, GrammarClient, GrammarClientSettings, GrammarServiceError
from .fetcher import FindingFetcher
from .models import Finding, Fragment, Severity

__all__ = [
    "DEFAULT_MAX_FRAGMENT_CHARS",
    "Finding",
    "FindingFetcher",
    "Fragment",
    "GrammarChecker",
    "GrammarClient",
    "GrammarClientSettings",
    "GrammarServiceError",
    "Severity",
    "split_text",
]
