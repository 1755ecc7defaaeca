"""Manifest loading: fragment sources, document store and import resolution."""

from .fetchers import (
    FetchError,
    FileFetcher,
    FragmentParseError,
    HttpFetcher,
    create_default_fetchers,
    parse_fragment,
)
from .merge import deep_merge
from .resolver import ImportResolver
from .store import DocumentStore, DocumentStoreError

__all__ = [
    "FetchError",
    "FileFetcher",
    "FragmentParseError",
    "HttpFetcher",
    "create_default_fetchers",
    "parse_fragment",
    "deep_merge",
    "ImportResolver",
    "DocumentStore",
    "DocumentStoreError",
]
