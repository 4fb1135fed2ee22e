"""
Exception hierarchy for the transition compiler and unpacker.

Compiler-side errors abort the run; query-side lookups never raise these.
"""

from __future__ import annotations


class TzError(Exception):
    """Base exception for all tzpack failures."""


class TzConfigError(TzError):
    """Raised for invalid runtime configuration."""


class TzListingError(TzError):
    """Raised for malformed, truncated or empty transition listings."""


class TzEncodingError(TzError):
    """Raised when a zone overflows one of its dictionaries."""


class TzAliasError(TzError):
    """Raised for links to missing zones or to other links."""


class TzStoreError(TzError):
    """Raised for malformed packed store documents."""


class TzToolError(TzError):
    """Raised when zic or zdump cannot produce usable output."""
