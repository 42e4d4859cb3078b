"""
errors.py — Exception taxonomy for catalog resolution and request composition.

  CatalogError
  ├── TransientFetchError        retried by the RetryExecutor
  │   ├── NetworkError           transport-level failure
  │   └── HttpStatusError        non-2xx response
  ├── ValidationError            schema / field violation (never retried)
  ├── EmptyCatalogError          zero entries after validation (never retried)
  ├── AggregateFetchError        every category failed
  ├── CatalogCancelledError      caller cancelled
  └── MissingCredentialError     no API key available
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .models import ModelCategory


class CatalogError(Exception):
    """Base class for every error raised by this package."""


class TransientFetchError(CatalogError):
    """Failure that may succeed on a later attempt."""


class NetworkError(TransientFetchError):
    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class HttpStatusError(TransientFetchError):
    def __init__(self, status_code: int, body_snippet: str = "", url: Optional[str] = None) -> None:
        self.status_code = status_code
        self.body_snippet = body_snippet
        self.url = url
        msg = f"Failed to fetch NanoGPT models: HTTP {status_code}"
        if body_snippet:
            msg += f"\n{body_snippet}"
        super().__init__(msg)


class ValidationError(CatalogError):
    """A value did not match its expected shape.

    ``field_path`` names the first offending field (``data[2].id``) and
    ``expected`` describes what was required there.
    """

    def __init__(self, field_path: str, expected: str, message: Optional[str] = None) -> None:
        self.field_path = field_path
        self.expected = expected
        super().__init__(message or f"Invalid value at '{field_path}': expected {expected}")


class EmptyCatalogError(CatalogError):
    def __init__(self, category: ModelCategory) -> None:
        self.category = category
        super().__init__(f"No models data found in the '{category.value}' catalog")


class AggregateFetchError(CatalogError):
    """All categories failed.

    ``preferred_error`` is the failure of the category the caller asked for;
    ``failures`` holds every subsequent ``(category, error)`` in the order tried.
    """

    def __init__(
        self,
        preferred: ModelCategory,
        preferred_error: BaseException,
        failures: Sequence[Tuple[ModelCategory, BaseException]] = (),
    ) -> None:
        self.preferred = preferred
        self.preferred_error = preferred_error
        self.failures: List[Tuple[ModelCategory, BaseException]] = list(failures)
        tried = ", ".join([preferred.value] + [c.value for c, _ in self.failures])
        super().__init__(
            f"Unable to load NanoGPT models from any catalog ({tried}): {preferred_error}"
        )

    @property
    def root_cause(self) -> BaseException:
        return self.preferred_error


class CatalogCancelledError(CatalogError):
    """The caller's cancel signal fired; no further attempts were made."""

    def __init__(self, message: str = "Catalog resolution cancelled") -> None:
        super().__init__(message)


class MissingCredentialError(CatalogError):
    def __init__(self, message: str = "No NanoGPT API key available") -> None:
        super().__init__(message)
