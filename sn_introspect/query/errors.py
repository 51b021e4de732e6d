from __future__ import annotations

from typing import Optional


class QueryError(Exception):
    """Base class for errors a caller can act on without retrying."""

    code = "QUERY_ERROR"


class InvalidArgumentError(QueryError):
    """A required argument is missing or an enumerated value is unknown."""

    code = "INVALID_ARGUMENT"


class AmbiguousMatchError(QueryError):
    """A lookup that needs exactly one record matched several.

    Distinct from transport errors: the fix is an extra filter, not a retry.
    """

    code = "AMBIGUOUS_MATCH"

    def __init__(self, identifier: str, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.identifier = identifier
        self.hint = hint
