from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class DdbError(Exception):
    """
    A failed DynamoDB call, already classified by `ddb_call`.

    The boto3 exception stays reachable through `__cause__`. Only
    `DdbConflict` has domain meaning (repositories turn a failed version check
    into a 409); the rest render as a generic 500.
    """

    message: str
    operation: str | None = None
    table_name: str | None = None
    key: dict[str, Any] | None = None
    aws_request_id: str | None = None
    retryable: bool = False

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class DdbConflict(DdbError):
    """A ConditionExpression evaluated to false."""


@dataclass(slots=True)
class DdbValidation(DdbError):
    """The request was malformed (a bug on our side, never retried)."""


@dataclass(slots=True)
class DdbThrottled(DdbError):
    """Throughput exceeded or a transient server error; retried with backoff."""


@dataclass(slots=True)
class DdbUnavailable(DdbError):
    """Table missing, credentials rejected or the client could not connect."""


@dataclass(slots=True)
class DdbInternal(DdbError):
    """Anything else."""
