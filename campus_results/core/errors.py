# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Error taxonomy for the result engine.

Every failure the engine reports to a caller is one of these kinds:
- ValidationError: input violates a contract (field + expected form)
- AuthorizationError: caller is not allowed (opaque message)
- NotFoundError: resource absent or soft-deleted
- ConflictError: unique collision, stale version or illegal transition
- LockedError: record frozen by a semester lock
- TransientError: persistence failure, retry depends on the operation

Batch operations never raise for per-item failures; they collect them
into a BatchOutcome instead.
"""

from dataclasses import dataclass, field
from typing import Any


class ResultEngineError(Exception):
    """Base exception for all result engine errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    kind: str = "error"

    def __init__(self, message: str, details: dict | None = None):
        """Initialize the error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Serialize for transport layers."""
        return {"kind": self.kind, "message": self.message, "details": self.details}


class ValidationError(ResultEngineError):
    """Input violates a contract. Never retried automatically.

    Attributes:
        field: Offending field name, if one can be named.
        expected: Description of the accepted form.
    """

    kind = "validation"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        expected: str | None = None,
        details: dict | None = None,
    ):
        self.field = field
        self.expected = expected
        merged = dict(details or {})
        if field:
            merged["field"] = field
        if expected:
            merged["expected"] = expected
        super().__init__(message, merged)


class AuthorizationError(ResultEngineError):
    """Caller fails the access policy.

    The message is deliberately generic: the missing privilege is not leaked.
    """

    kind = "authorization"

    def __init__(self, message: str = "Not allowed to perform this action"):
        super().__init__(message)


class NotFoundError(ResultEngineError):
    """Resource absent or soft-deleted."""

    kind = "not_found"


class ConflictError(ResultEngineError):
    """Unique-constraint violation, stale write or illegal transition.

    Attributes:
        retryable: True when retrying with refreshed data may succeed.
    """

    kind = "conflict"

    def __init__(self, message: str, retryable: bool = False, details: dict | None = None):
        self.retryable = retryable
        merged = dict(details or {})
        merged["retryable"] = retryable
        super().__init__(message, merged)


class LockedError(ResultEngineError):
    """Record is period-locked and the caller cannot bypass the lock."""

    kind = "locked"


class TransientError(ResultEngineError):
    """Underlying persistence failure.

    Attributes:
        retry_safe: Whether the failed operation is idempotent.
        original_error: The exception that caused this error.
    """

    kind = "transient"

    def __init__(
        self,
        message: str,
        retry_safe: bool = False,
        original_error: Exception | None = None,
    ):
        self.retry_safe = retry_safe
        self.original_error = original_error
        super().__init__(message, {"retry_safe": retry_safe})


@dataclass
class BatchFailure:
    """One failed item of a batch operation.

    Attributes:
        index: Position of the item in the request (or snapshot).
        cause: Human-readable failure reason.
        kind: Error kind of the failure.
        id: Result id when the item referred to an existing record.
        student_id: Student id for ingestion rows.
    """

    index: int
    cause: str
    kind: str
    id: str | None = None
    student_id: str | None = None

    @classmethod
    def from_error(
        cls,
        index: int,
        error: ResultEngineError,
        id: str | None = None,
        student_id: str | None = None,
    ) -> "BatchFailure":
        """Build a failure entry from a raised engine error."""
        return cls(index=index, cause=error.message, kind=error.kind, id=id, student_id=student_id)


@dataclass
class BatchOutcome:
    """Multi-status payload returned by batch operations.

    Attributes:
        ok: Number of items that were committed.
        failed: Per-item failures, in input order.
        interrupted: True when a deadline stopped the batch early.
        skipped: Items never attempted because of an interruption.
    """

    ok: int = 0
    failed: list[BatchFailure] = field(default_factory=list)
    interrupted: bool = False
    skipped: int = 0

    @property
    def is_partial(self) -> bool:
        """Whether at least one item failed or was not attempted."""
        return bool(self.failed) or self.interrupted
