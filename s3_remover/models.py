"""Data types shared by the removal components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .errors import ConfigurationError

# S3 DeleteObjects accepts at most this many keys per request.
MAX_DELETE_BATCH = 1000


@dataclass(frozen=True)
class LiteralBucket:
    """A bucket configured by its physical name."""

    name: str

    @property
    def label(self) -> str:
        return self.name


@dataclass(frozen=True)
class StackBucket:
    """
    A bucket configured as a ``Ref`` to a logical resource in the deployed stack.

    Attributes:
        logical_id: Logical resource id, or None when the entry had no usable id.
        source: Original configuration entry, kept for malformed references.
    """

    logical_id: Optional[str]
    source: str = ""

    @property
    def label(self) -> str:
        return f"{self.logical_id or self.source}-ref"


BucketReference = Union[LiteralBucket, StackBucket]


def parse_bucket_reference(raw: Any) -> BucketReference:
    """
    Turn one ``buckets`` configuration entry into a bucket reference.

    Strings are literal bucket names, mappings are symbolic references whose
    ``Ref`` key names the logical resource. A mapping without a string ``Ref``
    still becomes a StackBucket so that it fails on its own at resolve time.

    Raises:
        ConfigurationError: If the entry is neither a string nor a mapping.
    """
    if isinstance(raw, str):
        return LiteralBucket(raw)
    if isinstance(raw, dict):
        ref = raw.get("Ref")
        if isinstance(ref, str) and ref:
            return StackBucket(ref)
        return StackBucket(None, source=repr(raw))
    raise ConfigurationError(f"Unsupported bucket entry: {raw!r}")


@dataclass(frozen=True)
class ResolvedBucket:
    """A bucket reference together with its physical bucket name."""

    reference: BucketReference
    name: str

    @property
    def label(self) -> str:
        return self.reference.label


@dataclass(frozen=True)
class ListPage:
    """One page of a bucket listing."""

    keys: list[str] = field(default_factory=list)
    truncated: bool = False
    next_cursor: Optional[str] = None


@dataclass(frozen=True)
class Emptied:
    """Every object in the bucket was deleted."""

    deleted: int = 0


@dataclass(frozen=True)
class Failed:
    """The bucket's workflow stopped on an error; it may not be empty."""

    cause: BaseException


@dataclass(frozen=True)
class Cancelled:
    """The user declined to empty the bucket."""


RemovalOutcome = Union[Emptied, Failed, Cancelled]


def summarize(outcomes: dict[BucketReference, RemovalOutcome]) -> dict[str, int]:
    """Count outcomes by kind."""
    summary = {"emptied": 0, "failed": 0, "cancelled": 0}
    for outcome in outcomes.values():
        if isinstance(outcome, Emptied):
            summary["emptied"] += 1
        elif isinstance(outcome, Failed):
            summary["failed"] += 1
        else:
            summary["cancelled"] += 1
    return summary
