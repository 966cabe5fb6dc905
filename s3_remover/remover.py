"""
Bucket emptying engine.

Resolves bucket references, lists every object key with continuation-token
pagination, deletes the keys in provider-sized batches, and runs one such
workflow per bucket concurrently on the event loop. A failure in one bucket
is recorded as that bucket's outcome and never affects the others.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Iterable, Optional

from .config import RemoverConfig, RunOptions, stack_name
from .errors import (
    DeletionError,
    EnumerationError,
    InvalidReferenceError,
    ProviderError,
    StackLookupError,
)
from .models import (
    MAX_DELETE_BATCH,
    BucketReference,
    Cancelled,
    Emptied,
    Failed,
    LiteralBucket,
    RemovalOutcome,
    ResolvedBucket,
)
from .prompt import MESSAGE_PREFIX, PromptService
from .provider import StorageProvider

logger = logging.getLogger(__name__)


class BucketState(Enum):
    """Lifecycle of one bucket within a run."""

    PENDING = "pending"
    RESOLVING = "resolving"
    ENUMERATING = "enumerating"
    DELETING = "deleting"
    EMPTIED = "emptied"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BucketReferenceResolver:
    """Turns bucket references into physical bucket names."""

    def __init__(
        self, provider: StorageProvider, config: RemoverConfig, options: RunOptions
    ) -> None:
        self.provider = provider
        self.stack_name = stack_name(config, options)

    async def resolve(self, reference: BucketReference) -> ResolvedBucket:
        """
        Resolve a reference to its physical bucket.

        Literal names are returned as-is without a provider call. Symbolic
        references are looked up in the deployed stack.

        Raises:
            InvalidReferenceError: If a symbolic reference has no logical id.
            StackLookupError: If the stack resource cannot be found.
        """
        if isinstance(reference, LiteralBucket):
            return ResolvedBucket(reference, reference.name)

        logical_id = reference.logical_id
        if not isinstance(logical_id, str) or not logical_id:
            raise InvalidReferenceError(
                f"Bucket reference {reference.source or reference!r} has no logical resource id"
            )

        try:
            physical_id = await self.provider.describe_stack_resource(
                self.stack_name, logical_id
            )
        except ProviderError as e:
            raise StackLookupError(
                f"Could not look up {logical_id} in stack {self.stack_name}: {e}"
            ) from e

        if not physical_id:
            raise StackLookupError(
                f"Resource {logical_id} in stack {self.stack_name} has no physical id"
            )

        logger.debug(f"Resolved {logical_id} in {self.stack_name} to {physical_id}")
        return ResolvedBucket(reference, physical_id)


class ObjectEnumerator:
    """Collects every object key of a bucket."""

    def __init__(self, provider: StorageProvider) -> None:
        self.provider = provider

    async def enumerate(self, bucket: ResolvedBucket) -> list[str]:
        keys: list[str] = []
        cursor: Optional[str] = None
        pages = 0

        while True:
            try:
                page = await self.provider.list_objects(bucket.name, cursor)
            except ProviderError as e:
                raise EnumerationError(bucket.name, pages, str(e)) from e

            pages += 1
            keys.extend(page.keys)
            logger.debug(f"{bucket.name}: page {pages} listed {len(page.keys)} keys")

            if not page.truncated:
                break
            if not page.next_cursor:
                raise EnumerationError(
                    bucket.name, pages, "truncated listing without a continuation token"
                )
            cursor = page.next_cursor

        logger.debug(f"{bucket.name}: {len(keys)} keys in {pages} page(s)")
        return keys


def partition(keys: list[str], batch_size: int) -> list[list[str]]:
    """Split keys into consecutive batches of at most ``batch_size``."""
    return [keys[i : i + batch_size] for i in range(0, len(keys), batch_size)]


class BatchDeleter:
    """Deletes keys in batches no larger than the provider limit."""

    def __init__(self, provider: StorageProvider, batch_size: int = MAX_DELETE_BATCH) -> None:
        self.provider = provider
        self.batch_size = min(batch_size, MAX_DELETE_BATCH)

    async def delete_all(self, bucket: ResolvedBucket, keys: list[str]) -> int:
        """
        Delete every key, one batch at a time in key order.

        Args:
            bucket: Bucket holding the keys.
            keys: Keys to delete. An empty list deletes nothing.

        Returns:
            Number of keys deleted.

        Raises:
            DeletionError: If any batch fails. Earlier batches stay deleted.
        """
        batches = partition(keys, self.batch_size)
        deleted = 0

        for index, batch in enumerate(batches, 1):
            try:
                deleted += await self.provider.delete_objects(bucket.name, batch)
            except ProviderError as e:
                logger.warning(
                    f"{bucket.name}: batch {index}/{len(batches)} failed "
                    f"after {deleted} objects were deleted"
                )
                raise DeletionError(bucket.name, index, len(batches), deleted, str(e)) from e
            logger.debug(f"{bucket.name}: batch {index}/{len(batches)} deleted {len(batch)} keys")

        return deleted


class ConfirmationGate:
    """Asks whether each bucket should be emptied."""

    def __init__(self, prompt: PromptService) -> None:
        self.prompt = prompt

    @staticmethod
    def question(label: str) -> str:
        return f"Make {label} empty. Are you sure? [yes/no]:"

    @staticmethod
    def is_affirmative(answer: str) -> bool:
        return answer.startswith("y")

    async def confirm(self, label: str) -> bool:
        answers = await self.confirm_all([label])
        return answers[label]

    async def confirm_all(self, labels: Iterable[str]) -> dict[str, bool]:
        """Ask about all buckets in one batched prompt."""
        questions = {label: self.question(label) for label in labels}
        answers = await self.prompt.ask(questions)
        return {
            label: self.is_affirmative(answers.get(label, "")) for label in questions
        }


def confirmation_labels(
    references: Iterable[BucketReference],
) -> dict[BucketReference, str]:
    """
    Give every distinct reference its own prompt label.

    A label already taken by an earlier reference, e.g. ``Assets-ref`` for both
    ``Ref: Assets`` and a bucket literally named ``Assets-ref``, gets a
    `` (2)``, `` (3)``... suffix.
    """
    labels: dict[BucketReference, str] = {}
    used: set[str] = set()
    for reference in references:
        if reference in labels:
            continue
        label = reference.label
        number = 1
        while label in used:
            number += 1
            label = f"{reference.label} ({number})"
        used.add(label)
        labels[reference] = label
    return labels


def confirmation_questions(references: Iterable[BucketReference]) -> dict[str, str]:
    """Prompt label to question text, one entry per distinct reference."""
    return {
        label: ConfirmationGate.question(label)
        for label in confirmation_labels(references).values()
    }


def console_line(message: str) -> None:
    print(f"{MESSAGE_PREFIX}{message}", flush=True)


class RemovalOrchestrator:
    """
    Empties many buckets concurrently.

    Attributes:
        resolver: Resolves bucket references.
        enumerator: Lists the keys of a bucket.
        deleter: Deletes the listed keys.
        gate: Confirmation gate, required when running interactively.
        console: Receives one status line per bucket.
        states: Last known state of each bucket in the current run.
    """

    def __init__(
        self,
        resolver: BucketReferenceResolver,
        enumerator: ObjectEnumerator,
        deleter: BatchDeleter,
        gate: Optional[ConfirmationGate] = None,
        console: Callable[[str], None] = console_line,
    ) -> None:
        self.resolver = resolver
        self.enumerator = enumerator
        self.deleter = deleter
        self.gate = gate
        self.console = console
        self.states: dict[BucketReference, BucketState] = {}

    @classmethod
    def create(
        cls,
        provider: StorageProvider,
        config: RemoverConfig,
        options: RunOptions,
        prompt: Optional[PromptService] = None,
        console: Callable[[str], None] = console_line,
    ) -> RemovalOrchestrator:
        """Wire the default components around one provider."""
        return cls(
            resolver=BucketReferenceResolver(provider, config, options),
            enumerator=ObjectEnumerator(provider),
            deleter=BatchDeleter(provider, config.batch_size),
            gate=ConfirmationGate(prompt) if prompt is not None else None,
            console=console,
        )

    def _report(self, reference: BucketReference, outcome: RemovalOutcome) -> None:
        label = reference.label
        if isinstance(outcome, Emptied):
            self.states[reference] = BucketState.EMPTIED
            logger.info(f"Success: {label} is empty ({outcome.deleted} objects deleted)")
            self.console(f"Success: {label} is empty.")
        elif isinstance(outcome, Failed):
            self.states[reference] = BucketState.FAILED
            logger.error(f"Failed: {label} may not be empty: {outcome.cause}")
            self.console(f"Failed: {label} may not be empty.")
        else:
            self.states[reference] = BucketState.CANCELLED
            logger.info(f"Remove cancelled: {label}")
            self.console(f"Remove cancelled: {label}")

    async def _empty(self, reference: BucketReference) -> RemovalOutcome:
        start_time = time.monotonic()
        try:
            self.states[reference] = BucketState.RESOLVING
            bucket = await self.resolver.resolve(reference)

            self.states[reference] = BucketState.ENUMERATING
            keys = await self.enumerator.enumerate(bucket)

            self.states[reference] = BucketState.DELETING
            deleted = await self.deleter.delete_all(bucket, keys)
        except (InvalidReferenceError, StackLookupError, EnumerationError, DeletionError) as e:
            outcome: RemovalOutcome = Failed(e)
        except Exception as e:
            logger.exception(f"Unexpected error while emptying {reference.label}")
            outcome = Failed(e)
        else:
            logger.debug(
                f"{bucket.name}: emptied in {time.monotonic() - start_time:.2f} seconds"
            )
            outcome = Emptied(deleted)

        self._report(reference, outcome)
        return outcome

    async def _confirmed(
        self, references: list[BucketReference]
    ) -> dict[BucketReference, bool]:
        if self.gate is None:
            raise RuntimeError("Interactive removal requires a confirmation gate")
        labels = confirmation_labels(references)
        answers = await self.gate.confirm_all(labels.values())
        return {ref: answers.get(labels[ref], False) for ref in references}

    async def run(
        self, references: Iterable[BucketReference], interactive: bool = False
    ) -> dict[BucketReference, RemovalOutcome]:
        """
        Empty every referenced bucket and return one outcome per bucket.

        Never raises: resolver, listing and deletion errors become ``Failed``
        outcomes, a declined confirmation becomes ``Cancelled``.

        Args:
            references: Buckets to empty, in configuration order.
            interactive: Ask for confirmation before touching any bucket.

        Returns:
            Mapping of each distinct reference to its outcome.
        """
        unique: list[BucketReference] = []
        for reference in references:
            if reference in unique:
                logger.warning(f"Ignoring duplicate bucket reference: {reference.label}")
                continue
            unique.append(reference)

        self.states = {ref: BucketState.PENDING for ref in unique}
        outcomes: dict[BucketReference, RemovalOutcome] = {}

        to_empty = unique
        if interactive and unique:
            try:
                confirmed = await self._confirmed(unique)
            except Exception:
                logger.exception("Confirmation prompt failed; no bucket will be emptied")
                confirmed = {ref: False for ref in unique}
            to_empty = [ref for ref in unique if confirmed[ref]]
            for reference in unique:
                if not confirmed[reference]:
                    outcomes[reference] = Cancelled()
                    self._report(reference, outcomes[reference])

        results = await asyncio.gather(*(self._empty(ref) for ref in to_empty))
        outcomes.update(zip(to_empty, results))

        return {ref: outcomes[ref] for ref in unique}
