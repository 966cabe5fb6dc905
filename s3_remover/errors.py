"""Exception hierarchy for bucket removal."""

from __future__ import annotations


class S3RemoverError(Exception):
    """Base exception for all bucket removal errors."""


class ConfigurationError(S3RemoverError):
    """The remover configuration could not be loaded or is invalid."""


class ProviderError(S3RemoverError):
    """A cloud provider call failed."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class InvalidReferenceError(S3RemoverError):
    """A symbolic bucket reference has no usable logical resource id."""


class StackLookupError(S3RemoverError):
    """The stack resource backing a symbolic reference could not be found."""


class EnumerationError(S3RemoverError):
    """Listing the objects of a bucket failed."""

    def __init__(self, bucket_name: str, pages_read: int, message: str) -> None:
        super().__init__(
            f"Listing objects in {bucket_name} failed after {pages_read} page(s): {message}"
        )
        self.bucket_name = bucket_name
        self.pages_read = pages_read


class DeletionError(S3RemoverError):
    """
    A delete batch failed.

    Batches before the failing one are already deleted and are not restored.

    Attributes:
        bucket_name: Bucket being emptied.
        batch_index: 1-based index of the failing batch.
        batch_count: Total number of batches for the bucket.
        deleted: Number of keys deleted before the failure.
    """

    def __init__(
        self,
        bucket_name: str,
        batch_index: int,
        batch_count: int,
        deleted: int,
        message: str,
    ) -> None:
        super().__init__(
            f"Deleting batch {batch_index}/{batch_count} in {bucket_name} failed "
            f"({deleted} objects already deleted): {message}"
        )
        self.bucket_name = bucket_name
        self.batch_index = batch_index
        self.batch_count = batch_count
        self.deleted = deleted
