"""Empty S3 buckets of a deployed service before it is removed."""

from .config import RemoverConfig, RunOptions
from .errors import (
    ConfigurationError,
    DeletionError,
    EnumerationError,
    InvalidReferenceError,
    ProviderError,
    S3RemoverError,
    StackLookupError,
)
from .models import (
    BucketReference,
    Cancelled,
    Emptied,
    Failed,
    LiteralBucket,
    RemovalOutcome,
    ResolvedBucket,
    StackBucket,
    parse_bucket_reference,
)
from .provider import AwsProvider, StorageProvider
from .remover import (
    BatchDeleter,
    BucketReferenceResolver,
    ConfirmationGate,
    ObjectEnumerator,
    RemovalOrchestrator,
)

__version__ = "0.1.0"

__all__ = [
    "AwsProvider",
    "BatchDeleter",
    "BucketReference",
    "BucketReferenceResolver",
    "Cancelled",
    "ConfigurationError",
    "ConfirmationGate",
    "DeletionError",
    "Emptied",
    "EnumerationError",
    "Failed",
    "InvalidReferenceError",
    "LiteralBucket",
    "ObjectEnumerator",
    "ProviderError",
    "RemovalOrchestrator",
    "RemovalOutcome",
    "RemoverConfig",
    "ResolvedBucket",
    "RunOptions",
    "S3RemoverError",
    "StackBucket",
    "StackLookupError",
    "StorageProvider",
    "parse_bucket_reference",
]
