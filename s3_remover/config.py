"""Configuration loading for the bucket remover."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigurationError
from .models import MAX_DELETE_BATCH, BucketReference, parse_bucket_reference

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "serverless.yml"
DEFAULT_STAGE = "dev"
DEFAULT_REGION = "us-east-1"


@dataclass
class RemoverConfig:
    """Deployment settings and the ``custom.remover`` section of the service file."""

    service: str
    stage: str = DEFAULT_STAGE
    region: str = DEFAULT_REGION
    prompt: bool = False
    buckets: list[BucketReference] = field(default_factory=list)
    batch_size: int = MAX_DELETE_BATCH
    max_retries: int = 5
    connection_pool_size: int = 20

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be positive, got {self.batch_size}")
        if self.batch_size > MAX_DELETE_BATCH:
            logger.warning(
                f"batch_size {self.batch_size} exceeds the provider limit; "
                f"using {MAX_DELETE_BATCH}"
            )
            self.batch_size = MAX_DELETE_BATCH

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoverConfig:
        """
        Build configuration from a parsed service file.

        Args:
            data: Mapping with ``service``, ``provider`` and ``custom.remover``.

        Returns:
            The remover configuration.

        Raises:
            ConfigurationError: If required settings are missing or malformed.
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Service file must contain a mapping")

        service = data.get("service")
        if isinstance(service, dict):
            service = service.get("name")
        if not isinstance(service, str) or not service:
            raise ConfigurationError("Service file has no 'service' name")

        provider = data.get("provider") or {}
        custom = data.get("custom") or {}
        if not isinstance(provider, dict) or not isinstance(custom, dict):
            raise ConfigurationError("'provider' and 'custom' must be mappings")
        remover = custom.get("remover") or {}
        if not isinstance(remover, dict):
            raise ConfigurationError("'custom.remover' must be a mapping")

        raw_buckets = remover.get("buckets") or []
        if not isinstance(raw_buckets, list):
            raise ConfigurationError("'custom.remover.buckets' must be a list")

        buckets: list[BucketReference] = []
        for raw in raw_buckets:
            reference = parse_bucket_reference(raw)
            if reference in buckets:
                raise ConfigurationError(f"Bucket configured twice: {reference.label}")
            buckets.append(reference)

        try:
            batch_size = int(remover.get("batchSize", MAX_DELETE_BATCH))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid 'custom.remover.batchSize': {e}") from e

        return cls(
            service=service,
            stage=str(provider.get("stage") or DEFAULT_STAGE),
            region=str(provider.get("region") or DEFAULT_REGION),
            prompt=bool(remover.get("prompt", False)),
            buckets=buckets,
            batch_size=batch_size,
        )

    @classmethod
    def from_file(cls, path: str | Path = DEFAULT_CONFIG_FILE) -> RemoverConfig:
        """Load configuration from a YAML service file."""
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle)
        except OSError as e:
            raise ConfigurationError(f"Cannot read {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        logger.debug(f"Loaded service file: {path}")
        return cls.from_dict(data or {})


@dataclass
class RunOptions:
    """Run-time overrides supplied on the command line or environment."""

    stage: Optional[str] = None
    region: Optional[str] = None
    profile: Optional[str] = None
    endpoint_url: Optional[str] = None
    verbose: bool = False
    prompt: Optional[bool] = None

    @classmethod
    def from_environment(cls, **overrides: Any) -> RunOptions:
        """Create options from environment variables, then apply explicit overrides."""
        options = cls(
            profile=os.environ.get("AWS_PROFILE") or None,
            endpoint_url=os.environ.get("S3_REMOVER_ENDPOINT_URL") or None,
        )
        for name, value in overrides.items():
            if value is not None:
                setattr(options, name, value)
        return options


def effective_stage(config: RemoverConfig, options: RunOptions) -> str:
    return options.stage or config.stage


def effective_region(config: RemoverConfig, options: RunOptions) -> str:
    return options.region or config.region


def effective_prompt(config: RemoverConfig, options: RunOptions) -> bool:
    if options.prompt is not None:
        return options.prompt
    return config.prompt


def stack_name(config: RemoverConfig, options: RunOptions) -> str:
    """Name of the deployed stack for the effective stage."""
    return f"{config.service}-{effective_stage(config, options)}"
