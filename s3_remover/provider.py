"""Cloud provider access used by the removal components."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING, Any, Optional

import aioboto3
import botocore.config
import botocore.exceptions

from .errors import ProviderError
from .models import ListPage

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)


class StorageProvider(ABC):
    """The provider calls needed to empty buckets."""

    @abstractmethod
    async def list_objects(self, bucket_name: str, cursor: Optional[str] = None) -> ListPage:
        """
        Fetch one page of object keys.

        Args:
            bucket_name: Bucket to list.
            cursor: Continuation token from the previous page, None for the first page.

        Raises:
            ProviderError: If the listing call fails.
        """

    @abstractmethod
    async def delete_objects(self, bucket_name: str, keys: list[str]) -> int:
        """
        Delete one batch of keys and return how many were deleted.

        Raises:
            ProviderError: If the call fails or reports per-key errors.
        """

    @abstractmethod
    async def describe_stack_resource(self, stack_name: str, logical_id: str) -> Optional[str]:
        """
        Look up the physical id of a logical resource in a deployed stack.

        Raises:
            ProviderError: If the stack or resource lookup fails.
        """


class AwsProvider(StorageProvider):
    """
    StorageProvider backed by asynchronous S3 and CloudFormation clients.

    Use as an async context manager; clients are opened on entry and closed
    on exit.

    Attributes:
        region: AWS region for both clients.
        profile: Optional named AWS profile.
        endpoint_url: Optional endpoint override, e.g. for LocalStack or MinIO.
    """

    def __init__(
        self,
        region: str,
        profile: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        max_retries: int = 5,
        connection_pool_size: int = 20,
    ) -> None:
        self.region = region
        self.profile = profile
        self.endpoint_url = endpoint_url
        self.max_retries = max_retries
        self.connection_pool_size = connection_pool_size
        self._session: aioboto3.Session | None = None
        self._boto_config: botocore.config.Config | None = None
        self._exit_stack: AsyncExitStack | None = None
        self._s3: Any = None
        self._cloudformation: Any = None

    @property
    def session(self) -> aioboto3.Session:
        """Lazily create and cache the session."""
        if self._session is None:
            self._session = aioboto3.Session(
                profile_name=self.profile, region_name=self.region
            )
        return self._session

    @property
    def boto_config(self) -> botocore.config.Config:
        """Lazily create and cache boto configuration."""
        if self._boto_config is None:
            self._boto_config = botocore.config.Config(
                max_pool_connections=self.connection_pool_size,
                retries={"max_attempts": self.max_retries, "mode": "adaptive"},
            )
        return self._boto_config

    async def __aenter__(self) -> AwsProvider:
        stack = AsyncExitStack()
        try:
            self._s3 = await stack.enter_async_context(
                self.session.client(
                    "s3", endpoint_url=self.endpoint_url, config=self.boto_config
                )
            )
            self._cloudformation = await stack.enter_async_context(
                self.session.client(
                    "cloudformation", endpoint_url=self.endpoint_url, config=self.boto_config
                )
            )
        except BaseException:
            await stack.aclose()
            raise
        self._exit_stack = stack
        logger.debug(f"Opened AWS clients for region {self.region}")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
            self._exit_stack = None
        self._s3 = None
        self._cloudformation = None

    def _require(self, client: Any) -> Any:
        if client is None:
            raise RuntimeError("AwsProvider must be used as an async context manager")
        return client

    async def list_objects(self, bucket_name: str, cursor: Optional[str] = None) -> ListPage:
        params: dict[str, Any] = {"Bucket": bucket_name}
        if cursor is not None:
            params["ContinuationToken"] = cursor
        try:
            response = await self._require(self._s3).list_objects_v2(**params)
        except (botocore.exceptions.ClientError, botocore.exceptions.BotoCoreError) as e:
            raise ProviderError("ListObjectsV2", str(e)) from e

        return ListPage(
            keys=[item["Key"] for item in response.get("Contents", [])],
            truncated=bool(response.get("IsTruncated", False)),
            next_cursor=response.get("NextContinuationToken"),
        )

    async def delete_objects(self, bucket_name: str, keys: list[str]) -> int:
        try:
            response = await self._require(self._s3).delete_objects(
                Bucket=bucket_name,
                Delete={"Objects": [{"Key": key} for key in keys], "Quiet": False},
            )
        except (botocore.exceptions.ClientError, botocore.exceptions.BotoCoreError) as e:
            raise ProviderError("DeleteObjects", str(e)) from e

        errors = response.get("Errors", [])
        if errors:
            first = errors[0]
            raise ProviderError(
                "DeleteObjects",
                f"{len(errors)} key(s) not deleted, first: "
                f"{first.get('Key')!r} ({first.get('Code')}: {first.get('Message')})",
            )
        return len(response.get("Deleted", []))

    async def describe_stack_resource(self, stack_name: str, logical_id: str) -> Optional[str]:
        try:
            response = await self._require(self._cloudformation).describe_stack_resource(
                StackName=stack_name, LogicalResourceId=logical_id
            )
        except (botocore.exceptions.ClientError, botocore.exceptions.BotoCoreError) as e:
            raise ProviderError("DescribeStackResource", str(e)) from e
        return response.get("StackResourceDetail", {}).get("PhysicalResourceId")
