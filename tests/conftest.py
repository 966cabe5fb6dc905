"""
Shared fixtures: in-memory provider and prompt fakes that record every call.
"""

from typing import Dict, List, Optional

import pytest

from s3_remover.config import RemoverConfig, RunOptions
from s3_remover.errors import ProviderError
from s3_remover.models import ListPage
from s3_remover.prompt import PromptService
from s3_remover.provider import StorageProvider


class FakeProvider(StorageProvider):
    """Serves listing pages, stack resources and delete results from memory."""

    def __init__(self):
        self.pages: Dict[str, List[ListPage]] = {}
        self.stack_resources: Dict[tuple, str] = {}
        self.list_failures: Dict[str, int] = {}
        self.delete_failures: Dict[str, int] = {}
        self.lookup_failure: Optional[str] = None
        self.calls: List[tuple] = []

    def add_bucket(self, name: str, keys: List[str], page_size: int = 1000):
        """Split keys into pages whose cursors are ``<name>-<page number>``."""
        chunks = [keys[i : i + page_size] for i in range(0, len(keys), page_size)] or [[]]
        pages = []
        for number, chunk in enumerate(chunks, 1):
            more = number < len(chunks)
            pages.append(
                ListPage(
                    keys=chunk,
                    truncated=more,
                    next_cursor=f"{name}-{number}" if more else None,
                )
            )
        self.pages[name] = pages

    def calls_for(self, bucket_name: str) -> List[tuple]:
        return [call for call in self.calls if call[1] == bucket_name]

    async def list_objects(self, bucket_name, cursor=None):
        self.calls.append(("list", bucket_name, cursor))
        page_number = 0 if cursor is None else int(cursor.rsplit("-", 1)[1])
        if self.list_failures.get(bucket_name) == page_number + 1:
            raise ProviderError("ListObjectsV2", "AccessDenied")
        if bucket_name not in self.pages:
            raise ProviderError("ListObjectsV2", "NoSuchBucket")
        return self.pages[bucket_name][page_number]

    async def delete_objects(self, bucket_name, keys):
        self.calls.append(("delete", bucket_name, list(keys)))
        batch_number = len([c for c in self.calls_for(bucket_name) if c[0] == "delete"])
        if self.delete_failures.get(bucket_name) == batch_number:
            raise ProviderError("DeleteObjects", "InternalError")
        return len(keys)

    async def describe_stack_resource(self, stack_name, logical_id):
        self.calls.append(("describe", stack_name, logical_id))
        if self.lookup_failure:
            raise ProviderError("DescribeStackResource", self.lookup_failure)
        return self.stack_resources.get((stack_name, logical_id))


class FakePrompt(PromptService):
    """Answers questions from a fixed mapping; unknown labels answer ``no``."""

    def __init__(self, answers=None, error=None):
        self.answers = answers or {}
        self.error = error
        self.questions = []

    async def ask(self, questions):
        self.questions.append(dict(questions))
        if self.error is not None:
            raise self.error
        return {label: self.answers.get(label, "no") for label in questions}


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def config():
    return RemoverConfig(service="photos", stage="dev", region="eu-west-1")


@pytest.fixture
def options():
    return RunOptions()
