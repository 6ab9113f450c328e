# ABOUTME: Shared pytest fixtures for shelfmark tests.
# ABOUTME: Provides metadata sources, record and provider factories, and a scriptable fake provider.

import asyncio
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from shelfmark.metadata.provider import (
    BaseMetadataProvider,
    CreatorQuery,
    MultiCriteriaQuery,
    RateLimitConfig,
    TitleQuery,
)
from shelfmark.metadata.record import MetadataRecord
from shelfmark.metadata.types import MetadataSource


class FakeProvider(BaseMetadataProvider):
    """Scriptable provider client.

    errors are raised one per call, in order, before any records are
    returned. delay makes every call sleep first, for timeout tests.
    """

    def __init__(
        self,
        name: str,
        *,
        isbn_results: Sequence[MetadataRecord] = (),
        multi_results: Sequence[MetadataRecord] = (),
        errors: Sequence[BaseException] = (),
        delay: float = 0.0,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("rate_limit", RateLimitConfig(request_delay=0))
        super().__init__(name, **kwargs)
        self.isbn_results = list(isbn_results)
        self.multi_results = list(multi_results)
        self.errors = list(errors)
        self.delay = delay
        self.calls: list[str] = []

    async def _answer(self, operation: str, records: list[MetadataRecord]) -> list[MetadataRecord]:
        self.calls.append(operation)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.errors:
            raise self.errors.pop(0)
        return list(records)

    async def search_by_isbn(self, isbn: str) -> list[MetadataRecord]:
        return await self._answer("isbn", self.isbn_results)

    async def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]:
        return await self._answer("multi", self.multi_results)

    async def search_by_title(self, query: TitleQuery) -> list[MetadataRecord]:
        return await self._answer("title", self.multi_results)

    async def search_by_creator(self, query: CreatorQuery) -> list[MetadataRecord]:
        return await self._answer("creator", self.multi_results)


@pytest.fixture
def high_source() -> MetadataSource:
    return MetadataSource(name="LibraryOfCongress", reliability=0.9)


@pytest.fixture
def mid_source() -> MetadataSource:
    return MetadataSource(name="OpenLibrary", reliability=0.7)


@pytest.fixture
def low_source() -> MetadataSource:
    return MetadataSource(name="WikiData", reliability=0.5)


@pytest.fixture
def make_record() -> Callable[..., MetadataRecord]:
    """Factory for MetadataRecord with sensible defaults."""
    counter = iter(range(1, 10_000))

    def factory(source: str = "OpenLibrary", **fields: Any) -> MetadataRecord:
        fields.setdefault("id", f"{source.lower()}-{next(counter)}")
        fields.setdefault("confidence", 0.9)
        return MetadataRecord(source=source, **fields)

    return factory


@pytest.fixture
def make_provider() -> Callable[..., FakeProvider]:
    """Factory for FakeProvider; rate limiting is disabled unless a rate_limit is given."""

    def factory(name: str, **kwargs: Any) -> FakeProvider:
        return FakeProvider(name, **kwargs)

    return factory
