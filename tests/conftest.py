"""Shared fixtures for filterable tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

import pytest

from filterable import Filter, GlobalDefaults, set_global_defaults
from filterable.adapters.memory import MappingInputSource, MemoryQuery


@dataclass(frozen=True)
class User:
    identifier: Any
    identifier_name: str = "user_id"


class PostFilter(Filter):
    filters = ("status", "minViews", "title", "ids")
    filter_method_map = {"q": "search"}

    def status(self, value: Any) -> None:
        self.query.where("status", value)

    def min_views(self, value: Any) -> None:
        self.query.where("views", ">=", int(value))

    def title(self, value: Any) -> None:
        self.query.where("title", "like", f"%{value}%")

    def ids(self, value: Any) -> None:
        self.query.where_in("id", [int(v) for v in value])

    def search(self, value: Any) -> None:
        self.query.where("title", "ilike", f"%{value}%")


@pytest.fixture(autouse=True)
def _clean_global_defaults() -> Iterator[None]:
    yield
    set_global_defaults(None)


@pytest.fixture
def records() -> list[dict[str, Any]]:
    return [
        {"id": 1, "title": "First post", "status": "active", "views": 10, "user_id": 1},
        {"id": 2, "title": "Second post", "status": "inactive", "views": 5, "user_id": 2},
        {"id": 3, "title": "Third post", "status": "active", "views": 30, "user_id": 1},
    ]


@pytest.fixture
def query(records: list[dict[str, Any]]) -> MemoryQuery:
    return MemoryQuery(records, name="posts")


@pytest.fixture
def post_filter_cls() -> type[PostFilter]:
    return PostFilter


@pytest.fixture
def make_filter() -> Callable[..., PostFilter]:
    """Build a ``PostFilter`` over request params with empty defaults."""

    def _make(params: dict[str, Any] | None = None, **kwargs: Any) -> PostFilter:
        kwargs.setdefault("defaults", GlobalDefaults())
        client_ip = kwargs.pop("client_ip", "127.0.0.1")
        return PostFilter(MappingInputSource(params or {}, client_ip=client_ip), **kwargs)

    return _make


@pytest.fixture
def user() -> User:
    return User(identifier=1)
