"""Tests for lazy and chunked iteration over filter results."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from filterable import FilterFailedError, LazyResults, NotAppliedError
from filterable.adapters.memory import MemoryQuery
from filterable.streaming import DEFAULT_CHUNK_SIZE, STREAM_NOT_APPLIED

from conftest import PostFilter

MakeFilter = Callable[..., PostFilter]


class _PassCountingQuery(MemoryQuery):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.passes = 0

    def _execute(self) -> list[Any]:
        self.passes += 1
        return super()._execute()


def test_lazy_results_are_restartable() -> None:
    calls = []

    def factory() -> Any:
        calls.append(1)
        return iter([1, 2, 3])

    results = LazyResults(factory, 2)
    assert list(results) == [1, 2, 3]
    assert list(results) == [1, 2, 3]
    assert len(calls) == 2


def test_lazy_results_operations() -> None:
    results = LazyResults(lambda: iter(range(1, 6)), 10)
    assert results.map(lambda n: n * 2).to_list() == [2, 4, 6, 8, 10]
    assert results.filter(lambda n: n % 2).to_list() == [1, 3, 5]
    assert results.reduce(lambda acc, n: acc + n, 0) == 15
    assert results.first() == 1
    assert LazyResults(lambda: iter([]), 1).first() is None


def test_each_stops_on_false() -> None:
    seen: list[int] = []

    def callback(n: int) -> bool | None:
        seen.append(n)
        return False if n == 2 else None

    LazyResults(lambda: iter([1, 2, 3]), 1).each(callback)
    assert seen == [1, 2]


# ── Implicit application ─────────────────────────────────────────


def test_lazy_applies_stored_query(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter({"status": "active"}).set_query(query)
    rows = f.lazy(chunk_size=1)
    assert f.state.value == "applied"
    assert [r["id"] for r in rows] == [1, 3]
    assert rows.chunk_size == 1


def test_lazy_re_runs_query_each_pass(
    make_filter: MakeFilter, records: list[dict[str, Any]]
) -> None:
    q = _PassCountingQuery(records)
    rows = make_filter().set_query(q).lazy()
    list(rows)
    list(rows)
    assert q.passes == 2


def test_iteration_without_query_raises(make_filter: MakeFilter) -> None:
    with pytest.raises(NotAppliedError, match="set_query"):
        make_filter().lazy()


def test_iteration_after_failure_raises(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter()
    f.register_pre_filters(lambda q: 1 / 0)
    f.set_query(query)
    with pytest.raises(FilterFailedError):
        f.cursor()


def test_map_filter_reduce(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter({"status": "active"}).set_query(query)
    assert f.map(lambda r: r["title"]).to_list() == ["First post", "Third post"]
    assert f.filter(lambda r: r["views"] > 15).to_list() == [
        {"id": 3, "title": "Third post", "status": "active", "views": 30, "user_id": 1}
    ]
    assert f.reduce(lambda acc, r: acc + r["views"], 0) == 40


def test_lazy_each(make_filter: MakeFilter, query: MemoryQuery) -> None:
    ids: list[int] = []
    make_filter().set_query(query).lazy_each(lambda r: ids.append(r["id"]))
    assert ids == [1, 2, 3]


def test_cursor(make_filter: MakeFilter, query: MemoryQuery) -> None:
    cursor = make_filter({"status": "inactive"}).set_query(query).cursor()
    assert [r["id"] for r in cursor] == [2]


def test_chunk(make_filter: MakeFilter, query: MemoryQuery) -> None:
    sizes: list[int] = []
    completed = make_filter().set_query(query).chunk(2, lambda rows: sizes.append(len(rows)))
    assert completed is True
    assert sizes == [2, 1]


def test_chunk_stops_when_callback_returns_false(
    make_filter: MakeFilter, query: MemoryQuery
) -> None:
    sizes: list[int] = []

    def callback(rows: list[Any]) -> bool:
        sizes.append(len(rows))
        return False

    assert make_filter().set_query(query).chunk(1, callback) is False
    assert sizes == [1]


def test_set_query_merges_options(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter().set_query(query, {"chunk_size": 2})
    assert f.get_options() == {"chunk_size": 2}
    assert f.lazy().chunk_size == 2


def test_chunk_size_resolution(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter().set_query(query)
    assert f.lazy().chunk_size == DEFAULT_CHUNK_SIZE
    assert f.lazy(0).chunk_size == 1
    f.set_option("chunk_size", "lots")
    assert f.lazy().chunk_size == DEFAULT_CHUNK_SIZE


# ── Explicit application ─────────────────────────────────────────


def test_stream_requires_apply(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter().set_query(query)
    with pytest.raises(NotAppliedError) as exc_info:
        f.stream()
    assert str(exc_info.value) == STREAM_NOT_APPLIED
    with pytest.raises(NotAppliedError):
        f.stream_generator()


def test_stream_after_apply(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter({"status": "active"})
    f.apply(query)
    assert [r["id"] for r in f.stream(chunk_size=1)] == [1, 3]
    assert [r["id"] for r in f.stream_generator()] == [1, 3]


def test_stream_generator_is_single_pass(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter()
    f.apply(query)
    gen = f.stream_generator()
    assert len(list(gen)) == 3
    assert list(gen) == []
