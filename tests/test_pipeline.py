"""Tests for the optional pipeline steps run inside ``apply()``."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Annotated, Any, Literal

import pytest
from pydantic import Field

from filterable import Feature, FilterState, ValidationError, transform_array
from filterable.adapters.memory import InMemoryCacheStore, MemoryQuery

from conftest import PostFilter, User

MakeFilter = Callable[..., PostFilter]


class _RecordingQuery(MemoryQuery):
    """MemoryQuery that records the order of predicate calls."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.log: list[str] = []

    def where(self, column: str, *args: Any) -> MemoryQuery:
        self.log.append(f"where:{column}")
        return super().where(column, *args)

    def where_in(self, column: str, values: Any) -> MemoryQuery:
        self.log.append(f"where_in:{column}")
        return super().where_in(column, values)

    def order_by(self, column: str, direction: str = "asc") -> MemoryQuery:
        self.log.append(f"order_by:{column}")
        return super().order_by(column, direction)


@pytest.fixture
def recording_query(records: list[dict[str, Any]]) -> _RecordingQuery:
    return _RecordingQuery(records)


def test_steps_run_in_order(
    make_filter: MakeFilter, recording_query: _RecordingQuery, user: User
) -> None:
    f = make_filter({"status": "active"})
    f.enable_features(Feature.FILTER_CHAINING)
    f.for_user(user)
    f.register_pre_filters(lambda q: q.where("views", ">", 0))
    f.order_by("views", "desc")

    f.apply(recording_query)

    assert recording_query.log == [
        "where:user_id",
        "where:views",
        "where:status",
        "order_by:views",
    ]
    assert [r["id"] for r in f.get()] == [3, 1]


# ── Principal scoping ────────────────────────────────────────────


def test_for_user_scopes_results(make_filter: MakeFilter, query: MemoryQuery) -> None:
    rows = make_filter().for_user(User(identifier=2)).run_query(query)
    assert [r["id"] for r in rows] == [2]


def test_for_user_none_removes_scope(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter().for_user(User(identifier=2)).for_user(None)
    assert len(f.run_query(query)) == 3


def test_custom_identifier_column(make_filter: MakeFilter, query: MemoryQuery) -> None:
    rows = make_filter().for_user(User(identifier=3, identifier_name="id")).run_query(query)
    assert [r["id"] for r in rows] == [3]


# ── Permissions ──────────────────────────────────────────────────


def test_denied_keys_are_dropped(make_filter: MakeFilter, query: MemoryQuery) -> None:
    granted = {"posts.search"}
    f = make_filter(
        {"status": "inactive", "minViews": "1"},
        permission_checker=lambda principal, permission: permission in granted,
    )
    f.enable_feature(Feature.PERMISSIONS)
    f.set_filter_permissions({"status": "posts.moderate", "minViews": "posts.search"})
    f.for_user(User(identifier=2))

    rows = f.run_query(query)

    assert f.get_current_filters() == ["minViews"]
    assert [r["id"] for r in rows] == [2]


def test_permissions_ignored_without_principal(
    make_filter: MakeFilter, query: MemoryQuery
) -> None:
    f = make_filter({"status": "inactive"}, permission_checker=lambda *_: False)
    f.enable_feature(Feature.PERMISSIONS)
    f.set_filter_permissions({"status": "posts.moderate"})
    assert [r["id"] for r in f.run_query(query)] == [2]


def test_user_has_permission_defaults_to_allow(make_filter: MakeFilter, user: User) -> None:
    f = make_filter()
    assert f.user_has_permission("anything")
    f.for_user(user)
    assert f.user_has_permission("anything")
    f.set_permission_checker(lambda principal, permission: principal.identifier == 99)
    assert not f.user_has_permission("anything")


def test_list_permissions_are_passed_to_checker(
    make_filter: MakeFilter, query: MemoryQuery, user: User
) -> None:
    seen: list[Any] = []

    def checker(principal: Any, permission: Any) -> bool:
        seen.append(permission)
        return True

    f = make_filter({"status": "active"}, permission_checker=checker)
    f.enable_feature(Feature.PERMISSIONS)
    f.set_filter_permissions({"status": ["a", "b"]})
    f.for_user(user).apply(query)
    assert seen == [["a", "b"]]


# ── Validation ───────────────────────────────────────────────────


def test_valid_input_passes(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter({"status": "active", "minViews": "20"})
    f.enable_feature(Feature.VALIDATION)
    f.set_validation_rules(
        {
            "status": Literal["active", "inactive"],
            "minViews": Annotated[int, Field(ge=0)],
        }
    )
    assert [r["id"] for r in f.run_query(query)] == [3]


def test_custom_validation_messages(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter({"status": "archived", "minViews": "-1"})
    f.enable_feature(Feature.VALIDATION)
    f.set_validation_rules({"status": Literal["active", "inactive"]})
    f.add_validation_rule("minViews", Annotated[int, Field(ge=0)])
    f.set_validation_messages(
        {
            "status": "Unknown status",
            "minViews.greater_than_equal": "Views cannot be negative",
        }
    )

    with pytest.raises(ValidationError) as exc_info:
        f.apply(query)

    assert exc_info.value.errors == {
        "status": ["Unknown status"],
        "minViews": ["Views cannot be negative"],
    }


def test_validation_disabled_skips_rules(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter({"status": "archived"})
    f.set_validation_rules({"status": Literal["active", "inactive"]})
    f.apply(query)
    assert f.state is FilterState.APPLIED
    assert f.get() == []


# ── Value transformation ─────────────────────────────────────────


def test_transformers_run_before_dispatch(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter({"status": "  ACTIVE ", "ids": ["1", "3", "2"]})
    f.enable_feature(Feature.VALUE_TRANSFORMATION)
    f.register_transformer("status", lambda value: value.strip().lower())
    f.register_transformer("ids", lambda ids: transform_array(ids, int)[:2])

    rows = f.run_query(query)

    assert [r["id"] for r in rows] == [1, 3]
    assert f.get_filterables() == {"status": "active", "ids": [1, 3]}


def test_transformer_runs_after_validation(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter({"minViews": "25"})
    f.enable_features(Feature.VALIDATION, Feature.VALUE_TRANSFORMATION)
    f.set_validation_rules({"minViews": str})
    f.register_transformer("minViews", int)
    assert [r["id"] for r in f.run_query(query)] == [3]


# ── Chaining ─────────────────────────────────────────────────────


def test_chain_applies_only_when_enabled(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter()
    f.where("status", "active").where_not_in("id", [1])
    f.apply(query)
    assert len(f.get()) == 3


def test_chain_predicates(make_filter: MakeFilter, records: list[dict[str, Any]]) -> None:
    f = make_filter()
    f.enable_feature(Feature.FILTER_CHAINING)
    f.where_in("id", [1, 2, 3]).where_between("views", 5, 10).order_by("id", "DESC")
    rows = f.run_query(MemoryQuery(records))
    assert [r["id"] for r in rows] == [2, 1]


def test_invalid_order_direction_is_rejected(make_filter: MakeFilter) -> None:
    with pytest.raises(ValueError, match="asc"):
        make_filter().order_by("id", "sideways")


# ── Optimization ─────────────────────────────────────────────────


def test_optimization_hints_reach_query(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter({"status": "active"})
    f.enable_feature(Feature.OPTIMIZATION)
    f.select_columns(["id", "title"]).with_relations("author").with_relations(["author", "tags"])
    f.use_index("idx_status")
    f.apply(query, {"chunk_size": 100})

    assert query.columns == ["id", "title"]
    assert query.relations == ["author", "tags"]
    assert query.index == "idx_status"
    assert f.get_options()["use_chunking"] is True
    assert f.get() == [{"id": 1, "title": "First post"}, {"id": 3, "title": "Third post"}]


def test_chunk_size_sets_options(make_filter: MakeFilter) -> None:
    f = make_filter().chunk_size(250)
    assert f.get_options() == {"chunk_size": 250, "use_chunking": True}


# ── Performance ──────────────────────────────────────────────────


def test_performance_metrics(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter({"status": "active"})
    f.enable_feature(Feature.PERFORMANCE)
    f.add_metric("source", "test")
    f.apply(query)

    elapsed = f.get_execution_time()
    assert elapsed is not None
    assert elapsed >= 0
    assert f.get_metrics()["source"] == "test"

    f.reset()
    assert f.get_metrics() == {}


def test_no_timing_without_feature(make_filter: MakeFilter, query: MemoryQuery) -> None:
    f = make_filter({"status": "active"})
    f.apply(query)
    assert f.get_execution_time() is None


# ── Caching through the filter ───────────────────────────────────


def test_filter_reads_through_cache(
    make_filter: MakeFilter, records: list[dict[str, Any]], user: User
) -> None:
    class CountingQuery(MemoryQuery):
        gets = 0

        def get(self) -> list[Any]:
            self.gets += 1
            return super().get()

    store = InMemoryCacheStore()
    query = CountingQuery(records)
    f = make_filter({"status": "active", "minViews": "1"}, cache=store)
    f.for_user(user)
    f.apply(query)
    first = f.get()

    key = f.build_cache_key()
    assert key.startswith("filters:PostFilter:1:")
    assert store.has(key)
    assert f.get() == first
    assert query.gets == 1

    f.clear_cache()
    assert not store.has(key)
    assert [r["id"] for r in f.get()] == [1, 3]
    assert query.gets == 2


def test_cache_prefix_override(make_filter: MakeFilter) -> None:
    class PrefixedFilter(PostFilter):
        cache_prefix = "posts"

    from filterable.adapters.memory import MappingInputSource
    from filterable.config import GlobalDefaults

    f = PrefixedFilter(MappingInputSource({"status": "active"}), defaults=GlobalDefaults())
    assert f.build_cache_key().startswith("posts:global:")


def test_cache_configuration_accessors(make_filter: MakeFilter) -> None:
    store = InMemoryCacheStore()
    f = make_filter()
    assert f.get_cache_handler() is None
    f.set_cache_handler(store).set_cache_expiration(10).set_count_cache_expiration(1)
    assert f.get_cache_handler() is store
    assert f.get_cache_expiration() == 10


def test_cached_count_and_tag_flush(
    make_filter: MakeFilter, records: list[dict[str, Any]]
) -> None:
    store = InMemoryCacheStore()
    f = make_filter({"title": "post"}, cache=store)
    f.cache_results().cache_count().cache_tags("posts")
    f.apply(MemoryQuery(records))

    assert len(f.get()) == 3
    assert f.count() == 3
    key = f.build_cache_key()
    assert store.has(key)
    assert store.has(key + ":count")

    f.clear_related_caches()
    assert len(store) == 0


def test_memory_management_collects_in_chunks(
    make_filter: MakeFilter, records: list[dict[str, Any]]
) -> None:
    chunks: list[int] = []

    class ChunkSpy(MemoryQuery):
        def chunk(self, size: int, callback: Callable[[list[Any]], Any]) -> bool:
            def spy(rows: list[Any]) -> Any:
                chunks.append(len(rows))
                return callback(rows)

            return super().chunk(size, spy)

    f = make_filter(cache=InMemoryCacheStore())
    f.enable_feature(Feature.MEMORY_MANAGEMENT)
    f.chunk_size(2)
    f.apply(ChunkSpy(records))

    assert len(f.get()) == 3
    assert chunks == [2, 1]


# ── Logging ──────────────────────────────────────────────────────


def test_logging_is_gated_by_feature(
    make_filter: MakeFilter, query: MemoryQuery, user: User, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.DEBUG, logger="filterable.filter")
    make_filter({"status": "active"}).for_user(user).apply(query)
    assert caplog.records == []


def test_logging_emits_pipeline_messages(
    make_filter: MakeFilter, records: list[dict[str, Any]], user: User,
    caplog: pytest.LogCaptureFixture,
) -> None:
    logger = logging.getLogger("tests.filter")
    caplog.set_level(logging.DEBUG, logger="tests.filter")
    f = make_filter({"status": "active", "minViews": "1", "title": "x"}, logger=logger)
    f.enable_features(Feature.PERFORMANCE, Feature.RATE_LIMIT)
    f.set_max_filters(1)
    f.for_user(user).apply(MemoryQuery(records))

    messages = [r.getMessage() for r in caplog.records]
    assert "Applying user-specific filter" in messages
    assert "Too many filters applied" in messages
    assert "Filter executed" in messages

    executed = next(r for r in caplog.records if r.getMessage() == "Filter executed")
    assert executed.filter_context["filter_count"] == 3  # type: ignore[attr-defined]


def test_failure_is_logged_as_warning(
    make_filter: MakeFilter, query: MemoryQuery, caplog: pytest.LogCaptureFixture
) -> None:
    logger = logging.getLogger("tests.filter.failure")
    caplog.set_level(logging.WARNING, logger="tests.filter.failure")
    f = make_filter(logger=logger)
    f.register_pre_filters(lambda q: 1 / 0)
    f.apply(query)

    [record] = caplog.records
    assert record.levelno == logging.WARNING
    assert record.getMessage() == "Error applying filters"
    assert record.filter_context["error_type"] == "ZeroDivisionError"  # type: ignore[attr-defined]
