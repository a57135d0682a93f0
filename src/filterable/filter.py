"""
Filter — the orchestrator that turns request input into query predicates.

Subclass :class:`Filter`, declare the keys it accepts and write one method
per key. Each method receives the request value and narrows ``self.query``::

    class PostFilter(Filter):
        filters = ("status", "createdAfter")
        filter_method_map = {"q": "search"}

        def status(self, value):
            self.query.where("status", value)

        def created_after(self, value):
            self.query.where("created_at", ">=", value)

        def search(self, value):
            self.query.where("title", "ilike", f"%{value}%")

    posts = PostFilter(MappingInputSource(request.args)).run_query(query)

Lifecycle: ``initialized`` → ``applying`` → ``applied`` | ``failed``. An
instance is applied at most once; ``reset()`` returns it to
``initialized``. Optional behaviours are switched on per instance through
its :class:`~filterable.features.FeatureSet`.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

from .caching import SmartCache, build_cache_key
from .chaining import FilterChain
from .config import DEFAULT_CACHE_TTL_MINUTES, get_global_defaults
from .events import FilterApplied, FilterApplying, FilterFailed
from .exceptions import (
    BadDispatchError,
    FilterDefinitionError,
    FilterFailedError,
    NotAppliedError,
    ReapplicationError,
    ValidationError,
)
from .features import Feature, FeatureSet
from .optimization import QueryOptimizer
from .performance import PerformanceMonitor
from .permissions import PermissionGuard
from .ports.query import MISSING
from .rate_limiting import (
    DEFAULT_MAX_COMPLEXITY,
    DEFAULT_MAX_FILTERS,
    RateLimiter,
    throttle_key,
)
from .resolver import DispatchTable, filter_keys, method_name_for, resolve_filterables
from .streaming import LazyResults, StreamingExecutor
from .transformation import ValueTransformer, transform_array
from .validation import FilterValidator

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence

    from .config import GlobalDefaults
    from .events import FilterEvent, IFilterEventDispatcher
    from .permissions import Permission
    from .ports.cache import ICacheStore
    from .ports.input_source import IInputSource
    from .ports.principal import IPrincipal
    from .ports.query import IQuery
    from .ports.rate_limit import IRateLimitStore

DEFAULT_LOGGER_NAME = "filterable.filter"
GET_NOT_APPLIED = "You must call apply() before get()"
ITERATE_NOT_APPLIED = "You must call apply() or set_query() before iterating results."


class FilterState(str, Enum):
    INITIALIZED = "initialized"
    APPLYING = "applying"
    APPLIED = "applied"
    FAILED = "failed"


class Filter:
    """Base class for request-driven query filters.

    Class attributes configure the filter type:

    * ``filters``: input keys the filter accepts.
    * ``filter_method_map``: key → method name overrides; mapped keys are
      accepted even when not listed in ``filters``.
    * ``cache_prefix``: scope of cache keys, ``"filters:<ClassName>"`` when
      unset.
    * ``cache_expiration``: result TTL in minutes.
    * ``max_filters``, ``max_complexity``, ``filter_weights``: rate-limit
      gates.
    """

    filters: ClassVar[Sequence[str]] = ()
    filter_method_map: ClassVar[Mapping[str, str]] = {}
    cache_prefix: ClassVar[str | None] = None
    cache_expiration: ClassVar[int] = DEFAULT_CACHE_TTL_MINUTES
    max_filters: ClassVar[int] = DEFAULT_MAX_FILTERS
    max_complexity: ClassVar[float] = DEFAULT_MAX_COMPLEXITY
    filter_weights: ClassVar[Mapping[str, float]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        for key in filter_keys(cls.filters, cls.filter_method_map):
            name = cls.filter_method_map.get(key) or method_name_for(key)
            if name in FILTER_API_NAMES:
                raise FilterDefinitionError(key, name, cls.__name__)

    def __init__(
        self,
        source: IInputSource | None = None,
        *,
        cache: ICacheStore | None = None,
        logger: logging.Logger | None = None,
        rate_limiter: IRateLimitStore | None = None,
        defaults: GlobalDefaults | None = None,
        dispatcher: IFilterEventDispatcher | None = None,
        permission_checker: Callable[[IPrincipal, Permission], bool] | None = None,
    ) -> None:
        defaults = defaults if defaults is not None else get_global_defaults()

        self.source = source
        self.features = FeatureSet(defaults.features)
        self.options: dict[str, Any] = dict(defaults.options)
        self.logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.dispatcher = dispatcher
        self.permission_checker = permission_checker
        self.principal: IPrincipal | None = None
        self.query: IQuery | None = None
        self.rate_limit_passed: bool | None = None
        self.last_error: BaseException | None = None

        self._state = FilterState.INITIALIZED
        self._appended: dict[str, Any] = {}
        self._filterables: dict[str, Any] | None = None
        self._current_filters: list[str] = []
        self._pre_filters: list[Callable[[IQuery], Any]] = []

        ttl = defaults.cache_ttl if defaults.cache_ttl is not None else self.cache_expiration
        self._cache = SmartCache(cache, ttl)
        self._rate_limiter = RateLimiter(
            rate_limiter,
            max_filters=self.max_filters,
            max_complexity=self.max_complexity,
            weights=self.filter_weights,
        )
        self._permissions = PermissionGuard()
        self._validator = FilterValidator()
        self._transformer = ValueTransformer()
        self._chain = FilterChain()
        self._optimizer = QueryOptimizer()
        self._performance = PerformanceMonitor()
        self._streaming = StreamingExecutor(self)

        if cache is not None:
            self.features.enable(Feature.CACHING)
        if logger is not None:
            self.features.enable(Feature.LOGGING)

        self._dispatch = DispatchTable(
            self,
            filter_keys(self.filters, self.filter_method_map),
            self.filter_method_map,
            reserved=FILTER_API_NAMES,
        )

    # ── Lifecycle ────────────────────────────────────────────────

    @property
    def state(self) -> FilterState:
        return self._state

    def apply(self, query: IQuery, options: Mapping[str, Any] | None = None) -> IQuery:
        """Run the filter pipeline against *query* and return it.

        Raises:
            ReapplicationError: the instance is not ``initialized``.
            ValidationError: input failed the validation rules.
            BadDispatchError: an active key has no predicate method.

        Any other exception moves the instance to ``failed`` and the
        partially filtered query is returned; ``get()`` then raises
        :class:`FilterFailedError`. That includes an exception raised by a
        ``FilterApplied`` handler.
        """
        if self._state is not FilterState.INITIALIZED:
            raise ReapplicationError(self._state.value)

        if options:
            self.options.update(options)
        self.query = query
        self._state = FilterState.APPLYING
        self.features.lock()
        try:
            self._emit(FilterApplying(self, query, dict(self.options)))
            self._filterables = self._resolve()
            self._current_filters = list(self._filterables)
            self._run_pipeline(query)
        except (ValidationError, BadDispatchError) as exc:
            self._fail(query, exc)
            raise
        except Exception as exc:
            self._fail(query, exc)
            return query
        finally:
            self.features.unlock()

        self._state = FilterState.APPLIED
        try:
            self._emit(FilterApplied(self, query, dict(self._require_filterables())))
        except Exception as exc:
            self._fail(query, exc)
        return query

    def _run_pipeline(self, query: IQuery) -> None:
        filterables = self._require_filterables()
        timed = self.has_feature(Feature.PERFORMANCE)
        if timed:
            self._performance.start()

        self._apply_user_scope(query)

        if self.has_feature(Feature.PERMISSIONS):
            self._apply_permissions(filterables)

        self._apply_pre_filters(query)

        if self.has_feature(Feature.VALIDATION):
            self._validate(filterables)

        if self.has_feature(Feature.RATE_LIMIT):
            self.rate_limit_passed = self.check_rate_limits()

        if self.has_feature(Feature.VALUE_TRANSFORMATION):
            self._filterables = filterables = self._transformer.apply(filterables)

        self._log(logging.DEBUG, "Applying filters", filters=list(filterables))
        self._dispatch.dispatch(filterables)

        if self.has_feature(Feature.FILTER_CHAINING):
            self._chain.apply(query)

        if self.has_feature(Feature.OPTIMIZATION):
            self._optimizer.apply(query, self.options)

        if timed:
            elapsed = self._performance.stop()
            self._log(
                logging.INFO,
                "Filter executed",
                execution_time=elapsed,
                filter_count=len(filterables),
            )

    def _fail(self, query: IQuery, exc: BaseException) -> None:
        self._state = FilterState.FAILED
        self.last_error = exc
        self._log(
            logging.WARNING,
            "Error applying filters",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        self._emit(FilterFailed(self, query, exc))

    def get(self) -> list[Any]:
        """Execute the applied query and return its rows.

        Streams through bounded chunks when ``memoryManagement`` is on,
        otherwise reads through the cache when ``caching`` is on.
        """
        query = self.ensure_applied(implicit=False, message=GET_NOT_APPLIED)
        if self.has_feature(Feature.MEMORY_MANAGEMENT):
            return self._streaming.collect()
        if self.has_feature(Feature.CACHING):
            return self._cache.fetch(self.build_cache_key(), query)
        return query.get()

    def run_query(self, query: IQuery, options: Mapping[str, Any] | None = None) -> list[Any]:
        self.apply(query, options)
        return self.get()

    def count(self) -> int:
        query = self.ensure_applied(implicit=False, message=GET_NOT_APPLIED)
        if self.has_feature(Feature.CACHING):
            return self._cache.count(self.build_cache_key(), query)
        return query.count()

    def reset(self) -> Filter:
        """Return to ``initialized``.

        Appended filterables, queued chain predicates and all configuration
        are kept.
        """
        self._state = FilterState.INITIALIZED
        self.query = None
        self._filterables = None
        self._current_filters = []
        self.last_error = None
        self.rate_limit_passed = None
        self._performance.clear()
        return self

    def set_query(self, query: IQuery, options: Mapping[str, Any] | None = None) -> Filter:
        """Store *query* for implicit application by the iteration methods."""
        self.query = query
        if options:
            self.options.update(options)
        return self

    def ensure_applied(self, *, implicit: bool, message: str = ITERATE_NOT_APPLIED) -> IQuery:
        """Return the applied query or raise why results are unavailable.

        With *implicit*, an ``initialized`` instance holding a stored query
        is applied first.
        """
        if self._state is FilterState.INITIALIZED and implicit and self.query is not None:
            self.apply(self.query)
        if self._state is FilterState.FAILED:
            raise FilterFailedError(self.last_error) from self.last_error
        if self._state is not FilterState.APPLIED or self.query is None:
            raise NotAppliedError(message)
        return self.query

    # ── Filterables ──────────────────────────────────────────────

    def _resolve(self) -> dict[str, Any]:
        return resolve_filterables(
            self.source, self.filters, self.filter_method_map, self._appended
        )

    def _require_filterables(self) -> dict[str, Any]:
        if self._filterables is None:
            self._filterables = self._resolve()
        return self._filterables

    def get_filterables(self) -> dict[str, Any]:
        """Active filterables: the applied snapshot, or a fresh resolution."""
        if self._filterables is not None:
            return dict(self._filterables)
        resolved = self._resolve()
        self._current_filters = list(resolved)
        return resolved

    def get_filters(self) -> list[str]:
        return list(self.filters)

    def get_current_filters(self) -> list[str]:
        return list(self._current_filters)

    def append_filterable(self, key: str, value: Any) -> Filter:
        """Set a filter value programmatically; it overrides request input."""
        self._appended[key] = value
        return self

    def as_collection_filter(self) -> Callable[..., dict[str, Any]]:
        return lambda *_: self.get_filterables()

    # ── Scoping ──────────────────────────────────────────────────

    def for_user(self, principal: IPrincipal | None) -> Filter:
        self.principal = principal
        return self

    def register_pre_filters(self, callback: Callable[[IQuery], Any]) -> Filter:
        """Register a callable run against the query before dispatch."""
        self._pre_filters.append(callback)
        return self

    def _apply_user_scope(self, query: IQuery) -> None:
        if self.principal is None:
            return
        column = self.principal.identifier_name
        value = self.principal.identifier
        self._log(logging.INFO, "Applying user-specific filter", attribute=column, value=value)
        query.where(column, value)

    def _apply_pre_filters(self, query: IQuery) -> None:
        if not self._pre_filters:
            return
        self._log(logging.INFO, "Applying pre-filters")
        for callback in self._pre_filters:
            callback(query)

    # ── Features ─────────────────────────────────────────────────

    def enable_feature(self, feature: Feature | str) -> Filter:
        self.features.enable(feature)
        return self

    def enable_features(self, *features: Feature | str) -> Filter:
        self.features.enable(*features)
        return self

    def disable_feature(self, feature: Feature | str) -> Filter:
        self.features.disable(feature)
        return self

    def has_feature(self, feature: Feature | str) -> bool:
        return self.features.has(feature)

    # ── Options ──────────────────────────────────────────────────

    def get_options(self) -> dict[str, Any]:
        return dict(self.options)

    def set_option(self, key: str, value: Any) -> Filter:
        self.options[key] = value
        return self

    def set_options(self, options: Mapping[str, Any]) -> Filter:
        self.options = dict(options)
        return self

    # ── Caching ──────────────────────────────────────────────────

    def build_cache_key(self) -> str:
        prefix = self.cache_prefix or f"filters:{type(self).__name__}"
        principal_id = self.principal.identifier if self.principal is not None else None
        return build_cache_key(prefix, principal_id, self.get_filterables())

    def set_cache_handler(self, store: ICacheStore | None) -> Filter:
        self._cache.store = store
        return self

    def get_cache_handler(self) -> ICacheStore | None:
        return self._cache.store

    def get_cache_expiration(self) -> int:
        return self._cache.expiration

    def set_cache_expiration(self, minutes: int) -> Filter:
        self._cache.expiration = minutes
        return self

    def set_count_cache_expiration(self, minutes: int) -> Filter:
        self._cache.count_expiration = minutes
        return self

    def cache_results(self, enabled: bool = True) -> Filter:
        """Always read results through the cache, skipping the heuristic."""
        self._cache.force = enabled
        return self

    def cache_count(self, enabled: bool = True) -> Filter:
        self._cache.count_enabled = enabled
        return self

    def cache_tags(self, *tags: str) -> Filter:
        self._cache.set_tags(tags)
        return self

    def clear_cache(self) -> None:
        self._cache.clear(self.build_cache_key())

    def clear_related_caches(self) -> None:
        self._cache.clear_related()

    # ── Rate limiting ────────────────────────────────────────────

    def set_max_filters(self, count: int) -> Filter:
        self._rate_limiter.max_filters = count
        return self

    def set_max_complexity(self, score: float) -> Filter:
        self._rate_limiter.max_complexity = score
        return self

    def set_filter_complexity(self, weights: Mapping[str, float]) -> Filter:
        self._rate_limiter.weights.update(weights)
        return self

    def set_rate_limiter(self, store: IRateLimitStore | None) -> Filter:
        self._rate_limiter.store = store
        return self

    def complexity_score(self) -> float:
        return self._rate_limiter.score(self.get_filterables())

    def check_rate_limits(self) -> bool:
        """Run the count, complexity and throttle gates.

        The result is advisory: a ``False`` never stops dispatch.
        """
        filterables = self.get_filterables()
        principal_id = self.principal.identifier if self.principal is not None else None
        key = throttle_key(getattr(self.source, "client_ip", None), type(self), principal_id)
        decision = self._rate_limiter.check(filterables, key)
        if not decision.passed:
            self._log(
                logging.WARNING,
                decision.reason or "Rate limit rejected",
                **dict(decision.detail or {}),
            )
        return decision.passed

    # ── Permissions ──────────────────────────────────────────────

    def set_filter_permissions(self, permissions: Mapping[str, Permission]) -> Filter:
        self._permissions.set_permissions(permissions)
        return self

    def set_permission_checker(
        self, checker: Callable[[IPrincipal, Permission], bool] | None
    ) -> Filter:
        self.permission_checker = checker
        return self

    def user_has_permission(self, permission: Permission) -> bool:
        """Whether the acting principal holds *permission*.

        Delegates to ``permission_checker``; allows everything without one.
        Override in subclasses for filter-specific authorization.
        """
        if self.permission_checker is None or self.principal is None:
            return True
        return self.permission_checker(self.principal, permission)

    def _apply_permissions(self, filterables: dict[str, Any]) -> None:
        denied = self._permissions.denied_keys(
            filterables, self.principal, self.user_has_permission
        )
        for key in denied:
            del filterables[key]
            self._log(
                logging.INFO,
                "Filter removed due to insufficient permissions",
                filter=key,
                required_permission=self._permissions.permissions[key],
            )
        self._current_filters = list(filterables)

    # ── Validation ───────────────────────────────────────────────

    def set_validation_rules(self, rules: Mapping[str, Any]) -> Filter:
        self._validator.set_rules(rules)
        return self

    def add_validation_rule(self, key: str, rule: Any) -> Filter:
        self._validator.add_rule(key, rule)
        return self

    def set_validation_messages(self, messages: Mapping[str, str]) -> Filter:
        self._validator.set_messages(messages)
        return self

    def _validate(self, filterables: Mapping[str, Any]) -> None:
        if not self._validator.rules:
            return
        self._log(logging.INFO, "Validating filter inputs", inputs=sorted(filterables))
        self._validator.validate(filterables).raise_for_errors()

    # ── Value transformation ─────────────────────────────────────

    def register_transformer(self, key: str, transformer: Callable[[Any], Any]) -> Filter:
        self._transformer.register(key, transformer)
        return self

    transform_array = staticmethod(transform_array)

    # ── Filter chaining ──────────────────────────────────────────

    def where(self, column: str, operator_or_value: Any, value: Any = MISSING) -> Filter:
        self._chain.where(column, operator_or_value, value)
        return self

    def where_in(self, column: str, values: Iterable[Any]) -> Filter:
        self._chain.where_in(column, values)
        return self

    def where_not_in(self, column: str, values: Iterable[Any]) -> Filter:
        self._chain.where_not_in(column, values)
        return self

    def where_between(self, column: str, low: Any, high: Any) -> Filter:
        self._chain.where_between(column, low, high)
        return self

    def order_by(self, column: str, direction: str = "asc") -> Filter:
        self._chain.order_by(column, direction)
        return self

    # ── Optimization ─────────────────────────────────────────────

    def select_columns(self, columns: Iterable[str]) -> Filter:
        self._optimizer.select_columns(columns)
        return self

    def with_relations(self, relations: str | Iterable[str]) -> Filter:
        self._optimizer.with_relations(relations)
        return self

    def chunk_size(self, size: int) -> Filter:
        self.options["chunk_size"] = size
        self.options["use_chunking"] = True
        return self

    def use_index(self, index: str) -> Filter:
        self._optimizer.use_index(index)
        return self

    # ── Performance ──────────────────────────────────────────────

    def add_metric(self, key: str, value: Any) -> Filter:
        self._performance.add(key, value)
        return self

    def get_metrics(self) -> dict[str, Any]:
        return dict(self._performance.metrics)

    def get_execution_time(self) -> float | None:
        return self._performance.execution_time

    # ── Streaming ────────────────────────────────────────────────

    def lazy(self, chunk_size: int | None = None) -> LazyResults[Any]:
        return self._streaming.lazy(chunk_size)

    def lazy_each(self, callback: Callable[[Any], Any], chunk_size: int | None = None) -> None:
        self._streaming.lazy_each(callback, chunk_size)

    def cursor(self) -> Iterator[Any]:
        return self._streaming.cursor()

    def chunk(self, size: int, callback: Callable[[list[Any]], Any]) -> bool:
        return self._streaming.chunk(size, callback)

    def map(self, fn: Callable[[Any], Any], chunk_size: int | None = None) -> LazyResults[Any]:
        return self._streaming.map(fn, chunk_size)

    def filter(
        self, predicate: Callable[[Any], bool], chunk_size: int | None = None
    ) -> LazyResults[Any]:
        return self._streaming.filter(predicate, chunk_size)

    def reduce(
        self, fn: Callable[[Any, Any], Any], initial: Any = None, chunk_size: int | None = None
    ) -> Any:
        return self._streaming.reduce(fn, initial, chunk_size)

    def stream(self, chunk_size: int | None = None) -> LazyResults[Any]:
        return self._streaming.stream(chunk_size)

    def stream_generator(self, chunk_size: int | None = None) -> Iterator[Any]:
        return self._streaming.stream_generator(chunk_size)

    # ── Diagnostics ──────────────────────────────────────────────

    def get_debug_info(self) -> dict[str, Any]:
        to_sql = getattr(self.query, "to_sql", None)
        return {
            "state": self._state.value,
            "filters_applied": self.get_current_filters(),
            "features_enabled": self.features.as_dict(),
            "options": self.get_options(),
            "sql": to_sql() if callable(to_sql) else None,
            "metrics": self.get_metrics(),
            "rate_limit_passed": self.rate_limit_passed,
            "last_error": str(self.last_error) if self.last_error is not None else None,
        }

    def _log(self, level: int, message: str, **context: Any) -> None:
        if not self.has_feature(Feature.LOGGING):
            return
        self.logger.log(level, message, extra={"filter_context": context})

    def _emit(self, event: FilterEvent) -> None:
        if self.dispatcher is not None:
            self.dispatcher.dispatch(event)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} state={self._state.value}>"


# Predicate methods may not take these names.
FILTER_API_NAMES = frozenset(name for name in vars(Filter) if not name.startswith("_"))
