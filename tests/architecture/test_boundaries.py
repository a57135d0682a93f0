from pytest_archon import archrule


def test_engine_independence() -> None:
    """
    The engine must not import adapters or storage libraries.
    Collaborators reach it only through ``filterable.ports``.
    """
    (
        archrule("engine_is_independent")
        .match("filterable*")
        .exclude("filterable.adapters*")
        .should_not_import("filterable.adapters*")
        .should_not_import("sqlalchemy*")
        .should_not_import("redis*")
        .check("filterable")
    )


def test_ports_layering() -> None:
    """
    Ports (interfaces) should not depend on Adapters (implementations).
    """
    (
        archrule("ports_layering")
        .match("filterable.ports*")
        .should_not_import("filterable.adapters*")
        .check("filterable")
    )


def test_memory_adapters_have_no_backends() -> None:
    """In-memory adapters must work without optional extras installed."""
    (
        archrule("memory_adapters_isolation")
        .match("filterable.adapters.memory*")
        .should_not_import("sqlalchemy*")
        .should_not_import("redis*")
        .check("filterable")
    )


def test_backend_adapters_are_isolated() -> None:
    """Each backend adapter depends only on its own library."""
    (
        archrule("redis_adapter_isolation")
        .match("filterable.adapters.redis*")
        .should_not_import("sqlalchemy*")
        .check("filterable")
    )
    (
        archrule("sqlalchemy_adapter_isolation")
        .match("filterable.adapters.sqlalchemy*")
        .should_not_import("redis*")
        .check("filterable")
    )
