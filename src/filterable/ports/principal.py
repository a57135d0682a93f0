"""IPrincipal — the acting user a filter is scoped to."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class IPrincipal(Protocol):
    """Authenticated caller.

    ``identifier_name`` is the column that owns rows (e.g. ``"user_id"``),
    ``identifier`` the caller's value for it.
    """

    @property
    def identifier_name(self) -> str: ...

    @property
    def identifier(self) -> Any: ...
