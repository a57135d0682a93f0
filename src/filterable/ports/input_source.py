"""IInputSource — where filter values come from."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable


@runtime_checkable
class IInputSource(Protocol):
    """Read-only view over request parameters.

    Implementations may also expose a ``client_ip`` attribute; the rate
    limiter uses it as the caller identity when present.
    """

    def only(self, keys: Iterable[str]) -> dict[str, Any]:
        """Return the subset of parameters named by *keys* that are present."""
        ...
