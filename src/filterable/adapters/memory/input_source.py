"""MappingInputSource — ``IInputSource`` over a dict or multi-dict."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


class MappingInputSource:
    """Wraps request parameters.

    Multi-dicts (anything with ``getlist``, e.g. werkzeug's ``MultiDict`` or
    Starlette's ``QueryParams``) return a list for repeated keys and a plain
    value otherwise.
    """

    def __init__(
        self, params: Mapping[str, Any] | None = None, client_ip: str | None = None
    ) -> None:
        self.params = params if params is not None else {}
        self.client_ip = client_ip

    def _read(self, key: str) -> Any:
        getlist = getattr(self.params, "getlist", None)
        if callable(getlist):
            values = list(getlist(key))
            return values[0] if len(values) == 1 else values
        return self.params[key]

    def only(self, keys: Iterable[str]) -> dict[str, Any]:
        return {key: self._read(key) for key in keys if key in self.params}
