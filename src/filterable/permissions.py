"""Permission-gated filter keys."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from .ports.principal import IPrincipal

Permission = str | list[str]


class PermissionGuard:
    """Drops restricted keys the acting principal is not allowed to use.

    ``permissions`` maps a filter key to one permission or a list of
    permissions; how a list is interpreted is up to the checker.
    """

    def __init__(self) -> None:
        self.permissions: dict[str, Permission] = {}

    def set_permissions(self, permissions: Mapping[str, Permission]) -> None:
        self.permissions = dict(permissions)

    def denied_keys(
        self,
        filterables: Mapping[str, Any],
        principal: IPrincipal | None,
        has_permission: Callable[[Permission], bool],
    ) -> list[str]:
        """Keys of *filterables* that *principal* may not use.

        Nothing is denied without a principal or without restrictions.
        """
        if principal is None or not self.permissions:
            return []
        return [
            key
            for key in filterables
            if key in self.permissions
            and not has_permission(self.permissions[key])
        ]
