"""Uniform visibility resolution for member-owned entities.

Missing and hidden entities are reported identically so callers cannot probe
for the existence of another member's private data.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

from logic.errors import ForbiddenError, NotFoundError

T = TypeVar("T")


class Visibility(str, Enum):
    FOUND = "found"
    HIDDEN = "hidden"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class Resolution(Generic[T]):
    visibility: Visibility
    entity: Optional[T] = None

    def unwrap(self, label: str = "Resource") -> T:
        if self.visibility is Visibility.FOUND and self.entity is not None:
            return self.entity
        if self.visibility is Visibility.FORBIDDEN:
            raise ForbiddenError(f"Not allowed to modify this {label.lower()}")
        raise NotFoundError(f"{label} not found")


def resolve_authorized_entity(
    entity: Optional[T],
    *,
    can_view: Callable[[T], bool],
    can_act: Callable[[T], bool] | None = None,
) -> Resolution[T]:
    """Tag an entity as found, hidden (404) or visible but forbidden (403)."""

    if entity is None or not can_view(entity):
        return Resolution(Visibility.HIDDEN)
    if can_act is not None and not can_act(entity):
        return Resolution(Visibility.FORBIDDEN, entity)
    return Resolution(Visibility.FOUND, entity)


__all__ = ["Visibility", "Resolution", "resolve_authorized_entity"]
