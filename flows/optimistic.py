from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Generic, TypeVar

T = TypeVar("T")

@dataclass(frozen=True)
class Optimistic(Generic[T]):
    """A locally shown value and whether the backend has confirmed it yet."""
    value: T
    pending: bool = False

    def propose(self, value: T) -> "Optimistic[T]":
        return Optimistic(value=value, pending=True)

    def confirm(self) -> "Optimistic[T]":
        return replace(self, pending=False)

def revert(previous: T) -> Optimistic[T]:
    return Optimistic(value=previous, pending=False)
