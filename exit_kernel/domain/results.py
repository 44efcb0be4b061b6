"""Operation result envelope returned by every write operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """The updated record plus a human-readable message."""

    value: T
    message: str
