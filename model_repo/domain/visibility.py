# model_repo/domain/visibility.py
"""
Read-access policy for models.

``can_read`` is the single decision function used by every read path: listing,
fetching one model, listing its files, downloading one file and exporting the
archive. Lookups that go through the policy return a tagged ``Found`` /
``Denied`` result so callers can log *why* access failed; the HTTP layer then
collapses every ``Denied`` into the same 404.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")


class Visibility(str, Enum):
    private = "private"
    members = "members"
    public = "public"

    @classmethod
    def parse(cls, value: object) -> "Visibility":
        from ..core.errors import ValidationError

        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(v.value for v in cls)
            raise ValidationError(f"visibility must be one of: {allowed}") from None


def can_read(viewer_id: Optional[int], visibility: Visibility | str, owner_id: int) -> bool:
    vis = Visibility(visibility)
    if vis is Visibility.public:
        return True
    if viewer_id is None:
        return False
    if vis is Visibility.members:
        return True
    return viewer_id == owner_id


class DenyReason(str, Enum):
    missing = "missing"
    forbidden = "forbidden"


@dataclass(frozen=True)
class Found(Generic[T]):
    record: T


@dataclass(frozen=True)
class Denied:
    reason: DenyReason
    model_id: int | None = None


Lookup = Union[Found[T], Denied]


def check_read(
    record: Optional[T],
    viewer_id: Optional[int],
    visibility_of,
    owner_of,
    model_id: int | None = None,
) -> Lookup:
    """Apply ``can_read`` to an already-loaded record (or ``None`` when missing)."""
    if record is None:
        return Denied(DenyReason.missing, model_id)
    if not can_read(viewer_id, visibility_of(record), owner_of(record)):
        return Denied(DenyReason.forbidden, model_id)
    return Found(record)
