"""Optimistic rating state with exact compensating edits."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from uuid import UUID

RatingKey = tuple[UUID, UUID]  # (employee_id, station_id)


class _Absent:
    def __repr__(self) -> str:
        return "ABSENT"


# Marks a cell that had no entry before the edit, as opposed to a stored None
ABSENT = _Absent()


@dataclass(frozen=True)
class CompensatingEdit:
    key: RatingKey
    previous: int | None | _Absent
    applied: int | None

    @property
    def was_absent(self) -> bool:
        return self.previous is ABSENT


class OptimisticRatings(Mapping[RatingKey, int | None]):
    """Local copy of a view's ratings that can be edited ahead of the store.

    ``apply`` records the prior state of the cell and ``revert`` restores it
    exactly: a cell that did not exist is removed again rather than set to None.
    """

    def __init__(self, initial: Mapping[RatingKey, int | None] | None = None) -> None:
        self._ratings: dict[RatingKey, int | None] = dict(initial or {})

    def __getitem__(self, key: RatingKey) -> int | None:
        return self._ratings[key]

    def __iter__(self) -> Iterator[RatingKey]:
        return iter(self._ratings)

    def __len__(self) -> int:
        return len(self._ratings)

    def apply(self, key: RatingKey, value: int | None) -> CompensatingEdit:
        previous = self._ratings.get(key, ABSENT)
        self._ratings[key] = value
        return CompensatingEdit(key=key, previous=previous, applied=value)

    def revert(self, edit: CompensatingEdit) -> None:
        if edit.was_absent:
            self._ratings.pop(edit.key, None)
        else:
            self._ratings[edit.key] = edit.previous  # type: ignore[assignment]

    def replace_all(self, ratings: Mapping[RatingKey, int | None]) -> None:
        """Swap in a freshly fetched snapshot."""
        self._ratings = dict(ratings)
