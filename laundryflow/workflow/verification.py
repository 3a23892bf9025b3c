from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional, Union


class VerificationSet:
    """Per-attempt checklist of which order items an operator has ticked.

    Lives only as long as one transition dialog; it is never persisted.
    """

    def __init__(self, verified: Optional[Union[Mapping[int, bool], Iterable[int]]] = None) -> None:
        self._verified: Dict[int, bool] = {}
        if verified is None:
            return
        if isinstance(verified, Mapping):
            for index, flag in verified.items():
                self._verified[int(index)] = bool(flag)
        else:
            for index in verified:
                self._verified[int(index)] = True

    def toggle(self, index: int) -> bool:
        self._verified[index] = not self._verified.get(index, False)
        return self._verified[index]

    def mark(self, index: int, verified: bool = True) -> None:
        self._verified[index] = verified

    def is_verified(self, index: int) -> bool:
        return self._verified.get(index, False)

    def verified_count(self, item_count: Optional[int] = None) -> int:
        return sum(
            1
            for index, flag in self._verified.items()
            if flag and (item_count is None or 0 <= index < item_count)
        )

    def all_verified(self, item_count: int) -> bool:
        return self.verified_count(item_count) == item_count

    def clear(self) -> None:
        self._verified.clear()

    def indices(self) -> list[int]:
        return sorted(index for index, flag in self._verified.items() if flag)

    def __len__(self) -> int:
        return self.verified_count()

    def __repr__(self) -> str:
        return f"VerificationSet({self.indices()!r})"
