"""Per-item rollover toggles chosen by the operator."""

from collections.abc import Iterator, Mapping
from typing import Optional

from .registry import ITEM_KEYS, default_selection


class RolloverSelection(Mapping):
    """Which checklist items are switched on.

    Seeded once from the registry defaults and changed only by explicit
    toggles. Any combination is allowed; which toggles reach the backend
    is decided when the execute request is built.
    """

    def __init__(self, initial: Optional[Mapping[str, bool]] = None):
        self._state = default_selection()
        if initial:
            for key, value in initial.items():
                self._check_key(key)
                self._state[key] = bool(value)

    @staticmethod
    def _check_key(key: str) -> None:
        if key not in ITEM_KEYS:
            raise KeyError(f"Unknown rollover item: {key}")

    def __getitem__(self, key: str) -> bool:
        return self._state[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._state)

    def __len__(self) -> int:
        return len(self._state)

    def toggle(self, key: str) -> bool:
        """Flip an item and return its new state."""
        self._check_key(key)
        self._state[key] = not self._state[key]
        return self._state[key]

    def set(self, key: str, enabled: bool) -> None:
        self._check_key(key)
        self._state[key] = enabled

    def enabled_keys(self) -> list[str]:
        return [key for key in ITEM_KEYS if self._state[key]]

    def as_dict(self) -> dict[str, bool]:
        return dict(self._state)

    def __repr__(self) -> str:
        return f"RolloverSelection({self._state!r})"
