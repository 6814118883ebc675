"""Observable key/value state container.

RESPONSIBILITIES
- Hold application state under a fixed set of declared keys.
- Copy values on the way in and on the way out so callers never share
  mutable state with the store (frozen models are shared as-is).
- Notify subscribers synchronously with ``(new_state, prev_state)`` once per
  ``set_state`` call; a failing listener is logged and never interrupts others.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from sheetmap.core.errors import UnknownKeyError
from sheetmap.utils.log import get_logger

State = Dict[str, Any]
Listener = Callable[[State, Optional[State]], None]
Unsubscribe = Callable[[], None]


class ObservableStore:
    """Versioned state container with change notification.

    Each instance is independent; applications own one explicitly instead of
    sharing a module-level singleton.
    """

    def __init__(self, initial_state: Mapping[str, Any], *, logger: logging.Logger | None = None) -> None:
        self._initial: State = copy.deepcopy(dict(initial_state))
        self._state: State = copy.deepcopy(self._initial)
        self._listeners: List[Listener] = []
        self._version = 0
        self.logger = logger or get_logger("store")

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(self._initial)

    @property
    def version(self) -> int:
        """Monotonic counter bumped on every state transition."""

        return self._version

    def get_state(self) -> State:
        """Return a copy of the current state; mutating it does not affect the store."""

        return copy.deepcopy(self._state)

    def get(self, key: str) -> Any:
        self._check_keys([key])
        return copy.deepcopy(self._state[key])

    def set(self, key: str, value: Any) -> None:
        """Replace a single declared key.

        Raises:
            UnknownKeyError: When ``key`` was not part of the initial state.
        """

        self.set_state({key: value})

    def set_state(self, partial: Mapping[str, Any]) -> None:
        """Merge ``partial`` into the state and notify listeners once."""

        if not isinstance(partial, Mapping):
            raise TypeError("partial state must be a mapping")
        self._check_keys(partial)
        prev_state = self._state
        next_state = dict(prev_state)
        next_state.update(copy.deepcopy(dict(partial)))
        self._state = next_state
        self._version += 1
        self._notify(next_state, prev_state)

    def reset(self) -> None:
        """Restore the initial state."""

        self.set_state(self._initial)

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """Register ``listener`` and call it immediately with ``(state, None)``."""

        if not callable(listener):
            raise TypeError("listener must be callable")
        self._listeners.append(listener)
        self._call(listener, self.get_state(), None)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Helpers ----------------------------------------------------------------------

    def _check_keys(self, keys: Any) -> None:
        unknown = [key for key in keys if key not in self._initial]
        if unknown:
            raise UnknownKeyError(f"Unknown state key: {', '.join(map(str, unknown))}")

    def _notify(self, new_state: State, prev_state: State) -> None:
        for listener in list(self._listeners):
            self._call(listener, copy.deepcopy(new_state), copy.deepcopy(prev_state))

    def _call(self, listener: Listener, new_state: State, prev_state: Optional[State]) -> None:
        try:
            listener(new_state, prev_state)
        except Exception:  # noqa: BLE001 - one bad listener must not break the loop
            self.logger.exception("Error in store listener %r", listener)


__all__ = ["Listener", "ObservableStore", "State", "Unsubscribe"]
