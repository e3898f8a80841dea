"""Event filter and append-only event history."""
from __future__ import annotations

from typing import Iterable, Iterator, List, Optional, Set, Union

from miow.stream.events import EventKind, StreamRecord, is_agent_event

KindLike = Union[EventKind, str]


def _as_kind(kind: KindLike) -> EventKind:
    if isinstance(kind, EventKind):
        return kind
    # Accept wire tags ("ToolCall") and enum names ("tool_call"), any case
    name = kind.strip().lower()
    for candidate in EventKind:
        if name in (candidate.value.lower(), candidate.name.lower()):
            return candidate
    raise KeyError(kind)


class EventFilter:
    """
    Set of agent event kinds that get recorded into history.

    Mutable at any time; changes only affect events that arrive later.
    """

    def __init__(self, kinds: Optional[Iterable[KindLike]] = None):
        self._enabled: Set[EventKind] = set(EventKind) if kinds is None else {_as_kind(k) for k in kinds}

    @classmethod
    def parse(cls, text: Optional[str]) -> "EventFilter":
        """Build a filter from a comma separated list ("Step,Thought").

        An empty or missing list enables all kinds.

        Raises:
            ValueError: on an unknown kind name
        """
        if not text or not text.strip():
            return cls()
        kinds = []
        for name in text.split(","):
            name = name.strip()
            if not name:
                continue
            try:
                kinds.append(_as_kind(name))
            except KeyError:
                valid = ", ".join(k.value for k in EventKind)
                raise ValueError(f"Unknown event kind '{name}'. Valid kinds: {valid}") from None
        return cls(kinds)

    @property
    def enabled(self) -> Set[EventKind]:
        return set(self._enabled)

    def is_enabled(self, kind: KindLike) -> bool:
        return _as_kind(kind) in self._enabled

    def enable(self, kind: KindLike) -> None:
        self._enabled.add(_as_kind(kind))

    def disable(self, kind: KindLike) -> None:
        self._enabled.discard(_as_kind(kind))

    def toggle(self, kind: KindLike) -> bool:
        """Flip a kind on or off. Returns the new state."""
        kind = _as_kind(kind)
        if kind in self._enabled:
            self._enabled.remove(kind)
            return False
        self._enabled.add(kind)
        return True

    def set_enabled(self, kinds: Iterable[KindLike]) -> None:
        self._enabled = {_as_kind(k) for k in kinds}

    def accepts(self, record: StreamRecord) -> bool:
        """Whether a classified record belongs in history."""
        return is_agent_event(record) and record.kind in self._enabled

    def __contains__(self, kind: KindLike) -> bool:
        return self.is_enabled(kind)

    def __repr__(self) -> str:
        kinds = ",".join(k.value for k in EventKind if k in self._enabled)
        return f"EventFilter({kinds})"


class EventHistory:
    """Agent events in arrival order. Append-only for the life of a session."""

    def __init__(self):
        self._events: List[StreamRecord] = []

    def record(self, record: StreamRecord, event_filter: EventFilter) -> bool:
        """Append the record if the filter accepts it. Returns True if appended."""
        if not event_filter.accepts(record):
            return False
        self._events.append(record)
        return True

    def of_kind(self, kind: KindLike) -> List[StreamRecord]:
        kind = _as_kind(kind)
        return [e for e in self._events if e.kind == kind]

    @property
    def last(self) -> Optional[StreamRecord]:
        return self._events[-1] if self._events else None

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[StreamRecord]:
        return iter(list(self._events))

    def __getitem__(self, index: int) -> StreamRecord:
        return self._events[index]
