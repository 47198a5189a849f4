from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List


class EventKind(str, Enum):
    """CDP notifications the recorder subscribes to. Values are the CDP method names."""

    LOAD_EVENT_FIRED = "Page.loadEventFired"
    DOM_CONTENT_EVENT_FIRED = "Page.domContentEventFired"
    FRAME_STARTED_LOADING = "Page.frameStartedLoading"
    FRAME_ATTACHED = "Page.frameAttached"
    REQUEST_WILL_BE_SENT = "Network.requestWillBeSent"
    REQUEST_SERVED_FROM_CACHE = "Network.requestServedFromCache"
    DATA_RECEIVED = "Network.dataReceived"
    RESPONSE_RECEIVED = "Network.responseReceived"
    RESOURCE_CHANGED_PRIORITY = "Network.resourceChangedPriority"
    LOADING_FINISHED = "Network.loadingFinished"
    LOADING_FAILED = "Network.loadingFailed"

    @property
    def is_page_event(self) -> bool:
        return self.value.startswith("Page.")


PAGE_EVENT_KINDS = tuple(kind for kind in EventKind if kind.is_page_event)
NETWORK_EVENT_KINDS = tuple(kind for kind in EventKind if not kind.is_page_event)


@dataclass(frozen=True)
class ProtocolEvent:
    kind: EventKind
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def request_id(self) -> str | None:
        request_id = self.payload.get("requestId") if isinstance(self.payload, dict) else None
        return str(request_id) if request_id is not None else None

    def to_message(self) -> Dict[str, Any]:
        """Returns the event in CDP message shape ({"method", "params"})."""
        return {"method": self.kind.value, "params": self.payload}


class FrozenLogError(RuntimeError):
    """Raised when an event is appended to a log that was already handed off."""


class EventLog:
    """
    Append-only, arrival-ordered sequence of protocol events.

    The recorder is the only writer; once frozen the log is read-only and is
    what the HAR exporter consumes.
    """

    def __init__(self) -> None:
        self._events: List[ProtocolEvent] = []
        self._frozen = False

    def append(self, event: ProtocolEvent) -> None:
        if self._frozen:
            raise FrozenLogError(f"Event log is frozen; dropped {event.kind.value}")
        self._events.append(event)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def snapshot(self) -> List[ProtocolEvent]:
        return list(self._events)

    def __iter__(self) -> Iterator[ProtocolEvent]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)
