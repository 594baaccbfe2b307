"""
Domain events published after every committed state change.

The bus is in-process and synchronous. Subscribers (notifications, UI
refresh bridges) run after the transaction commits; a failing subscriber is
logged and never undoes the change. A bounded journal per night lets clients
poll for changes instead of holding a subscription open.
"""
import itertools
import logging
import os
import threading
from collections import OrderedDict, defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

ROSTER_CHANGED = "roster_changed"
PARTNERSHIP_REQUESTED = "partnership_requested"
PARTNERSHIP_REQUEST_REJECTED = "partnership_request_rejected"
PARTNERSHIP_CONFIRMED = "partnership_confirmed"
PARTNERSHIP_REMOVED = "partnership_removed"
MATCH_ASSIGNED = "match_assigned"
SCORE_SUBMITTED = "score_submitted"
SCORE_CONFIRMED = "score_confirmed"
SCORE_DISPUTED = "score_disputed"
SCORE_SUBMISSION_CANCELLED = "score_submission_cancelled"
SCORE_OVERRIDDEN = "score_overridden"
MATCH_CANCELLED = "match_cancelled"
MATCH_FLAGGED = "match_flagged"
COURTS_UPDATED = "courts_updated"
AUTO_ASSIGNMENT_TOGGLED = "auto_assignment_toggled"
NIGHT_STARTED = "night_started"
NIGHT_ENDED = "night_ended"

DEFAULT_JOURNAL_SIZE = int(os.getenv("EVENT_JOURNAL_SIZE", "200"))
DEFAULT_JOURNAL_NIGHTS = int(os.getenv("EVENT_JOURNAL_NIGHTS", "50"))

_ALL = "*"


@dataclass
class DomainEvent:
    name: str
    instance_id: int
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=datetime.utcnow)
    id: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "instance_id": self.instance_id,
            "payload": self.payload,
            "occurred_at": self.occurred_at.isoformat(),
        }


Subscriber = Callable[[DomainEvent], None]


class EventBus:
    def __init__(self, journal_size: int = DEFAULT_JOURNAL_SIZE, journal_nights: int = DEFAULT_JOURNAL_NIGHTS):
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        # Least recently published night first; the oldest is dropped past journal_nights
        self._journal: "OrderedDict[int, Deque[DomainEvent]]" = OrderedDict()
        self._journal_size = journal_size
        self._journal_nights = journal_nights
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, name: str, handler: Subscriber) -> None:
        """Register a handler for one event name, or "*" for all of them."""
        self._subscribers[name].append(handler)

    def publish(self, event: DomainEvent) -> DomainEvent:
        with self._lock:
            event.id = next(self._ids)
            journal = self._journal.get(event.instance_id)
            if journal is None:
                journal = self._journal[event.instance_id] = deque(maxlen=self._journal_size)
                while len(self._journal) > self._journal_nights:
                    self._journal.popitem(last=False)
            else:
                self._journal.move_to_end(event.instance_id)
            journal.append(event)

        for handler in list(self._subscribers.get(event.name, [])) + list(self._subscribers.get(_ALL, [])):
            try:
                handler(event)
            except Exception:
                logger.exception("Event subscriber failed for %s (night %s)", event.name, event.instance_id)
        return event

    def publish_all(self, events: List[DomainEvent]) -> None:
        for event in events:
            self.publish(event)

    def recent(self, instance_id: int, since_id: Optional[int] = None) -> List[DomainEvent]:
        with self._lock:
            events = list(self._journal.get(instance_id, ()))
        if since_id is not None:
            events = [e for e in events if e.id > since_id]
        return events


# Singleton instance
_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get or create the process-wide EventBus."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus
