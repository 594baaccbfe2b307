"""
Per-night mutual exclusion.

Every operation that reads then writes the waiting set or the free-court set
of a night runs inside ``night_transaction``: an in-process lock keyed by the
instance id, a row lock on the instance (``SELECT ... FOR UPDATE`` where the
database supports it), one commit, and event publication after the commit.
Different nights never contend.
"""
import logging
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional

from sqlalchemy.exc import IntegrityError

from leaguenight.models.league_night import LeagueNightInstance
from leaguenight.services.errors import ConflictError, NotFound
from leaguenight.services.events import DomainEvent, EventBus

logger = logging.getLogger(__name__)


class InstanceLockRegistry:
    """One lock per night, dropped once no thread holds a reference to it."""

    def __init__(self):
        self._locks = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def lock_for(self, instance_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(instance_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[instance_id] = lock
            return lock


@dataclass
class NightTransaction:
    """Handle passed to code running under the night lock."""

    instance: LeagueNightInstance
    events: List[DomainEvent] = field(default_factory=list)

    def emit(self, name: str, **payload: Any) -> None:
        self.events.append(DomainEvent(name=name, instance_id=self.instance.id, payload=payload))


# Singleton instance
_lock_registry: Optional[InstanceLockRegistry] = None


def get_lock_registry() -> InstanceLockRegistry:
    global _lock_registry
    if _lock_registry is None:
        _lock_registry = InstanceLockRegistry()
    return _lock_registry


@contextmanager
def night_transaction(repo, instance_id: int, bus: EventBus, locks: InstanceLockRegistry) -> Iterator[NightTransaction]:
    """
    Serialize a read-compute-write sequence for one night.

    Nested use on the same thread re-enters the lock and joins the outer
    transaction: only the outermost block commits and publishes.

    Raises:
        NotFound if the night does not exist
        ConflictError if a uniqueness invariant was hit by a concurrent writer
    """
    lock = locks.lock_for(instance_id)
    with lock:
        outer = repo.open_tx
        if outer is not None and outer.instance.id == instance_id:
            yield outer
            return

        instance = repo.lock_instance(instance_id)
        if instance is None:
            raise NotFound(f"League night {instance_id} not found")

        tx = NightTransaction(instance=instance)
        repo.open_tx = tx
        try:
            yield tx
            repo.commit()
        except IntegrityError as exc:
            repo.rollback()
            logger.info("Concurrent write conflict on night %s: %s", instance_id, exc.orig)
            raise ConflictError("State changed concurrently; re-fetch and retry") from exc
        except Exception:
            repo.rollback()
            raise
        finally:
            repo.open_tx = None

    bus.publish_all(tx.events)


class NightComponent:
    """Shared wiring for components that mutate one night's state."""

    def __init__(self, repo, bus: EventBus, locks: InstanceLockRegistry, allocator=None):
        self.repo = repo
        self.bus = bus
        self.locks = locks
        self.allocator = allocator

    def transaction(self, instance_id: int):
        return night_transaction(self.repo, instance_id, self.bus, self.locks)
