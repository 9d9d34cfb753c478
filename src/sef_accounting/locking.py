"""Per-entity locks that serialize mutations of a single aggregate."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from uuid import UUID

from sef_accounting.exceptions import ConcurrentModificationError
from sef_accounting.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class _Slot:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class EntityLockRegistry:
    """Hands out one lock per (kind, id) pair.

    A caller that cannot obtain the lock within ``timeout`` seconds gets a
    :class:`ConcurrentModificationError`. Locks are not re-entrant: a thread
    must not hold the same entity twice.

    Slots are counted: holders and waiters keep a slot alive, and the last one
    to leave removes it, so the registry only tracks entities in use.

    Example:
        with registry.hold("advance_invoice", advance.id):
            advance = repo.get(advance.id)
            ...
    """

    def __init__(self, timeout: float = 5.0) -> None:
        self._timeout = timeout
        self._guard = threading.Lock()
        self._slots: dict[tuple[str, str], _Slot] = {}

    @property
    def timeout(self) -> float:
        return self._timeout

    def __len__(self) -> int:
        with self._guard:
            return len(self._slots)

    def _checkout(self, key: tuple[str, str]) -> _Slot:
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = _Slot()
            slot.users += 1
            return slot

    def _checkin(self, key: tuple[str, str], slot: _Slot) -> None:
        with self._guard:
            slot.users -= 1
            if slot.users == 0:
                del self._slots[key]

    @contextmanager
    def hold(
        self, kind: str, entity_id: UUID | str, timeout: float | None = None
    ) -> Iterator[None]:
        wait = self._timeout if timeout is None else timeout
        key = (kind, str(entity_id))
        slot = self._checkout(key)
        try:
            if wait > 0:
                acquired = slot.lock.acquire(timeout=wait)
            else:
                acquired = slot.lock.acquire(blocking=False)
            if not acquired:
                logger.warning(
                    "entity_lock_contention",
                    kind=kind,
                    entity_id=str(entity_id),
                    timeout=wait,
                )
                raise ConcurrentModificationError(kind, entity_id, wait)
            try:
                yield
            finally:
                slot.lock.release()
        finally:
            self._checkin(key, slot)
