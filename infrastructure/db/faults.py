from __future__ import annotations

import threading
from collections import deque
from enum import Enum
from typing import Deque, Dict, Optional, Protocol


class Operation(str, Enum):
    BEGIN = "begin"
    COMMIT = "commit"
    ROLLBACK = "rollback"
    CREATE = "create"
    FIND = "find"
    SAVE = "save"
    DELETE = "delete"
    RESET = "reset"
    MIGRATE_UP = "migrate_up"
    MIGRATE_DOWN = "migrate_down"


class FaultPolicy(Protocol):
    """
    Decides whether a store operation should fail.

    `MemoryStore` asks the policy once per call, after the normal effect
    has been applied, and raises whatever error it hands back.
    """

    def next_fault(self, operation: Operation) -> Optional[Exception]:
        ...


class NoFaults(FaultPolicy):
    """Production policy: never fails."""

    def next_fault(self, operation: Operation) -> Optional[Exception]:
        return None


class FaultQueue(FaultPolicy):
    """
    Per-operation queues of errors, consumed first in, first out.

    Used by tests to make a specific store call fail:

        faults = FaultQueue()
        faults.inject(Operation.COMMIT, RuntimeError("disk full"))
        store = MemoryStore(faults=faults)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._queues: Dict[Operation, Deque[Exception]] = {}

    def inject(self, operation: Operation, *errors: Exception) -> None:
        with self._lock:
            self._queues.setdefault(operation, deque()).extend(errors)

    def pending(self, operation: Operation) -> int:
        with self._lock:
            return len(self._queues.get(operation, ()))

    def clear(self) -> None:
        with self._lock:
            self._queues.clear()

    def next_fault(self, operation: Operation) -> Optional[Exception]:
        with self._lock:
            queue = self._queues.get(operation)
            if not queue:
                return None
            return queue.popleft()
