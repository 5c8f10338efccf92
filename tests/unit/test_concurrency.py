"""Concurrency tests for read-modify-write growth of VectorTable."""

from __future__ import annotations

import threading
import time

from kvtables.components.locks import KeyLocks
from kvtables.components.memory import MemoryPartition
from kvtables.components.vector import VectorTable


class RendezvousPartition(MemoryPartition):
    """Partition whose reads wait until every writer has read.

    Forces the interleaving read, read, write, write.
    """

    def __init__(self, name: str, parties: int):
        super().__init__(name)
        self._barrier = threading.Barrier(parties, timeout=5.0)
        self.armed = True

    def get(self, key):
        value = super().get(key)
        if self.armed:
            self._barrier.wait()
        return value


class SlowReadPartition(MemoryPartition):
    """Partition whose reads take long enough to overlap other writers."""

    def get(self, key):
        value = super().get(key)
        time.sleep(0.01)
        return value


def _run_concurrently(*targets):
    threads = [threading.Thread(target=t) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10.0)


def test_unserialized_push_loses_an_update():
    """Test two pushes that both read the empty state: one update is lost."""
    partition = RendezvousPartition("events", parties=2)
    table = VectorTable(partition)

    _run_concurrently(lambda: table.push(1, "x"), lambda: table.push(1, "y"))
    partition.armed = False

    assert table.get(1) in (["x"], ["y"])


def test_serialized_push_keeps_both_updates():
    """Test that a shared KeyLocks leaves only [x, y] or [y, x]."""
    locks = KeyLocks()
    partition = SlowReadPartition("events")
    first = VectorTable(partition, locks=locks)
    second = VectorTable(partition, locks=locks)

    _run_concurrently(lambda: first.push(1, "x"), lambda: second.push(1, "y"))

    assert first.get(1) in (["x", "y"], ["y", "x"])


def test_serialized_push_many_writers():
    """Test that no push is lost across many threads on one key."""
    table = VectorTable(SlowReadPartition("events"), locks=KeyLocks())

    def writer(n):
        return lambda: table.push(7, n)

    _run_concurrently(*(writer(n) for n in range(8)))

    assert sorted(table.get(7)) == list(range(8))
    assert len(table.locks) == 0


def test_serialized_append_many_writers():
    """Test concurrent appends under KeyLocks keep every batch intact."""
    table = VectorTable(SlowReadPartition("events"), locks=KeyLocks())

    def writer(n):
        return lambda: table.append(3, [n, n])

    _run_concurrently(*(writer(n) for n in range(5)))

    stored = table.get(3)
    assert sorted(stored) == sorted([n for n in range(5) for _ in range(2)])
    # Batches are never interleaved
    assert all(stored[i] == stored[i + 1] for i in range(0, len(stored), 2))
