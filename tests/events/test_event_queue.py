"""Tests for flowstream.events.queue: bounded drop-on-full EventQueue"""

import threading

import pytest

from flowstream.events import EventQueue, FlowEvent
from flowstream.events.queue import DEFAULT_MAX_SIZE


def _event(n: int) -> FlowEvent:
    return FlowEvent.info(f"event {n}")


class TestEnqueueDequeue:

    def test_fifo_order(self):
        queue = EventQueue(max_size=10)
        for i in range(3):
            queue.enqueue(_event(i))

        assert [queue.dequeue().data["message"] for _ in range(3)] == [
            "event 0", "event 1", "event 2"
        ]

    def test_dequeue_empty_returns_none(self):
        assert EventQueue().dequeue() is None

    def test_peek_does_not_remove(self):
        queue = EventQueue()
        first = _event(1)
        queue.enqueue(first)

        assert queue.peek() is first
        assert queue.size() == 1

    def test_peek_empty(self):
        assert EventQueue().peek() is None

    def test_drain(self):
        queue = EventQueue()
        queue.enqueue(_event(1))
        queue.enqueue(_event(2))

        drained = queue.drain()

        assert [e.data["message"] for e in drained] == ["event 1", "event 2"]
        assert queue.is_empty()


class TestCapacity:

    def test_default_max_size(self):
        assert EventQueue().get_max_size() == DEFAULT_MAX_SIZE == 1000

    def test_invalid_max_size(self):
        with pytest.raises(ValueError):
            EventQueue(max_size=0)

    def test_drop_on_full(self):
        """Capacity 2, three enqueues: third rejected and counted"""
        queue = EventQueue(max_size=2)

        assert queue.enqueue(_event(1)) is True
        assert queue.enqueue(_event(2)) is True
        assert queue.enqueue(_event(3)) is False

        assert queue.size() == 2
        assert queue.get_dropped_event_count() == 1
        # Existing events are never evicted
        assert queue.dequeue().data["message"] == "event 1"

    def test_room_after_dequeue(self):
        queue = EventQueue(max_size=1)
        queue.enqueue(_event(1))
        queue.dequeue()
        assert queue.enqueue(_event(2)) is True

    def test_clear_keeps_dropped_counter(self):
        queue = EventQueue(max_size=1)
        queue.enqueue(_event(1))
        queue.enqueue(_event(2))

        queue.clear()

        assert queue.is_empty()
        assert queue.get_dropped_event_count() == 1


class TestStats:

    def test_stats(self):
        queue = EventQueue(max_size=4)
        queue.enqueue(_event(1))

        assert queue.get_stats() == {
            "size": 1,
            "max_size": 4,
            "dropped_events": 0,
            "is_empty": False,
            "utilization": 25.0,
        }

    def test_len(self):
        queue = EventQueue()
        queue.enqueue(_event(1))
        assert len(queue) == 1


class TestThreadSafety:

    def test_concurrent_enqueue_accounts_for_every_event(self):
        """Every enqueue is either stored or counted as dropped"""
        queue = EventQueue(max_size=500)

        def produce():
            for i in range(200):
                queue.enqueue(_event(i))

        threads = [threading.Thread(target=produce) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert queue.size() == 500
        assert queue.get_dropped_event_count() == 500

    def test_consumer_dequeues_while_producers_enqueue(self):
        """No event is lost or duplicated and each producer's events stay in order"""
        queue = EventQueue(max_size=50)
        producers, per_producer = 4, 500
        received = []
        done = threading.Event()

        def produce(producer):
            for seq in range(per_producer):
                queue.enqueue(FlowEvent.info("tick", producer=producer, seq=seq))

        def consume():
            while True:
                event = queue.dequeue()
                if event is not None:
                    received.append((event.data["producer"], event.data["seq"]))
                elif done.is_set() and queue.is_empty():
                    return

        consumer = threading.Thread(target=consume)
        threads = [threading.Thread(target=produce, args=(p,)) for p in range(producers)]
        consumer.start()
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        done.set()
        consumer.join(timeout=10)

        assert not consumer.is_alive()
        total = producers * per_producer
        assert len(received) + queue.get_dropped_event_count() == total
        assert len(set(received)) == len(received)
        for p in range(producers):
            seqs = [seq for producer, seq in received if producer == p]
            assert seqs == sorted(seqs)
