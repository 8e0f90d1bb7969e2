"""Tests for the OutputAggregator."""

import threading

from process_adapter.domain import OutputAggregator


def test_drain_returns_pending_then_empty():
    buffer = OutputAggregator()
    buffer.append("hello ")
    buffer.append("world\n")

    assert buffer.pending_size == 12
    assert buffer.drain() == "hello world\n"
    assert buffer.drain() == ""
    assert buffer.pending_size == 0


def test_full_output_survives_drains():
    buffer = OutputAggregator()
    buffer.append("a")
    buffer.drain()
    buffer.append("b")

    assert buffer.drain() == "b"
    assert buffer.full_output == "ab"


def test_empty_chunks_are_ignored():
    buffer = OutputAggregator()
    buffer.append("")
    assert buffer.full_output == ""


def test_concurrent_appends_and_drains_lose_nothing():
    buffer = OutputAggregator()
    drained = []

    def writer():
        for i in range(1000):
            buffer.append(f"{i},")

    def reader():
        for _ in range(200):
            drained.append(buffer.drain())

    threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    drained.append(buffer.drain())

    assert "".join(drained) == buffer.full_output
    assert buffer.full_output == "".join(f"{i}," for i in range(1000))
