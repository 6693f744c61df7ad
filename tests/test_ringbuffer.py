# tests/test_ringbuffer.py
"""Tests for ring buffer module."""

import pytest

from vitality.ringbuffer import RingBuffer


def test_ring_buffer_default_capacity():
    buffer = RingBuffer()
    assert buffer.capacity == 60
    assert buffer.is_empty
    assert len(buffer) == 0


def test_ring_buffer_rejects_zero_capacity():
    with pytest.raises(ValueError, match="max_samples"):
        RingBuffer(max_samples=0)


def test_ring_buffer_push_and_freeze():
    """freeze() returns samples oldest first."""
    buffer = RingBuffer(max_samples=5)
    for value in (0.1, 0.2, 0.3):
        buffer.push(value)

    assert buffer.freeze() == (0.1, 0.2, 0.3)
    assert not buffer.is_empty


def test_ring_buffer_evicts_oldest():
    """After 70 pushes at capacity 60, samples 11-70 remain."""
    buffer = RingBuffer(max_samples=60)
    for tick in range(1, 71):
        buffer.push(float(tick))

    history = buffer.freeze()
    assert len(buffer) == 60
    assert history[0] == 11.0
    assert history[-1] == 70.0


def test_ring_buffer_freeze_is_a_copy():
    buffer = RingBuffer(max_samples=3)
    buffer.push(0.5)
    frozen = buffer.freeze()

    buffer.push(0.6)

    assert frozen == (0.5,)


def test_ring_buffer_clear():
    buffer = RingBuffer(max_samples=3)
    buffer.push(0.5)
    buffer.clear()

    assert buffer.is_empty
    assert buffer.capacity == 3
