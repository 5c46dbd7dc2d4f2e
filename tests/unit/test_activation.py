"""
Tests for the hidden anonymization key sequence.
"""

import asyncio
import threading
from unittest.mock import MagicMock

import pytest

from src.display.activation import KeySequenceDetector


@pytest.fixture
def callback():
    return MagicMock()


@pytest.fixture
def detector(callback, fake_clock, fake_scheduler):
    return KeySequenceDetector(callback, clock=fake_clock, scheduler=fake_scheduler)


def press_at(detector, clock, offsets, key="a"):
    """Press the key at the given offsets (seconds) from the clock's start."""
    start = clock.now
    results = []
    for offset in offsets:
        clock.now = start + offset
        results.append(detector.press(key))
    return results


class TestKeySequenceDetector:
    """Test cases for KeySequenceDetector."""

    def test_three_quick_presses_activate(self, detector, callback, fake_clock):
        assert press_at(detector, fake_clock, [0, 0.5, 1.0]) == [False, False, True]
        callback.assert_called_once()
        assert detector.presses == []

    def test_span_of_exactly_the_window_activates(self, detector, callback, fake_clock):
        press_at(detector, fake_clock, [0, 1.0, 2.0])

        callback.assert_called_once()

    def test_slow_presses_start_a_new_sequence(self, detector, callback, fake_clock):
        results = press_at(detector, fake_clock, [0, 1.5, 2.5])

        assert results == [False, False, False]
        callback.assert_not_called()
        assert len(detector.presses) == 1

    def test_new_sequence_can_complete(self, detector, callback, fake_clock):
        press_at(detector, fake_clock, [0, 1.5, 2.5, 3.0, 3.2])

        callback.assert_called_once()

    def test_other_keys_are_ignored(self, detector, callback, fake_clock, fake_scheduler):
        assert detector.press("b") is False
        assert fake_scheduler.handles == []

        press_at(detector, fake_clock, [0, 0.1, 0.2], key="A")

        callback.assert_called_once()

    def test_each_press_replaces_the_reset_timer(self, detector, fake_clock, fake_scheduler):
        press_at(detector, fake_clock, [0, 0.5])

        assert len(fake_scheduler.handles) == 2
        assert fake_scheduler.handles[0].cancelled is True
        assert len(fake_scheduler.pending) == 1
        assert fake_scheduler.pending[0].delay == 2.0

    def test_inactivity_resets_the_sequence(self, detector, callback, fake_clock, fake_scheduler):
        press_at(detector, fake_clock, [0, 0.5])

        fake_scheduler.fire_pending()
        assert detector.presses == []

        detector.press("a")
        callback.assert_not_called()

    def test_activation_cancels_pending_reset(self, detector, fake_clock, fake_scheduler):
        press_at(detector, fake_clock, [0, 0.1, 0.2])

        assert fake_scheduler.pending == []
        assert detector.reset_handle is None

    def test_repeated_activation_toggles_twice(self, detector, callback, fake_clock):
        press_at(detector, fake_clock, [0, 0.1, 0.2, 0.3, 0.4, 0.5])

        assert callback.call_count == 2

    def test_close_cancels_pending_reset(self, detector, fake_scheduler):
        detector.press("a")

        detector.close()

        assert fake_scheduler.pending == []

    def test_custom_press_count(self, callback, fake_clock, fake_scheduler):
        detector = KeySequenceDetector(
            callback, key="x", required_presses=2, clock=fake_clock, scheduler=fake_scheduler
        )

        assert press_at(detector, fake_clock, [0, 0.3], key="x") == [False, True]

    @pytest.mark.asyncio
    async def test_default_scheduler_uses_running_loop(self, callback):
        detector = KeySequenceDetector(callback, window_seconds=0.01)

        detector.press("a")
        assert isinstance(detector.reset_handle, asyncio.TimerHandle)

        await asyncio.sleep(0.05)

        assert detector.presses == []
        detector.close()

    def test_default_scheduler_without_running_loop(self, callback):
        detector = KeySequenceDetector(callback)

        results = [detector.press("a") for _ in range(3)]

        assert results == [False, False, True]
        callback.assert_called_once()
        detector.close()

    def test_timer_thread_resets_sequence(self, callback):
        detector = KeySequenceDetector(callback, window_seconds=0.2)

        detector.press("a")
        handle = detector.reset_handle
        assert isinstance(handle, threading.Timer)

        handle.join(timeout=1.0)

        assert detector.presses == []
        callback.assert_not_called()
