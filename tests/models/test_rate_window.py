from __future__ import annotations

import pytest

from webgen.models.rate_limit import RateWindow


def test_grants_up_to_limit_then_refuses():
    window = RateWindow(limit=3, interval_seconds=60)

    grants = [window.try_acquire(now=1.0 + i)[0] for i in range(4)]

    assert grants == [True, True, True, False]
    assert window.current_count == 3
    assert window.remaining == 0


def test_refusal_reports_time_until_reset():
    window = RateWindow(limit=1, interval_seconds=60)
    window.try_acquire(now=100.0)

    granted, wait = window.try_acquire(now=110.0)

    assert not granted
    assert wait == pytest.approx(50.0)


def test_window_resets_once_interval_has_elapsed():
    window = RateWindow(limit=1, interval_seconds=60)
    window.try_acquire(now=0.0)

    assert window.try_acquire(now=60.0)[0] is False
    assert window.try_acquire(now=60.5)[0] is True
    assert window.window_start == 60.5
    assert window.call_timestamps == [60.5]


def test_reset_clears_window():
    window = RateWindow(limit=1, interval_seconds=60)
    window.try_acquire(now=0.0)

    window.reset()

    assert window.try_acquire(now=1.0)[0] is True


def test_invalid_configuration_is_rejected():
    with pytest.raises(ValueError):
        RateWindow(limit=0, interval_seconds=60)
    with pytest.raises(ValueError):
        RateWindow(limit=1, interval_seconds=0)
