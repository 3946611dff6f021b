"""
Tests for playback snapshots.
"""

import math

import pytest

from scene_filter.playback import PlaybackRegistry


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return PlaybackRegistry(clock=clock)


class TestPlaybackRegistry:
    def test_update_and_get(self, registry):
        assert registry.update(7, 12.5, 5400, url="https://example.com/watch", title="Movie").ok

        result = registry.get(7)
        assert result.ok
        assert result["snapshot"].current_time == 12.5
        assert result["snapshot"].duration == 5400
        assert result["snapshot"].title == "Movie"

    def test_missing_context(self, registry):
        assert registry.update(None, 1, 2).error == "No tab context."

    @pytest.mark.parametrize("current_time,duration", [
        (math.nan, 100),
        (10, 0),
        (10, -5),
        ("abc", 100),
        (10, math.inf),
    ])
    def test_invalid_snapshot(self, registry, current_time, duration):
        assert registry.update(1, current_time, duration).error == "Invalid playback snapshot."
        assert len(registry) == 0

    def test_no_snapshot(self, registry):
        result = registry.get(1)
        assert not result.ok
        assert "No active video snapshot" in result.error

    def test_stale_after_15_seconds(self, registry, clock):
        registry.update(1, 10, 100)

        clock.now += 15
        assert registry.get(1).ok
        clock.now += 0.5
        assert "stale" in registry.get(1).error

    def test_remove(self, registry):
        registry.update(1, 10, 100)
        registry.remove(1)
        registry.remove(1)
        assert len(registry) == 0
