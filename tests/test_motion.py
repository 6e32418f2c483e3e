"""Tests for shuttle jog distance calculations."""

import pytest

from grbl_shuttle.feed_profile import FeedProfile
from grbl_shuttle.motion import MotionCalculator
from grbl_shuttle.settings_store import SettingsStore


@pytest.fixture
def motion():
    store = SettingsStore()
    store.update({"$110": "1000", "$120": "75"})
    profile = FeedProfile(store, latency=0.2)
    return MotionCalculator(profile, stopping_bonus=0.1)


class TestAccelDistance:
    @pytest.mark.parametrize("a, b", [(0, 1), (1, 3), (2.5, 15), (0, 0), (7, 7)])
    def test_symmetric(self, motion, a, b):
        assert motion.accel_distance("X", a, b) == motion.accel_distance("X", b, a)

    def test_values(self, motion):
        distance, time = motion.accel_distance("X", 0, 15)
        assert time == pytest.approx(0.2)
        assert distance == pytest.approx(0.5 * 75 * 0.2 * 0.2)

    def test_equal_feeds(self, motion):
        assert motion.accel_distance("X", 3, 3) == (0.0, 0.0)

    def test_zero_acceleration(self):
        motion = MotionCalculator(FeedProfile(SettingsStore()))
        assert motion.accel_distance("X", 0, 1) == (0.0, 0.0)


class TestShuttleDistance:
    def test_first_tick_from_rest(self, motion):
        assert motion.shuttle_distance("X", 0, 1) == pytest.approx(0.4)
        assert motion.shuttle_distance("X", 0, 2) == pytest.approx(0.8)

    def test_steady_tick(self, motion):
        # 60 mm/min for 0.2 s
        assert motion.shuttle_distance("X", 1, 1) == pytest.approx(0.2)
        assert motion.shuttle_distance("X", 7, 7) == pytest.approx(3.0)

    @pytest.mark.parametrize("target", range(1, 8))
    def test_start_bonus_is_additive(self, motion, target):
        with_bonus = motion.shuttle_distance("X", 0, target)
        without = motion.shuttle_distance("X", 0, target, start_bonus=False)
        assert with_bonus > without

    def test_slowing_down_narrows_the_move(self, motion):
        faster = motion.shuttle_distance("X", 3, 5)
        slower = motion.shuttle_distance("X", 5, 3)
        assert slower < faster

    def test_rounded_to_three_decimals(self, motion):
        value = motion.shuttle_distance("X", 2, 5)
        assert value == round(value, 3)

    def test_interval_follows_latency(self, motion):
        assert motion.interval_ms == 200
