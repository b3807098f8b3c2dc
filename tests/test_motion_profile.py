"""Trapezoidal speed envelope and differential mixing."""
from __future__ import annotations

import math

import pytest

from robot_nav.model import differential_voltages
from robot_nav.motion_profile import MotionProfile


@pytest.fixture
def profile() -> MotionProfile:
    return MotionProfile(max_velocity=1.0, max_acceleration=2.0)


def test_acceleration_ramp(profile: MotionProfile) -> None:
    assert profile.get_target_velocity(0.25, 10.0) == pytest.approx(0.5)


def test_cruise_cap(profile: MotionProfile) -> None:
    assert profile.get_target_velocity(10.0, 10.0) == pytest.approx(1.0)


def test_deceleration_bound(profile: MotionProfile) -> None:
    assert profile.get_target_velocity(10.0, 0.04) == pytest.approx(0.4)
    assert profile.get_target_velocity(10.0, -0.04) == pytest.approx(0.4)


def test_start_and_arrival_are_zero(profile: MotionProfile) -> None:
    assert profile.get_target_velocity(0.0, 5.0) == 0.0
    assert profile.get_target_velocity(-1.0, 5.0) == 0.0
    assert profile.get_target_velocity(3.0, 0.0) == 0.0


def test_never_exceeds_limits(profile: MotionProfile) -> None:
    for t in (0.0, 0.1, 0.5, 1.0, 4.0):
        for d in (0.0, 0.01, 0.3, 2.0, 50.0):
            v = profile.get_target_velocity(t, d)
            assert 0.0 <= v <= 1.0
            assert v <= math.sqrt(2 * 2.0 * d) + 1e-12


def test_rejects_non_positive_limits() -> None:
    with pytest.raises(ValueError):
        MotionProfile(0.0, 1.0)
    with pytest.raises(ValueError):
        MotionProfile(1.0, -1.0)


def test_differential_voltages_turn_in_place() -> None:
    left, right = differential_voltages(0.0, 2.0, track=0.4)
    assert left == pytest.approx(-0.4)
    assert right == pytest.approx(0.4)


def test_differential_voltages_straight() -> None:
    assert differential_voltages(3.0, 0.0) == (3.0, 3.0)
