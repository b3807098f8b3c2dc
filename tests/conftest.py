"""Shared fakes for the navigation core tests."""
from __future__ import annotations

from typing import List, Tuple

import pytest

from robot_nav.config import MotionConfig
from robot_nav.pose import TagDetection
from robot_nav.simulation import SimClock


class FakeWheels:
    def __init__(self, forward: float = 0.0, lateral: float = 0.0) -> None:
        self.forward = forward
        self.lateral = lateral
        self.connected = True

    def forward_distance(self) -> float:
        return self.forward

    def lateral_distance(self) -> float:
        return self.lateral

    def is_connected(self) -> bool:
        return self.connected


class FakeImu:
    def __init__(self, angle: float = 0.0) -> None:
        self.angle = angle
        self.connected = True
        self.calibrated = False

    def rotation(self) -> float:
        return self.angle

    def heading(self) -> float:
        return self.angle

    def is_connected(self) -> bool:
        return self.connected

    def calibrate(self) -> None:
        self.calibrated = True


class RecordingMotors:
    def __init__(self) -> None:
        self.commands: List[Tuple[float, float]] = []
        self.stop_count = 0

    def set_voltages(self, left: float, right: float) -> None:
        self.commands.append((left, right))

    def stop(self) -> None:
        self.stop_count += 1

    @property
    def last(self) -> Tuple[float, float]:
        return self.commands[-1]


class FakeCamera:
    def __init__(self, detections: List[TagDetection] | None = None) -> None:
        self.detections = list(detections or [])

    def snapshot(self) -> List[TagDetection]:
        return list(self.detections)


@pytest.fixture
def wheels() -> FakeWheels:
    return FakeWheels(forward=5.0, lateral=-2.0)


@pytest.fixture
def imu() -> FakeImu:
    return FakeImu(angle=1.0)


@pytest.fixture
def motors() -> RecordingMotors:
    return RecordingMotors()


@pytest.fixture
def clock() -> SimClock:
    return SimClock(start=100.0)


@pytest.fixture
def ideal_config() -> MotionConfig:
    """Centered tracking wheels and camera on the rotation center."""
    return MotionConfig(
        forward_wheel_offset=0.0,
        lateral_wheel_offset=0.0,
        camera_offset_x=0.0,
        camera_offset_y=0.0,
    )
