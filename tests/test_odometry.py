"""Tracking-wheel + IMU pose integration."""
from __future__ import annotations

import dataclasses
import logging
import math

import pytest

from robot_nav.config import MotionConfig
from robot_nav.odometry import PoseEstimator, make_heading_fusion
from robot_nav.pose import Pose

from conftest import FakeImu, FakeWheels


def test_starts_at_origin_regardless_of_raw_readings(wheels: FakeWheels, imu: FakeImu) -> None:
    est = PoseEstimator(wheels, imu, MotionConfig())
    assert est.update() == Pose(0.0, 0.0, 0.0)


def test_forward_travel(wheels: FakeWheels, imu: FakeImu, ideal_config: MotionConfig) -> None:
    est = PoseEstimator(wheels, imu, ideal_config)
    wheels.forward += 1.0
    pose = est.update()
    assert pose.x == pytest.approx(1.0)
    assert pose.y == pytest.approx(0.0)
    assert pose.theta == pytest.approx(0.0)


def test_lateral_travel_is_independent(wheels: FakeWheels, imu: FakeImu, ideal_config: MotionConfig) -> None:
    est = PoseEstimator(wheels, imu, ideal_config)
    wheels.lateral += 0.3
    pose = est.update()
    assert pose.x == pytest.approx(0.0)
    assert pose.y == pytest.approx(0.3)
    assert pose.theta == 0.0


def test_straight_updates_are_additive(ideal_config: MotionConfig) -> None:
    w1, w2 = FakeWheels(), FakeWheels()
    split = PoseEstimator(w1, FakeImu(), ideal_config)
    single = PoseEstimator(w2, FakeImu(), ideal_config)

    w1.forward += 0.5
    split.update()
    w1.forward += 0.5
    split.update()

    w2.forward += 1.0
    single.update()

    assert split.get_pose().x == pytest.approx(single.get_pose().x)
    assert split.get_pose().y == pytest.approx(single.get_pose().y)


def test_heading_comes_from_imu(wheels: FakeWheels, imu: FakeImu, ideal_config: MotionConfig) -> None:
    est = PoseEstimator(wheels, imu, ideal_config)
    imu.angle += math.pi / 2
    pose = est.update()
    assert pose.theta == pytest.approx(math.pi / 2)
    assert pose.x == pytest.approx(0.0)
    assert pose.y == pytest.approx(0.0)


def test_midpoint_integration(wheels: FakeWheels, imu: FakeImu, ideal_config: MotionConfig) -> None:
    est = PoseEstimator(wheels, imu, ideal_config)
    wheels.forward += 1.0
    imu.angle += math.pi / 2
    pose = est.update()
    assert pose.x == pytest.approx(math.cos(math.pi / 4))
    assert pose.y == pytest.approx(math.sin(math.pi / 4))


def test_heading_crosses_wrap_without_jump(ideal_config: MotionConfig) -> None:
    imu = FakeImu(angle=2 * math.pi - 0.1)
    est = PoseEstimator(FakeWheels(), imu, ideal_config)
    imu.angle += 0.2
    assert est.update().theta == pytest.approx(0.2)


def test_arc_compensation_cancels_pure_rotation(wheels: FakeWheels, imu: FakeImu) -> None:
    cfg = MotionConfig(forward_wheel_offset=-0.05, lateral_wheel_offset=-0.10)
    est = PoseEstimator(wheels, imu, cfg)

    d_theta = math.pi / 2
    wheels.forward += cfg.forward_wheel_offset * d_theta
    wheels.lateral += cfg.lateral_wheel_offset * d_theta
    imu.angle += d_theta
    pose = est.update()

    assert pose.x == pytest.approx(0.0, abs=1e-12)
    assert pose.y == pytest.approx(0.0, abs=1e-12)
    assert pose.theta == pytest.approx(d_theta)


def test_without_arc_compensation_rotation_drifts(wheels: FakeWheels, imu: FakeImu) -> None:
    cfg = MotionConfig(forward_wheel_offset=-0.05, lateral_wheel_offset=-0.10)
    est = PoseEstimator(wheels, imu, cfg, arc_compensation=False)

    d_theta = math.pi / 2
    wheels.forward += cfg.forward_wheel_offset * d_theta
    wheels.lateral += cfg.lateral_wheel_offset * d_theta
    imu.angle += d_theta
    pose = est.update()

    assert math.hypot(pose.x, pose.y) > 0.1


def test_set_pose_rebaselines(wheels: FakeWheels, imu: FakeImu, ideal_config: MotionConfig) -> None:
    est = PoseEstimator(wheels, imu, ideal_config)
    wheels.forward += 1.0
    est.set_pose(Pose(2.0, 3.0, 0.0))
    assert est.update() == Pose(2.0, 3.0, 0.0)


def test_set_pose_no_reset_keeps_pending_motion(
    wheels: FakeWheels, imu: FakeImu, ideal_config: MotionConfig
) -> None:
    est = PoseEstimator(wheels, imu, ideal_config)
    wheels.forward += 1.0
    est.set_pose_no_reset(Pose(2.0, 3.0, 0.0))
    pose = est.update()
    assert pose.x == pytest.approx(3.0)
    assert pose.y == pytest.approx(3.0)


def test_pose_snapshots_are_immutable(wheels: FakeWheels, imu: FakeImu) -> None:
    est = PoseEstimator(wheels, imu)
    snapshot = est.get_pose()
    with pytest.raises(dataclasses.FrozenInstanceError):
        snapshot.x = 1.0  # type: ignore[misc]


def test_disconnect_warned_once(
    wheels: FakeWheels, imu: FakeImu, caplog: pytest.LogCaptureFixture
) -> None:
    est = PoseEstimator(wheels, imu)
    wheels.connected = False
    with caplog.at_level(logging.INFO):
        est.update()
        est.update()
        wheels.connected = True
        est.update()

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "disconnected" in warnings[0].getMessage()
    assert any("reconnected" in r.getMessage() for r in caplog.records)


def test_unknown_heading_fusion_rejected(wheels: FakeWheels, imu: FakeImu) -> None:
    with pytest.raises(ValueError):
        PoseEstimator(wheels, imu, MotionConfig(heading_fusion="kalman"))
    assert make_heading_fusion("delta").name == "delta"


def test_diagnostics_track_last_delta(wheels: FakeWheels, imu: FakeImu, ideal_config: MotionConfig) -> None:
    est = PoseEstimator(wheels, imu, ideal_config)
    wheels.forward += 0.25
    est.update()
    diag = est.get_diagnostics()
    assert diag["d_forward"] == pytest.approx(0.25)
    assert diag["update_count"] == 1


def test_correct_is_atomic_read_modify_write(
    wheels: FakeWheels, imu: FakeImu, ideal_config: MotionConfig
) -> None:
    est = PoseEstimator(wheels, imu, ideal_config)
    est.set_pose(Pose(1.0, 2.0, 0.5))
    seen = []

    def nudge(current: Pose) -> Pose:
        seen.append(est._lock.locked())
        return Pose(current.x + 0.1, current.y, current.theta)

    assert est.correct(nudge) == Pose(1.1, 2.0, 0.5)
    assert seen == [True]
    assert est.get_pose() == Pose(1.1, 2.0, 0.5)


def test_correct_can_decline(wheels: FakeWheels, imu: FakeImu, ideal_config: MotionConfig) -> None:
    est = PoseEstimator(wheels, imu, ideal_config)
    wheels.forward += 1.0
    assert est.correct(lambda current: None) is None
    # Baselines untouched: the pending travel still lands
    assert est.update().x == pytest.approx(1.0)
