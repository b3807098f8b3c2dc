"""AprilTag range/bearing geometry, candidate selection, and fusion."""
from __future__ import annotations

import logging
import math

import pytest

from robot_nav.config import MotionConfig
from robot_nav.odometry import PoseEstimator
from robot_nav.pose import FieldTag, Pose, TagDetection, VisionEstimate
from robot_nav.simulation import make_stepped_simulation
from robot_nav.vision import FiducialLocalizer

from conftest import FakeCamera, FakeImu, FakeWheels

CFG = MotionConfig()
PX_AT_ONE_METER = CFG.tag_size * CFG.focal_length


def pixels_at(distance: float) -> float:
    return PX_AT_ONE_METER / distance


def make_localizer(config: MotionConfig = CFG, field_map=None, camera=None) -> FiducialLocalizer:
    est = PoseEstimator(FakeWheels(), FakeImu(), config)
    return FiducialLocalizer(est, camera, config, field_map=field_map)


def test_distance_from_pixel_size() -> None:
    loc = make_localizer()
    assert loc.estimate_distance(pixels_at(1.0)) == pytest.approx(1.0)
    assert loc.estimate_distance(pixels_at(2.5)) == pytest.approx(2.5)


def test_tiny_tag_has_no_distance() -> None:
    loc = make_localizer()
    assert loc.estimate_distance(CFG.min_tag_pixels - 1.0) is None


def test_bearing_is_ccw_positive() -> None:
    loc = make_localizer()
    center = CFG.image_width / 2.0
    assert loc.estimate_bearing(center) == pytest.approx(0.0)
    assert loc.estimate_bearing(center - CFG.focal_length) == pytest.approx(math.pi / 4)
    assert loc.estimate_bearing(center + CFG.focal_length) == pytest.approx(-math.pi / 4)


def test_confidence_factors() -> None:
    loc = make_localizer()
    assert loc.compute_confidence(1.5, 50.0) == pytest.approx(0.5 * 0.5)
    assert loc.compute_confidence(1.5, 500.0) == pytest.approx(0.5)
    assert loc.compute_confidence(CFG.max_vision_range + 0.1, 50.0) == 0.0


def test_alpha_scaled_and_capped() -> None:
    loc = make_localizer()
    assert loc.compute_alpha(0.5) == pytest.approx(0.2)
    assert loc.compute_alpha(1.0) == pytest.approx(CFG.vision_max_alpha)


def test_back_solve_removes_camera_offset() -> None:
    field_map = {1: FieldTag(1, 3.0, 1.0, 0.15, math.pi)}
    loc = make_localizer(field_map=field_map)
    # Robot at (2, 1) facing +x; camera sits 0.15 m ahead
    detection = TagDetection(1, CFG.image_width / 2.0, 120.0, pixels_at(0.85), pixels_at(0.85))
    est = loc.process_detections([detection], Pose(2.0, 1.0, 0.0))
    assert est.valid
    assert est.x == pytest.approx(2.0)
    assert est.y == pytest.approx(1.0)


def test_back_solve_rotated_heading() -> None:
    field_map = {4: FieldTag(4, 1.0, 2.5, 0.15, -math.pi / 2)}
    loc = make_localizer(field_map=field_map)
    detection = TagDetection(4, CFG.image_width / 2.0, 120.0, pixels_at(1.35), pixels_at(1.35))
    est = loc.process_detections([detection], Pose(1.0, 1.0, math.pi / 2))
    assert est.x == pytest.approx(1.0)
    assert est.y == pytest.approx(1.0)


def test_off_axis_tag(ideal_config: MotionConfig) -> None:
    field_map = {2: FieldTag(2, 2.0, 2.0, 0.15, math.pi)}
    loc = make_localizer(ideal_config, field_map=field_map)
    center_x = ideal_config.image_width / 2.0 - ideal_config.focal_length * math.tan(math.pi / 4)
    size = pixels_at(math.sqrt(2.0))
    est = loc.process_detections([TagDetection(2, center_x, 120.0, size, size)], Pose(1.0, 1.0, 0.0))
    assert est.x == pytest.approx(1.0)
    assert est.y == pytest.approx(1.0)


def test_uses_larger_of_width_and_height() -> None:
    field_map = {1: FieldTag(1, 3.0, 1.0, 0.15, math.pi)}
    loc = make_localizer(field_map=field_map)
    # Foreshortened width, true height
    detection = TagDetection(1, CFG.image_width / 2.0, 120.0, pixels_at(0.85) * 0.5, pixels_at(0.85))
    est = loc.process_detections([detection], Pose(2.0, 1.0, 0.0))
    assert est.x == pytest.approx(2.0)


def test_unknown_invalid_and_small_tags_skipped() -> None:
    field_map = {1: FieldTag(1, 3.0, 1.0, 0.15, math.pi)}
    loc = make_localizer(field_map=field_map)
    detections = [
        TagDetection(99, 160.0, 120.0, 40.0, 40.0),
        TagDetection(1, 160.0, 120.0, 40.0, 40.0, valid=False),
        TagDetection(1, 160.0, 120.0, 5.0, 5.0),
    ]
    assert loc.process_detections(detections, Pose()).valid is False


def test_out_of_range_tag_skipped() -> None:
    field_map = {1: FieldTag(1, 3.0, 1.0, 0.15, math.pi)}
    loc = make_localizer(MotionConfig(min_tag_pixels=1.0), field_map=field_map)
    far = pixels_at(CFG.max_vision_range + 0.5)
    assert loc.process_detections([TagDetection(1, 160.0, 120.0, far, far)], Pose()).valid is False


def test_best_confidence_candidate_wins() -> None:
    field_map = {
        1: FieldTag(1, 3.0, 1.0, 0.15, math.pi),
        2: FieldTag(2, 5.0, 1.0, 0.15, math.pi),
    }
    loc = make_localizer(field_map=field_map)
    near = TagDetection(1, 160.0, 120.0, pixels_at(0.85), pixels_at(0.85))
    far = TagDetection(2, 160.0, 120.0, pixels_at(2.0), pixels_at(2.0))
    est = loc.process_detections([far, near], Pose(2.0, 1.0, 0.0))
    assert est.x == pytest.approx(2.0)
    assert est.confidence == pytest.approx(loc.compute_confidence(0.85, pixels_at(0.85)))


def test_update_without_detections_is_invalid() -> None:
    loc = make_localizer(camera=FakeCamera())
    assert loc.update().valid is False
    assert loc.tag_count == 0
    assert loc.step() is False


def test_update_pulls_from_sensor() -> None:
    field_map = {1: FieldTag(1, 3.0, 1.0, 0.15, math.pi)}
    camera = FakeCamera([TagDetection(1, 160.0, 120.0, pixels_at(1.0), pixels_at(1.0))])
    loc = make_localizer(field_map=field_map, camera=camera)
    est = loc.update()
    assert est.valid
    assert loc.tag_count == 1
    assert loc.last_estimate == est


def test_correction_applied_and_heading_kept() -> None:
    loc = make_localizer()
    loc.estimator.set_pose(Pose(1.0, 1.0, 0.3))
    estimate = VisionEstimate(x=1.25, y=1.0, heading=0.0, confidence=0.5, valid=True)

    assert loc.vision_correct_odometry(estimate) is True
    pose = loc.estimator.get_pose()
    assert pose.x == pytest.approx(1.05)
    assert pose.y == pytest.approx(1.0)
    assert pose.theta == pytest.approx(0.3)
    assert loc.corrections_applied == 1


def test_large_correction_rejected(caplog: pytest.LogCaptureFixture) -> None:
    loc = make_localizer()
    loc.estimator.set_pose(Pose(1.0, 1.0, 0.0))
    estimate = VisionEstimate(x=3.5, y=1.0, heading=0.0, confidence=0.5, valid=True)

    with caplog.at_level(logging.WARNING):
        assert loc.vision_correct_odometry(estimate) is False

    assert loc.estimator.get_pose() == Pose(1.0, 1.0, 0.0)
    assert loc.corrections_rejected == 1
    assert "rejected" in caplog.text


def test_low_confidence_ignored() -> None:
    loc = make_localizer()
    loc.estimator.set_pose(Pose(1.0, 1.0, 0.0))
    estimate = VisionEstimate(x=1.1, y=1.0, heading=0.0, confidence=0.01, valid=True)
    assert loc.vision_correct_odometry(estimate) is False
    assert loc.estimator.get_pose() == Pose(1.0, 1.0, 0.0)


def test_drifted_estimate_pulled_back_by_simulated_camera() -> None:
    start = Pose(0.6, 1.22, math.pi)  # facing tag 1 on the left wall
    parts = make_stepped_simulation(start=start)
    estimator = parts["estimator"]
    estimator.set_pose(Pose(0.7, 1.3, math.pi))

    parts["sim"].run_for(2.0)

    pose = estimator.get_pose()
    assert math.hypot(pose.x - start.x, pose.y - start.y) < 0.01
    assert parts["localizer"].corrections_applied > 0


def test_correction_goes_through_locked_correct() -> None:
    loc = make_localizer()
    loc.estimator.set_pose(Pose(1.0, 1.0, 0.0))
    calls = []
    original = loc.estimator.correct

    def spy(correction):
        calls.append(correction)
        return original(correction)

    loc.estimator.correct = spy
    estimate = VisionEstimate(x=1.25, y=1.0, heading=0.0, confidence=0.5, valid=True)
    assert loc.vision_correct_odometry(estimate) is True
    assert len(calls) == 1
    assert loc.estimator.get_pose().x == pytest.approx(1.05)
