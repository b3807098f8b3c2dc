"""Fiducial-marker localization for absolute position correction.

For each AprilTag detected in a camera frame:
    1. Range from apparent size (pinhole model):
           distance = tag_size * focal_length / pixel_size
    2. Bearing in the camera frame from horizontal pixel offset:
           bearing_cam = atan(offset / focal_length)
       offset is measured leftward from the image center, so bearings are
       counter-clockwise positive like every other angle in the system.
    3. Field bearing = heading + camera mount angle + bearing_cam
    4. Back-solve the camera position from the known tag position, then
       subtract the camera's offset from the rotation center.
    5. Confidence = distance factor * size factor; closer and larger is better.

The best-confidence candidate of the frame is blended into odometry with a
complementary filter on x/y only. Heading is never corrected from vision.
"""

import logging
import math
from typing import Dict, Iterable, List, Optional

from .config import MotionConfig
from .hal import VisionSensor
from .odometry import PoseEstimator
from .pose import FieldTag, Pose, TagDetection, VisionEstimate


class FiducialLocalizer:
    """Confidence-weighted AprilTag localizer with outlier rejection.

    Reads the current pose from a `PoseEstimator`, and writes bounded
    corrections back through `PoseEstimator.correct`.

    Attributes:
        field_map: Known tag placements keyed by id.
        last_estimate: Best estimate of the most recent frame (telemetry).
        tag_count: Number of detections in the most recent frame.
        corrections_applied: Count of accepted corrections.
        corrections_rejected: Count of outlier corrections dropped.
    """

    def __init__(
        self,
        estimator: PoseEstimator,
        sensor: Optional[VisionSensor] = None,
        config: Optional[MotionConfig] = None,
        field_map: Optional[Dict[int, FieldTag]] = None,
    ):
        """Initialize the localizer.

        Args:
            estimator: Pose estimator to read from and correct.
            sensor: Detection feed used by `update()` when no detections are
                passed in. Optional.
            config: Motion configuration. If None, uses MotionConfig().
            field_map: Tag placements keyed by id. If None, built from
                config.field_tags.
        """
        self.cfg = config if config is not None else MotionConfig()
        self.estimator = estimator
        self.sensor = sensor

        if field_map is None:
            field_map = {tag.id: tag for tag in self.cfg.field_tags}
        self.field_map: Dict[int, FieldTag] = dict(field_map)

        self.last_estimate = VisionEstimate.invalid()
        self.tag_count = 0
        self.corrections_applied = 0
        self.corrections_rejected = 0

        logging.info(f"Vision localizer initialized with {len(self.field_map)} field tags")

    # ------------------------------------------------------------------
    # Geometry helpers
    # ------------------------------------------------------------------

    def estimate_distance(self, pixel_size: float) -> Optional[float]:
        """Pinhole range estimate, or None if the tag is too small to trust."""
        if pixel_size < self.cfg.min_tag_pixels:
            return None
        return self.cfg.tag_size * self.cfg.focal_length / pixel_size

    def estimate_bearing(self, center_x: float) -> float:
        """Camera-frame bearing of a pixel column (radians, left positive)."""
        offset = self.cfg.image_width / 2.0 - center_x
        return math.atan(offset / self.cfg.focal_length)

    def compute_confidence(self, distance: float, pixel_size: float) -> float:
        """Score a candidate in [0, 1]: near and large is trustworthy."""
        if distance <= 0 or distance > self.cfg.max_vision_range:
            return 0.0
        distance_factor = max(0.0, 1.0 - distance / self.cfg.max_vision_range)
        size_factor = min(1.0, pixel_size / self.cfg.size_saturation_px)
        return distance_factor * size_factor

    def back_solve(self, tag: FieldTag, distance: float, bearing_field: float, heading: float):
        """Robot rotation-center position that would see `tag` at this range and bearing."""
        cos_h = math.cos(heading)
        sin_h = math.sin(heading)
        ox = self.cfg.camera_offset_x
        oy = self.cfg.camera_offset_y
        x = tag.x - distance * math.cos(bearing_field) - (ox * cos_h - oy * sin_h)
        y = tag.y - distance * math.sin(bearing_field) - (ox * sin_h + oy * cos_h)
        return x, y

    # ------------------------------------------------------------------
    # Per-frame processing
    # ------------------------------------------------------------------

    def process_detections(
        self, detections: Iterable[TagDetection], current: Pose
    ) -> VisionEstimate:
        """Turn one frame of detections into its best position candidate.

        Args:
            detections: Markers found in one frame.
            current: Pose used for heading (camera to field frame).

        Returns:
            Highest-confidence candidate, or an invalid estimate.
        """
        best = VisionEstimate.invalid()

        for tag in detections:
            if not tag.valid:
                continue

            field_tag = self.field_map.get(tag.id)
            if field_tag is None:
                logging.debug(f"Vision: unknown tag id {tag.id}, skipped")
                continue

            pixel_size = max(tag.width, tag.height)
            distance = self.estimate_distance(pixel_size)
            if distance is None:
                logging.debug(f"Vision: tag {tag.id} too small ({pixel_size:.1f}px), skipped")
                continue

            bearing_field = current.theta + self.cfg.camera_angle + self.estimate_bearing(tag.center_x)
            x, y = self.back_solve(field_tag, distance, bearing_field, current.theta)

            confidence = self.compute_confidence(distance, pixel_size)
            if confidence <= 0.0:
                logging.debug(f"Vision: tag {tag.id} out of range ({distance:.2f}m), skipped")
                continue

            if confidence > best.confidence:
                best = VisionEstimate(
                    x=x, y=y, heading=current.theta, confidence=confidence, valid=True
                )

        return best

    def update(self, detections: Optional[List[TagDetection]] = None) -> VisionEstimate:
        """Process one camera frame.

        Args:
            detections: Frame detections. If None, pulls a snapshot from the
                vision sensor (invalid estimate if there is no sensor).

        Returns:
            Best estimate of the frame (also stored in `last_estimate`).
        """
        if detections is None:
            detections = self.sensor.snapshot() if self.sensor is not None else []

        self.tag_count = len(detections)
        if not detections:
            self.last_estimate = VisionEstimate.invalid()
            return self.last_estimate

        estimate = self.process_detections(detections, self.estimator.get_pose())
        if estimate.valid:
            logging.debug(
                f"Vision est: ({estimate.x:.3f}, {estimate.y:.3f}) conf={estimate.confidence:.2f}"
            )
        self.last_estimate = estimate
        return estimate

    # ------------------------------------------------------------------
    # Fusion
    # ------------------------------------------------------------------

    def compute_alpha(self, confidence: float) -> float:
        """Blend weight for a candidate: base alpha scaled by confidence, capped."""
        return min(self.cfg.vision_alpha * confidence, self.cfg.vision_max_alpha)

    def vision_correct_odometry(self, estimate: VisionEstimate) -> bool:
        """Blend a vision estimate into the odometry pose.

        Args:
            estimate: Candidate from `update()`.

        Returns:
            True if a correction was applied, False if skipped or rejected.
        """
        if not estimate.valid or estimate.confidence < self.cfg.vision_min_confidence:
            return False

        alpha = self.compute_alpha(estimate.confidence)
        step = {}

        def blend(current: Pose) -> Optional[Pose]:
            corrected = Pose(
                x=(1.0 - alpha) * current.x + alpha * estimate.x,
                y=(1.0 - alpha) * current.y + alpha * estimate.y,
                theta=current.theta,
            )
            step["dx"] = corrected.x - current.x
            step["dy"] = corrected.y - current.y
            if math.hypot(step["dx"], step["dy"]) > self.cfg.vision_max_correction:
                return None
            return corrected

        # Blend and write in one locked step so no odometry tick is lost
        if self.estimator.correct(blend) is None:
            self.corrections_rejected += 1
            logging.warning(
                f"Vision correction rejected: {math.hypot(step['dx'], step['dy']):.3f}m "
                f"> max {self.cfg.vision_max_correction:.3f}m"
            )
            return False

        self.corrections_applied += 1
        logging.debug(
            f"Vision correction applied: dx={step['dx']:.4f} dy={step['dy']:.4f} alpha={alpha:.3f}"
        )
        return True

    def step(self) -> bool:
        """One localizer tick: process a frame and apply its correction."""
        return self.vision_correct_odometry(self.update())

    def get_diagnostics(self) -> Dict[str, float]:
        """Get vision diagnostic information for telemetry."""
        return {
            "tag_count": self.tag_count,
            "confidence": self.last_estimate.confidence,
            "vision_x": self.last_estimate.x,
            "vision_y": self.last_estimate.y,
            "corrections_applied": self.corrections_applied,
            "corrections_rejected": self.corrections_rejected,
        }
