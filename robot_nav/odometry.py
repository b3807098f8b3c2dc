"""Odometry module for robot pose estimation.

This module maintains the authoritative robot pose by integrating:
- Two perpendicular passive tracking wheels (forward and lateral travel)
- An inertial sensor's cumulative rotation (heading)

Per tick:
    d_fwd, d_lat = wheel distances minus stored baseline
    d_theta      = IMU cumulative rotation minus stored baseline
    d_fwd_c      = d_fwd - forward_offset * d_theta    (arc compensation)
    d_lat_c      = d_lat - lateral_offset * d_theta
    mid          = theta + d_theta / 2                  (midpoint integration)
    x           += d_fwd_c * cos(mid) - d_lat_c * sin(mid)
    y           += d_fwd_c * sin(mid) + d_lat_c * cos(mid)
    theta       += d_theta

Heading comes entirely from the inertial sensor: two perpendicular passive
wheels alone cannot tell rotation apart from translation.
"""

import logging
import math
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .config import MotionConfig
from .hal import InertialSensor, TrackingWheels
from .pose import Pose


@dataclass
class SensorBaseline:
    """Last-seen cumulative sensor readings."""

    forward: float = 0.0
    lateral: float = 0.0
    rotation: float = 0.0


class DeltaHeadingFusion:
    """Heading change from differences of the IMU's unbounded rotation.

    Works on the cumulative rotation rather than the wrapped heading so a turn
    across 0/2pi never produces a spurious full-circle jump.
    """

    name = "delta"

    def read(self, imu: InertialSensor) -> float:
        return imu.rotation()

    def delta(self, reading: float, baseline: float) -> float:
        return reading - baseline


HEADING_FUSION_STRATEGIES = {
    DeltaHeadingFusion.name: DeltaHeadingFusion,
}


def make_heading_fusion(name: str) -> DeltaHeadingFusion:
    """Build a heading fusion strategy by config name.

    Raises:
        ValueError: If the name is not a known strategy.
    """
    try:
        return HEADING_FUSION_STRATEGIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown heading fusion strategy {name!r}; "
            f"expected one of {sorted(HEADING_FUSION_STRATEGIES)}"
        ) from None


class PoseEstimator:
    """Perpendicular dual-wheel odometry with inertial heading.

    Owns the shared pose. Every public read returns a frozen snapshot; the
    update tick, `set_pose`, `set_pose_no_reset`, and `correct` hold the same
    lock so no reader ever sees a half-written pose.

    Attributes:
        wheels: Tracking wheel collaborator.
        imu: Inertial sensor collaborator.
        forward_offset: Forward wheel arc offset (m/rad).
        lateral_offset: Lateral wheel arc offset (m/rad).
        arc_compensation: If False, skip the arc correction (ablation only).
    """

    def __init__(
        self,
        wheels: TrackingWheels,
        imu: InertialSensor,
        config: Optional[MotionConfig] = None,
        arc_compensation: bool = True,
    ):
        """Initialize the estimator at the origin, baselined on current readings.

        Args:
            wheels: Tracking wheel collaborator.
            imu: Inertial sensor collaborator.
            config: Motion configuration. If None, uses MotionConfig().
            arc_compensation: Subtract the arc an off-center wheel traces while
                rotating. Default: True
        """
        cfg = config if config is not None else MotionConfig()

        self.wheels = wheels
        self.imu = imu
        self.forward_offset = cfg.forward_wheel_offset
        self.lateral_offset = cfg.lateral_wheel_offset
        self.arc_compensation = arc_compensation
        self.heading_fusion = make_heading_fusion(cfg.heading_fusion)

        self._lock = threading.Lock()
        self._pose = Pose()
        self._baseline = SensorBaseline()

        # Connection state for SensorUnavailable warnings
        self._wheels_connected = True
        self._imu_connected = True

        # Diagnostics
        self.update_count = 0
        self.last_delta = (0.0, 0.0, 0.0)

        with self._lock:
            self._rebaseline()

    def _rebaseline(self) -> None:
        self._baseline = SensorBaseline(
            forward=self.wheels.forward_distance(),
            lateral=self.wheels.lateral_distance(),
            rotation=self.heading_fusion.read(self.imu),
        )

    def _check_sensors(self) -> None:
        """Log connect/disconnect transitions once instead of every tick."""
        wheels_ok = self.wheels.is_connected()
        if wheels_ok != self._wheels_connected:
            if wheels_ok:
                logging.info("Tracking wheels reconnected")
            else:
                logging.warning("Tracking wheels disconnected; position estimate will drift")
            self._wheels_connected = wheels_ok

        imu_ok = self.imu.is_connected()
        if imu_ok != self._imu_connected:
            if imu_ok:
                logging.info("Inertial sensor reconnected")
            else:
                logging.warning("Inertial sensor disconnected; heading frozen")
            self._imu_connected = imu_ok

    def update(self) -> Pose:
        """Integrate one tick of sensor deltas into the pose.

        Returns:
            Snapshot of the pose after the update.
        """
        self._check_sensors()

        with self._lock:
            forward = self.wheels.forward_distance()
            lateral = self.wheels.lateral_distance()
            rotation = self.heading_fusion.read(self.imu)

            d_forward = forward - self._baseline.forward
            d_lateral = lateral - self._baseline.lateral
            d_theta = self.heading_fusion.delta(rotation, self._baseline.rotation)
            self._baseline = SensorBaseline(forward, lateral, rotation)

            # Remove the arc an off-center wheel rolls during rotation
            if self.arc_compensation:
                d_forward -= self.forward_offset * d_theta
                d_lateral -= self.lateral_offset * d_theta

            # Midpoint integration into the field frame
            pose = self._pose
            mid_theta = pose.theta + d_theta / 2.0
            cos_mid = math.cos(mid_theta)
            sin_mid = math.sin(mid_theta)
            self._pose = Pose(
                x=pose.x + d_forward * cos_mid - d_lateral * sin_mid,
                y=pose.y + d_forward * sin_mid + d_lateral * cos_mid,
                theta=pose.theta + d_theta,
            )

            self.update_count += 1
            self.last_delta = (d_forward, d_lateral, d_theta)
            return self._pose

    def get_pose(self) -> Pose:
        """Atomic snapshot of the current pose."""
        with self._lock:
            return self._pose

    def set_pose(self, pose: Pose) -> None:
        """Overwrite the pose and re-baseline every sensor.

        Use once per run to establish the start pose. Later deltas are
        measured from the sensors' readings at this moment.
        """
        with self._lock:
            self._pose = pose
            self._rebaseline()
        logging.info(f"Pose set to ({pose.x:.3f}, {pose.y:.3f}, {pose.theta:.3f})")

    def set_pose_no_reset(self, pose: Pose) -> None:
        """Overwrite only the pose value, leaving sensor baselines untouched.

        Used for absolute corrections so in-flight delta tracking is not
        disturbed.
        """
        with self._lock:
            self._pose = pose

    def correct(self, correction: Callable[[Pose], Optional[Pose]]) -> Optional[Pose]:
        """Read-modify-write the pose value under the lock.

        `correction` receives the current pose and returns the replacement,
        or None to leave the pose untouched. Baselines are not changed, and no
        update tick can land between the read and the write.

        Returns:
            The pose written, or None if the correction declined.
        """
        with self._lock:
            corrected = correction(self._pose)
            if corrected is not None:
                self._pose = corrected
            return corrected

    def get_diagnostics(self) -> Dict[str, float]:
        """Get odometry diagnostic information for tuning and monitoring.

        Returns:
            Dictionary containing the last tick's compensated deltas, the
            update count, and sensor connection flags.
        """
        d_forward, d_lateral, d_theta = self.last_delta
        return {
            "d_forward": d_forward,
            "d_lateral": d_lateral,
            "d_theta": d_theta,
            "update_count": self.update_count,
            "wheels_connected": float(self._wheels_connected),
            "imu_connected": float(self._imu_connected),
        }
