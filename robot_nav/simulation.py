"""Simulated drivetrain, sensors, and camera for the navigation core.

The simulator stands in for the hardware collaborators in `robot_nav.hal`:
- Differential drivetrain: voltage -> wheel speed with first-order motor lag
- Tracking wheels that roll the extra arc of an off-center mounting
- Inertial sensor with optional drift and noise
- Pinhole camera that renders AprilTag detections from the field map

`SteppedSimulation` advances plant, estimator, localizer, and a motion command
at independent fixed rates on a virtual clock, so whole commands run
deterministically and much faster than real time.
"""

import asyncio
import math
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from .config import MAX_MOTOR_VOLTAGE, MotionConfig
from .odometry import PoseEstimator
from .pose import FieldTag, Pose, TagDetection
from .vision import FiducialLocalizer

SIM_MPS_PER_VOLT = 1.0
"""Steady-state wheel surface speed per volt (m/s/V)."""

SIM_MOTOR_TAU = 0.05
"""Motor first-order time constant (seconds)."""

SIM_PHYSICS_DT = 0.005
"""Plant integration step (seconds, 200 Hz)."""

SIM_TAG_MIN_INCIDENCE = 0.2
"""Tags seen more obliquely than this (cos of incidence) are not detected."""


class SimClock:
    """Virtual clock; call it like time.monotonic."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, dt: float) -> None:
        self.now += dt


@dataclass
class SensorNoise:
    """Noise model for the simulated sensors (all zero = ideal sensors)."""

    wheel_std: float = 0.0  # per-step tracking wheel noise (m)
    imu_std: float = 0.0  # per-step rotation noise (rad)
    imu_drift: float = 0.0  # constant gyro drift (rad/s)
    pixel_std: float = 0.0  # detection center/size noise (px)
    seed: Optional[int] = None


class SimulatedRobot:
    """Ground-truth differential-drive robot with simulated sensors.

    Attributes:
        pose: True pose in the field frame.
        wheels, imu, motors, camera: Collaborator views for the core.
    """

    def __init__(
        self,
        config: Optional[MotionConfig] = None,
        start: Pose = Pose(),
        noise: Optional[SensorNoise] = None,
        field_tags: Optional[List[FieldTag]] = None,
    ):
        self.cfg = config if config is not None else MotionConfig()
        self.noise = noise if noise is not None else SensorNoise()
        self.rng = np.random.default_rng(self.noise.seed)

        self.pose = start
        self.v_left = 0.0
        self.v_right = 0.0
        self.cmd_left = 0.0
        self.cmd_right = 0.0

        # Cumulative sensor counters (start at arbitrary non-zero values)
        self.forward_reading = 1.234
        self.lateral_reading = -0.567
        self.rotation_reading = 0.0

        self.wheels = SimTrackingWheels(self)
        self.imu = SimInertialSensor(self)
        self.motors = SimDriveMotors(self)
        self.camera = SimCamera(self, field_tags if field_tags is not None else self.cfg.field_tags)

    @property
    def linear_velocity(self) -> float:
        return (self.v_left + self.v_right) / 2.0

    @property
    def angular_velocity(self) -> float:
        return (self.v_right - self.v_left) / self.cfg.wheel_track

    def step(self, dt: float) -> None:
        """Advance the plant and sensor counters by `dt` seconds."""
        blend = min(dt / SIM_MOTOR_TAU, 1.0)
        self.v_left += (self.cmd_left * SIM_MPS_PER_VOLT - self.v_left) * blend
        self.v_right += (self.cmd_right * SIM_MPS_PER_VOLT - self.v_right) * blend

        ds = self.linear_velocity * dt
        d_theta = self.angular_velocity * dt

        mid = self.pose.theta + d_theta / 2.0
        self.pose = Pose(
            x=self.pose.x + ds * math.cos(mid),
            y=self.pose.y + ds * math.sin(mid),
            theta=self.pose.theta + d_theta,
        )

        if self.wheels.connected:
            self.forward_reading += ds + self.cfg.forward_wheel_offset * d_theta
            self.lateral_reading += self.cfg.lateral_wheel_offset * d_theta
            if self.noise.wheel_std > 0:
                self.forward_reading += self.rng.normal(0.0, self.noise.wheel_std)
                self.lateral_reading += self.rng.normal(0.0, self.noise.wheel_std)

        if self.imu.connected:
            self.rotation_reading += d_theta + self.noise.imu_drift * dt
            if self.noise.imu_std > 0:
                self.rotation_reading += self.rng.normal(0.0, self.noise.imu_std)

    async def run_realtime(self, period: float = SIM_PHYSICS_DT) -> None:
        """Advance the plant against wall-clock time until cancelled."""
        last = time.monotonic()
        while True:
            await asyncio.sleep(period)
            now = time.monotonic()
            self.step(now - last)
            last = now


class SimTrackingWheels:
    def __init__(self, robot: SimulatedRobot):
        self.robot = robot
        self.connected = True

    def forward_distance(self) -> float:
        return self.robot.forward_reading

    def lateral_distance(self) -> float:
        return self.robot.lateral_reading

    def is_connected(self) -> bool:
        return self.connected


class SimInertialSensor:
    def __init__(self, robot: SimulatedRobot):
        self.robot = robot
        self.connected = True
        self.calibrated = False

    def rotation(self) -> float:
        return self.robot.rotation_reading

    def heading(self) -> float:
        return self.robot.rotation_reading % (2 * math.pi)

    def is_connected(self) -> bool:
        return self.connected

    def calibrate(self) -> None:
        self.calibrated = True


class SimDriveMotors:
    """Voltage-commanded motors; clamps to ±MAX_MOTOR_VOLTAGE like the real ones."""

    def __init__(self, robot: SimulatedRobot):
        self.robot = robot
        self.stop_count = 0

    def set_voltages(self, left: float, right: float) -> None:
        self.robot.cmd_left = max(-MAX_MOTOR_VOLTAGE, min(MAX_MOTOR_VOLTAGE, left))
        self.robot.cmd_right = max(-MAX_MOTOR_VOLTAGE, min(MAX_MOTOR_VOLTAGE, right))

    def stop(self) -> None:
        self.robot.cmd_left = 0.0
        self.robot.cmd_right = 0.0
        self.stop_count += 1


class SimCamera:
    """Pinhole camera that renders the field tags it can see from the true pose."""

    def __init__(self, robot: SimulatedRobot, field_tags):
        self.robot = robot
        self.field_tags = list(field_tags)
        self.enabled = True
        self.injected: List[TagDetection] = []

    def render(self, pose: Pose) -> List[TagDetection]:
        """Detections a camera on a robot at `pose` would report."""
        cfg = self.robot.cfg
        cos_h = math.cos(pose.theta)
        sin_h = math.sin(pose.theta)
        cam_x = pose.x + cfg.camera_offset_x * cos_h - cfg.camera_offset_y * sin_h
        cam_y = pose.y + cfg.camera_offset_x * sin_h + cfg.camera_offset_y * cos_h
        cam_heading = pose.theta + cfg.camera_angle
        half_fov = math.atan((cfg.image_width / 2.0) / cfg.focal_length)

        detections = []
        for tag in self.field_tags:
            dx = tag.x - cam_x
            dy = tag.y - cam_y
            distance = math.hypot(dx, dy)
            if distance <= 1e-6:
                continue

            # Tag must face the camera
            incidence = (-dx * math.cos(tag.facing) - dy * math.sin(tag.facing)) / distance
            if incidence < SIM_TAG_MIN_INCIDENCE:
                continue

            bearing = math.atan2(math.sin(math.atan2(dy, dx) - cam_heading),
                                 math.cos(math.atan2(dy, dx) - cam_heading))
            if abs(bearing) >= half_fov:
                continue

            size = cfg.tag_size * cfg.focal_length / distance
            center_x = cfg.image_width / 2.0 - cfg.focal_length * math.tan(bearing)
            width = size * incidence
            height = size
            if self.robot.noise.pixel_std > 0:
                center_x += self.robot.rng.normal(0.0, self.robot.noise.pixel_std)
                height += self.robot.rng.normal(0.0, self.robot.noise.pixel_std)
            detections.append(
                TagDetection(
                    id=tag.id,
                    center_x=center_x,
                    center_y=120.0,
                    width=width,
                    height=height,
                )
            )
        return detections

    def snapshot(self) -> List[TagDetection]:
        if not self.enabled:
            return []
        detections = self.render(self.robot.pose) + self.injected
        self.injected = []
        return detections


@dataclass
class SimulationLog:
    """Time series of one simulated run."""

    time: np.ndarray
    true_pose: np.ndarray  # (N, 3) x, y, theta
    est_pose: np.ndarray  # (N, 3)
    vision_confidence: np.ndarray
    targets: List[Pose] = field(default_factory=list)

    def final_error(self) -> float:
        """Distance between true and estimated position at the end of the run."""
        if len(self.time) == 0:
            return 0.0
        return float(np.linalg.norm(self.true_pose[-1, :2] - self.est_pose[-1, :2]))


class TelemetryRecorder:
    """Collects true vs estimated pose samples for plotting."""

    def __init__(self, robot: SimulatedRobot, estimator: PoseEstimator,
                 localizer: Optional[FiducialLocalizer] = None):
        self.robot = robot
        self.estimator = estimator
        self.localizer = localizer
        self.samples: List[tuple] = []
        self.targets: List[Pose] = []

    def sample(self, t: float) -> None:
        true = self.robot.pose
        est = self.estimator.get_pose()
        confidence = self.localizer.last_estimate.confidence if self.localizer else 0.0
        self.samples.append((t, true.x, true.y, true.theta, est.x, est.y, est.theta, confidence))

    async def run(self, clock, period: float) -> None:
        while True:
            self.sample(clock())
            await asyncio.sleep(period)

    def to_log(self) -> SimulationLog:
        data = np.array(self.samples, dtype=float).reshape(-1, 8)
        return SimulationLog(
            time=data[:, 0],
            true_pose=data[:, 1:4],
            est_pose=data[:, 4:7],
            vision_confidence=data[:, 7],
            targets=list(self.targets),
        )


class SteppedSimulation:
    """Multi-rate lockstep simulator on a virtual clock.

    Plant at SIM_PHYSICS_DT, estimator at the odometry period, localizer at
    the vision period, and the active motion command at the loop period.
    """

    def __init__(
        self,
        robot: SimulatedRobot,
        estimator: PoseEstimator,
        clock: SimClock,
        localizer: Optional[FiducialLocalizer] = None,
        physics_dt: float = SIM_PHYSICS_DT,
    ):
        self.robot = robot
        self.estimator = estimator
        self.clock = clock
        self.localizer = localizer
        self.physics_dt = physics_dt
        self.recorder = TelemetryRecorder(robot, estimator, localizer)

        cfg = robot.cfg
        self.odometry_ticks = self._ticks(cfg.odometry_period)
        self.vision_ticks = self._ticks(cfg.vision_period)
        self.loop_ticks = self._ticks(cfg.loop_period)
        self.tick = 0

    def _ticks(self, period: float) -> int:
        ticks = int(round(period / self.physics_dt))
        if ticks < 1:
            raise ValueError(f"Period {period} is shorter than the physics step {self.physics_dt}")
        return ticks

    def _advance(self, command=None) -> None:
        self.robot.step(self.physics_dt)
        self.clock.advance(self.physics_dt)
        self.tick += 1

        if self.tick % self.odometry_ticks == 0:
            self.estimator.update()
        if self.tick % self.vision_ticks == 0:
            if self.localizer is not None:
                self.localizer.step()
            self.recorder.sample(self.clock())
        if command is not None and self.tick % self.loop_ticks == 0:
            command.step()

    def run_for(self, duration: float) -> None:
        """Advance with no motion command (the robot coasts to a stop)."""
        for _ in range(int(round(duration / self.physics_dt))):
            self._advance()

    def run_command(self, command, max_time: float = 30.0):
        """Step an already-started motion command until it finishes.

        Returns:
            Final MotionStatus of the command.
        """
        if hasattr(command, "target"):
            target = command.target
            if isinstance(target, Pose):
                self.recorder.targets.append(target)

        command.step()
        deadline = self.clock() + max_time
        while not command.finished and self.clock() < deadline:
            self._advance(command)
        return command.status

    def to_log(self) -> SimulationLog:
        return self.recorder.to_log()


def make_stepped_simulation(
    config: Optional[MotionConfig] = None,
    start: Pose = Pose(),
    noise: Optional[SensorNoise] = None,
    use_vision: bool = True,
) -> Dict[str, object]:
    """Build a ready-to-run simulated robot and navigation stack.

    Returns:
        Dictionary with 'robot', 'clock', 'estimator', 'localizer' (or None),
        and 'sim'.
    """
    cfg = config if config is not None else MotionConfig()
    robot = SimulatedRobot(cfg, start=start, noise=noise)
    clock = SimClock()
    estimator = PoseEstimator(robot.wheels, robot.imu, cfg)
    estimator.set_pose(start)
    localizer = FiducialLocalizer(estimator, robot.camera, cfg) if use_vision else None
    sim = SteppedSimulation(robot, estimator, clock, localizer)
    return {
        "robot": robot,
        "clock": clock,
        "estimator": estimator,
        "localizer": localizer,
        "sim": sim,
    }
