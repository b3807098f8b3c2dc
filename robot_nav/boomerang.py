"""Boomerang drive-to-pose motion command.

A carrot point is placed behind the target along the target's own heading,
at a distance proportional to how far away the robot still is:

    carrot = target.xy - lead * dist * (cos(theta_target), sin(theta_target))

The robot always steers toward the carrot. As dist shrinks the carrot slides
onto the target, so the path curves smoothly and arrives close to the target
heading instead of stopping to re-orient.

Linear speed per tick:
    v = min(sqrt(2 * a * dist), v_max)      deceleration bound + cruise cap
    v *= max(cos(heading_error), 0)         cosine throttle, no sideways scrub
    v = -v                                  when reversing
    |v - v_prev| <= a * loop_period         acceleration slew limit

Inside the position tolerance the carrot bearing is degenerate (the robot sits
on top of it). There the command aims for the target heading directly and
brakes to zero linear speed at once while the settle dwell runs.

Within DRIVE_APPROACH_M of the target, a heading error beyond pi/2 means the
robot has coasted past. It then backs onto the target (direction inverted,
heading error shifted by pi) instead of turning around in place.
"""

import asyncio
import logging
import math
import time
from typing import Awaitable, Callable, Dict, Optional

from .config import MotionConfig
from .hal import DriveMotors
from .model import differential_voltages
from .motion_profile import MotionProfile
from .odometry import PoseEstimator
from .pid import PIDController
from .pose import Pose, normalize_angle
from .settle import MotionStatus, SettleTimer
from .turn import configure_heading_pid


def carrot_point(target: Pose, dist: float, lead: float) -> tuple[float, float]:
    """Aim point `lead * dist` behind the target along its heading."""
    return (
        target.x - lead * dist * math.cos(target.theta),
        target.y - lead * dist * math.sin(target.theta),
    )


class PoseController:
    """Curved-path drive to a target (x, y, theta), forward or in reverse.

    Attributes:
        pid: Heading PID, configured with the turn limits.
        profile: Speed envelope (acceleration ramp, decel bound, cruise cap).
        status: Current MotionStatus.
        target: Target pose of the active drive.
        reverse: True when backing toward the target.
        prev_velocity: Last commanded linear speed (for slew limiting).
    """

    def __init__(
        self,
        estimator: PoseEstimator,
        motors: DriveMotors,
        config: Optional[MotionConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        anti_windup: bool = True,
        d_filter: bool = True,
        slew_limit: bool = True,
    ):
        self.cfg = config if config is not None else MotionConfig()
        self.estimator = estimator
        self.motors = motors
        self.clock = clock
        self.anti_windup = anti_windup
        self.d_filter = d_filter
        self.slew_limit = slew_limit

        self.pid = PIDController(
            self.cfg.drive_kp, self.cfg.drive_ki, self.cfg.drive_kd, clock=clock
        )
        self.profile = MotionProfile(self.cfg.max_velocity, self.cfg.max_acceleration)
        self.settle = SettleTimer(self.cfg.drive_settle_m, self.cfg.drive_settle_time)

        self.status = MotionStatus.IDLE
        self.target = Pose()
        self.reverse = False
        self.start_time = 0.0
        self.prev_velocity = 0.0

        # Diagnostics
        self.last_distance = 0.0
        self.last_heading_error = 0.0
        self.last_carrot = (0.0, 0.0)

    @property
    def finished(self) -> bool:
        return self.status.finished

    def start(self, target: Pose, reverse: bool = False) -> None:
        """Arm a new drive toward `target`."""
        configure_heading_pid(self.pid, self.cfg, self.anti_windup, self.d_filter)
        self.pid.reset()
        self.settle.reset()
        self.target = target
        self.reverse = reverse
        self.start_time = self.clock()
        self.prev_velocity = 0.0
        self.status = MotionStatus.RUNNING
        direction = "reverse" if reverse else "forward"
        logging.info(
            f"Drive to pose ({target.x:.3f}, {target.y:.3f}, {target.theta:.3f}) {direction}"
        )

    def desired_heading(self, pose: Pose, dist: float) -> float:
        """Heading the robot should face this tick."""
        if dist < self.cfg.drive_settle_m:
            return self.target.theta
        carrot_x, carrot_y = carrot_point(self.target, dist, self.cfg.boomerang_lead)
        self.last_carrot = (carrot_x, carrot_y)
        heading = math.atan2(carrot_y - pose.y, carrot_x - pose.x)
        if self.reverse:
            heading += math.pi
        return heading

    def approach_flip(self, dist: float, heading_error: float) -> tuple[float, float]:
        """Heading error and drive direction (+1 forward, -1 backward) for this tick.

        Near the target, a target behind the robot is reached by reversing
        the drive direction rather than by turning around.
        """
        direction = -1.0 if self.reverse else 1.0
        if (
            self.cfg.drive_settle_m <= dist < self.cfg.drive_approach_m
            and abs(heading_error) > math.pi / 2
        ):
            return normalize_angle(heading_error + math.pi), -direction
        return heading_error, direction

    def linear_velocity(
        self,
        dist: float,
        heading_error: float,
        elapsed: float,
        direction: Optional[float] = None,
    ) -> float:
        """Slew-limited signed forward speed for this tick.

        Inside the position tolerance the speed drops to zero at once.
        """
        if dist < self.cfg.drive_settle_m:
            self.prev_velocity = 0.0
            return 0.0

        if direction is None:
            direction = -1.0 if self.reverse else 1.0
        speed = self.profile.get_target_velocity(elapsed, dist)
        speed *= max(math.cos(heading_error), 0.0)
        speed *= direction

        if self.slew_limit:
            max_dv = self.cfg.max_acceleration * self.cfg.loop_period
            speed = max(self.prev_velocity - max_dv, min(self.prev_velocity + max_dv, speed))
        self.prev_velocity = speed
        return speed

    def step(self) -> MotionStatus:
        """Advance the drive by one control period."""
        if self.status in (MotionStatus.IDLE, MotionStatus.DONE, MotionStatus.TIMED_OUT):
            return self.status

        now = self.clock()
        elapsed = now - self.start_time
        if elapsed > self.cfg.drive_timeout:
            return self._finish(MotionStatus.TIMED_OUT)

        pose = self.estimator.get_pose()
        dist = pose.distance_to(self.target)
        self.last_distance = dist

        if self.settle.update(dist, now):
            return self._finish(MotionStatus.DONE)
        self.status = MotionStatus.SETTLING if self.settle.settling else MotionStatus.RUNNING

        heading_error = normalize_angle(self.desired_heading(pose, dist) - pose.theta)
        heading_error, direction = self.approach_flip(dist, heading_error)
        self.last_heading_error = heading_error

        velocity = self.linear_velocity(dist, heading_error, elapsed, direction)
        omega = self.pid.calculate(0.0, -heading_error)

        left, right = differential_voltages(velocity, omega, self.cfg.wheel_track)
        self.motors.set_voltages(left, right)
        return self.status

    def _finish(self, status: MotionStatus) -> MotionStatus:
        self.motors.stop()
        self.prev_velocity = 0.0
        self.status = status
        elapsed = self.clock() - self.start_time
        if status is MotionStatus.DONE:
            logging.info(f"Drive settled in {elapsed:.2f}s ({self.last_distance:.4f}m from target)")
        else:
            logging.warning(
                f"Drive timed out after {elapsed:.2f}s ({self.last_distance:.4f}m from target)"
            )
        return status

    async def run(
        self,
        target: Pose,
        reverse: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> MotionStatus:
        """Drive to `target`, returning once settled or timed out."""
        self.start(target, reverse)
        try:
            while not self.step().finished:
                await sleep(self.cfg.loop_period)
        finally:
            if not self.finished:
                self.motors.stop()
        return self.status

    def get_diagnostics(self) -> Dict[str, float]:
        """Get drive diagnostic information for logging and tuning."""
        return {
            "distance": self.last_distance,
            "heading_error": self.last_heading_error,
            "velocity": self.prev_velocity,
            "carrot_x": self.last_carrot[0],
            "carrot_y": self.last_carrot[1],
        }
