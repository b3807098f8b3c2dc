"""Turn-to-heading motion command.

Algorithm:
    1. Compute heading error, normalized to [-pi, pi]
    2. Feed the error through the turn PID -> angular correction omega
    3. Convert omega to symmetric differential wheel voltages:
           left  = -omega * track / 2
           right = +omega * track / 2
    4. Finish when the error stays inside tolerance for the settle time, or
       when the timeout expires.

The command is a tickable state machine: `start()` arms it and every `step()`
advances it by one control period. `run()` wraps that in an asyncio loop for
callers that want to block until the turn is over.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from .config import MotionConfig
from .hal import DriveMotors
from .model import differential_voltages
from .odometry import PoseEstimator
from .pid import PIDController
from .pose import normalize_angle
from .settle import MotionStatus, SettleTimer


def configure_heading_pid(
    pid: PIDController,
    config: MotionConfig,
    anti_windup: bool = True,
    d_filter: bool = True,
) -> None:
    """Apply the turn limits (anti-windup, derivative filter, output clamp) to a PID."""
    pid.set_integral_limit(config.turn_integral_limit if anti_windup else 0.0)
    pid.set_d_filter(config.turn_d_filter if d_filter else 0.0)
    pid.set_output_limit(config.turn_output_limit)


class TurnController:
    """In-place turn to an absolute heading.

    Attributes:
        pid: Turn PID (reset at the start of every turn).
        status: Current MotionStatus.
        target: Target heading of the active turn (radians).
        last_error: Most recent normalized heading error (radians).
    """

    def __init__(
        self,
        estimator: PoseEstimator,
        motors: DriveMotors,
        config: Optional[MotionConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        anti_windup: bool = True,
        d_filter: bool = True,
    ):
        self.cfg = config if config is not None else MotionConfig()
        self.estimator = estimator
        self.motors = motors
        self.clock = clock
        self.anti_windup = anti_windup
        self.d_filter = d_filter

        self.pid = PIDController(self.cfg.turn_kp, self.cfg.turn_ki, self.cfg.turn_kd, clock=clock)
        self.settle = SettleTimer(self.cfg.turn_settle_rad, self.cfg.turn_settle_time)

        self.status = MotionStatus.IDLE
        self.target = 0.0
        self.start_time = 0.0
        self.last_error = 0.0

    @property
    def finished(self) -> bool:
        return self.status.finished

    def pid_output(self, error: float) -> float:
        """Angular correction for a heading error.

        The PID sees setpoint 0 and process variable -error, so its internal
        error equals the heading error.
        """
        return self.pid.calculate(0.0, -error)

    def start(self, target_heading: float) -> None:
        """Arm a new turn toward `target_heading` (radians)."""
        configure_heading_pid(self.pid, self.cfg, self.anti_windup, self.d_filter)
        self.pid.reset()
        self.settle.reset()
        self.target = target_heading
        self.start_time = self.clock()
        self.last_error = 0.0
        self.status = MotionStatus.RUNNING
        logging.info(f"Turn to heading {target_heading:.3f} rad")

    def step(self) -> MotionStatus:
        """Advance the turn by one control period."""
        if self.status in (MotionStatus.IDLE, MotionStatus.DONE, MotionStatus.TIMED_OUT):
            return self.status

        now = self.clock()
        if now - self.start_time > self.cfg.turn_timeout:
            return self._finish(MotionStatus.TIMED_OUT)

        pose = self.estimator.get_pose()
        error = normalize_angle(self.target - pose.theta)
        self.last_error = error

        if self.settle.update(error, now):
            return self._finish(MotionStatus.DONE)
        self.status = MotionStatus.SETTLING if self.settle.settling else MotionStatus.RUNNING

        omega = self.pid_output(error)
        left, right = differential_voltages(0.0, omega, self.cfg.wheel_track)
        self.motors.set_voltages(left, right)
        return self.status

    def _finish(self, status: MotionStatus) -> MotionStatus:
        self.motors.stop()
        self.status = status
        elapsed = self.clock() - self.start_time
        if status is MotionStatus.DONE:
            logging.info(f"Turn settled in {elapsed:.2f}s (error {self.last_error:.4f} rad)")
        else:
            logging.warning(
                f"Turn timed out after {elapsed:.2f}s (error {self.last_error:.4f} rad)"
            )
        return status

    async def run(
        self,
        target_heading: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> MotionStatus:
        """Turn to `target_heading`, returning once settled or timed out."""
        self.start(target_heading)
        try:
            while not self.step().finished:
                await sleep(self.cfg.loop_period)
        finally:
            if not self.finished:
                self.motors.stop()
        return self.status
