"""Chassis: composition root for the navigation core.

Wires the pose estimator, fiducial localizer, and both motion commands to the
hardware collaborators and runs them on asyncio:

- Background task 1: pose estimator tick at ODOMETRY_PERIOD (100 Hz)
- Background task 2: fiducial localizer tick at VISION_PERIOD (20 Hz)
- Foreground: at most one motion command, awaited by the caller

Example:
    >>> async def autonomous(chassis):
    ...     async with chassis:
    ...         chassis.set_pose(Pose(0.5, 0.5, 0.0))
    ...         await chassis.drive_to_pose(Pose(1.5, 1.0, 0.0))
    ...         await chassis.turn_to_heading(math.pi / 2)
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional

from .boomerang import PoseController
from .component_modes import ComponentMode
from .config import TERM_BLUE, TERM_RESET, MotionConfig
from .hal import DriveMotors, InertialSensor, TrackingWheels, VisionSensor
from .odometry import PoseEstimator
from .pose import Pose, VisionEstimate
from .settle import MotionStatus
from .turn import TurnController
from .vision import FiducialLocalizer


class MotionBusyError(RuntimeError):
    """Raised when a motion command is started while another is still active."""


class Chassis:
    """Robot drivetrain with background localization and blocking motion commands.

    Attributes:
        config: Motion configuration shared by every component.
        component_mode: Which optional features are active.
        estimator: Pose estimator (owner of the shared pose).
        localizer: Fiducial localizer, or None when vision is disabled.
        turn_controller: Turn-to-heading command.
        pose_controller: Boomerang drive-to-pose command.
    """

    def __init__(
        self,
        wheels: TrackingWheels,
        imu: InertialSensor,
        motors: DriveMotors,
        vision_sensor: Optional[VisionSensor] = None,
        config: Optional[MotionConfig] = None,
        component_mode: Optional[ComponentMode] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the chassis.

        Args:
            wheels: Tracking wheel collaborator.
            imu: Inertial sensor collaborator.
            motors: Drive motor collaborator.
            vision_sensor: AprilTag detection feed. None disables vision.
            config: Motion configuration. If None, uses MotionConfig().
            component_mode: Feature switches. If None, everything enabled.
            clock: Time source in seconds. Default: time.monotonic
            sleep: Awaitable delay on the same time base as `clock`; every
                periodic task and motion command waits through it. Pass a
                virtual-clock sleep together with a virtual clock.
                Default: asyncio.sleep
        """
        self.config = config if config is not None else MotionConfig()
        if component_mode is None:
            component_mode = ComponentMode()
        self.component_mode = component_mode
        self.imu = imu
        self.motors = motors
        self.clock = clock
        self.sleep = sleep

        logging.info(f"{TERM_BLUE}Component Configuration: {component_mode}{TERM_RESET}")

        self.estimator = PoseEstimator(
            wheels, imu, self.config, arc_compensation=component_mode.use_arc_compensation
        )
        self.localizer: Optional[FiducialLocalizer] = None
        if component_mode.use_vision and vision_sensor is not None:
            self.localizer = FiducialLocalizer(self.estimator, vision_sensor, self.config)

        self.turn_controller = TurnController(
            self.estimator,
            motors,
            self.config,
            clock=clock,
            anti_windup=component_mode.use_anti_windup,
            d_filter=component_mode.use_d_filter,
        )
        self.pose_controller = PoseController(
            self.estimator,
            motors,
            self.config,
            clock=clock,
            anti_windup=component_mode.use_anti_windup,
            d_filter=component_mode.use_d_filter,
            slew_limit=component_mode.use_slew_limit,
        )

        self._tasks: List[asyncio.Task] = []
        self._motion_active = False

    # ------------------------------------------------------------------
    # Pose access
    # ------------------------------------------------------------------

    def get_pose(self) -> Pose:
        return self.estimator.get_pose()

    def set_pose(self, pose: Pose) -> None:
        """Establish a known pose and re-baseline sensors (start of a run)."""
        self.estimator.set_pose(pose)

    @property
    def vision_estimate(self) -> VisionEstimate:
        if self.localizer is None:
            return VisionEstimate.invalid()
        return self.localizer.last_estimate

    # ------------------------------------------------------------------
    # Background activities
    # ------------------------------------------------------------------

    async def _run_periodic(self, name: str, tick: Callable[[], Any], period: float) -> None:
        """Call `tick` every `period` seconds for the lifetime of the chassis."""
        next_time = self.clock()
        while True:
            try:
                tick()
            except Exception as e:
                logging.error(f"{name} tick failed: {e}", exc_info=True)
            next_time += period
            delay = next_time - self.clock()
            if delay < 0:
                # Overran; resynchronize instead of bursting to catch up
                next_time = self.clock()
                delay = 0.0
            await self.sleep(delay)

    async def start(self) -> None:
        """Calibrate the IMU and launch the background tasks."""
        if self._tasks:
            return
        # Calibration blocks; keep it off the event loop
        await asyncio.to_thread(self.imu.calibrate)
        self._tasks.append(
            asyncio.create_task(
                self._run_periodic("odometry", self.estimator.update, self.config.odometry_period)
            )
        )
        if self.localizer is not None:
            self._tasks.append(
                asyncio.create_task(
                    self._run_periodic("vision", self.localizer.step, self.config.vision_period)
                )
            )
        logging.info(f"{TERM_BLUE}✓ Localization running{TERM_RESET}")

    async def stop(self) -> None:
        """Cancel background tasks and brake the motors."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self.motors.stop()

    async def __aenter__(self) -> "Chassis":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Motion commands
    # ------------------------------------------------------------------

    def _acquire_motion(self) -> None:
        if self._motion_active:
            raise MotionBusyError("A motion command is already running")
        self._motion_active = True

    async def turn_to_heading(self, target_heading: float) -> MotionStatus:
        """Turn in place to `target_heading` (radians); blocks until settled or timed out."""
        self._acquire_motion()
        try:
            return await self.turn_controller.run(target_heading, sleep=self.sleep)
        finally:
            self._motion_active = False

    async def drive_to_pose(self, target: Pose, reverse: bool = False) -> MotionStatus:
        """Drive a curved path to `target`; blocks until settled or timed out."""
        self._acquire_motion()
        try:
            return await self.pose_controller.run(target, reverse, sleep=self.sleep)
        finally:
            self._motion_active = False
