#!/usr/bin/env python3
"""
Demo autonomous routine on the simulated robot.

Runs the navigation core against `SimulatedRobot` either in real time (the
same asyncio tasks the robot runs: estimator, localizer, motion commands) or
stepped on a virtual clock for a fast deterministic run. Optionally plots
true vs estimated trajectory afterwards.
"""

import argparse
import asyncio
import logging
import math
import signal
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from .boomerang import PoseController
from .chassis import Chassis
from .component_modes import ComponentMode, parse_component_flags
from .config import TERM_BLUE, TERM_ORANGE, TERM_RESET, MotionConfig
from .odometry import PoseEstimator
from .pose import Pose
from .settle import MotionStatus
from .simulation import (
    SensorNoise,
    SimClock,
    SimulatedRobot,
    SimulationLog,
    SteppedSimulation,
    TelemetryRecorder,
)
from .turn import TurnController
from .vision import FiducialLocalizer

DEMO_START = Pose(0.6, 1.22, math.pi)
"""Start pose: facing tag 1 on the left wall."""

DEMO_ROUTINE: List[Tuple[str, object]] = [
    ("drive", (Pose(1.4, 1.0, math.pi), True)),
    ("turn", 0.0),
    ("drive", (Pose(2.6, 1.6, 0.0), False)),
    ("turn", math.pi / 2),
    ("drive", (Pose(2.6, 2.8, math.pi / 2), False)),
]
"""Sequence of ('drive', (target, reverse)) and ('turn', heading) steps."""

DEMO_NOISE = SensorNoise(wheel_std=2e-4, imu_std=1e-4, imu_drift=0.002, pixel_std=0.3, seed=7)
"""Sensor noise for the demo run."""


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.INFO:
            return record.getMessage()
        return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


def report(robot: SimulatedRobot, estimated: Pose) -> None:
    """Log the final true vs estimated pose."""
    true = robot.pose
    error_mm = math.hypot(true.x - estimated.x, true.y - estimated.y) * 1000.0
    logging.info(
        f"{TERM_BLUE}\033[1m→ True: ({true.x:.3f}, {true.y:.3f})  "
        f"Est: ({estimated.x:.3f}, {estimated.y:.3f})  Error: {error_mm:.1f}mm{TERM_RESET}"
    )


async def autonomous(chassis: Chassis) -> None:
    """Run the demo routine on a started chassis."""
    for kind, arg in DEMO_ROUTINE:
        if kind == "turn":
            status = await chassis.turn_to_heading(arg)
        else:
            target, reverse = arg
            status = await chassis.drive_to_pose(target, reverse)
        if status is MotionStatus.TIMED_OUT:
            logging.warning(f"{TERM_ORANGE}Step {kind} timed out, continuing{TERM_RESET}")


async def main(
    component_mode: Optional[ComponentMode] = None,
    config: Optional[MotionConfig] = None,
) -> SimulationLog:
    """Run the demo routine in real time.

    Creates the simulated robot and a Chassis on top of it, sets up signal
    handlers for graceful shutdown, and runs the routine.

    Args:
        component_mode: Feature switches for the run.
        config: Motion configuration. If None, uses MotionConfig().

    Returns:
        Recorded telemetry of the run.
    """
    cfg = config if config is not None else MotionConfig()
    robot = SimulatedRobot(cfg, start=DEMO_START, noise=DEMO_NOISE)
    chassis = Chassis(
        robot.wheels, robot.imu, robot.motors, robot.camera, cfg, component_mode=component_mode
    )
    chassis.set_pose(DEMO_START)
    recorder = TelemetryRecorder(robot, chassis.estimator, chassis.localizer)
    recorder.targets = [arg[0] for kind, arg in DEMO_ROUTINE if kind == "drive"]

    loop = asyncio.get_running_loop()
    plant = asyncio.create_task(robot.run_realtime())
    telemetry = asyncio.create_task(recorder.run(loop.time, cfg.vision_period))

    async with chassis:
        routine = asyncio.create_task(autonomous(chassis))

        def signal_handler() -> None:
            """Handle shutdown signals (SIGINT, SIGTERM)."""
            logging.info("\nShutdown signal received...")
            routine.cancel()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        try:
            await routine
        except asyncio.CancelledError:
            logging.info("Routine cancelled")
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)

    for task in (plant, telemetry):
        task.cancel()
    await asyncio.gather(plant, telemetry, return_exceptions=True)

    report(robot, chassis.get_pose())
    return recorder.to_log()


def run_stepped(
    component_mode: Optional[ComponentMode] = None,
    config: Optional[MotionConfig] = None,
) -> SimulationLog:
    """Run the demo routine on a virtual clock (deterministic, faster than real time)."""
    cfg = config if config is not None else MotionConfig()
    mode = component_mode if component_mode is not None else ComponentMode()
    logging.info(f"{TERM_BLUE}Component Configuration: {mode}{TERM_RESET}")

    robot = SimulatedRobot(cfg, start=DEMO_START, noise=DEMO_NOISE)
    clock = SimClock()
    estimator = PoseEstimator(robot.wheels, robot.imu, cfg, arc_compensation=mode.use_arc_compensation)
    estimator.set_pose(DEMO_START)
    localizer = FiducialLocalizer(estimator, robot.camera, cfg) if mode.use_vision else None
    sim = SteppedSimulation(robot, estimator, clock, localizer)

    turn = TurnController(
        estimator, robot.motors, cfg, clock=clock,
        anti_windup=mode.use_anti_windup, d_filter=mode.use_d_filter,
    )
    drive = PoseController(
        estimator, robot.motors, cfg, clock=clock,
        anti_windup=mode.use_anti_windup, d_filter=mode.use_d_filter,
        slew_limit=mode.use_slew_limit,
    )

    for kind, arg in DEMO_ROUTINE:
        if kind == "turn":
            turn.start(arg)
            sim.run_command(turn)
        else:
            target, reverse = arg
            drive.start(target, reverse)
            sim.run_command(drive)

    sim.run_for(0.5)
    report(robot, estimator.get_pose())
    return sim.to_log()


def cli(argv: Optional[List[str]] = None) -> None:
    """Command-line entry point."""
    # Parse component isolation flags first
    component_mode, remaining_args = parse_component_flags(argv)

    parser = argparse.ArgumentParser(description="Navigation core demo on a simulated robot")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    parser.add_argument(
        "--stepped", action="store_true", help="Run on a virtual clock instead of real time"
    )
    parser.add_argument("--plot", action="store_true", help="Plot the trajectory afterwards")
    parser.add_argument("--save", type=Path, default=None, help="Save the plot to this path")
    args = parser.parse_args(remaining_args)

    setup_logging(args.verbose)

    try:
        if args.stepped:
            log = run_stepped(component_mode)
        else:
            log = asyncio.run(main(component_mode=component_mode))
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)

    logging.info(f"Final localization error: {log.final_error() * 1000.0:.1f}mm")

    if args.plot or args.save:
        import matplotlib.pyplot as plt

        from .visualization import plot_trajectory

        plot_trajectory(log, title=f"Demo Routine ({component_mode})", save_path=args.save)
        if args.plot:
            plt.show()


if __name__ == "__main__":
    cli()
