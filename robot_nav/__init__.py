"""Robot Navigation Core - Localization and Motion Control for Differential-Drive Robots

Fuses tracking-wheel odometry, an inertial sensor, and AprilTag sightings into
a continuously updated field pose, and drives the robot to headings and poses
with closed-loop controllers.

## Architecture Overview

The system runs as concurrent asyncio activities sharing one pose:

### Layer 1: Odometry (odometry.py)
Integrates two perpendicular passive tracking wheels and the IMU's cumulative rotation.
- Arc compensation for off-center wheels
- Midpoint integration into the field frame
- Runs at 100 Hz; owns the pose behind a lock, hands out immutable snapshots

### Layer 2: Fiducial Localization (vision.py)
Back-solves the robot position from AprilTags at known field positions.
- Pinhole range and bearing from each detection
- Confidence-weighted complementary filter on x/y only
- Outlier rejection on large jumps
- Runs at 20 Hz

### Layer 3: Motion Commands (turn.py, boomerang.py)
Tickable state machines that block the caller until settled or timed out.
- Turn-to-heading: PID on normalized heading error
- Drive-to-pose: Boomerang carrot steering, trapezoidal speed envelope,
  cosine throttle, slew limiting, optional reverse

### Layer 4: Differential Drive (model.py)
Converts (linear, angular) commands to left/right wheel voltages.

## Modules

### Core
- `config.py` - Centralized configuration parameters with documentation
- `pose.py` - Pose, tag, and detection value types
- `pid.py` - PID controller with anti-windup and derivative filter
- `motion_profile.py` - Trapezoidal speed envelope
- `settle.py` - Command status and settle dwell
- `hal.py` - Hardware collaborator interfaces
- `chassis.py` - Composition root and asyncio task management

### Simulation & Tools
- `simulation.py` - Simulated drivetrain, sensors, and camera
- `component_modes.py` - Feature isolation switches
- `runner.py` - Demo routine and command-line interface
- `visualization.py` - Trajectory and localization error plots

## Quick Start

```python
import asyncio
from robot_nav.runner import main

asyncio.run(main())
```

Or use the command-line interface:
```bash
python -m robot_nav --plot
```

## Author

Nishalan Govender

## Version

0.1.0 - Initial implementation
"""

__version__ = "0.1.0"
__author__ = "Nishalan Govender"

# Export key classes for convenience
from .boomerang import PoseController
from .chassis import Chassis, MotionBusyError
from .config import MotionConfig
from .motion_profile import MotionProfile
from .odometry import PoseEstimator
from .pid import PIDController
from .pose import FieldTag, Pose, TagDetection, VisionEstimate
from .settle import MotionStatus
from .turn import TurnController
from .vision import FiducialLocalizer

__all__ = [
    "Chassis",
    "MotionBusyError",
    "MotionConfig",
    "MotionProfile",
    "MotionStatus",
    "PIDController",
    "Pose",
    "PoseController",
    "PoseEstimator",
    "FiducialLocalizer",
    "FieldTag",
    "TagDetection",
    "TurnController",
    "VisionEstimate",
]
