"""Configuration parameters for the robot navigation core.

This module centralizes all configuration parameters including:
- Physical robot parameters (track width, tracking-wheel geometry)
- Turn and drive controller gains
- Motion limits and loop timing
- Fiducial (AprilTag) localization parameters
- Visualization and terminal colors

All parameters are documented with their purpose, valid ranges, and tuning rationale.
Components read them through the frozen `MotionConfig` dataclass at the bottom
of this module; build variants with `dataclasses.replace`.
"""

import math
from dataclasses import dataclass, field
from typing import Dict

from .pose import FieldTag

# ============================================================================
# Physical Robot Parameters
# ============================================================================

WHEEL_TRACK = 0.381
"""Center-to-center distance between left and right drive wheels (meters).
Measured on the robot (~15 inches)."""

MAX_MOTOR_VOLTAGE = 12.0
"""Symmetric voltage limit of the drive motors (volts).
Enforced by the motor collaborator; also used as the PID output clamp."""

# Tracking wheel mounting
FORWARD_WHEEL_OFFSET = -0.05
"""Arc offset of the forward tracking wheel (meters per radian).

Distance the forward wheel rolls per radian of in-place rotation. Equals the
negated lateral mounting position of the wheel: a wheel mounted 5 cm to the
left of the rotation center rolls backwards while turning CCW.
"""

LATERAL_WHEEL_OFFSET = -0.10
"""Arc offset of the lateral tracking wheel (meters per radian).

Distance the lateral wheel rolls per radian of in-place rotation. Equals the
forward mounting position of the wheel: mounted 10 cm behind the rotation
center.
"""

HEADING_FUSION = "delta"
"""Heading fusion strategy for odometry.

Only "delta" is supported: heading changes come from differences of the
inertial sensor's unbounded cumulative rotation, which has no 0/2pi wrap
discontinuity.
"""


# ============================================================================
# Turn Controller Parameters (PID)
# ============================================================================

TURN_KP = 4.0
"""Proportional gain for turning (volts per radian of heading error).

Tuning rationale:
- Set I=0, D=0 and raise P until the robot oscillates around the target
- 4.0 settles a 90 degree turn in about one second on the simulated drivetrain
- 2.0 was too soft to finish a 90 degree turn inside TURN_TIMEOUT
"""

TURN_KI = 0.0
"""Integral gain for turning. Only add I if there is persistent steady-state error."""

TURN_KD = 0.15
"""Derivative gain for turning. Dampens overshoot at the end of the turn."""

TURN_INTEGRAL_LIMIT = 1.0
"""Anti-windup clamp on the accumulated heading error integral (radian-seconds).
0 disables the clamp."""

TURN_D_FILTER = 0.6
"""Derivative EMA coefficient (range: [0, 1)).

filtered = alpha * filtered_prev + (1 - alpha) * raw
0 disables filtering; 0.5-0.8 is typical. Suppresses the gyro-noise spikes
that a 100 Hz finite difference amplifies.
"""

TURN_OUTPUT_LIMIT = MAX_MOTOR_VOLTAGE
"""Symmetric clamp on the turn PID output (volts). 0 disables the clamp."""

TURN_SETTLE_RAD = 0.035
"""Heading tolerance for a settled turn (radians, ~2 degrees)."""

TURN_SETTLE_TIME = 0.2
"""Time the heading error must stay inside tolerance to finish (seconds)."""

TURN_TIMEOUT = 2.0
"""Give up on a turn after this long (seconds)."""


# ============================================================================
# Drive Controller Parameters (Boomerang)
# ============================================================================

DRIVE_KP = 3.0
"""Proportional gain of the heading PID while driving to a pose (volts per radian).

Tuning rationale:
- Softer than TURN_KP: the carrot bearing moves every tick, so a stiff heading
  loop chases it and wobbles
"""

DRIVE_KI = 0.0
"""Integral gain of the heading PID while driving."""

DRIVE_KD = 0.1
"""Derivative gain of the heading PID while driving."""

DRIVE_SETTLE_M = 0.02
"""Position tolerance for a settled drive (meters, 2 cm)."""

DRIVE_SETTLE_TIME = 0.2
"""Time the position error must stay inside tolerance to finish (seconds)."""

DRIVE_TIMEOUT = 5.0
"""Give up on a drive after this long (seconds)."""

DRIVE_APPROACH_M = 0.10
"""Radius around the target inside which the drive backs up instead of turning
around when the target ends up behind the robot (meters).

At the end of a move the robot can coast a little past the target; re-facing
the carrot there would spin it in place.
"""

BOOMERANG_LEAD = 0.6
"""Carrot lead factor (range: [0, 1]).

carrot = target - lead * dist * (cos(theta_target), sin(theta_target))

0 aims straight at the target and ignores the final heading.
Larger values produce wider arcs that arrive closer to the target heading.
"""


# ============================================================================
# Motion Profile Parameters
# ============================================================================

MAX_VELOCITY = 0.8
"""Top cruise speed (m/s). Measure by timing a 2 m run; start slower."""

MAX_ACCELERATION = 1.5
"""Acceleration and deceleration limit (m/s^2). Start conservative."""


# ============================================================================
# Loop Timing
# ============================================================================

LOOP_PERIOD = 0.01
"""Motion command control loop period (seconds, 100 Hz)."""

ODOMETRY_PERIOD = 0.01
"""Pose estimator update period (seconds, 100 Hz)."""

VISION_PERIOD = 0.05
"""Fiducial localizer update period (seconds, 20 Hz)."""


# ============================================================================
# Fiducial Localization Parameters (AprilTag)
# ============================================================================

APRILTAG_SIZE = 0.1016
"""Printed edge length of a field AprilTag (meters)."""

VISION_FOCAL_LENGTH = 280.0
"""Camera focal length (pixels). 320 px wide image with ~60 degree HFOV."""

VISION_IMAGE_WIDTH = 320
"""Camera image width (pixels)."""

VISION_CAMERA_ANGLE = 0.0
"""Camera mounting yaw relative to the robot's forward axis (radians)."""

VISION_CAMERA_OFFSET_X = 0.15
"""Camera forward offset from the rotation center (meters)."""

VISION_CAMERA_OFFSET_Y = 0.0
"""Camera leftward offset from the rotation center (meters)."""

MIN_TAG_PIXELS = 8.0
"""Detections smaller than this (pixels) are skipped as unreliable."""

MAX_VISION_RANGE = 3.0
"""Maximum usable tag range (meters). Confidence decays linearly to 0 here."""

VISION_SIZE_SATURATION_PX = 100.0
"""Pixel size at which the size confidence factor saturates at 1.0.

Sensor and optics specific: roughly the apparent size of a tag at close range.
"""

VISION_CORRECTION_ALPHA = 0.4
"""Base complementary-filter gain (range: [0, 1]).

alpha = VISION_CORRECTION_ALPHA * confidence, so one frame moves the pose a
fraction of the way toward the vision estimate.
"""

VISION_MAX_CORRECTION_ALPHA = 0.3
"""Upper bound on alpha for any single frame."""

VISION_MIN_CONFIDENCE = 0.1
"""Estimates below this confidence are ignored."""

VISION_MAX_CORRECTION_M = 0.30
"""Corrections that would move the pose further than this (meters) are
rejected as misdetections."""


# ============================================================================
# Field Map
# ============================================================================

FIELD_SIZE = 3.6576
"""Field edge length (meters, 12 feet). Origin at the lower-left corner."""

FIELD_TAGS = (
    FieldTag(1, 0.0, 1.22, 0.15, 0.0),
    FieldTag(2, FIELD_SIZE, 1.22, 0.15, math.pi),
    FieldTag(3, 0.0, 2.44, 0.15, 0.0),
    FieldTag(4, FIELD_SIZE, 2.44, 0.15, math.pi),
    FieldTag(5, 0.91, 0.0, 0.15, math.pi / 2),
    FieldTag(6, 2.74, 0.0, 0.15, math.pi / 2),
    FieldTag(7, 0.91, FIELD_SIZE, 0.15, 3 * math.pi / 2),
    FieldTag(8, 2.74, FIELD_SIZE, 0.15, 3 * math.pi / 2),
)
"""Known AprilTag placements on the perimeter walls.

facing is the tag's surface normal: tags on the left wall face +x (0),
tags on the bottom wall face +y (pi/2).
"""


# ============================================================================
# Visualization Colors
# ============================================================================

PLOT_ORANGE = "#f74823"
"""Primary color - estimated trajectory."""

PLOT_BLUE = "#2374f7"
"""Secondary color - ground-truth trajectory."""

PLOT_TAUPE = "#686a5f"
"""Neutral color for grids, walls, and field tags."""

PLOT_YELLOW_ORANGE = "#ffa726"
"""Accent color for targets and vision corrections."""

# Terminal color codes (ANSI escape sequences)
TERM_ORANGE = "\033[38;2;247;72;35m"
"""Terminal color code for orange (RGB: 247, 72, 35)."""

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for blue (RGB: 35, 116, 247)."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""


def default_field_map() -> Dict[int, FieldTag]:
    """Return the default field map keyed by tag id."""
    return {tag.id: tag for tag in FIELD_TAGS}


@dataclass(frozen=True)
class MotionConfig:
    """Read-only bundle of every tunable the navigation core uses.

    Defaults come from the module constants above.
    """

    wheel_track: float = WHEEL_TRACK

    # Turn PID
    turn_kp: float = TURN_KP
    turn_ki: float = TURN_KI
    turn_kd: float = TURN_KD
    turn_integral_limit: float = TURN_INTEGRAL_LIMIT
    turn_d_filter: float = TURN_D_FILTER
    turn_output_limit: float = TURN_OUTPUT_LIMIT
    turn_settle_rad: float = TURN_SETTLE_RAD
    turn_settle_time: float = TURN_SETTLE_TIME
    turn_timeout: float = TURN_TIMEOUT

    # Drive
    drive_kp: float = DRIVE_KP
    drive_ki: float = DRIVE_KI
    drive_kd: float = DRIVE_KD
    drive_settle_m: float = DRIVE_SETTLE_M
    drive_approach_m: float = DRIVE_APPROACH_M
    drive_settle_time: float = DRIVE_SETTLE_TIME
    drive_timeout: float = DRIVE_TIMEOUT
    boomerang_lead: float = BOOMERANG_LEAD
    max_velocity: float = MAX_VELOCITY
    max_acceleration: float = MAX_ACCELERATION

    # Timing
    loop_period: float = LOOP_PERIOD
    odometry_period: float = ODOMETRY_PERIOD
    vision_period: float = VISION_PERIOD

    # Odometry
    forward_wheel_offset: float = FORWARD_WHEEL_OFFSET
    lateral_wheel_offset: float = LATERAL_WHEEL_OFFSET
    heading_fusion: str = HEADING_FUSION

    # Vision
    tag_size: float = APRILTAG_SIZE
    focal_length: float = VISION_FOCAL_LENGTH
    image_width: int = VISION_IMAGE_WIDTH
    camera_angle: float = VISION_CAMERA_ANGLE
    camera_offset_x: float = VISION_CAMERA_OFFSET_X
    camera_offset_y: float = VISION_CAMERA_OFFSET_Y
    min_tag_pixels: float = MIN_TAG_PIXELS
    max_vision_range: float = MAX_VISION_RANGE
    size_saturation_px: float = VISION_SIZE_SATURATION_PX
    vision_alpha: float = VISION_CORRECTION_ALPHA
    vision_max_alpha: float = VISION_MAX_CORRECTION_ALPHA
    vision_min_confidence: float = VISION_MIN_CONFIDENCE
    vision_max_correction: float = VISION_MAX_CORRECTION_M

    field_tags: tuple = field(default=FIELD_TAGS)

    def __post_init__(self) -> None:
        for name in ("loop_period", "odometry_period", "vision_period"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if not 0.0 <= self.boomerang_lead <= 1.0:
            raise ValueError(f"boomerang_lead must be in [0, 1], got {self.boomerang_lead}")
        if self.drive_approach_m < self.drive_settle_m:
            raise ValueError(
                f"drive_approach_m ({self.drive_approach_m}) must be >= drive_settle_m ({self.drive_settle_m})"
            )
        if self.max_acceleration <= 0 or self.max_velocity <= 0:
            raise ValueError("max_velocity and max_acceleration must be positive")
