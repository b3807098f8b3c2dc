"""Pose and sensor-frame data types shared across the navigation core.

Coordinate system:
    - x: forward at the start of the run (meters)
    - y: left (meters)
    - theta: counter-clockwise from +x (radians), unbounded
"""

import math
from dataclasses import dataclass


def normalize_angle(angle: float) -> float:
    """Wrap an angle to [-pi, pi] so turns always take the shorter way.

    Example:
        >>> normalize_angle(math.radians(370))  # doctest: +ELLIPSIS
        0.1745...
    """
    return math.atan2(math.sin(angle), math.cos(angle))


@dataclass(frozen=True)
class Pose:
    """Robot pose in the field frame (immutable snapshot)."""

    x: float = 0.0
    y: float = 0.0
    theta: float = 0.0

    def distance_to(self, other: "Pose") -> float:
        """Planar distance to another pose (meters)."""
        return math.hypot(other.x - self.x, other.y - self.y)


@dataclass(frozen=True)
class FieldTag:
    """Known placement of a fiducial marker on the field.

    Attributes:
        id: Marker id.
        x, y: Marker center in the field frame (meters).
        z: Height above the floor (meters).
        facing: Direction of the marker's surface normal (radians).
    """

    id: int
    x: float
    y: float
    z: float
    facing: float


@dataclass(frozen=True)
class TagDetection:
    """One marker found in one camera frame, in image coordinates (pixels)."""

    id: int
    center_x: float
    center_y: float
    width: float
    height: float
    angle: float = 0.0
    valid: bool = True


@dataclass(frozen=True)
class VisionEstimate:
    """Best absolute position candidate from one camera frame."""

    x: float = 0.0
    y: float = 0.0
    heading: float = 0.0
    confidence: float = 0.0
    valid: bool = False

    @classmethod
    def invalid(cls) -> "VisionEstimate":
        return cls()
