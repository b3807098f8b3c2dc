"""Hardware collaborator interfaces.

The navigation core never touches motor or sensor registers. It talks to the
robot through these protocols; `robot_nav.simulation` provides simulated
implementations and a real robot supplies thin wrappers over its SDK.
"""

from typing import List, Protocol

from .pose import TagDetection


class TrackingWheels(Protocol):
    """Two perpendicular passive tracking wheels.

    Distances are cumulative since power-up (or the last hardware reset), in
    meters, forward/left positive.
    """

    def forward_distance(self) -> float: ...

    def lateral_distance(self) -> float: ...

    def is_connected(self) -> bool: ...


class InertialSensor(Protocol):
    """Inertial yaw source."""

    def rotation(self) -> float:
        """Unbounded cumulative rotation (radians, CCW positive)."""
        ...

    def heading(self) -> float:
        """Wrapped heading in [0, 2pi) (radians)."""
        ...

    def is_connected(self) -> bool: ...

    def calibrate(self) -> None:
        """Block until the sensor has finished calibrating."""
        ...


class DriveMotors(Protocol):
    """Left/right drive motor groups."""

    def set_voltages(self, left: float, right: float) -> None:
        """Command voltages; the implementation clamps to its safe range."""
        ...

    def stop(self) -> None:
        """Brake both sides."""
        ...


class VisionSensor(Protocol):
    """Fiducial-marker detector feed."""

    def snapshot(self) -> List[TagDetection]:
        """Capture one frame and return the markers found in it."""
        ...
