"""
Differential drive voltage mixing.

This module converts a desired forward command and angular correction into
the left/right voltage pair sent to the drive motors.
"""

from .config import WHEEL_TRACK


def differential_voltages(
    linear: float, angular: float, track: float = WHEEL_TRACK
) -> tuple[float, float]:
    """
    Mix a linear command and an angular correction into wheel voltages.

    For a differential drive robot:
        left  = v - (W/2) * omega
        right = v + (W/2) * omega

    where W is the track width (distance between left and right wheels).

    Args:
        linear: Forward command (positive drives forward)
        angular: Angular correction (positive turns counter-clockwise)
        track: Track width in meters. Default: WHEEL_TRACK

    Returns:
        tuple[float, float]: (left, right). Not clamped; the motor
                            collaborator enforces its own voltage range.

    Example:
        >>> differential_voltages(0.0, 2.0, track=0.4)
        (-0.4, 0.4)
    """
    half_track = track / 2.0
    return linear - half_track * angular, linear + half_track * angular
