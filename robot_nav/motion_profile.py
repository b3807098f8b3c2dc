"""Trapezoidal velocity planner.

At each moment the target velocity is the minimum of three constraints:
    1. Acceleration limit: v = a * t            (can't accelerate too fast)
    2. Deceleration limit: v = sqrt(2 * a * d)  (must be able to stop in time)
    3. Max velocity cap:   v = v_max            (can't exceed top speed)

Together they produce the trapezoidal shape without explicit phase state.
"""

import math


class MotionProfile:
    """Stateless trapezoidal velocity envelope."""

    def __init__(self, max_velocity: float, max_acceleration: float):
        if max_velocity <= 0 or max_acceleration <= 0:
            raise ValueError(
                f"max_velocity and max_acceleration must be positive, "
                f"got {max_velocity}, {max_acceleration}"
            )
        self.max_velocity = max_velocity
        self.max_acceleration = max_acceleration

    def get_target_velocity(self, time_elapsed: float, distance_to_go: float) -> float:
        """Target speed for the current point of a move.

        Args:
            time_elapsed: Time since the move started (seconds).
            distance_to_go: Remaining distance (meters); sign is ignored.

        Returns:
            Target speed (m/s), always in [0, max_velocity].
        """
        accel_v = self.max_acceleration * max(time_elapsed, 0.0)
        decel_v = math.sqrt(2.0 * self.max_acceleration * abs(distance_to_go))
        return min(self.max_velocity, accel_v, decel_v)
