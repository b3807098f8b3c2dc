"""General-purpose PID controller.

This module provides the feedback unit used by both motion commands:

    output = Kp * error + Ki * integral(error) + Kd * d(error)/dt

with three optional enhancements, all disabled when set to 0:
- Anti-windup: symmetric clamp on the accumulated integral
- Derivative EMA low-pass filter
- Symmetric output clamp
"""

import time
from typing import Callable, Dict

MIN_DT = 0.01
"""dt used when the measured sample interval is zero or negative (seconds)."""


class PIDController:
    """PID controller with anti-windup, derivative filtering, and output clamping.

    Uses real elapsed time between calls for the I and D terms. Call `reset()`
    before every independent motion so integral and derivative history from a
    previous command does not leak into the next one.

    Attributes:
        kp: Proportional gain.
        ki: Integral gain.
        kd: Derivative gain.
        integral_limit: Clamp on |integral| (0 = disabled).
        d_filter: Derivative EMA coefficient in [0, 1) (0 = no filter).
        output_limit: Clamp on |output| (0 = disabled).
    """

    def __init__(
        self,
        kp: float,
        ki: float = 0.0,
        kd: float = 0.0,
        integral_limit: float = 0.0,
        d_filter: float = 0.0,
        output_limit: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the controller.

        Args:
            kp: Proportional gain.
            ki: Integral gain.
            kd: Derivative gain.
            integral_limit: Anti-windup clamp on the integral. Default: 0 (off)
            d_filter: Derivative smoothing coefficient, range [0, 1). Default: 0 (off)
            output_limit: Symmetric output clamp. Default: 0 (off)
            clock: Time source in seconds. Default: time.monotonic
        """
        self.kp = kp
        self.ki = ki
        self.kd = kd
        self._clock = clock

        self.integral_limit = 0.0
        self.d_filter = 0.0
        self.output_limit = 0.0
        self.set_integral_limit(integral_limit)
        self.set_d_filter(d_filter)
        self.set_output_limit(output_limit)

        # Runtime state
        self.integral: float = 0.0
        self.prev_error: float = 0.0
        self.filtered_derivative: float = 0.0
        self.last_time: float = 0.0
        self.reset()

    def set_integral_limit(self, limit: float) -> None:
        """Clamp |integral of error * dt| to `limit` (0 disables)."""
        if limit < 0:
            raise ValueError(f"integral_limit must be >= 0, got {limit}")
        self.integral_limit = limit

    def set_d_filter(self, alpha: float) -> None:
        """Smooth the derivative with an EMA of coefficient `alpha` (0 disables)."""
        if not 0.0 <= alpha < 1.0:
            raise ValueError(f"d_filter must be in [0, 1), got {alpha}")
        self.d_filter = alpha

    def set_output_limit(self, limit: float) -> None:
        """Clamp |output| to `limit` (0 disables)."""
        if limit < 0:
            raise ValueError(f"output_limit must be >= 0, got {limit}")
        self.output_limit = limit

    def calculate(self, setpoint: float, process_variable: float) -> float:
        """Compute the PID output for one sample.

        Args:
            setpoint: Desired value.
            process_variable: Current measured value.

        Returns:
            Corrective output, clamped to ±output_limit when a limit is set.
        """
        now = self._clock()
        dt = now - self.last_time
        if dt <= 0.0:
            dt = MIN_DT

        error = setpoint - process_variable

        # Proportional: respond to current error
        p_out = self.kp * error

        # Integral with anti-windup
        self.integral += error * dt
        if self.integral_limit > 0:
            self.integral = max(-self.integral_limit, min(self.integral_limit, self.integral))
        i_out = self.ki * self.integral

        # Derivative, optionally smoothed
        raw_derivative = (error - self.prev_error) / dt
        if self.d_filter > 0:
            self.filtered_derivative = (
                self.d_filter * self.filtered_derivative + (1.0 - self.d_filter) * raw_derivative
            )
        else:
            self.filtered_derivative = raw_derivative
        d_out = self.kd * self.filtered_derivative

        output = p_out + i_out + d_out
        if self.output_limit > 0:
            output = max(-self.output_limit, min(self.output_limit, output))

        # Save state for next iteration
        self.prev_error = error
        self.last_time = now

        return output

    def reset(self) -> None:
        """Clear integral and derivative history and re-stamp the time base."""
        self.integral = 0.0
        self.prev_error = 0.0
        self.filtered_derivative = 0.0
        self.last_time = self._clock()

    def get_diagnostics(self) -> Dict[str, float]:
        """Get internal state for logging and tuning."""
        return {
            "integral": self.integral,
            "prev_error": self.prev_error,
            "filtered_derivative": self.filtered_derivative,
        }
