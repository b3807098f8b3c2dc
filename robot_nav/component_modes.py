"""
Component isolation modes for modular testing.

This module defines which navigation features are active/bypassed
to enable systematic evaluation of each feature's contribution.
"""

from dataclasses import dataclass
import argparse
import sys


@dataclass
class ComponentMode:
    """Configuration for which navigation features are active."""

    # Localization Layer
    use_vision: bool = True  # If False, odometry only (no AprilTag corrections)
    use_arc_compensation: bool = True  # If False, raw tracking-wheel deltas

    # Control Layer
    use_anti_windup: bool = True  # If False, unbounded PID integral
    use_d_filter: bool = True  # If False, raw PID derivative
    use_slew_limit: bool = True  # If False, no acceleration limit on drive speed

    def __str__(self):
        """Human-readable description of active features."""
        components = []

        # Localization
        odom = "Odometry"
        if self.use_arc_compensation:
            odom += "(arc)"
        components.append(odom)
        if self.use_vision:
            components.append("AprilTag")

        # Control
        pid_terms = []
        if self.use_anti_windup:
            pid_terms.append("AW")
        if self.use_d_filter:
            pid_terms.append("DF")
        if pid_terms:
            components.append(f"PID({'+'.join(pid_terms)})")
        else:
            components.append("PID(raw)")

        components.append("Slew" if self.use_slew_limit else "NoSlew")

        return " → ".join(components)

    def to_dict(self):
        """Convert to dictionary for logging."""
        return {
            'use_vision': self.use_vision,
            'use_arc_compensation': self.use_arc_compensation,
            'use_anti_windup': self.use_anti_windup,
            'use_d_filter': self.use_d_filter,
            'use_slew_limit': self.use_slew_limit,
        }


def parse_component_flags(args=None):
    """
    Parse command-line flags to determine which features are active.

    Args:
        args: List of command-line arguments (default: sys.argv[1:])

    Returns:
        tuple: (ComponentMode, remaining_args)
            - ComponentMode with appropriate settings
            - List of remaining arguments not consumed
    """
    parser = argparse.ArgumentParser(add_help=False)

    # Feature bypass flags
    parser.add_argument('--no-vision', action='store_true',
                        help='Disable AprilTag corrections (odometry only)')
    parser.add_argument('--no-arc-compensation', action='store_true',
                        help='Disable tracking-wheel arc compensation')
    parser.add_argument('--no-anti-windup', action='store_true',
                        help='Disable PID integral clamping')
    parser.add_argument('--no-d-filter', action='store_true',
                        help='Disable PID derivative smoothing')
    parser.add_argument('--no-slew-limit', action='store_true',
                        help='Disable drive acceleration slew limiting')

    # Parse known args, keep the rest
    if args is None:
        args = sys.argv[1:]

    known_args, remaining_args = parser.parse_known_args(args)

    mode = ComponentMode(
        use_vision=not known_args.no_vision,
        use_arc_compensation=not known_args.no_arc_compensation,
        use_anti_windup=not known_args.no_anti_windup,
        use_d_filter=not known_args.no_d_filter,
        use_slew_limit=not known_args.no_slew_limit,
    )

    return mode, remaining_args
