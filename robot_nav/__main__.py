"""
Main entry point when running the robot_nav module with python -m.
"""

from .runner import cli

if __name__ == "__main__":
    cli()
