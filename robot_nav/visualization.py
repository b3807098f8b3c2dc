"""
Visualization utilities for simulated navigation runs.

Plots true vs estimated trajectory on the field with tag placements and
motion targets, plus the position error and vision confidence over time.
"""

from pathlib import Path
from typing import Iterable, Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from .config import (
    FIELD_SIZE,
    FIELD_TAGS,
    PLOT_BLUE,
    PLOT_ORANGE,
    PLOT_TAUPE,
    PLOT_YELLOW_ORANGE,
)
from .pose import FieldTag
from .simulation import SimulationLog


def style_axis(ax: Axes, title: str = "", xlabel: str = "", ylabel: str = "") -> None:
    """Apply consistent styling to a matplotlib axis."""
    if title:
        ax.set_title(title, fontweight="bold")
    if xlabel:
        ax.set_xlabel(xlabel)
    if ylabel:
        ax.set_ylabel(ylabel)
    ax.grid(True, alpha=0.3, linestyle="--", linewidth=0.5)


def plot_field(ax: Axes, field_tags: Iterable[FieldTag] = FIELD_TAGS) -> None:
    """Draw the field boundary and AprilTag placements (arrow = facing)."""
    ax.plot(
        [0, FIELD_SIZE, FIELD_SIZE, 0, 0],
        [0, 0, FIELD_SIZE, FIELD_SIZE, 0],
        "-",
        color=PLOT_TAUPE,
        linewidth=1.5,
    )
    for tag in field_tags:
        ax.plot(tag.x, tag.y, "s", color=PLOT_TAUPE, markersize=7, zorder=4)
        ax.arrow(
            tag.x,
            tag.y,
            0.15 * np.cos(tag.facing),
            0.15 * np.sin(tag.facing),
            color=PLOT_TAUPE,
            width=0.01,
            zorder=4,
        )
        ax.annotate(str(tag.id), (tag.x, tag.y), textcoords="offset points", xytext=(5, 5))


def plot_trajectory(
    log: SimulationLog,
    title: str = "Simulated Run",
    save_path: Optional[Path] = None,
) -> Figure:
    """Plot true vs estimated trajectory, field, and targets.

    Args:
        log: Recorded simulation run.
        title: Figure title.
        save_path: Optional path to save the figure.

    Returns:
        Matplotlib figure object.
    """
    fig, (ax_xy, ax_err) = plt.subplots(1, 2, figsize=(14, 6), gridspec_kw={"width_ratios": [1, 1.2]})
    fig.suptitle(title, fontsize=14, fontweight="bold")

    plot_field(ax_xy)

    if len(log.time) > 0:
        ax_xy.plot(
            log.true_pose[:, 0],
            log.true_pose[:, 1],
            "-",
            color=PLOT_BLUE,
            linewidth=2.0,
            label="True",
            zorder=2,
        )
        ax_xy.plot(
            log.est_pose[:, 0],
            log.est_pose[:, 1],
            "--",
            color=PLOT_ORANGE,
            linewidth=1.5,
            label="Estimated",
            zorder=3,
        )
        ax_xy.plot(
            log.true_pose[0, 0],
            log.true_pose[0, 1],
            "o",
            color=PLOT_BLUE,
            markersize=8,
            markeredgecolor="black",
            label="Start",
            zorder=5,
        )

    for i, target in enumerate(log.targets):
        ax_xy.plot(
            target.x,
            target.y,
            "*",
            color=PLOT_YELLOW_ORANGE,
            markersize=14,
            markeredgecolor="black",
            label="Targets" if i == 0 else None,
            zorder=6,
        )

    style_axis(ax_xy, title="Field", xlabel="X Position (m)", ylabel="Y Position (m)")
    ax_xy.set_xlim(-0.2, FIELD_SIZE + 0.2)
    ax_xy.set_ylim(-0.2, FIELD_SIZE + 0.2)
    ax_xy.set_aspect("equal")
    ax_xy.legend(loc="best", framealpha=0.9, edgecolor=PLOT_TAUPE)

    if len(log.time) > 0:
        error_mm = np.linalg.norm(log.true_pose[:, :2] - log.est_pose[:, :2], axis=1) * 1000.0
        ax_err.plot(log.time, error_mm, "-", color=PLOT_ORANGE, linewidth=1.5, label="Position error")
        ax_conf = ax_err.twinx()
        ax_conf.plot(
            log.time,
            log.vision_confidence,
            "-",
            color=PLOT_BLUE,
            linewidth=1.0,
            alpha=0.6,
            label="Vision confidence",
        )
        ax_conf.set_ylabel("Confidence")
        ax_conf.set_ylim(0, 1)

    style_axis(ax_err, title="Localization Error", xlabel="Time (s)", ylabel="Error (mm)")

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig
