from __future__ import annotations

import re
from pathlib import Path
from typing import Optional, Sequence

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from .trajectory import Trajectory

_SUBSCRIPT_DIGITS = str.maketrans("0123456789", "₀₁₂₃₄₅₆₇₈₉")


def subscript(name: str, index: Optional[int] = None) -> str:
    """Render ``name`` with a unicode subscript index.

    ``subscript("I", 2) -> "I₂"``. Without ``index``, trailing digits already in
    the name are converted: ``subscript("I2") -> "I₂"``.
    """
    if index is not None:
        return f"{name}{str(index).translate(_SUBSCRIPT_DIGITS)}"
    match = re.match(r"^(.*?)(\d+)$", name)
    if match is None:
        return name
    return match.group(1) + match.group(2).translate(_SUBSCRIPT_DIGITS)


def plot_trajectory(
    trajectory: Trajectory,
    title: Optional[str] = None,
    columns: Optional[Sequence[str]] = None,
    save_path: Optional[Path] = None,
    show: bool = False,
) -> plt.Figure:
    """Plot state components of a trajectory against time.

    Parameters
    ----------
    trajectory : Trajectory
        Output of :func:`epiwire.integrate.integrate`.
    title : str, optional
        Plot title.
    columns : list of str, optional
        Subset of state labels to plot. If None, plots all.
    save_path : Path, optional
        If provided, saves the figure to this path.
    show : bool
        Whether to display the plot interactively.

    Returns
    -------
    fig : matplotlib.figure.Figure
    """
    labels = list(columns) if columns else list(trajectory.labels)

    fig, ax = plt.subplots(figsize=(10, 6))
    for label in labels:
        ax.plot(trajectory.times, trajectory[label], label=subscript(label), linewidth=2)

    ax.set_xlabel("Time", fontsize=12)
    ax.set_ylabel("Population", fontsize=12)
    if title:
        ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(loc="best", fontsize=10)
    ax.grid(alpha=0.3)
    plt.tight_layout()

    if save_path:
        save_path = Path(save_path)
        save_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    if show:
        plt.show()
    else:
        plt.close(fig)

    return fig
