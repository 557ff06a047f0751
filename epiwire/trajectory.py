"""Sampled trajectories and their tabular export."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np
import pandas as pd


@dataclass
class Trajectory:
    """Ordered ``(time, state)`` samples with one label per state component."""
    times: np.ndarray
    states: np.ndarray
    labels: Tuple[str, ...]

    def __post_init__(self) -> None:
        self.times = np.asarray(self.times, dtype=float)
        self.states = np.asarray(self.states, dtype=float)
        if self.states.ndim != 2 or self.states.shape[0] != self.times.size:
            raise ValueError(
                f"states must have shape ({self.times.size}, n), got {self.states.shape}"
            )
        self.labels = tuple(self.labels)
        if len(self.labels) != self.states.shape[1]:
            raise ValueError(f"Expected {self.states.shape[1]} labels, got {len(self.labels)}")

    def __len__(self) -> int:
        return self.times.size

    def __iter__(self) -> Iterator[Tuple[float, np.ndarray]]:
        for t, u in zip(self.times, self.states):
            yield float(t), u

    def __getitem__(self, label: str) -> np.ndarray:
        try:
            return self.states[:, self.labels.index(label)]
        except ValueError:
            raise KeyError(f"No state component '{label}' (labels: {list(self.labels)})") from None

    @property
    def final_state(self) -> np.ndarray:
        return self.states[-1]

    def totals(self, labels: Optional[Sequence[str]] = None) -> np.ndarray:
        """Sum of the selected components (all by default) at every sample."""
        if labels is None:
            return self.states.sum(axis=1)
        return np.sum([self[label] for label in labels], axis=0)

    def to_frame(self, time_col: str = "t") -> pd.DataFrame:
        df = pd.DataFrame(self.states, columns=list(self.labels))
        df.insert(0, time_col, self.times)
        return df

    def to_csv(self, path: Path, time_col: str = "t") -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_frame(time_col).to_csv(path, index=False)
        return path
