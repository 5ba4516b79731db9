from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class AudioFrame:
    samples: np.ndarray
    sample_rate: int

    @property
    def size(self) -> int:
        return int(self.samples.size)

    @property
    def seconds(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return float(self.samples.size) / float(self.sample_rate)
