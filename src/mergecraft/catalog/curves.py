from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import List, Sequence, Tuple


@dataclass(frozen=True)
class InterpolationCurve:
    """Piecewise-linear curve through sorted (t, value) keyframes.

    Evaluation outside the keyframe range clamps to the first/last value.
    """

    keys: Tuple[Tuple[float, float], ...]

    def __post_init__(self) -> None:
        if not self.keys:
            raise ValueError("InterpolationCurve requires at least one keyframe")
        ts = [t for t, _ in self.keys]
        for i in range(1, len(ts)):
            if ts[i] <= ts[i - 1]:
                raise ValueError("Curve keyframes must have strictly increasing t")

    @classmethod
    def linear(cls, start: float, end: float) -> "InterpolationCurve":
        return cls(((0.0, float(start)), (1.0, float(end))))

    @classmethod
    def from_points(cls, points: Sequence[Sequence[float]]) -> "InterpolationCurve":
        return cls(tuple((float(t), float(v)) for t, v in points))

    def to_points(self) -> List[List[float]]:
        return [[t, v] for t, v in self.keys]

    def is_monotonic(self) -> bool:
        values = [v for _, v in self.keys]
        increasing = all(b >= a for a, b in zip(values, values[1:]))
        decreasing = all(b <= a for a, b in zip(values, values[1:]))
        return increasing or decreasing

    def evaluate(self, t: float) -> float:
        first_t, first_v = self.keys[0]
        last_t, last_v = self.keys[-1]
        if t <= first_t:
            return first_v
        if t >= last_t:
            return last_v
        ts = [k[0] for k in self.keys]
        i = bisect_right(ts, t)
        t0, v0 = self.keys[i - 1]
        t1, v1 = self.keys[i]
        frac = (t - t0) / (t1 - t0)
        return v0 + (v1 - v0) * frac


DEFAULT_PERIOD_CURVE = InterpolationCurve.linear(1.0, 0.5)
DEFAULT_COST_CURVE = InterpolationCurve.linear(1.0, 0.7)
