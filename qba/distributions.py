"""
Bias-parameter distributions.

Every parameter in a BiasParameters object is one of these. Fixed values
are reused unchanged in every trial; the others are sampled once per trial
from the trial's own numpy Generator.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import numpy as np


@dataclass(frozen=True)
class Fixed:
    value: float

    def sample(self, rng: np.random.Generator) -> float:
        return float(self.value)

    @property
    def center(self) -> float:
        return float(self.value)


@dataclass(frozen=True)
class Uniform:
    min: float
    max: float

    def __post_init__(self) -> None:
        if not self.min <= self.max:
            raise ValueError(f"uniform requires min <= max, got {self}")

    def sample(self, rng: np.random.Generator) -> float:
        return float(rng.uniform(self.min, self.max))

    @property
    def center(self) -> float:
        return (self.min + self.max) / 2.0


@dataclass(frozen=True)
class Triangular:
    min: float
    mode: float
    max: float

    def __post_init__(self) -> None:
        if not (self.min <= self.mode <= self.max and self.min < self.max):
            raise ValueError(f"triangular requires min <= mode <= max and min < max, got {self}")

    def sample(self, rng: np.random.Generator) -> float:
        return float(rng.triangular(self.min, self.mode, self.max))

    @property
    def center(self) -> float:
        return float(self.mode)


@dataclass(frozen=True)
class Trapezoidal:
    """Flat between mode_lo and mode_hi, linear tails down to min and max."""
    min: float
    mode_lo: float
    mode_hi: float
    max: float

    def __post_init__(self) -> None:
        if not (self.min <= self.mode_lo <= self.mode_hi <= self.max and self.min < self.max):
            raise ValueError(f"trapezoidal requires min <= mode_lo <= mode_hi <= max, got {self}")

    def sample(self, rng: np.random.Generator) -> float:
        a, b, c, d = self.min, self.mode_lo, self.mode_hi, self.max
        u = rng.uniform()
        # height h so the total area is 1
        h = 2.0 / ((d + c) - (a + b))
        left = h * (b - a) / 2.0
        mid = h * (c - b)
        if u < left:
            return float(a + np.sqrt(u * (b - a) * 2.0 / h))
        if u < left + mid:
            return float(b + (u - left) / h)
        return float(d - np.sqrt((1.0 - u) * (d - c) * 2.0 / h))

    @property
    def center(self) -> float:
        return (self.mode_lo + self.mode_hi) / 2.0


@dataclass(frozen=True)
class Beta:
    alpha: float
    beta: float

    def __post_init__(self) -> None:
        if self.alpha <= 0 or self.beta <= 0:
            raise ValueError(f"beta requires alpha, beta > 0, got {self}")

    def sample(self, rng: np.random.Generator) -> float:
        return float(rng.beta(self.alpha, self.beta))

    @property
    def center(self) -> float:
        return self.alpha / (self.alpha + self.beta)


Distribution = Union[Fixed, Uniform, Triangular, Trapezoidal, Beta]

_BY_NAME = {
    "fixed": Fixed,
    "constant": Fixed,
    "uniform": Uniform,
    "triangular": Triangular,
    "trapezoidal": Trapezoidal,
    "beta": Beta,
}


def as_distribution(spec: Union[float, int, Mapping[str, Any], Distribution]) -> Distribution:
    """
    Accepts a number (fixed value), an existing distribution, or a mapping
    like {"dist": "triangular", "min": 0.7, "mode": 0.8, "max": 0.9}.
    """
    if isinstance(spec, (Fixed, Uniform, Triangular, Trapezoidal, Beta)):
        return spec
    if isinstance(spec, bool):
        raise ValueError(f"Not a bias parameter value: {spec!r}")
    if isinstance(spec, (int, float)):
        return Fixed(float(spec))
    if isinstance(spec, Mapping):
        kw = dict(spec)
        name = str(kw.pop("dist", "fixed")).lower()
        if name not in _BY_NAME:
            raise ValueError(f"Unsupported distribution: {name}. Expected one of {sorted(_BY_NAME)}")
        try:
            return _BY_NAME[name](**{k: float(v) for k, v in kw.items()})
        except TypeError as e:
            raise ValueError(f"Bad arguments for {name} distribution: {kw}") from e
    raise ValueError(f"Not a bias parameter value: {spec!r}")


def draw_value(dist: Distribution, rng: Optional[np.random.Generator]) -> float:
    """One draw from dist, or its central value when rng is None (simple bias analysis)."""
    if rng is None:
        return float(dist.center)
    return dist.sample(rng)
