# qba/parameters.py
from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from .contingency import StratumKey
from .distributions import Distribution, as_distribution, draw_value
from .misclassification import NEGATIVE_COUNT_POLICIES, Classification

MECHANISMS = ("selection", "misclassification", "confounding")
POLICIES = ("strict", "lenient")
ESTIMATORS = ("mh", "logit")
MISCLASSIFICATION_LEVELS = ("table", "record")


@dataclass(frozen=True)
class SelectionParams:
    """Sxy = P(selected | exposure=x, outcome=y)."""
    S00: Distribution
    S01: Distribution
    S10: Distribution
    S11: Distribution

    def draw(self, rng: Optional[np.random.Generator]) -> Dict[str, float]:
        return {k: draw_value(getattr(self, k), rng) for k in ("S00", "S01", "S10", "S11")}


@dataclass(frozen=True)
class ClassificationParams:
    sens0: Distribution
    sens1: Distribution
    spec0: Distribution
    spec1: Distribution

    def draw(self, rng: Optional[np.random.Generator]) -> Classification:
        return Classification(
            sens0=draw_value(self.sens0, rng),
            sens1=draw_value(self.sens1, rng),
            spec0=draw_value(self.spec0, rng),
            spec1=draw_value(self.spec1, rng),
        )


@dataclass(frozen=True)
class MisclassificationParams:
    """
    Classification parameters per stratum. Strata not listed in `strata`
    use `default` (perfect classification unless given).
    """
    default: ClassificationParams
    strata: Tuple[Tuple[StratumKey, ClassificationParams], ...] = ()

    def draw(self, rng: Optional[np.random.Generator], keys: List[StratumKey]) -> Dict[StratumKey, Classification]:
        # draw order is fixed (default first, then listed strata) so a trial's
        # parameters do not depend on which strata the resample happened to contain
        base = self.default.draw(rng)
        overrides = {k: p.draw(rng) for k, p in self.strata}
        return {k: overrides.get(k, base) for k in keys}


@dataclass(frozen=True)
class ConfoundingParams:
    p_u_given_z1: Distribution
    p_u_given_z0: Distribution
    rr_uy: Distribution

    def draw(self, rng: Optional[np.random.Generator]) -> Dict[str, float]:
        return {k: draw_value(getattr(self, k), rng) for k in ("p_u_given_z1", "p_u_given_z0", "rr_uy")}


@dataclass(frozen=True)
class BiasParameters:
    """
    Bias parameters for one analysis. A mechanism is applied only when its
    parameter block is present.
    """
    selection: Optional[SelectionParams] = None
    misclassification: Optional[MisclassificationParams] = None
    confounding: Optional[ConfoundingParams] = None

    @property
    def mechanisms(self) -> List[str]:
        return [m for m in MECHANISMS if getattr(self, m) is not None]

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "BiasParameters":
        """
        {
          "selection": {"S00": 0.8, "S01": 0.6, "S10": 0.8, "S11": 0.5},
          "misclassification": {
            "default": {"sens0": 1, "sens1": 1, "spec0": 1, "spec1": 1},
            "strata": {"1": {"sens1": {"dist": "triangular", "min": 0.7, "mode": 0.8, "max": 0.9}}}
          },
          "confounding": {"p_u_given_z1": 0.4, "p_u_given_z0": 0.2, "rr_uy": 2.0}
        }
        Stratum keys are comma-separated covariate values in covariate order.
        """
        unknown = set(obj) - set(MECHANISMS)
        if unknown:
            raise ValueError(f"Unknown bias mechanism(s): {sorted(unknown)}")

        selection = None
        if obj.get("selection") is not None:
            selection = SelectionParams(**_dists(obj["selection"], ("S00", "S01", "S10", "S11")))

        misclassification = None
        if obj.get("misclassification") is not None:
            m = dict(obj["misclassification"])
            if "default" not in m and "strata" not in m:
                m = {"default": m}
            strata = tuple(
                (_parse_stratum_key(k), _classification(v))
                for k, v in (m.get("strata") or {}).items()
            )
            misclassification = MisclassificationParams(
                default=_classification(m.get("default") or {}), strata=strata
            )

        confounding = None
        if obj.get("confounding") is not None:
            confounding = ConfoundingParams(
                **_dists(obj["confounding"], ("p_u_given_z1", "p_u_given_z0", "rr_uy"))
            )

        return cls(selection=selection, misclassification=misclassification, confounding=confounding)


def _dists(obj: Mapping[str, Any], names: Tuple[str, ...]) -> Dict[str, Distribution]:
    missing = [n for n in names if n not in obj]
    if missing:
        raise ValueError(f"Missing bias parameter(s): {missing}")
    extra = set(obj) - set(names)
    if extra:
        raise ValueError(f"Unknown bias parameter(s): {sorted(extra)}")
    return {n: as_distribution(obj[n]) for n in names}


def _classification(obj: Mapping[str, Any]) -> ClassificationParams:
    names = ("sens0", "sens1", "spec0", "spec1")
    extra = set(obj) - set(names)
    if extra:
        raise ValueError(f"Unknown classification parameter(s): {sorted(extra)}")
    # unspecified sensitivity/specificity means perfect classification
    return ClassificationParams(**{n: as_distribution(obj.get(n, 1.0)) for n in names})


def _parse_stratum_key(k: Any) -> StratumKey:
    if isinstance(k, tuple):
        return tuple(int(v) for v in k)
    if isinstance(k, int):
        return (k,)
    s = str(k).strip()
    if s == "":
        return ()
    return tuple(int(v) for v in s.split(","))


@dataclass(frozen=True)
class AnalysisConfig:
    n_trials: int = 1000
    seed: int = 42
    policy: str = "strict"
    n_jobs: int = 1
    estimator: str = "mh"
    misclassification_level: str = "table"
    covariates: Tuple[str, ...] = ()
    outcome_col: Optional[str] = None
    negative_counts: str = "propagate"
    bootstrap: bool = True
    percentiles: Tuple[float, float] = (2.5, 97.5)

    def __post_init__(self) -> None:
        if self.n_trials < 1:
            raise ValueError(f"n_trials must be >= 1, got {self.n_trials}")
        if self.n_jobs < 1:
            raise ValueError(f"n_jobs must be >= 1, got {self.n_jobs}")
        if self.policy not in POLICIES:
            raise ValueError(f"Invalid policy: {self.policy}. Expected one of {POLICIES}")
        if self.estimator not in ESTIMATORS:
            raise ValueError(f"Invalid estimator: {self.estimator}. Expected one of {ESTIMATORS}")
        if self.misclassification_level not in MISCLASSIFICATION_LEVELS:
            raise ValueError(f"Invalid misclassification_level: {self.misclassification_level}")
        if self.negative_counts not in NEGATIVE_COUNT_POLICIES:
            raise ValueError(f"Invalid negative_counts: {self.negative_counts}")
        lo, hi = self.percentiles
        if not 0 <= lo < hi <= 100:
            raise ValueError(f"percentiles must satisfy 0 <= low < high <= 100, got {self.percentiles}")

    def with_overrides(self, **kw: Any) -> "AnalysisConfig":
        return replace(self, **{k: v for k, v in kw.items() if v is not None})


def load_config(path: str) -> Tuple[BiasParameters, AnalysisConfig]:
    """
    Reads a JSON file with a "bias_parameters" object (see
    BiasParameters.from_dict) and an optional "analysis" object whose keys
    are AnalysisConfig fields.
    """
    with open(path, "r", encoding="utf-8-sig") as f:
        obj = json.load(f)
    if not isinstance(obj, dict):
        raise ValueError("Config must be a JSON object.")

    params = BiasParameters.from_dict(obj.get("bias_parameters") or {})

    analysis = dict(obj.get("analysis") or {})
    for k in ("covariates", "percentiles"):
        if k in analysis:
            analysis[k] = tuple(analysis[k])
    try:
        config = AnalysisConfig(**analysis)
    except TypeError as e:
        raise ValueError(f"Unknown analysis option in {path}: {e}") from e

    return params, config
