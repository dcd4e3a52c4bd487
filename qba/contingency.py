from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
import numpy as np
import pandas as pd

StratumKey = Tuple[int, ...]


@dataclass(frozen=True)
class Contingency2x2:
    # observed (possibly misclassified) labels
    a: int  # exposed & outcome
    b: int  # unexposed & outcome
    c: int  # exposed & no-outcome
    d: int  # unexposed & no-outcome

    def __post_init__(self) -> None:
        if min(self.a, self.b, self.c, self.d) < 0:
            raise ValueError(f"Contingency counts must be >= 0, got {self}")

    @property
    def n(self) -> int:
        return self.a + self.b + self.c + self.d

    def as_array(self) -> np.ndarray:
        return np.array([[self.a, self.b], [self.c, self.d]], dtype=int)

    def as_corrected(self) -> "CorrectedTable":
        return CorrectedTable(A=float(self.a), B=float(self.b), C=float(self.c), D=float(self.d))


@dataclass(frozen=True)
class CorrectedTable:
    """
    Bias-corrected cell totals, same layout as Contingency2x2:
        exposed   unexposed
    y=1    A         B
    y=0    C         D
    Cells are real-valued and may be negative when the assumed
    classification parameters do not fit the observed counts.
    """
    A: float
    B: float
    C: float
    D: float

    @property
    def n(self) -> float:
        return self.A + self.B + self.C + self.D

    @property
    def has_negative(self) -> bool:
        return min(self.A, self.B, self.C, self.D) < 0

    def as_array(self) -> np.ndarray:
        return np.array([[self.A, self.B], [self.C, self.D]], dtype=float)


def _counts(exposure: np.ndarray, outcome: np.ndarray) -> Contingency2x2:
    a = int(np.sum((exposure == 1) & (outcome == 1)))
    b = int(np.sum((exposure == 0) & (outcome == 1)))
    c = int(np.sum((exposure == 1) & (outcome == 0)))
    d = int(np.sum((exposure == 0) & (outcome == 0)))
    return Contingency2x2(a=a, b=b, c=c, d=d)


def build_2x2(
    df: pd.DataFrame,
    *,
    exposure_col: str = "a",
    outcome_col: str = "y",
) -> Contingency2x2:
    """
    Builds a 2x2 table from 0/1 columns:
              exposed   unexposed
    outcome=1    a          b
    outcome=0    c          d
    """
    work = df[[exposure_col, outcome_col]].dropna()
    return _counts(work[exposure_col].to_numpy(), work[outcome_col].to_numpy())


def build_strata(
    df: pd.DataFrame,
    *,
    exposure_col: str = "a",
    outcome_col: str = "y",
    covariates: Optional[Sequence[str]] = None,
) -> Dict[StratumKey, Contingency2x2]:
    """
    One 2x2 table per combination of binary covariate values, keyed by the
    tuple of covariate values. Without covariates the single key is ().
    """
    covariates = list(covariates or [])
    if not covariates:
        return {(): build_2x2(df, exposure_col=exposure_col, outcome_col=outcome_col)}

    out: Dict[StratumKey, Contingency2x2] = {}
    for key, sub in df.groupby(covariates, sort=True):
        key = key if isinstance(key, tuple) else (key,)
        out[tuple(int(k) for k in key)] = build_2x2(
            sub, exposure_col=exposure_col, outcome_col=outcome_col
        )
    return out


def stratum_keys(df: pd.DataFrame, covariates: Optional[Sequence[str]]) -> List[StratumKey]:
    """Stratum key of every record, in row order."""
    covariates = list(covariates or [])
    if not covariates:
        return [()] * len(df)
    values = df[covariates].astype(int).to_numpy()
    return [tuple(int(v) for v in row) for row in values]
