# qba/imputation.py
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .contingency import StratumKey, stratum_keys
from .errors import DegenerateCorrection

_PROB_TOL = 1e-12


def _prob_true_positive(pv: Mapping[str, float], exposure: int, observed: int) -> float:
    """P(true outcome = 1) for a record given its exposure and observed label."""
    suffix = "1" if int(exposure) == 1 else "0"
    if int(observed) == 1:
        p = pv["ppv" + suffix]
    else:
        p = 1.0 - pv["npv" + suffix]
    if -_PROB_TOL <= p < 0.0 or 1.0 < p <= 1.0 + _PROB_TOL:
        # rounding residue, e.g. ppv = sens*A/a with spec=1
        p = min(max(p, 0.0), 1.0)
    if not 0.0 <= p <= 1.0:
        raise DegenerateCorrection(
            f"Predictive values imply P(true outcome)={p:.6g} outside [0, 1] "
            f"(exposure={exposure}, observed={observed})."
        )
    return float(p)


def impute_true_outcome(
    record: Mapping[str, Any],
    predictive_values: Mapping[str, float],
    random_source: np.random.Generator,
    *,
    exposure_col: str = "a",
    outcome_col: str = "m_y",
) -> int:
    """
    Draws the true outcome of one record from its predictive value.

    `predictive_values` must already be the set for the record's stratum.
    Repeated calls with different draws can disagree; only the expected
    imputed table matches the corrected one.
    """
    p = _prob_true_positive(predictive_values, record[exposure_col], record[outcome_col])
    return int(random_source.binomial(1, p))


def impute_outcomes(
    df: pd.DataFrame,
    pv_by_stratum: Mapping[StratumKey, Mapping[str, float]],
    random_source: np.random.Generator,
    *,
    exposure_col: str = "a",
    outcome_col: str = "m_y",
    covariates: Optional[Sequence[str]] = None,
) -> pd.Series:
    """
    Column-level version of impute_true_outcome over every record of df.
    Returns a 0/1 Series aligned with df.index.
    """
    keys = stratum_keys(df, covariates)
    exposure = df[exposure_col].to_numpy().astype(int)
    observed = df[outcome_col].to_numpy().astype(int)

    probs = np.empty(len(df), dtype=float)
    cache: Dict[tuple, float] = {}
    for i, (key, e, o) in enumerate(zip(keys, exposure, observed)):
        ck = (key, e, o)
        if ck not in cache:
            if key not in pv_by_stratum:
                raise KeyError(f"No predictive values for stratum {key}")
            cache[ck] = _prob_true_positive(pv_by_stratum[key], e, o)
        probs[i] = cache[ck]

    draws = random_source.binomial(1, probs)
    return pd.Series(draws.astype(int), index=df.index, name="y_imputed")
