from __future__ import annotations
from pathlib import Path
from typing import Optional, Sequence
import pandas as pd

from .errors import SchemaError


def read_table(path: str) -> pd.DataFrame:
    p = Path(path)
    suf = p.suffix.lower()
    if suf in [".csv"]:
        return pd.read_csv(p)
    if suf in [".xlsx", ".xls"]:
        return pd.read_excel(p)
    raise ValueError(f"Unsupported file type: {suf}. Expected .csv or .xlsx")


def _check_binary(df: pd.DataFrame, col: str, *, allow_missing: bool = False) -> None:
    s = df[col]
    if not allow_missing and s.isna().any():
        raise SchemaError(f"Column '{col}' has {int(s.isna().sum())} missing value(s).")
    bad = s.dropna()
    bad = bad[~bad.isin([0, 1])]
    if not bad.empty:
        shown = sorted(set(bad.astype(str)))[:10]
        raise SchemaError(f"Column '{col}' must be 0/1, found {shown}")


def validate_dataset(
    df: pd.DataFrame,
    *,
    outcome_col: Optional[str] = None,
    covariates: Optional[Sequence[str]] = None,
) -> str:
    """
    Checks the record-level schema and returns the outcome column to use.

    Required: exposure 'a' plus one of 'y' / 'm_y'. When both exist and
    outcome_col is not given, 'm_y' wins (the observed, possibly misclassified
    label) and 'y' may be missing by design. Optional 's' and covariates must
    be 0/1 as well.
    """
    if "a" not in df.columns:
        raise SchemaError("Missing required exposure column 'a'.")

    if outcome_col is None:
        if "m_y" in df.columns:
            outcome_col = "m_y"
        elif "y" in df.columns:
            outcome_col = "y"
        else:
            raise SchemaError("Missing outcome column: need 'y' or 'm_y'.")
    elif outcome_col not in df.columns:
        raise SchemaError(f"Missing outcome column: {outcome_col}")

    _check_binary(df, "a")
    _check_binary(df, outcome_col)

    # true outcome is unknown when only the misclassified label was recorded
    if outcome_col == "m_y" and "y" in df.columns:
        _check_binary(df, "y", allow_missing=True)

    if "s" in df.columns:
        _check_binary(df, "s")

    for c in covariates or []:
        if c not in df.columns:
            raise SchemaError(f"Missing covariate column: {c}")
        _check_binary(df, c)

    return outcome_col
